"""Use cases, synchronization and dispatch for notesync."""
