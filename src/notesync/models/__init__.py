"""Domain models for notesync."""
