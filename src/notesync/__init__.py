"""
notesync - offline-first note storage with opportunistic remote synchronization.

Notes are written to a local SQLite cache first and mirrored to a remote
document store in the background. Deletions are recorded remotely as
tombstones, and a reconciliation pass at startup brings both replicas back
into agreement using last-write-wins on the note's update timestamp.

This version uses synchronous operations.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("notesync")
except PackageNotFoundError:
    __version__ = "0.3.0"
