#!/usr/bin/env python
"""Command line entry point for notesync."""
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from notesync import __version__
from notesync.config import config
from notesync.exceptions import NoteSyncError
from notesync.models.db_models import init_db
from notesync.models.schema import DEFAULT_FILTER_AND_ORDER, format_timestamp
from notesync.models.state import DataState
from notesync.observability import configure_logging
from notesync.services.dispatcher import build_interactors
from notesync.services.network_mirror import NetworkMirror
from notesync.services.sync_service import SyncReport
from notesync.storage.document_store import JsonFileDocumentStore
from notesync.storage.note_cache import SqlNoteCache
from notesync.storage.note_network import DocumentNoteNetwork

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="notesync", description="Offline-first notes with remote sync"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--database-path",
        help="SQLite cache file path",
        type=str,
        default=os.environ.get("NOTESYNC_DATABASE_PATH"),
    )
    parser.add_argument(
        "--remote-path",
        help="JSON file used as the remote document store",
        type=str,
        default=os.environ.get("NOTESYNC_REMOTE_STORE_PATH"),
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.environ.get("NOTESYNC_LOG_LEVEL", "WARNING"),
    )

    commands = parser.add_subparsers(dest="command", required=True)

    add = commands.add_parser("add", help="Create a note")
    add.add_argument("title")
    add.add_argument("--body", default="")
    add.add_argument("--id", dest="note_id", default=None, help="Use this id instead of a new one")

    update = commands.add_parser("update", help="Change a note's title and body")
    update.add_argument("note_id")
    update.add_argument("title")
    update.add_argument("--body", default="")

    delete = commands.add_parser("delete", help="Delete one or more notes")
    delete.add_argument("note_ids", nargs="+")

    restore = commands.add_parser("restore", help="Restore a deleted note")
    restore.add_argument("note_id")

    list_cmd = commands.add_parser("list", help="Search cached notes")
    list_cmd.add_argument("--query", default="")
    list_cmd.add_argument("--order", default=DEFAULT_FILTER_AND_ORDER,
                          help="title, -title, updated_at or -updated_at")
    list_cmd.add_argument("--page", type=int, default=1)

    commands.add_parser("count", help="Number of cached notes")
    commands.add_parser("sync", help="Reconcile the cache with the remote store")

    reset = commands.add_parser(
        "reset-remote", help="Delete this user's notes and tombstones from the remote store"
    )
    reset.add_argument("--yes", action="store_true", help="Confirm the deletion")

    return parser.parse_args(argv)


def update_config(args):
    """Update the global config with command line arguments."""
    if args.database_path:
        config.database_path = Path(args.database_path)
    if args.remote_path:
        config.remote_store_path = Path(args.remote_path)
    # One-shot process: finish every network write before exiting
    config.mirror_inline = True


def _report(state: DataState) -> int:
    if state.message:
        stream = sys.stderr if state.is_error else sys.stdout
        print(state.message, file=stream)
    return 1 if state.is_error else 0


def _print_report(report: SyncReport) -> None:
    for name, count in report.to_dict().items():
        print(f"  {name}: {count}")


def run_command(args, cache, network, interactors) -> int:
    """Execute one subcommand and return the process exit code."""
    if args.command == "add":
        state = interactors.insert_new_note.execute(
            note_id=args.note_id, title=args.title, body=args.body
        )
        if not state.is_error:
            print(state.data.id)
        return _report(state)

    if args.command == "update":
        return _report(interactors.update_note.execute(args.note_id, args.title, args.body))

    if args.command == "delete":
        notes = []
        missing = []
        for note_id in args.note_ids:
            note = cache.get_by_id(note_id)
            if note is None:
                missing.append(note_id)
            else:
                notes.append(note)
        for note_id in missing:
            print(f"Note {note_id} not found", file=sys.stderr)
        if len(args.note_ids) == 1:
            if not notes:
                return 1
            return _report(interactors.delete_note.execute(notes[0]))
        code = _report(interactors.delete_multiple_notes.execute(notes))
        return 1 if missing else code

    if args.command == "restore":
        tombstone = next(
            (note for note in network.get_deleted_all() if note.id == args.note_id), None
        )
        if tombstone is None:
            print(f"No deleted note with id {args.note_id}", file=sys.stderr)
            return 1
        return _report(interactors.restore_deleted_note.execute(tombstone))

    if args.command == "list":
        state = interactors.search_notes.execute(args.query, args.order, args.page)
        for note in state.data or []:
            print(f"{note.id}  {format_timestamp(note.updated_at)}  {note.title}")
        return _report(state)

    if args.command == "count":
        state = interactors.get_num_notes.execute()
        if not state.is_error:
            print(state.data)
        return 1 if state.is_error else 0

    if args.command == "sync":
        state = interactors.startup_sync.execute()
        code = _report(state)
        if state.data is not None:
            _print_report(state.data)
        return code

    if args.command == "reset-remote":
        if not args.yes:
            print("Refusing to clear the remote store without --yes", file=sys.stderr)
            return 1
        network.delete_all()
        logger.warning(f"Cleared remote notes and tombstones for user {config.user_id}")
        print("Remote store cleared")
        return 0

    print(f"Unknown command {args.command}", file=sys.stderr)
    return 2


def main(argv: Optional[List[str]] = None) -> int:
    """Run the notesync command line tool."""
    args = parse_args(argv)
    update_config(args)

    log_level = getattr(logging, args.log_level.upper(), logging.WARNING)
    try:
        configure_logging(level=log_level, console=False)
    except Exception as e:
        # Fall back to basic console logging if file logging fails
        logging.basicConfig(level=log_level)
        logger.warning(f"Failed to configure file logging: {e}")

    try:
        engine = init_db(config.get_db_url())
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        print(f"Failed to open cache: {e}", file=sys.stderr)
        return 1

    cache = SqlNoteCache(config, engine=engine)
    network = DocumentNoteNetwork(
        JsonFileDocumentStore(config.get_remote_store_path()),
        config.user_id,
        batch_limit=config.network_batch_limit,
    )
    mirror = NetworkMirror.from_config(config)
    interactors = build_interactors(cache, network, mirror, config)
    try:
        return run_command(args, cache, network, interactors)
    except NoteSyncError as e:
        logger.error(f"Command {args.command} failed: {e}")
        print(str(e), file=sys.stderr)
        return 1
    finally:
        mirror.shutdown(wait=True)
        engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
