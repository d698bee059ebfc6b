"""Reconciliation between the note cache and the note network.

Startup runs two passes in a fixed order:

1. ``SyncDeletedNotes`` removes from the cache every note that has a
   tombstone on the network.
2. ``SyncNotes`` merges live notes. For each network note the replica with
   the later ``updated_at`` wins. Notes only the network has are inserted
   into the cache, and notes only the cache has are pushed afterwards.

Both passes abort before writing anything if one of their initial reads
fails, since a partial view could delete or resurrect the wrong notes.
Individual write failures are logged, reported and left for the next pass.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from notesync.config import NoteSyncConfig, TieBreak
from notesync.exceptions import ErrorCode
from notesync.models.schema import Note
from notesync.models.state import (
    DataState,
    MessageType,
    StateEvent,
    SyncDeletedNotesEvent,
    SyncNotesEvent,
    UIComponentType,
    error_response,
    success_response,
)
from notesync.services.response_handlers import (
    ApiResponseHandler,
    ApiResult,
    CacheResponseHandler,
    CacheResult,
    safe_api_call,
    safe_cache_call,
)
from notesync.storage.base import NoteCacheDataSource, NoteNetworkDataSource
from notesync.utils import chunked

logger = logging.getLogger(__name__)

SYNC_DELETED_NOTES_SUCCESS = "Successfully synced deleted notes."
SYNC_NOTES_SUCCESS = "Successfully synced notes."
SYNC_PARTIAL_FAILURE = "Sync finished, but {count} notes could not be synced."


@dataclass
class SyncReport:
    """Note ids touched by a sync pass, grouped by what happened to them."""

    inserted_into_cache: List[str] = field(default_factory=list)
    updated_in_cache: List[str] = field(default_factory=list)
    pushed_to_network: List[str] = field(default_factory=list)
    removed_from_cache: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def write_count(self) -> int:
        return (
            len(self.inserted_into_cache)
            + len(self.updated_in_cache)
            + len(self.pushed_to_network)
            + len(self.removed_from_cache)
        )

    def merge(self, other: "SyncReport") -> "SyncReport":
        return SyncReport(
            inserted_into_cache=self.inserted_into_cache + other.inserted_into_cache,
            updated_in_cache=self.updated_in_cache + other.updated_in_cache,
            pushed_to_network=self.pushed_to_network + other.pushed_to_network,
            removed_from_cache=self.removed_from_cache + other.removed_from_cache,
            unchanged=self.unchanged + other.unchanged,
            failed=self.failed + other.failed,
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "inserted_into_cache": len(self.inserted_into_cache),
            "updated_in_cache": len(self.updated_in_cache),
            "pushed_to_network": len(self.pushed_to_network),
            "removed_from_cache": len(self.removed_from_cache),
            "unchanged": len(self.unchanged),
            "failed": len(self.failed),
        }


def _aborted(state: DataState, state_event: StateEvent) -> DataState[SyncReport]:
    """Re-label a failed read as an aborted sync pass."""
    logger.error(f"{state_event.event_name()} aborted: {state.message}")
    return DataState.error(
        error_response(state.message, ErrorCode.SYNC_ABORTED, UIComponentType.NONE),
        state_event=state_event,
    )


def _finished(report: SyncReport, message: str, state_event: StateEvent) -> DataState[SyncReport]:
    if report.failed:
        response = success_response(
            SYNC_PARTIAL_FAILURE.format(count=len(report.failed)),
            UIComponentType.NONE,
            MessageType.INFO,
        )
    else:
        response = success_response(message, UIComponentType.NONE)
    return DataState.data_state(response, data=report, state_event=state_event)


def _read_all(state_event: StateEvent, result, handler_cls) -> DataState[List[Note]]:
    return handler_cls(
        result,
        state_event,
        lambda notes: DataState.data_state(data=notes, state_event=state_event),
        error_ui=UIComponentType.NONE,
    ).get_result()


class SyncDeletedNotes:
    """Remove tombstoned notes from the cache."""

    def __init__(self, cache: NoteCacheDataSource, network: NoteNetworkDataSource):
        self.cache = cache
        self.network = network

    def execute(self, state_event: Optional[StateEvent] = None) -> DataState[SyncReport]:
        event = state_event or SyncDeletedNotesEvent()
        report = SyncReport()

        tombstones_state = _read_all(
            event, safe_api_call(self.network.get_deleted_all), ApiResponseHandler
        )
        if tombstones_state.is_error:
            return _aborted(tombstones_state, event)
        tombstones: List[Note] = tombstones_state.data
        if not tombstones:
            return _finished(report, SYNC_DELETED_NOTES_SUCCESS, event)

        cached_state = _read_all(event, safe_cache_call(self.cache.get_all), CacheResponseHandler)
        if cached_state.is_error:
            return _aborted(cached_state, event)
        cached_ids = {note.id for note in cached_state.data}

        stale = [note for note in tombstones if note.id in cached_ids]
        if stale:
            result = safe_cache_call(self.cache.delete_many, stale)
            stale_ids = [note.id for note in stale]
            if isinstance(result, CacheResult.Success):
                removed = min(result.value or 0, len(stale_ids))
                # The row count does not say which ids were already gone
                report.removed_from_cache.extend(stale_ids[:removed])
                report.unchanged.extend(stale_ids[removed:])
                if removed < len(stale_ids):
                    logger.warning(
                        f"Expected to remove {len(stale_ids)} tombstoned notes, "
                        f"cache removed {removed}"
                    )
                logger.info(f"Removed {removed} tombstoned notes from cache")
            else:
                report.failed.extend(stale_ids)
                logger.error(f"Failed to remove tombstoned notes: {result.error_message}")

        return _finished(report, SYNC_DELETED_NOTES_SUCCESS, event)


class SyncNotes:
    """Merge live notes between cache and network by last write wins.

    Args:
        cache: The local cache
        network: The remote store
        config: Supplies the tie-break policy, the push chunk size and
            whether each decision is logged at INFO
    """

    def __init__(
        self,
        cache: NoteCacheDataSource,
        network: NoteNetworkDataSource,
        config: Optional[NoteSyncConfig] = None,
    ):
        if config is None:
            from notesync.config import config as default_config
            config = default_config
        self.cache = cache
        self.network = network
        self.config = config

    def _log_decision(self, message: str, *args) -> None:
        level = logging.INFO if self.config.log_sync_decisions else logging.DEBUG
        logger.log(level, message, *args)

    def _apply_to_cache(self, network_note: Note, report: SyncReport) -> None:
        result = safe_cache_call(
            self.cache.update,
            network_note.id,
            network_note.title,
            network_note.body,
            network_note.updated_at,
        )
        if isinstance(result, CacheResult.Success) and result.value:
            report.updated_in_cache.append(network_note.id)
        else:
            report.failed.append(network_note.id)
            logger.warning(f"Sync: could not update cached note {network_note.id}")

    def _push_to_network(self, cached_note: Note, report: SyncReport) -> None:
        result = safe_api_call(
            self.network.insert_or_update, cached_note, preserve_timestamp=True
        )
        if isinstance(result, ApiResult.Success):
            report.pushed_to_network.append(cached_note.id)
        else:
            report.failed.append(cached_note.id)
            logger.warning(f"Sync: could not push note {cached_note.id}")

    def _insert_into_cache(self, network_note: Note, report: SyncReport) -> None:
        result = safe_cache_call(self.cache.insert, network_note)
        if isinstance(result, CacheResult.Success) and result.value:
            report.inserted_into_cache.append(network_note.id)
        else:
            report.failed.append(network_note.id)
            logger.warning(f"Sync: could not insert note {network_note.id} into cache")

    def _reconcile(self, network_note: Note, cached_note: Note, report: SyncReport) -> None:
        if network_note.updated_at > cached_note.updated_at:
            self._log_decision("Sync %s: network is newer, updating cache", network_note.id)
            self._apply_to_cache(network_note, report)
        elif network_note.updated_at < cached_note.updated_at:
            self._log_decision("Sync %s: cache is newer, pushing to network", network_note.id)
            self._push_to_network(cached_note, report)
        elif network_note.same_content(cached_note):
            report.unchanged.append(network_note.id)
        elif self.config.sync_tie_break == TieBreak.NETWORK_WINS:
            self._log_decision("Sync %s: same timestamp, network wins", network_note.id)
            self._apply_to_cache(network_note, report)
        else:
            self._log_decision("Sync %s: same timestamp, cache wins", network_note.id)
            self._push_to_network(cached_note, report)

    def execute(self, state_event: Optional[StateEvent] = None) -> DataState[SyncReport]:
        event = state_event or SyncNotesEvent()
        report = SyncReport()

        cached_state = _read_all(event, safe_cache_call(self.cache.get_all), CacheResponseHandler)
        if cached_state.is_error:
            return _aborted(cached_state, event)
        network_state = _read_all(event, safe_api_call(self.network.get_all), ApiResponseHandler)
        if network_state.is_error:
            return _aborted(network_state, event)

        # Cached notes not yet matched to a network note
        cache_only: Dict[str, Note] = {note.id: note for note in cached_state.data}

        for network_note in network_state.data:
            lookup = safe_cache_call(self.cache.get_by_id, network_note.id)
            if isinstance(lookup, CacheResult.GenericError):
                cache_only.pop(network_note.id, None)
                report.failed.append(network_note.id)
                logger.warning(f"Sync: cache lookup failed for {network_note.id}")
                continue

            cached_note = lookup.value
            if cached_note is None:
                self._log_decision("Sync %s: only on network, inserting into cache", network_note.id)
                self._insert_into_cache(network_note, report)
                continue

            cache_only.pop(network_note.id, None)
            self._reconcile(network_note, cached_note, report)

        # Runs only once every network note has been matched
        remaining = list(cache_only.values())
        for batch in chunked(remaining, self.config.network_batch_limit):
            result = safe_api_call(
                self.network.insert_or_update_many, batch, preserve_timestamp=True
            )
            batch_ids = [note.id for note in batch]
            if isinstance(result, ApiResult.Success):
                report.pushed_to_network.extend(batch_ids)
            else:
                report.failed.extend(batch_ids)
                logger.warning(f"Sync: could not push {len(batch_ids)} cache-only notes")

        logger.info(f"Sync notes finished: {report.to_dict()}")
        return _finished(report, SYNC_NOTES_SUCCESS, event)


class StartupSync:
    """Tombstones first, then live notes.

    If the tombstone pass aborts the note pass is skipped, otherwise a note
    deleted on another device would still be in the cache and get pushed
    back to the network as a cache-only note.
    """

    def __init__(self, sync_deleted_notes: SyncDeletedNotes, sync_notes: SyncNotes):
        self.sync_deleted_notes = sync_deleted_notes
        self.sync_notes = sync_notes

    def execute(self) -> DataState[SyncReport]:
        deleted_state = self.sync_deleted_notes.execute()
        if deleted_state.is_error:
            logger.error("Skipping note sync because deleted-notes sync aborted")
            return deleted_state

        notes_state = self.sync_notes.execute()
        if notes_state.is_error:
            notes_state.data = deleted_state.data
            return notes_state

        report = deleted_state.data.merge(notes_state.data)
        return _finished(report, SYNC_NOTES_SUCCESS, notes_state.state_event)
