"""Result pipeline types: responses, data states and state events.

Every use case answers with exactly one ``DataState``. The ``StateEvent``
that triggered it rides along so callers can tell results apart and so the
dispatcher can refuse a second copy of a job that is still running.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Generic, Optional, Tuple, TypeVar

from notesync.exceptions import ErrorCode
from notesync.models.schema import DEFAULT_FILTER_AND_ORDER, Note

T = TypeVar("T")


class UIComponentType(str, Enum):
    """How a message should be surfaced, if at all."""
    NONE = "none"
    TOAST = "toast"
    DIALOG = "dialog"


class MessageType(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True)
class Response:
    message: Optional[str]
    ui_component_type: UIComponentType
    message_type: MessageType
    error_code: Optional[ErrorCode] = None


@dataclass(frozen=True)
class StateMessage:
    response: Response


class EventKind(str, Enum):
    """Tag identifying which use case a StateEvent is addressed to."""
    INSERT_NEW_NOTE = "InsertNewNoteEvent"
    UPDATE_NOTE = "UpdateNoteEvent"
    DELETE_NOTE = "DeleteNoteEvent"
    DELETE_MULTIPLE_NOTES = "DeleteMultipleNotesEvent"
    RESTORE_DELETED_NOTE = "RestoreDeletedNoteEvent"
    SEARCH_NOTES = "SearchNotesEvent"
    GET_NUM_NOTES = "GetNumNotesEvent"
    SYNC_DELETED_NOTES = "SyncDeletedNotesEvent"
    SYNC_NOTES = "SyncNotesEvent"


@dataclass(frozen=True)
class StateEvent:
    """Base class for request descriptors.

    Subclasses set ``kind`` and ``_error_info`` and list the fields that
    identify a distinct job in ``_key_fields``.
    """
    kind: ClassVar[EventKind]
    _error_info: ClassVar[str] = "Unknown error"
    _key_fields: ClassVar[Tuple[str, ...]] = ()

    def event_name(self) -> str:
        return self.kind.value

    def error_info(self) -> str:
        return self._error_info

    @property
    def key(self) -> str:
        """Deduplication key: the event name plus its identifying parameters."""
        parts = [self.event_name()]
        parts.extend(str(getattr(self, name)) for name in self._key_fields)
        return ":".join(parts)


@dataclass(frozen=True)
class InsertNewNoteEvent(StateEvent):
    title: str
    body: Optional[str] = None
    note_id: Optional[str] = None

    kind: ClassVar[EventKind] = EventKind.INSERT_NEW_NOTE
    _error_info: ClassVar[str] = "Error inserting new note."
    _key_fields: ClassVar[Tuple[str, ...]] = ("note_id", "title")


@dataclass(frozen=True)
class UpdateNoteEvent(StateEvent):
    note_id: str
    title: str
    body: Optional[str] = None

    kind: ClassVar[EventKind] = EventKind.UPDATE_NOTE
    _error_info: ClassVar[str] = "Error updating note."
    _key_fields: ClassVar[Tuple[str, ...]] = ("note_id",)


@dataclass(frozen=True)
class DeleteNoteEvent(StateEvent):
    note: Note

    kind: ClassVar[EventKind] = EventKind.DELETE_NOTE
    _error_info: ClassVar[str] = "Error deleting note."

    @property
    def key(self) -> str:
        return f"{self.event_name()}:{self.note.id}"


@dataclass(frozen=True)
class DeleteMultipleNotesEvent(StateEvent):
    notes: Tuple[Note, ...] = field(default_factory=tuple)

    kind: ClassVar[EventKind] = EventKind.DELETE_MULTIPLE_NOTES
    _error_info: ClassVar[str] = "Error deleting the selected notes."

    @property
    def key(self) -> str:
        return f"{self.event_name()}:{','.join(sorted(n.id for n in self.notes))}"


@dataclass(frozen=True)
class RestoreDeletedNoteEvent(StateEvent):
    note: Note

    kind: ClassVar[EventKind] = EventKind.RESTORE_DELETED_NOTE
    _error_info: ClassVar[str] = "Error restoring the deleted note."

    @property
    def key(self) -> str:
        return f"{self.event_name()}:{self.note.id}"


@dataclass(frozen=True)
class SearchNotesEvent(StateEvent):
    query: str = ""
    filter_and_order: str = DEFAULT_FILTER_AND_ORDER
    page: int = 1

    kind: ClassVar[EventKind] = EventKind.SEARCH_NOTES
    _error_info: ClassVar[str] = "Error getting list of notes."
    _key_fields: ClassVar[Tuple[str, ...]] = ("query", "filter_and_order", "page")


@dataclass(frozen=True)
class GetNumNotesEvent(StateEvent):
    kind: ClassVar[EventKind] = EventKind.GET_NUM_NOTES
    _error_info: ClassVar[str] = "Error getting the number of notes from the cache."


@dataclass(frozen=True)
class SyncDeletedNotesEvent(StateEvent):
    kind: ClassVar[EventKind] = EventKind.SYNC_DELETED_NOTES
    _error_info: ClassVar[str] = "Error syncing deleted notes."


@dataclass(frozen=True)
class SyncNotesEvent(StateEvent):
    kind: ClassVar[EventKind] = EventKind.SYNC_NOTES
    _error_info: ClassVar[str] = "Error syncing notes."


@dataclass
class DataState(Generic[T]):
    """The single outcome of a use case: optional data plus an optional message."""

    data: Optional[T] = None
    state_message: Optional[StateMessage] = None
    state_event: Optional[StateEvent] = None

    @classmethod
    def error(
        cls,
        response: Response,
        state_event: Optional[StateEvent] = None,
        data: Optional[T] = None,
    ) -> "DataState[T]":
        return cls(data=data, state_message=StateMessage(response), state_event=state_event)

    @classmethod
    def data_state(
        cls,
        response: Optional[Response] = None,
        data: Optional[T] = None,
        state_event: Optional[StateEvent] = None,
    ) -> "DataState[T]":
        state_message = StateMessage(response) if response is not None else None
        return cls(data=data, state_message=state_message, state_event=state_event)

    @property
    def response(self) -> Optional[Response]:
        return self.state_message.response if self.state_message else None

    @property
    def message(self) -> Optional[str]:
        response = self.response
        return response.message if response else None

    @property
    def is_error(self) -> bool:
        response = self.response
        return response is not None and response.message_type == MessageType.ERROR

    @property
    def error_code(self) -> Optional[ErrorCode]:
        response = self.response
        return response.error_code if response else None


def error_response(
    message: str,
    error_code: ErrorCode,
    ui_component_type: UIComponentType = UIComponentType.DIALOG,
) -> Response:
    return Response(
        message=message,
        ui_component_type=ui_component_type,
        message_type=MessageType.ERROR,
        error_code=error_code,
    )


def success_response(
    message: str,
    ui_component_type: UIComponentType = UIComponentType.TOAST,
    message_type: MessageType = MessageType.SUCCESS,
) -> Response:
    return Response(
        message=message,
        ui_component_type=ui_component_type,
        message_type=message_type,
    )

