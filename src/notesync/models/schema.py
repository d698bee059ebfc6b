"""Data models for notesync."""

import datetime
import random
import re
import uuid
from datetime import timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator

from notesync.exceptions import NoteValidationError

# Note ids are client generated (uuid4 by default) and used as document keys
SAFE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-]+$")

# Filter-and-order strings for cache searches. A leading "-" means descending.
NOTE_FILTER_TITLE = "title"
NOTE_FILTER_DATE_UPDATED = "updated_at"
NOTE_ORDER_ASC = ""
NOTE_ORDER_DESC = "-"
DEFAULT_FILTER_AND_ORDER = NOTE_ORDER_DESC + NOTE_FILTER_DATE_UPDATED

_SAMPLE_WORDS = [
    "river", "lantern", "orbit", "meadow", "copper", "signal", "harbor",
    "quartz", "ember", "willow", "atlas", "pixel", "summit", "thread",
]


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: Optional[datetime.datetime]) -> datetime.datetime:
    """Normalize a datetime to UTC, treating naive datetimes as UTC.

    SQLite hands back naive datetimes, so everything read from the cache goes
    through here before it is compared with a network timestamp.
    """
    if dt_value is None:
        return utc_now()
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value.astimezone(timezone.utc)


def format_timestamp(dt_value: datetime.datetime) -> str:
    """Render a timestamp in the canonical wire format.

    Always UTC, always with microseconds and an explicit ``+00:00`` offset,
    so comparing two formatted strings gives the same answer as comparing
    the datetimes.
    """
    return ensure_timezone_aware(dt_value).isoformat(timespec="microseconds")


def parse_timestamp(value: str) -> datetime.datetime:
    """Parse a wire timestamp back into an aware UTC datetime."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return ensure_timezone_aware(datetime.datetime.fromisoformat(value))


class Note(BaseModel):
    """A single note, the unit both replicas store and reconcile."""

    id: str = Field(..., description="Client generated unique id")
    title: str = Field(..., description="Title of the note")
    body: str = Field(default="", description="Free text body")
    created_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was created (UTC)"
    )
    updated_at: datetime.datetime = Field(
        default_factory=utc_now,
        description="Last modification (UTC), the only conflict-resolution signal",
    )

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not v or not SAFE_ID_PATTERN.match(v):
            raise ValueError(
                "Note ID must be non-empty and contain only alphanumeric "
                "characters, underscores and hyphens"
            )
        return v

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Validate that the title is not empty."""
        if not v.strip():
            raise ValueError("Title cannot be empty")
        return v

    @field_validator("body", mode="before")
    @classmethod
    def validate_body(cls, v: Optional[str]) -> str:
        return "" if v is None else v

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timestamp(cls, v: datetime.datetime) -> datetime.datetime:
        return ensure_timezone_aware(v)

    def same_content(self, other: "Note") -> bool:
        """True when title and body match, regardless of timestamps."""
        return self.title == other.title and self.body == other.body

    def to_document(self) -> Dict[str, Any]:
        """Serialize to the document shape stored by the remote store."""
        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Note":
        """Build a Note from a remote document."""
        return cls(
            id=document["id"],
            title=document["title"],
            body=document.get("body") or "",
            created_at=parse_timestamp(document["created_at"]),
            updated_at=parse_timestamp(document["updated_at"]),
        )


class NoteFactory:
    """Creates notes with consistent ids and timestamps.

    Args:
        clock: Callable returning the current aware datetime. Tests pass a
            controllable clock so timestamp ordering is deterministic.
    """

    def __init__(self, clock: Callable[[], datetime.datetime] = utc_now):
        self.clock = clock

    def create_single_note(
        self,
        note_id: Optional[str] = None,
        title: str = "",
        body: Optional[str] = "",
    ) -> Note:
        """Create a note with both timestamps set from one clock reading.

        Raises:
            NoteValidationError: If the id or title is invalid
        """
        now = self.clock()
        try:
            return Note(
                id=note_id or str(uuid.uuid4()),
                title=title,
                body=body,
                created_at=now,
                updated_at=now,
            )
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or "note"
            value = note_id if field == "id" else title
            raise NoteValidationError(
                f"{field}: {first.get('msg', 'invalid value')}", field=field, value=value
            ) from e

    def create_note_list(self, count: int) -> List[Note]:
        """Create ``count`` notes with random titles and bodies."""
        notes = []
        for _ in range(count):
            title = " ".join(random.sample(_SAMPLE_WORDS, 2)).capitalize()
            body = " ".join(random.choices(_SAMPLE_WORDS, k=12))
            notes.append(self.create_single_note(title=title, body=body))
        return notes


def parse_filter_and_order(filter_and_order: Optional[str]) -> Tuple[str, bool]:
    """Split a filter-and-order string into ``(field, descending)``.

    Unknown fields fall back to ``updated_at`` so a stale preference can
    never break a search.

    Examples:
        "-updated_at" -> ("updated_at", True)
        "title" -> ("title", False)
    """
    value = (filter_and_order or DEFAULT_FILTER_AND_ORDER).strip()
    descending = value.startswith(NOTE_ORDER_DESC)
    field = value[1:] if descending else value
    if field not in (NOTE_FILTER_TITLE, NOTE_FILTER_DATE_UPDATED):
        return NOTE_FILTER_DATE_UPDATED, descending
    return field, descending
