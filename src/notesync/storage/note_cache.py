"""SQLite-backed note cache."""

import datetime
import logging
from contextlib import contextmanager
from typing import List, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from notesync.config import NoteSyncConfig
from notesync.exceptions import CacheError
from notesync.models.db_models import DBNote, get_session_factory, init_db
from notesync.models.schema import (
    DEFAULT_FILTER_AND_ORDER,
    NOTE_FILTER_TITLE,
    Note,
    ensure_timezone_aware,
    parse_filter_and_order,
    utc_now,
)
from notesync.storage.base import NoteCacheDataSource
from notesync.utils import escape_like_pattern

logger = logging.getLogger(__name__)

_TIMEOUT_MARKERS = ("database is locked", "database is busy", "timeout")


def _to_db_time(value: datetime.datetime) -> datetime.datetime:
    """Store timestamps as naive UTC."""
    return ensure_timezone_aware(value).replace(tzinfo=None)


class SqlNoteCache(NoteCacheDataSource):
    """Note cache on SQLAlchemy.

    Every write is committed before it returns, so a caller that mirrors to
    the network afterwards never publishes something the cache lost.
    """

    def __init__(
        self,
        config: Optional[NoteSyncConfig] = None,
        engine=None,
        clock=utc_now,
    ):
        if config is None:
            from notesync.config import config as default_config
            config = default_config
        self.config = config
        self.clock = clock
        self.engine = engine if engine is not None else init_db(config.get_db_url())
        self.session_factory = get_session_factory(self.engine)

    @contextmanager
    def _guard(self, operation: str, note_id: Optional[str] = None):
        """Translate SQLAlchemy failures into cache faults."""
        try:
            yield
        except OperationalError as e:
            if any(marker in str(e).lower() for marker in _TIMEOUT_MARKERS):
                logger.warning(f"Cache {operation} timed out: {e}")
                raise TimeoutError(f"Cache {operation} timed out") from e
            raise CacheError(
                f"Cache {operation} failed",
                operation=operation,
                note_id=note_id,
                original_error=e,
            ) from e
        except SQLAlchemyError as e:
            raise CacheError(
                f"Cache {operation} failed",
                operation=operation,
                note_id=note_id,
                original_error=e,
            ) from e

    @staticmethod
    def _db_note_to_model(db_note: DBNote) -> Note:
        return Note(
            id=db_note.id,
            title=db_note.title,
            body=db_note.body or "",
            created_at=ensure_timezone_aware(db_note.created_at),
            updated_at=ensure_timezone_aware(db_note.updated_at),
        )

    @staticmethod
    def _model_to_db_note(note: Note) -> DBNote:
        return DBNote(
            id=note.id,
            title=note.title,
            body=note.body,
            created_at=_to_db_time(note.created_at),
            updated_at=_to_db_time(note.updated_at),
        )

    def insert(self, note: Note) -> int:
        """Insert a note, replacing any row with the same id."""
        with self._guard("insert", note.id):
            with self.session_factory() as session:
                session.merge(self._model_to_db_note(note))
                session.commit()
        logger.debug(f"Cached note {note.id}")
        return 1

    def insert_many(self, notes: List[Note]) -> int:
        if not notes:
            return 0
        with self._guard("insert_many"):
            with self.session_factory() as session:
                for note in notes:
                    session.merge(self._model_to_db_note(note))
                session.commit()
        return len(notes)

    def delete(self, note_id: str) -> int:
        with self._guard("delete", note_id):
            with self.session_factory() as session:
                result = session.execute(delete(DBNote).where(DBNote.id == note_id))
                session.commit()
                return result.rowcount or 0

    def delete_many(self, notes: List[Note]) -> int:
        ids = [note.id for note in notes]
        if not ids:
            return 0
        with self._guard("delete_many"):
            with self.session_factory() as session:
                result = session.execute(delete(DBNote).where(DBNote.id.in_(ids)))
                session.commit()
                return result.rowcount or 0

    def update(
        self,
        note_id: str,
        title: str,
        body: Optional[str],
        timestamp: Optional[datetime.datetime] = None,
    ) -> int:
        """Update title and body, leaving ``created_at`` alone.

        A supplied timestamp is stored verbatim so reconciliation can keep
        the remote ``updated_at`` instead of minting a new one.
        """
        updated_at = timestamp if timestamp is not None else self.clock()
        with self._guard("update", note_id):
            with self.session_factory() as session:
                result = session.execute(
                    update(DBNote)
                    .where(DBNote.id == note_id)
                    .values(
                        title=title,
                        body=body or "",
                        updated_at=_to_db_time(updated_at),
                    )
                )
                session.commit()
                return result.rowcount or 0

    def get_all(self) -> List[Note]:
        with self._guard("get_all"):
            with self.session_factory() as session:
                db_notes = session.scalars(
                    select(DBNote).order_by(DBNote.updated_at.desc(), DBNote.id)
                ).all()
                return [self._db_note_to_model(db_note) for db_note in db_notes]

    def get_by_id(self, note_id: str) -> Optional[Note]:
        with self._guard("get_by_id", note_id):
            with self.session_factory() as session:
                db_note = session.get(DBNote, note_id)
                if db_note is None:
                    return None
                return self._db_note_to_model(db_note)

    def count(self) -> int:
        with self._guard("count"):
            with self.session_factory() as session:
                return session.scalar(select(func.count(DBNote.id))) or 0

    def search(
        self,
        query: str = "",
        filter_and_order: str = DEFAULT_FILTER_AND_ORDER,
        page: int = 1,
    ) -> List[Note]:
        """Case-insensitive search on title or body, one page at a time.

        Pages start at 1 and hold ``config.page_size`` notes.
        """
        field, descending = parse_filter_and_order(filter_and_order)
        column = DBNote.title if field == NOTE_FILTER_TITLE else DBNote.updated_at
        ordering = column.desc() if descending else column.asc()
        page = max(page, 1)
        page_size = self.config.page_size

        stmt = select(DBNote)
        if query:
            pattern = f"%{escape_like_pattern(query)}%"
            stmt = stmt.where(
                or_(
                    DBNote.title.ilike(pattern, escape="\\"),
                    DBNote.body.ilike(pattern, escape="\\"),
                )
            )
        stmt = (
            stmt.order_by(ordering, DBNote.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )

        with self._guard("search"):
            with self.session_factory() as session:
                db_notes = session.scalars(stmt).all()
                return [self._db_note_to_model(db_note) for db_note in db_notes]
