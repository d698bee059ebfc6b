"""SQLAlchemy database models for the notesync cache."""
from typing import Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Create base class for SQLAlchemy models
Base = declarative_base()


class DBNote(Base):
    """Database model for a cached note.

    Timestamps are stored as naive UTC. The cache adapter re-attaches the
    UTC zone on the way out.
    """
    __tablename__ = "notes"
    id = Column(String(255), primary_key=True, index=True)
    title = Column(String(255), nullable=False, index=True)
    body = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Note(id='{self.id}', title='{self.title}')>"


def init_db(db_url: Optional[str] = None) -> Engine:
    """Create the cache engine and its tables.

    File databases run in WAL mode with NORMAL synchronous, so a crash in
    the middle of a write never corrupts the cache. In-memory databases use
    a single shared connection so every thread sees the same data.
    """
    if db_url is None:
        from notesync.config import config
        db_url = config.get_db_url()

    if db_url.endswith(":memory:"):
        engine = create_engine(
            db_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_engine(
            db_url,
            pool_pre_ping=True,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Engine):
    """Get a session factory for the database."""
    return sessionmaker(bind=engine, expire_on_commit=False)
