"""Common test fixtures for notesync."""

import logging
from logging.handlers import RotatingFileHandler

import pytest

from notesync.models.db_models import init_db
from notesync.models.schema import NoteFactory
from notesync.services.dispatcher import build_interactors
from notesync.services.network_mirror import NetworkMirror
from notesync.storage.document_store import InMemoryDocumentStore
from notesync.storage.note_cache import SqlNoteCache
from notesync.storage.note_network import DocumentNoteNetwork
from tests.fakes import FakeClock, FaultInjectingNoteCache, make_config, make_note


@pytest.fixture
def test_config(tmp_path):
    """Configuration isolated from the environment and the real data dir."""
    return make_config(base_dir=tmp_path)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(test_config, clock):
    """A real SQLite cache in memory."""
    engine = init_db("sqlite:///:memory:")
    yield SqlNoteCache(test_config, engine=engine, clock=clock)
    engine.dispose()


@pytest.fixture
def faulty_cache(cache):
    return FaultInjectingNoteCache(cache)


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def network(store, test_config, clock):
    return DocumentNoteNetwork(store, test_config.user_id, clock=clock)


@pytest.fixture
def mirror(test_config):
    mirror = NetworkMirror.from_config(test_config)
    yield mirror
    mirror.shutdown(wait=False)


@pytest.fixture
def factory(clock):
    return NoteFactory(clock)


@pytest.fixture
def interactors(cache, network, mirror, test_config, factory):
    return build_interactors(cache, network, mirror, test_config, factory)


@pytest.fixture
def faulty_interactors(faulty_cache, network, mirror, test_config, factory):
    """Use cases wired to a cache that fails on sentinel ids."""
    return build_interactors(faulty_cache, network, mirror, test_config, factory)


@pytest.fixture
def seeded_notes(cache):
    """Three notes in the cache only, updated at t=1, 2 and 3."""
    notes = [make_note("seed-1", 1), make_note("seed-2", 2), make_note("seed-3", 3)]
    for note in notes:
        cache.insert(note)
    return notes


@pytest.fixture
def isolated_logging():
    """Remove handlers that a test attaches to the notesync logger."""
    root_logger = logging.getLogger("notesync")
    before = list(root_logger.handlers)
    level = root_logger.level
    yield root_logger
    for handler in list(root_logger.handlers):
        if handler not in before:
            root_logger.removeHandler(handler)
            if isinstance(handler, RotatingFileHandler):
                handler.close()
    root_logger.setLevel(level)
