"""
Shared fixtures for media store tests.
"""

import os
import tempfile

import pytest

from mediadb.media_store.cache import CacheGateway
from mediadb.media_store.models import Media
from mediadb.media_store.repository import MediaRepository, SqliteTagStore
from mediadb.media_store.schema import builtin_registry
from mediadb.media_store.storage import Database


class QueryRecorder:
    """Records every statement executed on a database connection."""

    def __init__(self, db):
        self.db = db
        self.statements = []

    def __enter__(self):
        self.db.connection.set_trace_callback(self.statements.append)
        return self

    def __exit__(self, *exc_info):
        self.db.connection.set_trace_callback(None)

    def count(self, fragment):
        return sum(1 for statement in self.statements if fragment in statement)


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def db(data_dir):
    """Initialized database handing out ids from 1000."""
    database = Database(os.path.join(data_dir, "media.db"), wal_mode=False, first_node_id=1000)
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def registry():
    """Frozen registry of the built-in media types."""
    registry = builtin_registry()
    registry.freeze()
    return registry


@pytest.fixture
def cache():
    return CacheGateway(max_entries=100)


@pytest.fixture
def repository(db, registry, cache):
    return MediaRepository(db, registry, SqliteTagStore(db), cache=cache)


@pytest.fixture
def make_media(registry):
    """Factory for unsaved media of a registered type."""

    def factory(name, parent_id=-1, content_type_id=1032, **values):
        media = Media(name=name, parent_id=parent_id, content_type=registry.get(content_type_id))
        for alias, value in values.items():
            media.set_value(alias, value)
        return media

    return factory


@pytest.fixture
def save(repository, make_media):
    """Create and persist a media item in one call."""

    def factory(name, parent_id=-1, content_type_id=1032, **values):
        media = make_media(name, parent_id=parent_id, content_type_id=content_type_id, **values)
        repository.add_or_update(media)
        return media

    return factory


@pytest.fixture
def recorder(db):
    return QueryRecorder(db)
