"""
Unit tests for the bulk snapshot rebuild.

Tests cover:
- Id-ordered groups of the configured size
- Per-item failure isolation
- Media type filtering
"""

import os

import pytest

from mediadb.media_store.repository import (
    MediaRepository,
    RebuildOutcome,
    SqliteTagStore,
)
from mediadb.media_store.serialization import to_xml
from mediadb.media_store.storage import Database


@pytest.fixture
def small_db(data_dir):
    """Database handing out ids from 10."""
    database = Database(os.path.join(data_dir, "rebuild.db"), wal_mode=False, first_node_id=10)
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def small_repository(small_db, registry):
    return MediaRepository(small_db, registry, SqliteTagStore(small_db), rebuild_group_size=2)


@pytest.fixture
def five_media(small_repository, make_media):
    created = []
    for i in range(5):
        media = make_media(f"Photo {i}")
        small_repository.add_or_update(media)
        created.append(media)
    assert [m.id for m in created] == [10, 11, 12, 13, 14]
    return created


class RecordingSerializer:
    """Serializer recording the ids it renders, optionally failing on some."""

    def __init__(self, fail_on=()):
        self.calls = []
        self.fail_on = set(fail_on)

    def __call__(self, media):
        self.calls.append(media.id)
        if media.id in self.fail_on:
            raise RuntimeError(f"cannot render {media.id}")
        return to_xml(media)


class TestSnapshotRebuild:
    """Tests for MediaRepository.rebuild_snapshots."""

    def test_groups_follow_id_order(self, small_repository, five_media):
        serializer = RecordingSerializer()

        result = small_repository.rebuild_snapshots(serializer)

        assert result.group_sizes == [2, 2, 1]
        assert serializer.calls == [10, 11, 12, 13, 14]
        assert result.succeeded == [10, 11, 12, 13, 14]
        assert result.skipped == []

    def test_snapshots_written(self, small_repository, five_media):
        small_repository.rebuild_snapshots()

        xml = small_repository.content_xml.get(12)
        assert xml.startswith("<image ")
        assert 'nodeName="Photo 2"' in xml

    def test_failing_item_is_skipped(self, small_repository, five_media):
        serializer = RecordingSerializer(fail_on={12})

        result = small_repository.rebuild_snapshots(serializer)

        assert result.succeeded == [10, 11, 13, 14]
        (skipped,) = result.skipped
        assert skipped.node_id == 12
        assert skipped.outcome == RebuildOutcome.SKIPPED
        assert skipped.cause == "RuntimeError: cannot render 12"
        assert small_repository.content_xml.get(12) is None
        assert small_repository.content_xml.get(13) is not None

    def test_node_deleted_mid_rebuild_is_skipped(self, small_repository, five_media):
        """The upsert of a vanished node fails on its own."""
        doomed = five_media[2]

        def serializer(media):
            xml = to_xml(media)
            if media.id == doomed.id:
                small_repository.delete(doomed)
            return xml

        result = small_repository.rebuild_snapshots(serializer)

        assert [item.node_id for item in result.skipped] == [12]
        assert "IntegrityError" in result.skipped[0].cause
        assert result.succeeded == [10, 11, 13, 14]

    def test_rebuild_is_idempotent(self, small_repository, five_media):
        small_repository.rebuild_snapshots()
        first = small_repository.content_xml.get(10)

        result = small_repository.rebuild_snapshots()

        assert len(result.succeeded) == 5
        assert small_repository.content_xml.get(10) == first

    def test_content_type_filter(self, small_repository, five_media, make_media):
        folder = make_media("Folder", content_type_id=1031)
        small_repository.add_or_update(folder)
        serializer = RecordingSerializer()

        result = small_repository.rebuild_snapshots(serializer, content_type_ids=[1031])

        assert serializer.calls == [folder.id]
        assert result.group_sizes == [1]

    def test_explicit_group_size(self, small_repository, five_media):
        result = small_repository.rebuild_snapshots(group_size=3)

        assert result.group_sizes == [3, 2]

    def test_empty_store(self, small_repository):
        result = small_repository.rebuild_snapshots()

        assert result.groups == 0
        assert result.items == []

    def test_non_positive_group_size_rejected(self, small_repository):
        with pytest.raises(ValueError, match="group_size must be positive"):
            small_repository.rebuilder.rebuild(to_xml, group_size=0)

    def test_result_to_dict(self, small_repository, five_media):
        result = small_repository.rebuild_snapshots(RecordingSerializer(fail_on={14}))

        assert result.to_dict() == {
            "groups": 3,
            "group_sizes": [2, 2, 1],
            "succeeded": 4,
            "skipped": [{"node_id": 14, "cause": "RuntimeError: cannot render 14"}],
        }
