"""
Unit tests for version retrieval and deletion.

Tests cover:
- Newest-first version listing
- Retrieval by explicit version id
- Deletes scoped by node and version
- Refusal to delete the current version
"""

import pytest


@pytest.fixture
def versioned(repository, save):
    """A photo with three versions (widths 100, 200, 300)."""
    photo = save("Photo", umbracoWidth=100)
    version_ids = [photo.version]
    for width in (200, 300):
        photo.new_version()
        photo.set_value("umbracoWidth", width)
        repository.add_or_update(photo)
        version_ids.append(photo.version)
    return photo, version_ids


class TestVersionRetrieval:
    """Tests for version listing and lookup."""

    def test_all_versions_newest_first(self, repository, versioned):
        photo, version_ids = versioned

        versions = repository.get_all_versions(photo.id)

        assert [v.version for v in versions] == list(reversed(version_ids))
        assert [v.get_value("umbracoWidth") for v in versions] == [300, 200, 100]

    def test_current_is_latest_version(self, repository, versioned):
        photo, version_ids = versioned

        assert repository.get(photo.id).version == version_ids[-1]
        assert repository.versions.current_version_id(photo.id) == version_ids[-1]

    def test_get_by_version(self, repository, versioned):
        photo, version_ids = versioned

        historical = repository.get_by_version(version_ids[0])

        assert historical.id == photo.id
        assert historical.version == version_ids[0]
        assert historical.get_value("umbracoWidth") == 100

    def test_unknown_version_is_none(self, repository):
        assert repository.get_by_version("no-such-version") is None

    def test_versions_of_unknown_node_is_empty(self, repository):
        assert repository.get_all_versions(4242) == []

    def test_update_without_new_version_rewrites_in_place(self, repository, save):
        photo = save("Photo", umbracoWidth=100)
        photo.set_value("umbracoWidth", 150)
        repository.add_or_update(photo)

        versions = repository.get_all_versions(photo.id)

        assert len(versions) == 1
        assert versions[0].get_value("umbracoWidth") == 150


class TestVersionDeletion:
    """Tests for version deletion."""

    def test_delete_historical_version(self, db, repository, versioned):
        photo, version_ids = versioned

        assert repository.delete_version(photo.id, version_ids[0]) is True

        remaining = [v.version for v in repository.get_all_versions(photo.id)]
        assert remaining == [version_ids[2], version_ids[1]]
        assert db.scalar(
            "SELECT COUNT(*) FROM property_data WHERE version_id = ?", (version_ids[0],)
        ) == 0

    def test_delete_leaves_other_versions_intact(self, db, repository, versioned):
        photo, version_ids = versioned

        repository.delete_version(photo.id, version_ids[1])

        assert repository.get_by_version(version_ids[0]).get_value("umbracoWidth") == 100
        assert repository.get(photo.id).get_value("umbracoWidth") == 300

    def test_delete_removes_preview_snapshot(self, repository, versioned):
        photo, version_ids = versioned
        historical = repository.get_by_version(version_ids[0])
        repository.add_or_update_preview_xml(historical)
        assert repository.preview_xml.get(photo.id, version_ids[0]) is not None

        repository.delete_version(photo.id, version_ids[0])

        assert repository.preview_xml.get(photo.id, version_ids[0]) is None

    def test_delete_is_scoped_by_node(self, repository, versioned, save):
        photo, version_ids = versioned
        other = save("Other")

        assert repository.versions.delete_version(other.id, version_ids[0]) is False
        assert repository.get_by_version(version_ids[0]) is not None

    def test_current_version_cannot_be_deleted(self, repository, versioned):
        photo, version_ids = versioned

        with pytest.raises(ValueError, match="current version"):
            repository.delete_version(photo.id, version_ids[-1])

        assert repository.get(photo.id).version == version_ids[-1]

    def test_unknown_version_returns_false(self, repository, versioned):
        photo, _ = versioned

        assert repository.delete_version(photo.id, "no-such-version") is False
