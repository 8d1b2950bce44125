"""
Unit tests for media entities.

Tests cover:
- Change tracking on media and properties
- Property collections shaped by the media type
- Stamping and new versions
"""

import pytest

from mediadb.media_store.models import Media, PropertyCollection
from mediadb.media_store.schema import IMAGE, MediaType, property_type


class TestPropertyCollection:
    """Tests for PropertyCollection."""

    def test_from_media_type_declares_every_property(self):
        collection = PropertyCollection.from_media_type(IMAGE)

        assert len(collection) == len(IMAGE.property_types)
        assert "umbracoWidth" in collection
        assert collection["umbracoWidth"].value is None

    def test_defaults_applied(self):
        Video = MediaType(
            content_type_id=7,
            alias="video",
            property_types=(property_type(70, "autoplay", "bool", default=False),),
        )

        assert PropertyCollection.from_media_type(Video)["autoplay"].value is False

    def test_by_type_id(self):
        collection = PropertyCollection.from_media_type(IMAGE)

        assert collection.by_type_id(7).alias == "umbracoWidth"
        assert collection.by_type_id(999) is None


class TestMediaChangeTracking:
    """Tests for Media change tracking."""

    @pytest.fixture
    def media(self):
        return Media(name="Photo", parent_id=-1, content_type=IMAGE)

    def test_new_media_is_clean(self, media):
        assert media.is_dirty() is False

    def test_field_assignment_marks_dirty(self, media):
        media.parent_id = 1050

        assert media.is_property_dirty("parent_id") is True
        assert media.dirty_properties() == {"parent_id"}

    def test_assigning_same_value_is_not_a_change(self, media):
        media.name = "Photo"

        assert media.is_dirty() is False

    def test_property_value_marks_media_dirty(self, media):
        media.set_value("umbracoWidth", 800)

        assert media.is_dirty() is True
        assert media.properties["umbracoWidth"].is_dirty() is True

    def test_set_unknown_alias_raises(self, media):
        with pytest.raises(KeyError, match="no property 'colour'"):
            media.set_value("colour", "red")

    def test_reset_remembers_previous(self, media):
        media.name = "Renamed"
        media.reset_dirty_properties()

        assert media.is_dirty() is False
        assert media.was_property_dirty("name") is True

    def test_reset_without_remembering(self, media):
        media.name = "Renamed"
        media.reset_dirty_properties(remember_previous=False)

        assert media.was_property_dirty("name") is False


class TestMediaStamping:
    """Tests for Media stamping and versions."""

    def test_adding_entity_stamps_identity_fields(self):
        media = Media(name="Photo", parent_id=-1, content_type=IMAGE)

        media.adding_entity()

        assert media.key
        assert media.version
        assert media.create_date > 0
        assert media.update_date == media.create_date

    def test_updating_entity_moves_forward(self):
        media = Media(name="Photo", parent_id=-1, content_type=IMAGE, update_date=10**15)

        media.updating_entity()

        assert media.update_date == 10**15 + 1

    def test_new_version_resets_property_ids(self):
        media = Media(name="Photo", parent_id=-1, content_type=IMAGE, version="v1")
        media.properties["umbracoWidth"].id = 42

        version = media.new_version()

        assert version != "v1"
        assert media.version == version
        assert media.properties["umbracoWidth"].id == 0

    def test_has_identity(self):
        assert Media(name="Photo", parent_id=-1, content_type=IMAGE).has_identity is False
        assert Media(name="Photo", parent_id=-1, content_type=IMAGE, id=1000).has_identity is True
