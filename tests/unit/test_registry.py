"""
Unit tests for the media type registry.

Tests cover:
- Type registration
- Detached lookups
- Registry freezing
- Fingerprint generation
- Duplicate detection
"""

import pytest

from mediadb.media_store.schema import (
    BUILTIN_MEDIA_TYPES,
    DuplicateRegistrationError,
    MediaType,
    MediaTypeRegistry,
    RegistryFrozenError,
    builtin_registry,
    property_type,
)


class TestMediaTypeRegistry:
    """Tests for MediaTypeRegistry."""

    def test_register_media_type(self):
        """Can register and look up a media type."""
        registry = MediaTypeRegistry()
        Image = MediaType(content_type_id=1032, alias="image")

        registry.register(Image)

        assert registry.get(1032) == Image
        assert registry.get_by_alias("image") == Image
        assert len(registry) == 1

    def test_get_unknown_returns_none(self):
        """Unknown ids and aliases are None, not errors."""
        registry = MediaTypeRegistry()

        assert registry.get(999) is None
        assert registry.get_by_alias("missing") is None

    def test_get_returns_detached_copy(self):
        """Every lookup hands out a new instance."""
        registry = builtin_registry()

        first = registry.get(1032)
        second = registry.get(1032)

        assert first == second
        assert first is not second
        assert first.property_types[0] is not second.property_types[0]

    def test_duplicate_content_type_id_raises(self):
        """Registering duplicate content_type_id raises error."""
        registry = MediaTypeRegistry()
        registry.register(MediaType(content_type_id=1, alias="image"))

        with pytest.raises(DuplicateRegistrationError, match="content_type_id 1 already registered"):
            registry.register(MediaType(content_type_id=1, alias="file"))

    def test_duplicate_alias_raises(self):
        """Registering duplicate alias raises error."""
        registry = MediaTypeRegistry()
        registry.register(MediaType(content_type_id=1, alias="image"))

        with pytest.raises(DuplicateRegistrationError, match="alias 'image' already registered"):
            registry.register(MediaType(content_type_id=2, alias="image"))

    def test_duplicate_property_type_id_across_types_raises(self):
        """A property_type_id belongs to exactly one media type."""
        registry = MediaTypeRegistry()
        registry.register(
            MediaType(content_type_id=1, alias="image", property_types=(property_type(5, "file", "str"),))
        )

        with pytest.raises(DuplicateRegistrationError, match="property_type_id 5"):
            registry.register(
                MediaType(
                    content_type_id=2, alias="file", property_types=(property_type(5, "file", "str"),)
                )
            )

    def test_freeze_registry(self):
        """Can freeze registry."""
        registry = builtin_registry()

        fingerprint = registry.freeze()

        assert registry.frozen is True
        assert fingerprint.startswith("sha256:")
        assert registry.fingerprint == fingerprint

    def test_freeze_twice_raises(self):
        """Freezing twice raises error."""
        registry = MediaTypeRegistry()
        registry.freeze()

        with pytest.raises(RegistryFrozenError):
            registry.freeze()

    def test_register_after_freeze_raises(self):
        """Registering after freeze raises error."""
        registry = MediaTypeRegistry()
        registry.freeze()

        with pytest.raises(RegistryFrozenError):
            registry.register(MediaType(content_type_id=1, alias="image"))

    def test_fingerprint_deterministic(self):
        """Same types produce the same fingerprint."""
        assert builtin_registry().freeze() == builtin_registry().freeze()

    def test_fingerprint_changes_with_types(self):
        """Different types produce different fingerprints."""
        registry1 = MediaTypeRegistry()
        registry2 = MediaTypeRegistry()
        registry1.register(
            MediaType(content_type_id=1, alias="image", property_types=(property_type(1, "file", "str"),))
        )
        registry2.register(
            MediaType(
                content_type_id=1,
                alias="image",
                property_types=(property_type(1, "file", "str"), property_type(2, "width", "int")),
            )
        )

        assert registry1.freeze() != registry2.freeze()

    def test_iterate_media_types_sorted(self):
        """media_types() yields types ordered by id."""
        registry = MediaTypeRegistry()
        for media_type in reversed(BUILTIN_MEDIA_TYPES):
            registry.register(media_type)

        ids = [media_type.content_type_id for media_type in registry.media_types()]
        assert ids == [1031, 1032, 1033]

    def test_property_type_ids_for_alias(self):
        """An alias shared across media types maps to every declaring id."""
        registry = builtin_registry()

        assert registry.property_type_ids_for_alias("umbracoBytes") == [9, 26]
        assert registry.property_type_ids_for_alias("missing") == []

    def test_to_dict_from_dict_preserves_types(self):
        """A registry survives a dict round trip with the same fingerprint."""
        original = builtin_registry()
        restored = MediaTypeRegistry.from_dict(original.to_dict())

        assert restored.get(1032) == original.get(1032)
        assert restored.freeze() == original.freeze()

    def test_from_json(self):
        """Can load a registry from JSON."""
        registry = MediaTypeRegistry.from_json(
            '{"media_types": [{"content_type_id": 7, "alias": "video", '
            '"property_types": [{"property_type_id": 70, "alias": "duration", "kind": "int"}]}]}'
        )

        video = registry.get_by_alias("video")
        assert video.content_type_id == 7
        assert video.get_property_type("duration").property_type_id == 70
