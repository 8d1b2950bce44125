"""
Unit tests for sibling name resolution.

Tests cover:
- Similar-name ordering
- Collision walk semantics
- Scoping by parent, object type and self
"""

import pytest

from mediadb.media_store.repository import (
    MediaRepository,
    SqliteTagStore,
    UniqueNameResolver,
    compare_similar_names,
    similar_name_key,
)


class TestSimilarNameComparer:
    """Tests for compare_similar_names."""

    def test_suffixes_compare_numerically(self):
        assert compare_similar_names("Photo (2)", "Photo (10)") < 0
        assert compare_similar_names("Photo (10)", "Photo (2)") > 0
        assert compare_similar_names("Photo (3)", "Photo (3)") == 0

    def test_base_comparison_ignores_case(self):
        assert compare_similar_names("photo (2)", "Photo (10)") < 0

    def test_different_bases_compare_ordinally(self):
        assert compare_similar_names("Beach (1)", "Alps (2)") > 0

    def test_non_numeric_suffix_compares_ordinally(self):
        assert compare_similar_names("Photo (b)", "Photo (a)") > 0

    def test_bare_name_leads_its_family_regardless_of_case(self):
        assert compare_similar_names("photo", "Photo (1)") < 0
        assert compare_similar_names("Photo (1)", "photo") > 0

    def test_other_names_compare_case_insensitively(self):
        assert compare_similar_names("apple", "Banana") < 0
        assert compare_similar_names("Photo", "photo") < 0

    def test_sort_groups_family(self):
        names = ["Photo (10)", "Photo (2)", "Photo", "Photo (1)"]

        assert sorted(names, key=similar_name_key) == ["Photo", "Photo (1)", "Photo (2)", "Photo (10)"]


class TestUniqueNameResolver:
    """Tests for UniqueNameResolver."""

    @pytest.fixture
    def plain_repository(self, db, registry):
        """Repository that stores names exactly as given."""
        return MediaRepository(db, registry, SqliteTagStore(db), ensure_unique_naming=False)

    @pytest.fixture
    def siblings(self, plain_repository, make_media):
        def create(*names, parent_id=-1):
            created = []
            for name in names:
                media = make_media(name, parent_id=parent_id)
                plain_repository.add_or_update(media)
                created.append(media)
            return created

        return create

    def test_no_collision_keeps_name(self, db):
        assert UniqueNameResolver(db).resolve(-1, "Photo") == "Photo"

    def test_first_collision_gets_suffix_one(self, db, siblings):
        siblings("Photo")

        assert UniqueNameResolver(db).resolve(-1, "Photo") == "Photo (1)"

    def test_walk_fills_first_gap_reached(self, db, siblings):
        siblings("Photo (3)", "Photo", "Photo (1)")

        assert UniqueNameResolver(db).resolve(-1, "Photo") == "Photo (2)"

    def test_walk_bumps_only_on_collision(self, db, siblings):
        """No gap search: only names met in order count."""
        siblings("Photo", "Photo (2)")

        assert UniqueNameResolver(db).resolve(-1, "Photo") == "Photo (1)"

    def test_collision_is_case_insensitive(self, db, siblings):
        siblings("PHOTO")

        assert UniqueNameResolver(db).resolve(-1, "photo") == "photo (1)"

    def test_mixed_case_family_never_collides(self, db, siblings):
        siblings("photo", "Photo (1)")

        resolved = UniqueNameResolver(db).resolve(-1, "Photo")

        assert resolved == "Photo (2)"
        assert resolved.lower() not in ("photo", "photo (1)")

    def test_self_is_excluded(self, db, siblings):
        (photo,) = siblings("Photo")

        assert UniqueNameResolver(db).resolve(-1, "Photo", node_id=photo.id) == "Photo"

    def test_other_parents_are_ignored(self, db, siblings):
        (folder,) = siblings("Folder")
        siblings("Photo", parent_id=folder.id)

        assert UniqueNameResolver(db).resolve(-1, "Photo") == "Photo"

    def test_like_wildcards_are_literal(self, db, siblings):
        siblings("50% off")

        resolver = UniqueNameResolver(db)
        assert resolver.sibling_names(-1, "50_") == []
        assert resolver.resolve(-1, "50% off") == "50% off (1)"

    def test_disabled_is_passthrough(self, db, siblings):
        siblings("Photo")

        assert UniqueNameResolver(db, enabled=False).resolve(-1, "Photo") == "Photo"

    def test_repository_resolves_on_insert(self, save):
        names = [save("Photo").name for _ in range(3)]

        assert names == ["Photo", "Photo (1)", "Photo (2)"]

    def test_repository_resolves_on_rename(self, repository, save):
        save("Photo")
        other = save("Other")

        other.name = "photo"
        repository.add_or_update(other)

        assert repository.get(other.id).name == "photo (1)"
