"""
Integration tests for the media store CLI.

Tests cover:
- Database initialization
- show / versions output and exit codes
- Snapshot rebuild options
"""

import json
import os

import pytest

from mediadb.media_store.config import MediaStoreConfig
from mediadb.media_store.main import build_repository
from mediadb.media_store.models import Media
from mediadb.media_store.tools import build_parser, main
from mediadb.media_store.tools import media_cli


@pytest.fixture
def db_path(data_dir, monkeypatch):
    path = os.path.join(data_dir, "cli", "media.db")
    monkeypatch.setenv("MEDIA_DB_PATH", path)
    monkeypatch.setenv("SQLITE_WAL_MODE", "false")
    monkeypatch.delenv("MEDIA_TYPES_FILE", raising=False)
    monkeypatch.delenv("REBUILD_GROUP_SIZE", raising=False)
    monkeypatch.setattr(media_cli, "setup_logging", lambda config: None)
    return path


@pytest.fixture
def photo(db_path):
    """A photo with two versions, written through a separate repository."""
    repository = build_repository(MediaStoreConfig.from_env())
    try:
        photo = Media(name="Photo", parent_id=-1, content_type=repository.type_registry.get(1032))
        photo.set_value("umbracoWidth", 800)
        repository.add_or_update(photo)
        photo.new_version()
        photo.name = "Photo v2"
        repository.add_or_update(photo)
    finally:
        repository.db.close()
    return photo


class TestParser:
    """Tests for argument parsing."""

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_rebuild_options(self):
        args = build_parser().parse_args(
            ["rebuild", "--group-size", "50", "--content-type", "1031", "--content-type", "1032"]
        )

        assert args.group_size == 50
        assert args.content_type_ids == [1031, 1032]


class TestCommands:
    """Tests for CLI commands."""

    def test_init(self, db_path, capsys):
        assert main(["init"]) == 0

        assert os.path.exists(db_path)
        assert db_path in capsys.readouterr().out

    def test_show(self, photo, capsys):
        assert main(["show", str(photo.id)]) == 0

        shown = json.loads(capsys.readouterr().out)
        assert shown["id"] == photo.id
        assert shown["name"] == "Photo v2"
        assert shown["content_type"] == "image"
        assert shown["properties"]["umbracoWidth"] == 800

    def test_show_missing(self, db_path, capsys):
        assert main(["show", "4242"]) == 1

        assert "Media 4242 not found" in capsys.readouterr().err

    def test_versions(self, photo, capsys):
        assert main(["versions", str(photo.id)]) == 0

        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 2
        assert lines[0].startswith(photo.version)
        assert lines[0].endswith("Photo v2")

    def test_versions_missing(self, db_path):
        assert main(["versions", "4242"]) == 1

    def test_rebuild(self, photo, capsys):
        assert main(["rebuild", "--group-size", "10"]) == 0

        out = capsys.readouterr().out
        assert "Rebuilt 1 snapshot(s) in 1 group(s), 0 skipped" in out

    def test_rebuild_rejects_bad_group_size(self, db_path, capsys):
        assert main(["rebuild", "--group-size", "0"]) == 2

        assert "--group-size must be positive" in capsys.readouterr().err

    def test_config_error(self, db_path, monkeypatch, capsys):
        monkeypatch.setenv("REBUILD_GROUP_SIZE", "-1")

        assert main(["init"]) == 2

        assert "Configuration error" in capsys.readouterr().err
