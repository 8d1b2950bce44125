"""
Media store CLI.

Commands:
    init                                  create the schema and system nodes
    show <id>                             print the current version of a media item
    versions <id>                         list every version, newest first
    rebuild [--group-size N] [--content-type ID ...]
                                          regenerate the live snapshot table
    serve                                 run the HTTP API

Usage:
    mediadb init
    mediadb show 1050
    mediadb rebuild --group-size 500 --content-type 1032

All commands read their settings from the environment (see config.py).

Invariants:
    - Not-found exits with status 1, configuration errors with status 2
    - rebuild exits with status 0 even when items were skipped; skipped
      items are listed on stderr
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from ..config import MediaStoreConfig
from ..main import build_repository, serve, setup_logging
from ..models import Media

logger = logging.getLogger(__name__)


def media_to_dict(media: Media) -> dict[str, Any]:
    return {
        "id": media.id,
        "key": media.key,
        "name": media.name,
        "parent_id": media.parent_id,
        "path": media.path,
        "level": media.level,
        "sort_order": media.sort_order,
        "trashed": media.trashed,
        "content_type": media.content_type.alias,
        "version": media.version,
        "create_date": media.create_date,
        "update_date": media.update_date,
        "properties": media.properties.to_dict(),
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mediadb", description="Media store administration tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Create the database schema and system nodes")

    show_parser = subparsers.add_parser("show", help="Show the current version of a media item")
    show_parser.add_argument("node_id", type=int, help="Media node id")

    versions_parser = subparsers.add_parser("versions", help="List every version of a media item")
    versions_parser.add_argument("node_id", type=int, help="Media node id")

    rebuild_parser = subparsers.add_parser("rebuild", help="Rebuild the live snapshot table")
    rebuild_parser.add_argument(
        "--group-size", type=int, default=None, help="Entities per group (default: config)"
    )
    rebuild_parser.add_argument(
        "--content-type",
        type=int,
        action="append",
        dest="content_type_ids",
        default=None,
        help="Restrict to a media type id (repeatable)",
    )

    subparsers.add_parser("serve", help="Run the HTTP API")
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        Process exit status
    """
    args = build_parser().parse_args(argv)

    try:
        config = MediaStoreConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    setup_logging(config)

    if args.command == "serve":
        serve(config)
        return 0

    repository = build_repository(config)
    try:
        if args.command == "init":
            print(f"Initialized media database at {config.storage.db_path}")
            return 0

        if args.command == "show":
            media = repository.get(args.node_id)
            if media is None:
                print(f"Media {args.node_id} not found", file=sys.stderr)
                return 1
            print(json.dumps(media_to_dict(media), indent=2, sort_keys=True))
            return 0

        if args.command == "versions":
            versions = repository.get_all_versions(args.node_id)
            if not versions:
                print(f"Media {args.node_id} not found", file=sys.stderr)
                return 1
            for version in versions:
                print(f"{version.version}  {version.update_date}  {version.name}")
            return 0

        if args.command == "rebuild":
            if args.group_size is not None and args.group_size <= 0:
                print("--group-size must be positive", file=sys.stderr)
                return 2
            result = repository.rebuild_snapshots(
                group_size=args.group_size,
                content_type_ids=args.content_type_ids,
            )
            print(
                f"Rebuilt {len(result.succeeded)} snapshot(s) in {result.groups} group(s), "
                f"{len(result.skipped)} skipped"
            )
            for item in result.skipped:
                print(f"  - node {item.node_id}: {item.cause}", file=sys.stderr)
            return 0
    finally:
        repository.db.close()

    return 2


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
