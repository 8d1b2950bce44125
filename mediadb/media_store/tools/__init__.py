"""
CLI tools for media store administration.

This module provides the `mediadb` command:
- init: Create the schema and system nodes
- show / versions: Inspect media and their versions
- rebuild: Regenerate the live snapshot table
- serve: Run the HTTP API

Invariants:
    - Tools work offline against the configured database file
    - rebuild is idempotent and can be re-run at any time
"""

from .media_cli import build_parser, main

__all__ = ["build_parser", "main"]
