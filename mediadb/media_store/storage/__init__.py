"""
Storage module for the media store.

This module handles the SQLite database holding the media tree:
- Connection setup (WAL mode, busy timeout, foreign keys)
- Relational schema and reserved system nodes
- Transaction boundary with savepoint nesting

Invariants:
    - One connection per Database instance
    - All multi-statement writes run inside transaction()
"""

from .database import Database

__all__ = ["Database"]
