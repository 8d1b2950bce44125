"""
SQLite database for the media store.

This module owns the connection, the relational schema and the
transaction boundary:
- nodes: tree structure and display names of every node
- content: media type reference per media node (1:1 with nodes)
- content_versions: version rows, newest version_date is current
- property_data: typed property values per (version, property type)
- content_xml / preview_xml: denormalized snapshots
- tag_relationship: tag side index

Invariants:
    - System root (-1) and media recycle bin (-21) always exist
    - New node ids are allocated above first_node_id - 1
    - Foreign keys are enforced; a snapshot cannot outlive its node
    - Nested transaction() calls become savepoints of the outer transaction

How to change safely:
    - Schema migrations must be backward compatible
    - Respect foreign key order when deleting rows
    - Use transaction() for all multi-statement writes

Table schema:
    nodes:
        - id INTEGER PRIMARY KEY AUTOINCREMENT
        - unique_id TEXT (UUID)
        - parent_id INTEGER
        - level INTEGER
        - path TEXT (comma-joined ancestor ids)
        - sort_order INTEGER
        - trashed INTEGER
        - node_user INTEGER
        - text TEXT (display name)
        - node_object_type TEXT (UUID)
        - create_date INTEGER (Unix ms)

    content_versions:
        - id INTEGER PRIMARY KEY
        - content_id INTEGER -> content.node_id
        - version_id TEXT UNIQUE (UUID)
        - version_date INTEGER (Unix ms)
        - content_type_id INTEGER

    property_data:
        - id INTEGER PRIMARY KEY
        - content_node_id INTEGER -> nodes.id
        - version_id TEXT
        - property_type_id INTEGER
        - data_int / data_decimal / data_date / data_nvarchar / data_ntext
        - UNIQUE (version_id, property_type_id)
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Sequence

from ..config import StorageConfig
from ..models import MEDIA_OBJECT_TYPE, RECYCLE_BIN_MEDIA_ID, SYSTEM_ROOT_ID

logger = logging.getLogger(__name__)

ROOT_OBJECT_TYPE = "ea7d8624-4cfe-4578-a871-24aa946bf34d"
MEDIA_RECYCLE_BIN_OBJECT_TYPE = "cf3d8e34-1c1c-41e9-ae56-878b57b32113"


class Database:
    """SQLite connection, schema and transaction boundary.

    One connection is held for the lifetime of the instance, so an
    in-memory database (":memory:") survives between operations.
    Access is serialized through a re-entrant lock.

    Example:
        >>> db = Database("/var/lib/mediadb/media.db")
        >>> db.initialize()
        >>> with db.transaction():
        ...     db.execute("UPDATE nodes SET text = ? WHERE id = ?", ("Photos", 1000))
    """

    # SQLite schema version for migrations
    SCHEMA_VERSION = 1

    def __init__(
        self,
        db_path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        cache_size_pages: int = -64000,
        first_node_id: int = 1000,
    ) -> None:
        """Initialize the database handle.

        Args:
            db_path: SQLite database file, or ":memory:"
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
            cache_size_pages: SQLite cache size (negative = KB)
            first_node_id: First id allocated to a new node
        """
        self.db_path = db_path
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.cache_size_pages = cache_size_pages
        self.first_node_id = first_node_id
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._depth = 0

    @classmethod
    def from_config(cls, config: StorageConfig) -> Database:
        return cls(
            config.db_path,
            wal_mode=config.wal_mode,
            busy_timeout_ms=config.busy_timeout_ms,
            cache_size_pages=config.cache_size_pages,
            first_node_id=config.first_node_id,
        )

    @property
    def connection(self) -> sqlite3.Connection:
        """The underlying connection, opened on first use."""
        if self._conn is None:
            self._conn = self._connect()
        return self._conn

    def _connect(self) -> sqlite3.Connection:
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            self.db_path,
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row

        conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
        conn.execute(f"PRAGMA cache_size = {self.cache_size_pages}")
        if self.wal_mode:
            conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def initialize(self) -> None:
        """Create the schema and seed the reserved system nodes."""
        with self._lock:
            self._create_schema(self.connection)
            with self.transaction():
                self._seed(self.connection)
        logger.info("Initialized media database", extra={"db_path": self.db_path})

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript("""
            -- Schema version tracking
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            -- Tree nodes
            CREATE TABLE IF NOT EXISTS nodes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                unique_id TEXT NOT NULL,
                parent_id INTEGER NOT NULL,
                level INTEGER NOT NULL,
                path TEXT NOT NULL,
                sort_order INTEGER NOT NULL,
                trashed INTEGER NOT NULL DEFAULT 0,
                node_user INTEGER NOT NULL DEFAULT 0,
                text TEXT NOT NULL,
                node_object_type TEXT NOT NULL,
                create_date INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_nodes_parent
                ON nodes(parent_id, node_object_type, sort_order);
            CREATE INDEX IF NOT EXISTS idx_nodes_object_type ON nodes(node_object_type, text);
            CREATE INDEX IF NOT EXISTS idx_nodes_path ON nodes(path);
            CREATE UNIQUE INDEX IF NOT EXISTS idx_nodes_unique_id ON nodes(unique_id);

            -- Content (media type reference)
            CREATE TABLE IF NOT EXISTS content (
                pk INTEGER PRIMARY KEY,
                node_id INTEGER NOT NULL UNIQUE REFERENCES nodes(id),
                content_type_id INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_content_type ON content(content_type_id);

            -- Versions
            CREATE TABLE IF NOT EXISTS content_versions (
                id INTEGER PRIMARY KEY,
                content_id INTEGER NOT NULL REFERENCES content(node_id),
                version_id TEXT NOT NULL UNIQUE,
                version_date INTEGER NOT NULL,
                content_type_id INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_versions_content
                ON content_versions(content_id, version_date DESC);

            -- Property values per version
            CREATE TABLE IF NOT EXISTS property_data (
                id INTEGER PRIMARY KEY,
                content_node_id INTEGER NOT NULL REFERENCES nodes(id),
                version_id TEXT NOT NULL,
                property_type_id INTEGER NOT NULL,
                data_int INTEGER,
                data_decimal REAL,
                data_date INTEGER,
                data_nvarchar TEXT,
                data_ntext TEXT,
                UNIQUE (version_id, property_type_id)
            );

            CREATE INDEX IF NOT EXISTS idx_property_data_node ON property_data(content_node_id);

            -- Denormalized live snapshot
            CREATE TABLE IF NOT EXISTS content_xml (
                node_id INTEGER PRIMARY KEY REFERENCES nodes(id),
                xml TEXT NOT NULL
            );

            -- Denormalized per-version snapshot
            CREATE TABLE IF NOT EXISTS preview_xml (
                node_id INTEGER NOT NULL REFERENCES nodes(id),
                version_id TEXT NOT NULL,
                timestamp INTEGER NOT NULL,
                xml TEXT NOT NULL,
                PRIMARY KEY (node_id, version_id)
            );

            -- Tag side index
            CREATE TABLE IF NOT EXISTS tag_relationship (
                node_id INTEGER NOT NULL REFERENCES nodes(id),
                property_type_id INTEGER NOT NULL,
                tag TEXT NOT NULL,
                PRIMARY KEY (node_id, property_type_id, tag)
            );

            CREATE INDEX IF NOT EXISTS idx_tag_relationship_tag ON tag_relationship(tag);

            -- Record schema version
            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

    def _seed(self, conn: sqlite3.Connection) -> None:
        now = int(time.time() * 1000)
        conn.execute(
            """
            INSERT OR IGNORE INTO nodes (id, unique_id, parent_id, level, path, sort_order,
                                         trashed, node_user, text, node_object_type, create_date)
            VALUES (?, ?, ?, 0, ?, 0, 0, 0, 'System root', ?, ?)
            """,
            (
                SYSTEM_ROOT_ID,
                "916724a5-173d-4619-b97e-b9de133dd6f5",
                SYSTEM_ROOT_ID,
                str(SYSTEM_ROOT_ID),
                ROOT_OBJECT_TYPE,
                now,
            ),
        )
        conn.execute(
            """
            INSERT OR IGNORE INTO nodes (id, unique_id, parent_id, level, path, sort_order,
                                         trashed, node_user, text, node_object_type, create_date)
            VALUES (?, ?, ?, 1, ?, 0, 0, 0, 'Recycle Bin', ?, ?)
            """,
            (
                RECYCLE_BIN_MEDIA_ID,
                "bf7c7cbc-952f-4518-97a2-69e9c7b33842",
                SYSTEM_ROOT_ID,
                f"{SYSTEM_ROOT_ID},{RECYCLE_BIN_MEDIA_ID}",
                MEDIA_RECYCLE_BIN_OBJECT_TYPE,
                now,
            ),
        )

        # Move the id sequence past the configured floor
        max_id = conn.execute("SELECT MAX(id) FROM nodes").fetchone()[0]
        floor = max(self.first_node_id - 1, max_id)
        row = conn.execute("SELECT seq FROM sqlite_sequence WHERE name = 'nodes'").fetchone()
        if row is None:
            conn.execute("INSERT INTO sqlite_sequence (name, seq) VALUES ('nodes', ?)", (floor,))
        elif row["seq"] < floor:
            conn.execute("UPDATE sqlite_sequence SET seq = ? WHERE name = 'nodes'", (floor,))

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block atomically.

        The outermost call opens an IMMEDIATE transaction; nested calls
        become savepoints so an inner failure can roll back on its own.

        Yields:
            SQLite connection
        """
        with self._lock:
            conn = self.connection
            savepoint = f"sp_{self._depth}" if self._depth > 0 else None
            conn.execute(f"SAVEPOINT {savepoint}" if savepoint else "BEGIN IMMEDIATE")
            self._depth += 1
            try:
                yield conn
            except BaseException:
                self._depth -= 1
                if savepoint:
                    conn.execute(f"ROLLBACK TO SAVEPOINT {savepoint}")
                    conn.execute(f"RELEASE SAVEPOINT {savepoint}")
                else:
                    conn.execute("ROLLBACK")
                raise
            self._depth -= 1
            conn.execute(f"RELEASE SAVEPOINT {savepoint}" if savepoint else "COMMIT")

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        with self._lock:
            return self.connection.execute(sql, params)

    def fetchone(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Row | None:
        with self._lock:
            return self.connection.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self.connection.execute(sql, params).fetchall()

    def scalar(self, sql: str, params: Sequence[Any] = ()) -> Any:
        row = self.fetchone(sql, params)
        return row[0] if row is not None else None
