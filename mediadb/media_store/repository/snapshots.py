"""
Denormalized snapshot stores.

ContentXmlStore keeps one live snapshot per media node; PreviewXmlStore
keeps one snapshot per (node, version). Both upsert by trying an update
first and inserting when no row matched.

Neither store is cached: snapshot rows are derived data and are always
read straight from the database.
"""

from __future__ import annotations

import logging
import time

from ..storage import Database

logger = logging.getLogger(__name__)


class ContentXmlStore:
    """Live snapshot rows keyed by node id."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def get(self, node_id: int) -> str | None:
        return self.db.scalar("SELECT xml FROM content_xml WHERE node_id = ?", (node_id,))

    def upsert(self, node_id: int, xml: str) -> None:
        """Write the live snapshot of a node.

        Raises:
            sqlite3.IntegrityError: If the node no longer exists
        """
        with self.db.transaction():
            cursor = self.db.execute(
                "UPDATE content_xml SET xml = ? WHERE node_id = ?", (xml, node_id)
            )
            if cursor.rowcount == 0:
                self.db.execute(
                    "INSERT INTO content_xml (node_id, xml) VALUES (?, ?)", (node_id, xml)
                )

    def delete(self, node_id: int) -> None:
        self.db.execute("DELETE FROM content_xml WHERE node_id = ?", (node_id,))


class PreviewXmlStore:
    """Per-version snapshot rows keyed by (node id, version id)."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def get(self, node_id: int, version_id: str) -> str | None:
        return self.db.scalar(
            "SELECT xml FROM preview_xml WHERE node_id = ? AND version_id = ?",
            (node_id, version_id),
        )

    def upsert(self, node_id: int, version_id: str, xml: str) -> None:
        timestamp = int(time.time() * 1000)
        with self.db.transaction():
            cursor = self.db.execute(
                """
                UPDATE preview_xml SET xml = ?, timestamp = ?
                WHERE node_id = ? AND version_id = ?
                """,
                (xml, timestamp, node_id, version_id),
            )
            if cursor.rowcount == 0:
                self.db.execute(
                    """
                    INSERT INTO preview_xml (node_id, version_id, timestamp, xml)
                    VALUES (?, ?, ?, ?)
                    """,
                    (node_id, version_id, timestamp, xml),
                )
