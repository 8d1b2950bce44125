"""
Version retrieval and deletion.

The current version of a media item is the version row with the latest
version_date (ties broken by row id). Historical versions stay
retrievable by their version id until explicitly deleted.

Invariants:
    - Version deletes are scoped by node id AND version id, never by
      version id alone
    - No operation here recomputes tree structure
"""

from __future__ import annotations

import logging

from ..models import Media
from ..storage import Database
from .materializer import MediaMaterializer
from .query import base_query

logger = logging.getLogger(__name__)

NEWEST_FIRST = "cv.version_date DESC, cv.id DESC"


class VersionStore:
    """Reads and deletes media versions."""

    def __init__(self, db: Database, materializer: MediaMaterializer) -> None:
        self.db = db
        self.materializer = materializer

    def get_current(self, node_id: int) -> Media | None:
        """Get the current version of a media item, or None."""
        scope = base_query(current_only=True).where_clause("n.id = ?", node_id)
        entities = self.materializer.materialize(scope)
        return entities[0] if entities else None

    def get_by_version(self, version_id: str) -> Media | None:
        """Get a media item as it was at an explicit version, or None."""
        scope = base_query(current_only=False).where_clause("cv.version_id = ?", version_id)
        entities = self.materializer.materialize(scope)
        return entities[0] if entities else None

    def get_all_versions(self, node_id: int) -> list[Media]:
        """Every version of a media item, newest first.

        Only the current (newest) version is put in the cache.
        """
        scope = base_query(current_only=False).where_clause("n.id = ?", node_id)
        scope.order_by = NEWEST_FIRST
        entities = self.materializer.materialize(scope, with_cache=True, populate_cache=False)
        if entities:
            self.materializer.cache.put(entities[0])
        return entities

    def current_version_id(self, node_id: int) -> str | None:
        return self.db.scalar(
            f"""
            SELECT cv.version_id FROM content_versions cv
            WHERE cv.content_id = ?
            ORDER BY {NEWEST_FIRST}
            LIMIT 1
            """,
            (node_id,),
        )

    def version_exists(self, node_id: int, version_id: str) -> bool:
        row = self.db.fetchone(
            "SELECT 1 FROM content_versions WHERE content_id = ? AND version_id = ?",
            (node_id, version_id),
        )
        return row is not None

    def delete_version(self, node_id: int, version_id: str) -> bool:
        """Delete one version's snapshot, property and version rows.

        Returns:
            True if a version row was deleted
        """
        with self.db.transaction():
            self.db.execute(
                "DELETE FROM preview_xml WHERE node_id = ? AND version_id = ?",
                (node_id, version_id),
            )
            self.db.execute(
                "DELETE FROM property_data WHERE content_node_id = ? AND version_id = ?",
                (node_id, version_id),
            )
            cursor = self.db.execute(
                "DELETE FROM content_versions WHERE content_id = ? AND version_id = ?",
                (node_id, version_id),
            )
        deleted = cursor.rowcount > 0
        logger.debug(
            "Deleted media version",
            extra={"node_id": node_id, "version_id": version_id, "deleted": deleted},
        )
        return deleted
