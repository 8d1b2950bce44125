"""
Tag side index.

Tag-valued properties are stored twice: as a comma-joined value in
property_data and as one tag_relationship row per tag. The repository
calls synchronize() after every successful insert or update so lookups
by tag never need to scan property values.
"""

from __future__ import annotations

import logging
from typing import Protocol

from ..models import Media
from ..schema import MediaType, PropertyKind
from ..storage import Database

logger = logging.getLogger(__name__)


class TagStore(Protocol):
    """Keeps the tag side index of an entity current."""

    def synchronize(self, entity: Media, media_type: MediaType) -> None: ...


class SqliteTagStore:
    """Tag side index in the tag_relationship table."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def synchronize(self, entity: Media, media_type: MediaType) -> None:
        """Replace the tag rows of every tag-valued property of an entity."""
        for property_type in media_type.property_types:
            if property_type.kind != PropertyKind.TAGS:
                continue
            prop = entity.properties.get(property_type.alias)
            value = (prop.value if prop else None) or []
            if isinstance(value, str):
                value = value.split(",")
            tags = sorted({tag.strip() for tag in value if tag and tag.strip()})

            with self.db.transaction():
                self.db.execute(
                    "DELETE FROM tag_relationship WHERE node_id = ? AND property_type_id = ?",
                    (entity.id, property_type.property_type_id),
                )
                for tag in tags:
                    self.db.execute(
                        """
                        INSERT INTO tag_relationship (node_id, property_type_id, tag)
                        VALUES (?, ?, ?)
                        """,
                        (entity.id, property_type.property_type_id, tag),
                    )

            logger.debug(
                "Synchronized tags",
                extra={
                    "node_id": entity.id,
                    "property_type_id": property_type.property_type_id,
                    "tags": len(tags),
                },
            )

    def tags_for(self, node_id: int) -> list[str]:
        rows = self.db.fetchall(
            "SELECT DISTINCT tag FROM tag_relationship WHERE node_id = ? ORDER BY tag",
            (node_id,),
        )
        return [row["tag"] for row in rows]

    def nodes_tagged(self, tag: str) -> list[int]:
        rows = self.db.fetchall(
            "SELECT DISTINCT node_id FROM tag_relationship WHERE tag = ? ORDER BY node_id",
            (tag,),
        )
        return [row["node_id"] for row in rows]

    def delete_for(self, node_id: int) -> None:
        self.db.execute("DELETE FROM tag_relationship WHERE node_id = ?", (node_id,))
