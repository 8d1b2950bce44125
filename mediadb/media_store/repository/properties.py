"""
Batched property loading.

Given the document definitions of one retrieval batch and the query
that selected the batch, PropertyBatchLoader fetches every property row
of every entity in scope with exactly one additional query, then builds
one PropertyCollection per definition.

Invariants:
    - One property query per batch, never one per entity
    - A collection only receives rows whose version_id equals the
      definition's version (no cross-version or cross-entity leakage)
    - Every definition gets a collection shaped by its media type, even
      when no rows exist for it

How to change safely:
    - Keep the scope subquery identical to the base row query,
      including ORDER BY and LIMIT, or grouped fetches lose rows
"""

from __future__ import annotations

import logging
import sqlite3
from collections import defaultdict

from ..models import DocumentDefinition, Property, PropertyCollection
from ..storage import Database
from .query import SqlQuery

logger = logging.getLogger(__name__)

PropertyKey = tuple[int, str]


class PropertyBatchLoader:
    """Loads property collections for a whole batch in one round trip.

    Example:
        >>> loader = PropertyBatchLoader(db)
        >>> collections = loader.load(scope, definitions)
        >>> collections[(1050, version_id)]["umbracoWidth"].value
        800
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    def load(
        self,
        scope: SqlQuery,
        definitions: list[DocumentDefinition],
    ) -> dict[PropertyKey, PropertyCollection]:
        """Load property collections for a batch.

        Args:
            scope: The query that selected the batch's base rows
            definitions: One definition per entity/version to populate

        Returns:
            Mapping of (node id, version id) to its property collection
        """
        if not definitions:
            return {}

        ids_sql, params = scope.ids_sql()
        rows = self.db.fetchall(
            f"""
            SELECT pd.* FROM property_data pd
            WHERE pd.content_node_id IN (SELECT id FROM ({ids_sql}))
            """,
            params,
        )

        grouped: dict[PropertyKey, dict[int, sqlite3.Row]] = defaultdict(dict)
        for row in rows:
            grouped[(row["content_node_id"], row["version_id"])][row["property_type_id"]] = row

        result: dict[PropertyKey, PropertyCollection] = {}
        for definition in definitions:
            key = (definition.id, definition.version)
            result[key] = self._build_collection(definition, grouped.get(key, {}))

        logger.debug(
            "Loaded property batch",
            extra={"definitions": len(definitions), "property_rows": len(rows)},
        )
        return result

    def _build_collection(
        self,
        definition: DocumentDefinition,
        rows_by_type: dict[int, sqlite3.Row],
    ) -> PropertyCollection:
        properties = []
        for property_type in definition.media_type.property_types:
            row = rows_by_type.get(property_type.property_type_id)
            if row is None:
                properties.append(Property(property_type=property_type))
                continue
            kind = property_type.kind
            properties.append(
                Property(
                    property_type=property_type,
                    value=kind.from_storage(row[kind.storage_column]),
                    id=row["id"],
                )
            )
        return PropertyCollection(properties)
