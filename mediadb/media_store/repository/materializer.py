"""
Row-to-entity materialization.

MediaMaterializer turns the joined base rows of one retrieval into
Media instances:

1. Run the base row query
2. For each row, reuse a cached snapshot (cache-eligible paths only)
   or build a Media from the row, resolving its media type
3. Load the properties of every built entity with one batched query
4. Attach each collection by (node id, version id), clear change
   tracking and, on cache-eligible paths, put the entity in the cache

Media types are resolved at most once per distinct content_type_id per
batch; the registry hands out deep copies and a batch may hold
thousands of rows of the same type.

Invariants:
    - Output has one entity per base row, in row order
    - Freshly materialized entities are not dirty
    - A definition without a base row is a MaterializationError

How to change safely:
    - Keep the per-batch media type table local to one build() call
"""

from __future__ import annotations

import logging
import sqlite3

from ..cache import CacheGateway
from ..errors import MaterializationError
from ..models import DocumentDefinition, Media, PropertyCollection
from ..schema import MediaType, MediaTypeRegistry
from ..storage import Database
from .properties import PropertyBatchLoader
from .query import SqlQuery

logger = logging.getLogger(__name__)


class MediaMaterializer:
    """Builds Media entities from base rows plus batch-loaded properties.

    Attributes:
        db: Database to read from
        type_registry: Media type descriptor provider
        property_loader: Batched property loader
        cache: Read-through cache consulted on cache-eligible paths
    """

    def __init__(
        self,
        db: Database,
        type_registry: MediaTypeRegistry,
        property_loader: PropertyBatchLoader,
        cache: CacheGateway,
    ) -> None:
        self.db = db
        self.type_registry = type_registry
        self.property_loader = property_loader
        self.cache = cache

    def materialize(
        self,
        scope: SqlQuery,
        with_cache: bool = False,
        populate_cache: bool | None = None,
    ) -> list[Media]:
        """Run a base query and materialize every row.

        Args:
            scope: Base row query
            with_cache: Consult the cache gateway per row
            populate_cache: Put entities built on a miss into the cache
                (defaults to with_cache)

        Returns:
            Entities in row order
        """
        sql, params = scope.to_sql()
        rows = self.db.fetchall(sql, params)
        return self.build(rows, scope, with_cache=with_cache, populate_cache=populate_cache)

    def build(
        self,
        rows: list[sqlite3.Row],
        scope: SqlQuery,
        with_cache: bool = False,
        populate_cache: bool | None = None,
    ) -> list[Media]:
        """Materialize already-fetched base rows.

        Args:
            rows: Base rows selected by scope
            scope: The query the rows came from (drives the property fetch)
            with_cache: Consult the cache gateway per row
            populate_cache: Put entities built on a miss into the cache
                (defaults to with_cache)

        Returns:
            Entities in row order

        Raises:
            MaterializationError: If a row references an unknown media type or a
                definition cannot be matched back to its row
        """
        if populate_cache is None:
            populate_cache = with_cache
        entities: list[Media | None] = [None] * len(rows)
        definitions: list[DocumentDefinition] = []
        positions: dict[tuple[int, str], int] = {}
        media_types: dict[int, MediaType] = {}
        cache_hits = 0

        for index, row in enumerate(rows):
            if with_cache:
                cached = self.cache.get(row["node_id"])
                if cached is not None and cached.version == row["version_id"]:
                    entities[index] = cached
                    cache_hits += 1
                    continue

            content_type_id = row["content_type_id"]
            media_type = media_types.get(content_type_id)
            if media_type is None:
                media_type = self.type_registry.get(content_type_id)
                if media_type is None:
                    raise MaterializationError(
                        f"Node {row['node_id']} references unknown media type {content_type_id}",
                        node_id=row["node_id"],
                    )
                media_types[content_type_id] = media_type

            entities[index] = self._build_entity(row, media_type)
            positions[(row["node_id"], row["version_id"])] = index
            definitions.append(
                DocumentDefinition(
                    id=row["node_id"],
                    version=row["version_id"],
                    version_date=row["version_date"],
                    create_date=row["create_date"],
                    media_type=media_type,
                )
            )

        collections = self.property_loader.load(scope, definitions)

        for definition in definitions:
            key = (definition.id, definition.version)
            index = positions.get(key)
            if index is None or key not in collections:
                raise MaterializationError(
                    f"No base row for document definition {definition.id} "
                    f"(version {definition.version})",
                    node_id=definition.id,
                )
            entity = entities[index]
            entity.properties = collections[key]
            # Loaded entities must never look modified
            entity.reset_dirty_properties(remember_previous=False)
            if populate_cache:
                self.cache.put(entity)

        if rows:
            logger.debug(
                "Materialized media batch",
                extra={
                    "rows": len(rows),
                    "cache_hits": cache_hits,
                    "media_types": len(media_types),
                },
            )
        return entities  # type: ignore[return-value]

    def _build_entity(self, row: sqlite3.Row, media_type: MediaType) -> Media:
        return Media(
            name=row["text"],
            parent_id=row["parent_id"],
            content_type=media_type,
            id=row["node_id"],
            key=row["unique_id"],
            path=row["path"],
            level=row["level"],
            sort_order=row["sort_order"],
            trashed=bool(row["trashed"]),
            creator_id=row["node_user"],
            version=row["version_id"],
            create_date=row["create_date"],
            update_date=row["version_date"],
            properties=PropertyCollection(),
        )
