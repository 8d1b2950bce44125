"""
Media repository.

MediaRepository is the surface outer layers call. It wires the core
components together and owns the write paths:

persist_new():
    1. Stamp key, version and dates
    2. Resolve sibling name collisions
    3. Strip XML-invalid characters from the name and string values
    4. Tree structure, first phase (placeholder path)
    5. Insert the node row, then write the final path (second phase)
    6. Insert the content, version and property rows
    7. Synchronize tags and reset change tracking

persist_updated():
    1. Stamp the update date, resolve names, sanitize
    2. Recompute structure if the parent changed, then rebase descendants
    3. Update the node row (path re-validated) and, if the media type
       changed, the content row
    4. Update the version row in place, or insert it for a new version
    5. Update or insert property rows, synchronize tags, reset tracking

Every write runs in one transaction; a failure rolls back everything
and propagates. Written entities are evicted from the cache after commit.

Invariants:
    - Retrieval returns None or an empty list when nothing matches
    - The current version of a media item cannot be deleted on its own
    - Construction without a database, type registry or tag store fails fast

How to change safely:
    - Keep the cache out of ad-hoc filtered queries
    - New write steps go inside the existing transaction blocks
"""

from __future__ import annotations

import logging
from typing import Iterable

from ..cache import CacheGateway, DisabledCache
from ..errors import EntityNotFoundError, PreconditionError
from ..models import MEDIA_OBJECT_TYPE, RECYCLE_BIN_MEDIA_ID, Media
from ..schema import MediaType, MediaTypeRegistry
from ..schema.types import STORAGE_COLUMNS
from ..serialization import sanitize_for_xml_storage, to_xml
from ..storage import Database
from .materializer import MediaMaterializer
from .naming import UniqueNameResolver
from .properties import PropertyBatchLoader
from .query import MediaQuery, SqlQuery, base_query, escape_like
from .rebuild import RebuildResult, Serializer, SnapshotRebuilder
from .snapshots import ContentXmlStore, PreviewXmlStore
from .tags import TagStore
from .tree import TreeInvariantManager, validate_path
from .versions import VersionStore

logger = logging.getLogger(__name__)

# Sortable system fields of a paged listing
SYSTEM_SORT_FIELDS = {
    "id": "n.id",
    "name": "n.text",
    "sort_order": "n.sort_order",
    "level": "n.level",
    "path": "n.path",
    "create_date": "n.create_date",
    "update_date": "cv.version_date",
}

_PROPERTY_COLUMNS = ", ".join(STORAGE_COLUMNS)


class MediaRepository:
    """Persistence for the versioned media tree.

    Example:
        >>> repository = MediaRepository(db, registry, SqliteTagStore(db))
        >>> photo = Media(name="Photo", parent_id=-1, content_type=registry.get(1032))
        >>> repository.add_or_update(photo)
        >>> repository.get(photo.id).path
        '-1,1000'
    """

    def __init__(
        self,
        db: Database,
        type_registry: MediaTypeRegistry,
        tag_store: TagStore,
        cache: CacheGateway | None = None,
        ensure_unique_naming: bool = True,
        rebuild_group_size: int = 200,
    ) -> None:
        """Wire the repository.

        Args:
            db: Initialized database
            type_registry: Media type descriptor provider
            tag_store: Tag side index
            cache: Entity cache (caching disabled when None)
            ensure_unique_naming: Resolve sibling name collisions on write
            rebuild_group_size: Default group size of rebuild_snapshots()

        Raises:
            PreconditionError: If a required collaborator is missing
        """
        if db is None:
            raise PreconditionError("A database is required", argument="db")
        if type_registry is None:
            raise PreconditionError("A media type registry is required", argument="type_registry")
        if tag_store is None:
            raise PreconditionError("A tag store is required", argument="tag_store")

        self.db = db
        self.type_registry = type_registry
        self.tag_store = tag_store
        self.cache = cache if cache is not None else DisabledCache()
        self.rebuild_group_size = rebuild_group_size

        self.property_loader = PropertyBatchLoader(db)
        self.materializer = MediaMaterializer(db, type_registry, self.property_loader, self.cache)
        self.tree = TreeInvariantManager(db)
        self.names = UniqueNameResolver(db, enabled=ensure_unique_naming)
        self.versions = VersionStore(db, self.materializer)
        # Snapshot sub-stores never share the entity cache
        self.content_xml = ContentXmlStore(db)
        self.preview_xml = PreviewXmlStore(db)
        self.rebuilder = SnapshotRebuilder(self.materializer, self.content_xml)

    @property
    def recycle_bin_id(self) -> int:
        """Node id of the media recycle bin."""
        return RECYCLE_BIN_MEDIA_ID

    # ── Retrieval ────────────────────────────────────────────────────

    def get(self, node_id: int) -> Media | None:
        """Get the current version of a media item, or None."""
        cached = self.cache.get(node_id)
        if cached is not None:
            return cached
        entity = self.versions.get_current(node_id)
        if entity is not None:
            self.cache.put(entity)
        return entity

    def get_all(self, *node_ids: int) -> list[Media]:
        """Get media by id (all media when no ids are given), ordered by id."""
        scope = base_query()
        if node_ids:
            scope.where_in("n.id", list(node_ids))
        scope.order_by = "n.id"
        return self.materializer.materialize(scope, with_cache=True)

    def get_by_query(self, query: MediaQuery) -> list[Media]:
        """Get media matching the criteria, ordered by level then sort order."""
        scope = query.apply(base_query())
        scope.order_by = "n.level, n.sort_order, n.id"
        return self.materializer.materialize(scope)

    def get_all_versions(self, node_id: int) -> list[Media]:
        return self.versions.get_all_versions(node_id)

    def get_by_version(self, version_id: str) -> Media | None:
        return self.versions.get_by_version(version_id)

    def get_paged(
        self,
        query: MediaQuery | None = None,
        page_index: int = 0,
        page_size: int = 100,
        order_by: str = "sort_order",
        direction: str = "asc",
        order_by_system_field: bool = True,
        filter_text: str = "",
    ) -> tuple[list[Media], int]:
        """Get one page of media.

        Args:
            query: Criteria (all media when None)
            page_index: Zero-based page number
            page_size: Items per page
            order_by: System field name, or a property alias when
                order_by_system_field is False
            direction: "asc" or "desc"
            order_by_system_field: Whether order_by names a system field
            filter_text: Case-insensitive substring the name must contain

        Returns:
            (items of the page, total number of matching media)

        Raises:
            ValueError: On a negative page, a non-positive page size, an
                unknown direction or an unknown sort field
        """
        if page_index < 0:
            raise ValueError(f"page_index must not be negative, got {page_index}")
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        direction = direction.lower()
        if direction not in ("asc", "desc"):
            raise ValueError(f"Invalid direction '{direction}'. Must be one of: asc, desc")

        scope = _scope(query)
        if filter_text and filter_text.strip():
            scope.where_clause("n.text LIKE ? ESCAPE '\\'", f"%{escape_like(filter_text)}%")

        count_sql, count_params = scope.count_sql()
        total = self.db.scalar(count_sql, count_params)

        sort_column = self._sort_column(order_by, order_by_system_field)
        scope.order_by = f"{sort_column} {direction.upper()}, n.id ASC"
        scope.limit = page_size
        scope.offset = page_index * page_size
        return self.materializer.materialize(scope), total

    def _sort_column(self, order_by: str, order_by_system_field: bool) -> str:
        if order_by_system_field:
            column = SYSTEM_SORT_FIELDS.get(order_by)
            if column is None:
                raise ValueError(
                    f"Invalid sort field '{order_by}'. Valid fields: {sorted(SYSTEM_SORT_FIELDS)}"
                )
            return column

        property_type_ids = self.type_registry.property_type_ids_for_alias(order_by)
        if not property_type_ids:
            raise ValueError(f"No media type declares a property '{order_by}'")
        id_list = ", ".join(str(int(property_type_id)) for property_type_id in property_type_ids)
        return (
            f"(SELECT COALESCE({_PROPERTY_COLUMNS}) FROM property_data pd "
            f"WHERE pd.content_node_id = n.id AND pd.version_id = cv.version_id "
            f"AND pd.property_type_id IN ({id_list}))"
        )

    def exists(self, node_id: int) -> bool:
        row = self.db.fetchone(
            "SELECT 1 FROM nodes WHERE id = ? AND node_object_type = ?",
            (node_id, MEDIA_OBJECT_TYPE),
        )
        return row is not None

    def count(self, query: MediaQuery | None = None) -> int:
        scope = _scope(query)
        sql, params = scope.count_sql()
        return self.db.scalar(sql, params)

    # ── Writes ───────────────────────────────────────────────────────

    def add_or_update(self, entity: Media) -> None:
        """Insert a new media item or persist changes to an existing one."""
        if entity.has_identity:
            self.persist_updated(entity)
        else:
            self.persist_new(entity)

    def persist_new(self, entity: Media) -> None:
        """Insert a media item with its first version.

        Raises:
            EntityNotFoundError: If the parent or the media type does not exist
            PathValidationError: If the computed path is malformed
        """
        media_type = self._registered_type(entity)
        entity.adding_entity()

        try:
            with self.db.transaction():
                entity.name = self.names.resolve(entity.parent_id, entity.name)
                sanitize_for_xml_storage(entity)

                parent = self.tree.prepare_insert(entity)
                cursor = self.db.execute(
                    """
                    INSERT INTO nodes (unique_id, parent_id, level, path, sort_order, trashed,
                                       node_user, text, node_object_type, create_date)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        entity.key,
                        entity.parent_id,
                        entity.level,
                        entity.path,
                        entity.sort_order,
                        1 if entity.trashed else 0,
                        entity.creator_id,
                        entity.name,
                        MEDIA_OBJECT_TYPE,
                        entity.create_date,
                    ),
                )
                entity.id = cursor.lastrowid

                path = self.tree.complete_insert(entity, parent)
                self.db.execute("UPDATE nodes SET path = ? WHERE id = ?", (path, entity.id))

                self.db.execute(
                    "INSERT INTO content (node_id, content_type_id) VALUES (?, ?)",
                    (entity.id, entity.content_type_id),
                )
                self._insert_version(entity)
                self._write_properties(entity)
                self.tag_store.synchronize(entity, media_type)
        except Exception:
            # Nothing was committed
            entity.id = 0
            raise

        entity.reset_dirty_properties()
        self.cache.remove(entity.id)
        logger.debug(
            f"Persisted new media {entity.id}",
            extra={"node_id": entity.id, "path": entity.path, "version_id": entity.version},
        )

    def persist_updated(self, entity: Media) -> None:
        """Persist changes to an existing media item.

        A version id that has no row yet (see Media.new_version) is written
        as a new version; otherwise the version row is updated in place.
        On failure the entity gets back the path, level and sort order it
        had before the call.

        Raises:
            EntityNotFoundError: If the media item, its new parent or its
                media type does not exist
            PathValidationError: If the node would get a malformed path
        """
        media_type = self._registered_type(entity)
        entity.updating_entity()
        structure = (entity.path, entity.level, entity.sort_order)

        try:
            with self.db.transaction():
                stored = self.db.fetchone(
                    """
                    SELECT n.path, n.level, c.content_type_id FROM nodes n
                    INNER JOIN content c ON c.node_id = n.id
                    WHERE n.id = ? AND n.node_object_type = ?
                    """,
                    (entity.id, MEDIA_OBJECT_TYPE),
                )
                if stored is None:
                    raise EntityNotFoundError(
                        f"Media {entity.id} does not exist", entity_id=entity.id
                    )

                entity.name = self.names.resolve(entity.parent_id, entity.name, entity.id)
                sanitize_for_xml_storage(entity)

                moved = self.tree.prepare_update(entity)
                validate_path(entity.path, entity.id, level=entity.level)
                self.db.execute(
                    """
                    UPDATE nodes
                    SET unique_id = ?, parent_id = ?, level = ?, path = ?, sort_order = ?,
                        trashed = ?, node_user = ?, text = ?
                    WHERE id = ?
                    """,
                    (
                        entity.key,
                        entity.parent_id,
                        entity.level,
                        entity.path,
                        entity.sort_order,
                        1 if entity.trashed else 0,
                        entity.creator_id,
                        entity.name,
                        entity.id,
                    ),
                )
                rebased = 0
                if moved:
                    rebased = self.tree.rebase_descendants(
                        stored["path"], entity.path, entity.level - stored["level"]
                    )

                if stored["content_type_id"] != entity.content_type_id:
                    self.db.execute(
                        "UPDATE content SET content_type_id = ? WHERE node_id = ?",
                        (entity.content_type_id, entity.id),
                    )

                cursor = self.db.execute(
                    """
                    UPDATE content_versions SET version_date = ?, content_type_id = ?
                    WHERE content_id = ? AND version_id = ?
                    """,
                    (entity.update_date, entity.content_type_id, entity.id, entity.version),
                )
                if cursor.rowcount == 0:
                    self._insert_version(entity)

                self._write_properties(entity)
                self.tag_store.synchronize(entity, media_type)
        except Exception:
            # Nothing was committed
            entity.path, entity.level, entity.sort_order = structure
            raise

        entity.reset_dirty_properties()
        if rebased:
            # Cached descendants carry stale paths
            self.cache.clear()
        else:
            self.cache.remove(entity.id)
        logger.debug(
            f"Persisted media {entity.id}",
            extra={
                "node_id": entity.id,
                "version_id": entity.version,
                "moved": moved,
                "rebased_descendants": rebased,
            },
        )

    def delete(self, entity: Media) -> None:
        """Delete a media item and every row it owns.

        Descendants are not touched.
        """
        node_id = entity.id
        with self.db.transaction():
            for sql in (
                "DELETE FROM tag_relationship WHERE node_id = ?",
                "DELETE FROM property_data WHERE content_node_id = ?",
                "DELETE FROM preview_xml WHERE node_id = ?",
                "DELETE FROM content_versions WHERE content_id = ?",
                "DELETE FROM content_xml WHERE node_id = ?",
                "DELETE FROM content WHERE node_id = ?",
                "DELETE FROM nodes WHERE id = ?",
            ):
                self.db.execute(sql, (node_id,))
        self.cache.remove(node_id)
        logger.debug(f"Deleted media {node_id}", extra={"node_id": node_id})

    def delete_version(self, node_id: int, version_id: str) -> bool:
        """Delete one historical version of a media item.

        Returns:
            True if the version existed and was deleted

        Raises:
            ValueError: If version_id is the current version
        """
        if not self.versions.version_exists(node_id, version_id):
            return False
        if self.versions.current_version_id(node_id) == version_id:
            raise ValueError(f"Cannot delete the current version {version_id} of media {node_id}")
        deleted = self.versions.delete_version(node_id, version_id)
        self.cache.remove(node_id)
        return deleted

    # ── Snapshots ────────────────────────────────────────────────────

    def add_or_update_content_xml(self, entity: Media, serializer: Serializer = to_xml) -> None:
        self.content_xml.upsert(entity.id, serializer(entity))

    def add_or_update_preview_xml(self, entity: Media, serializer: Serializer = to_xml) -> None:
        self.preview_xml.upsert(entity.id, entity.version, serializer(entity))

    def rebuild_snapshots(
        self,
        serializer: Serializer = to_xml,
        group_size: int | None = None,
        content_type_ids: Iterable[int] | None = None,
    ) -> RebuildResult:
        """Regenerate the live snapshot of every media item.

        Args:
            serializer: Renders one entity to its snapshot text
            group_size: Entities per group (repository default when None)
            content_type_ids: Restrict to these media types

        Returns:
            Per-item results; failed items are skipped, not raised
        """
        return self.rebuilder.rebuild(
            serializer,
            group_size=group_size or self.rebuild_group_size,
            content_type_ids=content_type_ids,
        )

    # ── Helpers ──────────────────────────────────────────────────────

    def _registered_type(self, entity: Media) -> MediaType:
        media_type = self.type_registry.get(entity.content_type_id)
        if media_type is None:
            raise EntityNotFoundError(
                f"Media type {entity.content_type_id} is not registered",
                entity_id=entity.content_type_id,
            )
        return media_type

    def _insert_version(self, entity: Media) -> None:
        self.db.execute(
            """
            INSERT INTO content_versions (content_id, version_id, version_date, content_type_id)
            VALUES (?, ?, ?, ?)
            """,
            (entity.id, entity.version, entity.update_date, entity.content_type_id),
        )

    def _write_properties(self, entity: Media) -> None:
        for prop in entity.properties:
            kind = prop.property_type.kind
            columns = {column: None for column in STORAGE_COLUMNS}
            columns[kind.storage_column] = kind.to_storage(prop.value)
            values = [columns[column] for column in STORAGE_COLUMNS]

            if prop.id > 0:
                assignments = ", ".join(f"{column} = ?" for column in STORAGE_COLUMNS)
                self.db.execute(
                    f"UPDATE property_data SET {assignments} WHERE id = ?",
                    (*values, prop.id),
                )
            else:
                placeholders = ", ".join("?" for _ in STORAGE_COLUMNS)
                cursor = self.db.execute(
                    f"""
                    INSERT INTO property_data (content_node_id, version_id, property_type_id,
                                               {_PROPERTY_COLUMNS})
                    VALUES (?, ?, ?, {placeholders})
                    """,
                    (entity.id, entity.version, prop.property_type_id, *values),
                )
                prop.id = cursor.lastrowid


def _scope(query: MediaQuery | None) -> SqlQuery:
    scope = base_query()
    if query is not None:
        query.apply(scope)
    return scope
