"""
Tree invariant maintenance.

TreeInvariantManager computes the structural fields of a media node
(level, path, sort order) before the caller persists it. It reads the
parent fresh from the database on every call and never writes.

Insert is a two-phase protocol because the node id only exists once the
base row is inserted:

1. prepare_insert(): level = parent.level + 1, sort order appended after
   the existing siblings, path set to the parent's path as a placeholder
2. the caller inserts the base row and learns the id
3. complete_insert(): path = parent.path + "," + id, validated before the
   caller writes it back

Both phases must run inside the same transaction so no reader observes
the placeholder path.

Invariants:
    - path(node) == path(parent) + "," + node.id
    - level(node) == level(parent) + 1
    - sort order is max(sibling sort order) + 1, or 0 for the first child,
      within the parent and object type partition
    - An invalid path raises PathValidationError and is never repaired

How to change safely:
    - The max-sort-order read and the following insert are not atomic;
      concurrent inserts under one parent must be serialized by the caller
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import EntityNotFoundError, PathValidationError
from ..models import MEDIA_OBJECT_TYPE, SYSTEM_ROOT_ID, Media
from ..storage import Database
from .query import escape_like

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParentNode:
    """Structural fields of a parent node as currently committed."""

    id: int
    level: int
    path: str


def validate_path(
    path: str,
    node_id: int,
    level: int | None = None,
    parent_path: str | None = None,
) -> None:
    """Check that a path is a well-formed ancestor chain.

    A well-formed path starts at the system root, contains only integer
    ids, visits no id twice and ends in the node's own id.

    Args:
        path: Comma-joined ancestor ids
        node_id: Id the path must end with
        level: When given, must equal the number of ancestors
        parent_path: When given, path must be parent_path + "," + node_id

    Raises:
        PathValidationError: If any rule is violated
    """
    if not path or not path.strip():
        raise PathValidationError(f"Node {node_id} has an empty path", node_id=node_id, path=path)

    try:
        segments = [int(segment) for segment in path.split(",")]
    except ValueError:
        raise PathValidationError(
            f"Path '{path}' of node {node_id} contains a non-integer id",
            node_id=node_id,
            path=path,
        )

    if segments[0] != SYSTEM_ROOT_ID:
        raise PathValidationError(
            f"Path '{path}' of node {node_id} does not start at the root",
            node_id=node_id,
            path=path,
        )
    if len(set(segments)) != len(segments):
        raise PathValidationError(
            f"Path '{path}' of node {node_id} visits a node twice",
            node_id=node_id,
            path=path,
        )
    if segments[-1] != node_id:
        raise PathValidationError(
            f"Path '{path}' does not end with node id {node_id}",
            node_id=node_id,
            path=path,
        )
    if parent_path is not None and path != f"{parent_path},{node_id}":
        raise PathValidationError(
            f"Path '{path}' of node {node_id} is not below parent path '{parent_path}'",
            node_id=node_id,
            path=path,
        )
    if level is not None and level != len(segments) - 1:
        raise PathValidationError(
            f"Level {level} of node {node_id} does not match path '{path}'",
            node_id=node_id,
            path=path,
        )


class TreeInvariantManager:
    """Computes level, path and sort order for inserts and moves.

    Attributes:
        db: Database to read parents and siblings from
        object_type: Node object type partition for sort orders

    Example:
        >>> tree = TreeInvariantManager(db)
        >>> parent = tree.prepare_insert(media)
        >>> media.id = insert_node_row(media)
        >>> tree.complete_insert(media, parent)
    """

    def __init__(self, db: Database, object_type: str = MEDIA_OBJECT_TYPE) -> None:
        self.db = db
        self.object_type = object_type

    def get_parent(self, parent_id: int) -> ParentNode:
        """Read a parent node's committed level and path.

        Raises:
            EntityNotFoundError: If the parent does not exist
        """
        row = self.db.fetchone("SELECT id, level, path FROM nodes WHERE id = ?", (parent_id,))
        if row is None:
            raise EntityNotFoundError(f"Parent node {parent_id} does not exist", entity_id=parent_id)
        return ParentNode(id=row["id"], level=row["level"], path=row["path"])

    def next_sort_order(self, parent_id: int) -> int:
        """Sort order for a node appended under parent_id (0 for the first child)."""
        max_sort_order = self.db.scalar(
            """
            SELECT COALESCE(MAX(sort_order), -1) FROM nodes
            WHERE parent_id = ? AND node_object_type = ?
            """,
            (parent_id, self.object_type),
        )
        return max_sort_order + 1

    def prepare_insert(self, entity: Media) -> ParentNode:
        """First phase of an insert: level, sort order and placeholder path.

        Returns:
            The parent as read, to be passed to complete_insert()
        """
        parent = self.get_parent(entity.parent_id)
        entity.level = parent.level + 1
        entity.sort_order = self.next_sort_order(parent.id)
        entity.path = parent.path
        return parent

    def complete_insert(self, entity: Media, parent: ParentNode) -> str:
        """Second phase of an insert, once the node id is known.

        Returns:
            The validated final path (also set on the entity)

        Raises:
            PathValidationError: If the resulting path is malformed
        """
        path = f"{parent.path},{entity.id}"
        validate_path(path, entity.id, level=entity.level, parent_path=parent.path)
        entity.path = path
        return path

    def prepare_update(self, entity: Media) -> bool:
        """Recompute structure when the parent reference changed.

        Returns:
            True if level, path and sort order were recomputed

        Raises:
            PathValidationError: If the move would place the node below itself
        """
        if not entity.is_property_dirty("parent_id"):
            return False

        parent = self.get_parent(entity.parent_id)
        if str(entity.id) in parent.path.split(","):
            raise PathValidationError(
                f"Cannot move node {entity.id} below its own descendant {parent.id}",
                node_id=entity.id,
                path=parent.path,
            )

        path = f"{parent.path},{entity.id}"
        validate_path(path, entity.id, level=parent.level + 1, parent_path=parent.path)
        entity.path = path
        entity.level = parent.level + 1
        entity.sort_order = self.next_sort_order(parent.id)

        logger.debug(
            "Recomputed structure for moved node",
            extra={"node_id": entity.id, "parent_id": parent.id, "path": path},
        )
        return True

    def rebase_descendants(self, old_path: str, new_path: str, level_delta: int) -> int:
        """Rewrite the paths and levels of a moved node's descendants.

        Must run in the transaction that moves the node itself.

        Returns:
            Number of descendant rows updated
        """
        cursor = self.db.execute(
            """
            UPDATE nodes
            SET path = ? || substr(path, ?), level = level + ?
            WHERE path LIKE ? ESCAPE '\\'
            """,
            (new_path, len(old_path) + 1, level_delta, escape_like(old_path) + ",%"),
        )
        return cursor.rowcount

