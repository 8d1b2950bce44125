"""
Bulk rebuild of the live snapshot table.

SnapshotRebuilder regenerates content_xml rows for every media item (or
only those of some media types) in groups ordered by node id:

1. Select the next group: current versions with id > last seen id,
   ORDER BY id, LIMIT group_size
2. Serialize and upsert each entity on its own
3. Advance the cursor to the last id of the group
4. Stop when a group comes back empty

Cursor pagination keeps concurrent deletes from shifting later groups.
Every item is upserted individually, so a node deleted between the
select and the upsert only costs that one item.

Invariants:
    - A failing item is logged, recorded as skipped and never aborts
      the rebuild
    - No id is visited twice within one rebuild
    - The rebuild is idempotent and can be re-run at any time

How to change safely:
    - Do not wrap the whole rebuild in one transaction; long rebuilds
      would hold the write lock for their whole duration
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable

from ..models import Media
from .materializer import MediaMaterializer
from .query import base_query
from .snapshots import ContentXmlStore

logger = logging.getLogger(__name__)

Serializer = Callable[[Media], str]


class RebuildOutcome(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class RebuildItemResult:
    """Outcome for one media item.

    Attributes:
        node_id: Media node id
        outcome: SUCCESS or SKIPPED
        cause: Error description when skipped
    """

    node_id: int
    outcome: RebuildOutcome
    cause: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == RebuildOutcome.SUCCESS


@dataclass
class RebuildResult:
    """Outcome of one rebuild run.

    Attributes:
        items: Per-item results in processing order
        group_sizes: Number of entities fetched by each non-empty group
    """

    items: list[RebuildItemResult] = field(default_factory=list)
    group_sizes: list[int] = field(default_factory=list)

    @property
    def groups(self) -> int:
        return len(self.group_sizes)

    @property
    def succeeded(self) -> list[int]:
        return [item.node_id for item in self.items if item.succeeded]

    @property
    def skipped(self) -> list[RebuildItemResult]:
        return [item for item in self.items if not item.succeeded]

    def to_dict(self) -> dict[str, Any]:
        return {
            "groups": self.groups,
            "group_sizes": list(self.group_sizes),
            "succeeded": len(self.succeeded),
            "skipped": [{"node_id": item.node_id, "cause": item.cause} for item in self.skipped],
        }


class SnapshotRebuilder:
    """Regenerates live snapshots in id-ordered groups.

    Example:
        >>> rebuilder = SnapshotRebuilder(materializer, ContentXmlStore(db))
        >>> result = rebuilder.rebuild(to_xml, group_size=200)
        >>> result.skipped
        []
    """

    def __init__(self, materializer: MediaMaterializer, store: ContentXmlStore) -> None:
        self.materializer = materializer
        self.store = store

    def rebuild(
        self,
        serializer: Serializer,
        group_size: int = 200,
        content_type_ids: Iterable[int] | None = None,
    ) -> RebuildResult:
        """Rebuild live snapshots.

        Args:
            serializer: Renders one entity to its snapshot text
            group_size: Entities per group
            content_type_ids: Restrict to these media types (all when empty)

        Returns:
            Per-item results and the size of every group fetched

        Raises:
            ValueError: If group_size is not positive
        """
        if group_size <= 0:
            raise ValueError(f"group_size must be positive, got {group_size}")
        type_filter = list(content_type_ids or [])

        result = RebuildResult()
        last_id = 0
        while True:
            group = self._next_group(last_id, group_size, type_filter)
            if not group:
                break
            result.group_sizes.append(len(group))

            for entity in group:
                result.items.append(self._rebuild_one(entity, serializer))
            last_id = group[-1].id

        logger.info(
            "Rebuilt media snapshots",
            extra={
                "groups": result.groups,
                "succeeded": len(result.succeeded),
                "skipped": len(result.skipped),
            },
        )
        return result

    def _next_group(self, last_id: int, group_size: int, type_filter: list[int]) -> list[Media]:
        scope = base_query(current_only=True)
        if type_filter:
            scope.where_in("c.content_type_id", type_filter)
        scope.where_clause("n.id > ?", last_id)
        scope.order_by = "n.id"
        scope.limit = group_size
        return self.materializer.materialize(scope)

    def _rebuild_one(self, entity: Media, serializer: Serializer) -> RebuildItemResult:
        try:
            self.store.upsert(entity.id, serializer(entity))
        except Exception as e:
            logger.warning(
                f"Could not rebuild snapshot for node {entity.id}: {e}",
                exc_info=True,
                extra={"node_id": entity.id},
            )
            return RebuildItemResult(entity.id, RebuildOutcome.SKIPPED, cause=f"{type(e).__name__}: {e}")
        return RebuildItemResult(entity.id, RebuildOutcome.SUCCESS)
