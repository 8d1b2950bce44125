"""
Base queries over the joined media rows.

Every retrieval path selects from the same join:

    content_versions cv
    INNER JOIN content c ON cv.content_id = c.node_id
    INNER JOIN nodes n ON c.node_id = n.id

restricted to the media object type. SqlQuery carries the WHERE
fragments, parameters, ordering and limit of one retrieval so the same
scope can be reused verbatim by the property batch loader.

MediaQuery is the narrow criteria object accepted by get_by_query and
the paged listing. It is not a general query builder.

Invariants:
    - Listing queries select the current version of each node only
    - ids_sql() selects exactly the node ids of to_sql(), with the same
      ordering and limit
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..models import MEDIA_OBJECT_TYPE

BASE_COLUMNS = """
    n.id AS node_id, n.unique_id, n.parent_id, n.level, n.path, n.sort_order,
    n.trashed, n.node_user, n.text, n.create_date,
    c.content_type_id,
    cv.version_id, cv.version_date
"""

BASE_FROM = """
    FROM content_versions cv
    INNER JOIN content c ON cv.content_id = c.node_id
    INNER JOIN nodes n ON c.node_id = n.id
"""

CURRENT_VERSION_CLAUSE = (
    "cv.id = (SELECT v.id FROM content_versions v WHERE v.content_id = n.id "
    "ORDER BY v.version_date DESC, v.id DESC LIMIT 1)"
)


def escape_like(value: str) -> str:
    """Escape LIKE wildcards; use with ESCAPE '\\'."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass
class SqlQuery:
    """A parameterised SELECT over the joined base rows.

    Attributes:
        where: AND-ed WHERE fragments
        params: Positional parameters, in fragment order
        order_by: ORDER BY expression (without the keyword)
        limit: Row limit
        offset: Row offset (requires limit)
    """

    where: list[str] = field(default_factory=list)
    params: list[Any] = field(default_factory=list)
    order_by: str | None = None
    limit: int | None = None
    offset: int | None = None

    def where_clause(self, clause: str, *params: Any) -> SqlQuery:
        self.where.append(clause)
        self.params.extend(params)
        return self

    def where_in(self, column: str, values: list[Any] | tuple[Any, ...]) -> SqlQuery:
        if not values:
            return self.where_clause("0 = 1")
        placeholders = ", ".join("?" for _ in values)
        return self.where_clause(f"{column} IN ({placeholders})", *values)

    def _tail(self) -> tuple[str, list[Any]]:
        sql = ""
        params: list[Any] = []
        if self.where:
            sql += " WHERE " + " AND ".join(f"({clause})" for clause in self.where)
        params.extend(self.params)
        if self.order_by:
            sql += f" ORDER BY {self.order_by}"
        if self.limit is not None:
            sql += " LIMIT ?"
            params.append(self.limit)
            if self.offset:
                sql += " OFFSET ?"
                params.append(self.offset)
        return sql, params

    def to_sql(self) -> tuple[str, list[Any]]:
        """Full SELECT of the base columns."""
        tail, params = self._tail()
        return f"SELECT {BASE_COLUMNS} {BASE_FROM}{tail}", params

    def ids_sql(self) -> tuple[str, list[Any]]:
        """SELECT of the node ids in scope, for use as a subquery."""
        tail, params = self._tail()
        return f"SELECT n.id {BASE_FROM}{tail}", params

    def count_sql(self) -> tuple[str, list[Any]]:
        """COUNT of the rows in scope, ignoring ordering and paging."""
        sql = f"SELECT COUNT(*) {BASE_FROM}"
        if self.where:
            sql += " WHERE " + " AND ".join(f"({clause})" for clause in self.where)
        return sql, list(self.params)


def base_query(current_only: bool = True) -> SqlQuery:
    """Start a query over media rows.

    Args:
        current_only: Restrict to the current version of each node
    """
    query = SqlQuery().where_clause("n.node_object_type = ?", MEDIA_OBJECT_TYPE)
    if current_only:
        query.where_clause(CURRENT_VERSION_CLAUSE)
    return query


@dataclass(frozen=True)
class MediaQuery:
    """Criteria for get_by_query and paged listings.

    All criteria are optional and AND-ed together.

    Attributes:
        ids: Only these node ids
        parent_id: Direct children of this node
        content_type_ids: Only media of these types
        level: Only nodes at this depth
        descendants_of_path: Nodes strictly below the node with this path
        name: Exact display name (case-insensitive)
        trashed: Only trashed (True) or only live (False) media
    """

    ids: tuple[int, ...] | None = None
    parent_id: int | None = None
    content_type_ids: tuple[int, ...] | None = None
    level: int | None = None
    descendants_of_path: str | None = None
    name: str | None = None
    trashed: bool | None = None

    def apply(self, query: SqlQuery) -> SqlQuery:
        """Add these criteria to a base query."""
        if self.ids is not None:
            query.where_in("n.id", list(self.ids))
        if self.parent_id is not None:
            query.where_clause("n.parent_id = ?", self.parent_id)
        if self.content_type_ids is not None:
            query.where_in("c.content_type_id", list(self.content_type_ids))
        if self.level is not None:
            query.where_clause("n.level = ?", self.level)
        if self.descendants_of_path is not None:
            query.where_clause(
                "n.path LIKE ? ESCAPE '\\'", escape_like(self.descendants_of_path) + ",%"
            )
        if self.name is not None:
            query.where_clause("n.text = ? COLLATE NOCASE", self.name)
        if self.trashed is not None:
            query.where_clause("n.trashed = ?", 1 if self.trashed else 0)
        return query
