"""
Sibling name collision resolution.

When unique naming is enabled, a media item may not share its display
name (case-insensitively) with a sibling of the same object type. The
resolver appends " (n)" to the desired name until it no longer collides.

Algorithm:
    1. Prefix-scan the siblings whose name starts with the desired name,
       so "Photo" and "Photo (1)" are fetched together
    2. Skip the entity's own row when renaming an existing entity
    3. Order the candidates with the similar-name comparator: a base name
       and its "(n)" variants form one family ordered by n
    4. Walk the ordered candidates; on every case-insensitive match with
       the working name, bump it to "<desired> (n)" and increment n

The walk bumps on every collision met in order and does not search for
the lowest free suffix. Siblings "Photo", "Photo (1)", "Photo (3)" give
"Photo (2)"; siblings "Photo", "Photo (2)" give "Photo (1)".
"""

from __future__ import annotations

import functools
import logging

from ..models import MEDIA_OBJECT_TYPE
from ..storage import Database
from .query import escape_like

logger = logging.getLogger(__name__)


def _split_suffix(name: str) -> tuple[str, int]:
    """Split "Base (n)" into (lowercased "base", n); a bare name is (name, 0)."""
    open_index = name.rfind("(")
    if name.endswith(")") and open_index > 0:
        try:
            number = int(name[open_index + 1 : -1])
        except ValueError:
            pass
        else:
            return name[:open_index].rstrip().lower(), number
    return name.lower(), 0


def compare_similar_names(x: str, y: str) -> int:
    """Order a base name and its "(n)" variants numerically.

    A bare name and the names ending in " (n)" on the same base
    (case-insensitively) form one family: the bare name first, then the
    variants by n. Anything else compares case-insensitively, with the
    exact string as the tie-breaker.
    """
    x_base, x_number = _split_suffix(x)
    y_base, y_number = _split_suffix(y)
    if x_base == y_base:
        x_key: tuple = (x_number, x)
        y_key: tuple = (y_number, y)
    else:
        x_key = (x.lower(), x)
        y_key = (y.lower(), y)
    return (x_key > y_key) - (x_key < y_key)


similar_name_key = functools.cmp_to_key(compare_similar_names)


class UniqueNameResolver:
    """Resolves sibling name collisions under one parent.

    Attributes:
        db: Database to scan siblings in
        enabled: When False, resolve() returns the desired name unchanged
        object_type: Node object type partition
    """

    def __init__(
        self,
        db: Database,
        enabled: bool = True,
        object_type: str = MEDIA_OBJECT_TYPE,
    ) -> None:
        self.db = db
        self.enabled = enabled
        self.object_type = object_type

    def sibling_names(self, parent_id: int, prefix: str, exclude_id: int = 0) -> list[str]:
        """Names of siblings starting with prefix, in similar-name order."""
        rows = self.db.fetchall(
            """
            SELECT id, text FROM nodes
            WHERE node_object_type = ? AND parent_id = ? AND text LIKE ? ESCAPE '\\'
            """,
            (self.object_type, parent_id, escape_like(prefix) + "%"),
        )
        names = [row["text"] for row in rows if not (exclude_id and row["id"] == exclude_id)]
        return sorted(names, key=similar_name_key)

    def resolve(self, parent_id: int, name: str, node_id: int = 0) -> str:
        """Return a name that does not collide with any sibling.

        Args:
            parent_id: Parent whose children are checked
            name: Desired display name
            node_id: Id of the entity being renamed (0 for a new entity)

        Returns:
            The desired name, or the desired name with a " (n)" suffix
        """
        if not self.enabled:
            return name

        current = name
        suffix = 1
        for sibling in self.sibling_names(parent_id, name, exclude_id=node_id):
            if sibling.lower() == current.lower():
                current = f"{name} ({suffix})"
                suffix += 1

        if current != name:
            logger.debug(
                "Resolved sibling name collision",
                extra={"parent_id": parent_id, "requested": name, "resolved": current},
            )
        return current
