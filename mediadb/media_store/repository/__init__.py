"""
Repository layer for the media store.

This package provides the core persistence components:
- Base queries and retrieval criteria
- Batched property loading and row-to-entity materialization
- Tree invariant maintenance and sibling name resolution
- Version retrieval and deletion
- Denormalized snapshot stores and their bulk rebuild
- The MediaRepository facade wiring them together
"""

from .materializer import MediaMaterializer
from .media_repository import SYSTEM_SORT_FIELDS, MediaRepository
from .naming import UniqueNameResolver, compare_similar_names, similar_name_key
from .properties import PropertyBatchLoader
from .query import MediaQuery, SqlQuery, base_query
from .rebuild import RebuildItemResult, RebuildOutcome, RebuildResult, SnapshotRebuilder
from .snapshots import ContentXmlStore, PreviewXmlStore
from .tags import SqliteTagStore, TagStore
from .tree import ParentNode, TreeInvariantManager, validate_path
from .versions import VersionStore

__all__ = [
    # Facade
    "MediaRepository",
    "SYSTEM_SORT_FIELDS",
    # Queries
    "MediaQuery",
    "SqlQuery",
    "base_query",
    # Retrieval
    "PropertyBatchLoader",
    "MediaMaterializer",
    "VersionStore",
    # Tree and naming
    "TreeInvariantManager",
    "ParentNode",
    "validate_path",
    "UniqueNameResolver",
    "compare_similar_names",
    "similar_name_key",
    # Snapshots
    "ContentXmlStore",
    "PreviewXmlStore",
    "SnapshotRebuilder",
    "RebuildResult",
    "RebuildItemResult",
    "RebuildOutcome",
    # Tags
    "TagStore",
    "SqliteTagStore",
]
