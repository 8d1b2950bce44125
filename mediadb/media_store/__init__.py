"""
Media Store - persistence engine for the versioned media tree.

This package maps media entities onto normalized relational rows:
- nodes: tree structure (path, level, sort order) and display name
- content: the media type reference of each node
- content_versions: one row per version, the newest is current
- property_data: typed property values per version
- content_xml / preview_xml: rebuildable denormalized snapshots

Architecture:
    ┌─────────────┐     ┌──────────────────┐     ┌──────────────┐
    │  HTTP / CLI │────▶│ MediaRepository  │────▶│ CacheGateway │
    └─────────────┘     └────────┬─────────┘     └──────────────┘
                                 │
          ┌──────────────────────┼──────────────────────┐
          ▼                      ▼                      ▼
    ┌──────────────┐     ┌────────────────┐     ┌──────────────────┐
    │ TreeManager  │     │ VersionStore   │     │ SnapshotRebuilder│
    │ NameResolver │     │ Materializer   │     │ SnapshotStores   │
    └──────────────┘     │ PropertyLoader │     └──────────────────┘
                         └───────┬────────┘
                                 ▼
                         ┌────────────────┐
                         │     SQLite     │
                         └────────────────┘

Invariants:
    - path(node) == path(parent) + "," + node.id and level(node) == level(parent) + 1
    - Exactly one version per media is current (latest version_date)
    - Property rows are loaded in one query per retrieval batch
    - Entities freshly loaded from storage are never dirty

How to change safely:
    - Keep the two-phase path write inside one transaction
    - Add new listing paths through the shared materializer
    - Never delete versions by version id alone

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
