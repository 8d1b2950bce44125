"""
API layer for the media store.

Provides the HTTP interface:
- REST endpoints for browsing media and versions
- Admin endpoint for rebuilding snapshots
"""

from .http_server import create_app, router

__all__ = ["create_app", "router"]
