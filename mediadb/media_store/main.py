"""
Media Store - Main entry point.

This module assembles the media store from configuration:
- Logging (JSON or text)
- Media type registry (built-in types or MEDIA_TYPES_FILE)
- SQLite database and the MediaRepository
- HTTP API served by uvicorn

Usage:
    python -m mediadb.media_store.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - The media type registry is frozen before the repository serves requests
    - The database is initialized before the first request
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import json_log_formatter
import uvicorn

from .api import create_app
from .cache import CacheGateway
from .config import MediaStoreConfig
from .repository import MediaRepository, SqliteTagStore
from .schema import MediaTypeRegistry, builtin_registry
from .storage import Database

logger = logging.getLogger(__name__)


def setup_logging(config: MediaStoreConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Media store configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def load_registry(config: MediaStoreConfig) -> MediaTypeRegistry:
    """Load and freeze the media type registry.

    Returns:
        Frozen registry from MEDIA_TYPES_FILE, or the built-in media types
    """
    types_file = config.repository.media_types_file
    if types_file:
        registry = MediaTypeRegistry.from_json(Path(types_file).read_text())
    else:
        registry = builtin_registry()
    fingerprint = registry.freeze()
    logger.info(f"Media type registry frozen, fingerprint: {fingerprint}")
    return registry


def build_repository(
    config: MediaStoreConfig,
    registry: MediaTypeRegistry | None = None,
) -> MediaRepository:
    """Open the database and wire a MediaRepository.

    Args:
        config: Media store configuration
        registry: Media type registry (loaded from config when None)

    Returns:
        Repository over an initialized database
    """
    db = Database.from_config(config.storage)
    db.initialize()

    cache = (
        CacheGateway(max_entries=config.repository.cache_max_entries)
        if config.repository.cache_enabled
        else None
    )
    return MediaRepository(
        db,
        registry if registry is not None else load_registry(config),
        SqliteTagStore(db),
        cache=cache,
        ensure_unique_naming=config.repository.ensure_unique_naming,
        rebuild_group_size=config.repository.rebuild_group_size,
    )


def serve(config: MediaStoreConfig) -> None:
    """Run the HTTP API until interrupted."""
    repository = build_repository(config)
    app = create_app(repository)
    logger.info(
        "Starting media store HTTP API",
        extra={"host": config.http.host, "port": config.http.port},
    )
    try:
        uvicorn.run(app, host=config.http.host, port=config.http.port, log_config=None)
    finally:
        repository.db.close()
        logger.info("Media store stopped")


def main() -> None:
    """Main entry point."""
    try:
        config = MediaStoreConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    config.log_config()
    serve(config)


if __name__ == "__main__":
    main()
