"""
Configuration management for the media store.

All configuration is done via environment variables - no config files.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - The node id sequence must start above the reserved system ids
    - Rebuild group size is always positive

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Deprecate settings by logging warnings but continuing to support them
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class StorageConfig:
    """SQLite storage configuration.

    Attributes:
        db_path: Path of the SQLite database file (":memory:" for an in-process database)
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
        cache_size_pages: SQLite cache size in pages (negative = KB)
        first_node_id: First id handed out to a new node
    """

    db_path: str = "/var/lib/mediadb/media.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000
    cache_size_pages: int = -64000  # 64MB
    first_node_id: int = 1000

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            db_path=os.getenv("MEDIA_DB_PATH", "/var/lib/mediadb/media.db"),
            wal_mode=_env_bool("SQLITE_WAL_MODE", "true"),
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
            cache_size_pages=int(os.getenv("SQLITE_CACHE_SIZE", "-64000")),
            first_node_id=int(os.getenv("MEDIA_FIRST_NODE_ID", "1000")),
        )


@dataclass(frozen=True)
class RepositoryConfig:
    """Media repository behaviour.

    Attributes:
        ensure_unique_naming: Rename siblings that collide on name ("Photo (1)")
        cache_enabled: Use the read-through entity cache
        cache_max_entries: Maximum cached media snapshots
        rebuild_group_size: Entities per group when rebuilding snapshots
        media_types_file: JSON file of media type definitions (built-in types when unset)
    """

    ensure_unique_naming: bool = True
    cache_enabled: bool = True
    cache_max_entries: int = 10000
    rebuild_group_size: int = 200
    media_types_file: str | None = None

    @classmethod
    def from_env(cls) -> RepositoryConfig:
        """Load configuration from environment variables."""
        return cls(
            ensure_unique_naming=_env_bool("ENSURE_UNIQUE_NAMING", "true"),
            cache_enabled=_env_bool("MEDIA_CACHE_ENABLED", "true"),
            cache_max_entries=int(os.getenv("MEDIA_CACHE_MAX_ENTRIES", "10000")),
            rebuild_group_size=int(os.getenv("REBUILD_GROUP_SIZE", "200")),
            media_types_file=os.getenv("MEDIA_TYPES_FILE") or None,
        )


@dataclass(frozen=True)
class HttpConfig:
    """HTTP API configuration.

    Attributes:
        host: Address to bind
        port: Port to listen on
    """

    host: str = "0.0.0.0"
    port: int = 8080

    @classmethod
    def from_env(cls) -> HttpConfig:
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("HTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("HTTP_PORT", "8080")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class MediaStoreConfig:
    """Complete media store configuration.

    Attributes:
        storage: SQLite storage configuration
        repository: Repository behaviour
        http: HTTP API configuration
        observability: Logging configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    repository: RepositoryConfig = field(default_factory=RepositoryConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> MediaStoreConfig:
        """Load complete configuration from environment variables.

        Returns:
            MediaStoreConfig with all sections populated from environment.

        Raises:
            ValueError: If configuration is invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            repository=RepositoryConfig.from_env(),
            http=HttpConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.storage.db_path:
            raise ValueError("MEDIA_DB_PATH is required")
        if self.storage.first_node_id <= 0:
            raise ValueError(
                f"MEDIA_FIRST_NODE_ID must be positive, got {self.storage.first_node_id}"
            )
        if self.repository.rebuild_group_size <= 0:
            raise ValueError(
                f"REBUILD_GROUP_SIZE must be positive, got {self.repository.rebuild_group_size}"
            )
        if self.repository.cache_max_entries <= 0:
            raise ValueError(
                f"MEDIA_CACHE_MAX_ENTRIES must be positive, got {self.repository.cache_max_entries}"
            )
        if self.repository.media_types_file and not os.path.isfile(
            self.repository.media_types_file
        ):
            raise ValueError(
                f"MEDIA_TYPES_FILE does not exist: {self.repository.media_types_file}"
            )
        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

        db_dir = os.path.dirname(self.storage.db_path)
        if self.storage.db_path != ":memory:" and db_dir and not os.path.exists(db_dir):
            logger.warning(
                f"Database directory does not exist: {db_dir}. "
                "It will be created on first connection."
            )

    def log_config(self) -> None:
        """Log the effective configuration."""
        logger.info(
            "Media store configuration loaded",
            extra={
                "db_path": self.storage.db_path,
                "wal_mode": self.storage.wal_mode,
                "ensure_unique_naming": self.repository.ensure_unique_naming,
                "cache_enabled": self.repository.cache_enabled,
                "rebuild_group_size": self.repository.rebuild_group_size,
                "media_types_file": self.repository.media_types_file,
                "http_bind": f"{self.http.host}:{self.http.port}",
                "log_level": self.observability.log_level,
            },
        )
