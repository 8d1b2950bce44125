"""
Media type registry.

The MediaTypeRegistry is the type descriptor provider for the repository.
It provides:
- Registration of media types
- Lookup by content type id or alias
- Schema fingerprinting for consistency checks
- Freeze mechanism to prevent runtime modifications

Lookups hand out a detached deep copy of the cached descriptor, so a
caller can never mutate the registry's copy. Detaching is not free,
which is why the materializer memoizes descriptors per batch.

Invariants:
    - content_type_id and alias are unique across the registry
    - property_type_id is unique across all registered media types
    - Once frozen, no new types can be registered

How to change safely:
    - Register all types before calling freeze()
    - Never reuse a property_type_id for a different property

Example:
    >>> registry = MediaTypeRegistry()
    >>> registry.register(Image)
    >>> registry.freeze()
    >>> registry.get(1032).alias
    'image'
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
import threading
from typing import Dict, Iterator, List, Optional

from .types import MediaType

logger = logging.getLogger(__name__)


class RegistryFrozenError(Exception):
    """Raised when attempting to modify a frozen registry."""
    pass


class DuplicateRegistrationError(Exception):
    """Raised when attempting to register a duplicate id or alias."""
    pass


class MediaTypeRegistry:
    """Registry of media type descriptors, fully cached in memory.

    Thread-safety:
        - Registration is thread-safe (uses internal lock)
        - Lookups after freeze are lock-free
        - Freeze is atomic and irreversible

    Attributes:
        frozen: Whether the registry is frozen (immutable)
        fingerprint: SHA-256 hash of the registered types (computed on freeze)
    """

    def __init__(self) -> None:
        """Initialize an empty, mutable registry."""
        self._types: Dict[int, MediaType] = {}
        self._types_by_alias: Dict[str, MediaType] = {}
        self._property_owner: Dict[int, int] = {}
        self._frozen = False
        self._fingerprint: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        """Whether the registry is frozen."""
        return self._frozen

    @property
    def fingerprint(self) -> Optional[str]:
        """Registry fingerprint (available after freeze)."""
        return self._fingerprint

    def __len__(self) -> int:
        return len(self._types)

    def register(self, media_type: MediaType) -> None:
        """Register a media type.

        Args:
            media_type: The media type to register

        Raises:
            RegistryFrozenError: If registry is frozen
            DuplicateRegistrationError: If the id, alias or a property_type_id is taken
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(
                    f"Cannot register media type '{media_type.alias}': registry is frozen"
                )

            if media_type.content_type_id in self._types:
                existing = self._types[media_type.content_type_id]
                raise DuplicateRegistrationError(
                    f"content_type_id {media_type.content_type_id} already registered as '{existing.alias}'"
                )

            if media_type.alias in self._types_by_alias:
                existing = self._types_by_alias[media_type.alias]
                raise DuplicateRegistrationError(
                    f"Media type alias '{media_type.alias}' already registered with "
                    f"content_type_id {existing.content_type_id}"
                )

            for prop in media_type.property_types:
                owner = self._property_owner.get(prop.property_type_id)
                if owner is not None:
                    raise DuplicateRegistrationError(
                        f"property_type_id {prop.property_type_id} already declared by "
                        f"content_type_id {owner}"
                    )

            self._types[media_type.content_type_id] = media_type
            self._types_by_alias[media_type.alias] = media_type
            for prop in media_type.property_types:
                self._property_owner[prop.property_type_id] = media_type.content_type_id
            logger.debug(
                f"Registered media type: {media_type.alias} "
                f"(content_type_id={media_type.content_type_id})"
            )

    def get(self, content_type_id: int) -> Optional[MediaType]:
        """Get a detached copy of a media type by id.

        Args:
            content_type_id: Media type id

        Returns:
            Deep copy of the registered MediaType, or None if unknown
        """
        media_type = self._types.get(content_type_id)
        if media_type is None:
            return None
        return copy.deepcopy(media_type)

    def get_by_alias(self, alias: str) -> Optional[MediaType]:
        """Get a detached copy of a media type by alias."""
        media_type = self._types_by_alias.get(alias)
        if media_type is None:
            return None
        return copy.deepcopy(media_type)

    def media_types(self) -> Iterator[MediaType]:
        """Iterate over all registered media types (sorted by id)."""
        for content_type_id in sorted(self._types):
            yield self._types[content_type_id]

    def property_type_ids_for_alias(self, alias: str) -> List[int]:
        """All property_type_ids declared under a property alias, across media types.

        Used to order listings by a property value when media of several
        types share the same alias.
        """
        return sorted(
            prop.property_type_id
            for media_type in self._types.values()
            for prop in media_type.property_types
            if prop.alias == alias
        )

    def freeze(self) -> str:
        """Freeze the registry and compute fingerprint.

        Returns:
            Fingerprint string

        Raises:
            RegistryFrozenError: If already frozen
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Registry is already frozen")

            self._fingerprint = self._compute_fingerprint()
            self._frozen = True
            logger.info(
                f"Media type registry frozen with {len(self._types)} media types, "
                f"fingerprint={self._fingerprint}"
            )
            return self._fingerprint

    def _compute_fingerprint(self) -> str:
        """Compute SHA-256 fingerprint over the canonical JSON of all types."""
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        hash_bytes = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
        return f"sha256:{hash_bytes}"

    def to_dict(self) -> dict:
        """Convert registry to dictionary representation, sorted by id."""
        return {
            "media_types": [self._types[tid].to_dict() for tid in sorted(self._types)],
        }

    @classmethod
    def from_dict(cls, data: dict) -> MediaTypeRegistry:
        """Create registry from dictionary representation (not frozen)."""
        registry = cls()
        for type_data in data.get("media_types", []):
            registry.register(MediaType.from_dict(type_data))
        return registry

    @classmethod
    def from_json(cls, json_str: str) -> MediaTypeRegistry:
        """Create registry from a JSON string (not frozen)."""
        return cls.from_dict(json.loads(json_str))
