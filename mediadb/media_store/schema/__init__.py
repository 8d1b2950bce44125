"""
Schema module for the media store.

This module provides the type descriptors media items are built from:
- Type definitions (MediaType, PropertyType, PropertyKind)
- The media type registry (type descriptor provider)

Invariants:
    - content_type_id and property_type_id are immutable once assigned
    - Property kinds never change for existing property_type_ids
    - All media types must be registered before the repository serves requests
"""

from .defaults import BUILTIN_MEDIA_TYPES, FILE, FOLDER, IMAGE, builtin_registry
from .registry import DuplicateRegistrationError, MediaTypeRegistry, RegistryFrozenError
from .types import MediaType, PropertyKind, PropertyType, property_type

__all__ = [
    # Types
    "MediaType",
    "PropertyType",
    "PropertyKind",
    "property_type",
    # Registry
    "MediaTypeRegistry",
    "RegistryFrozenError",
    "DuplicateRegistrationError",
    # Built-in types
    "BUILTIN_MEDIA_TYPES",
    "FOLDER",
    "IMAGE",
    "FILE",
    "builtin_registry",
]
