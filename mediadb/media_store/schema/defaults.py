"""
Built-in media types.

Used when no MEDIA_TYPES_FILE is configured. Ids follow the classic
media type numbering (Folder 1031, Image 1032, File 1033).
"""

from __future__ import annotations

from .registry import MediaTypeRegistry
from .types import MediaType, property_type

FOLDER = MediaType(
    content_type_id=1031,
    alias="folder",
    name="Folder",
    property_types=(property_type(20, "contents", "text", description="Folder notes"),),
)

IMAGE = MediaType(
    content_type_id=1032,
    alias="image",
    name="Image",
    property_types=(
        property_type(6, "umbracoFile", "str", mandatory=True),
        property_type(7, "umbracoWidth", "int"),
        property_type(8, "umbracoHeight", "int"),
        property_type(9, "umbracoBytes", "int"),
        property_type(10, "umbracoExtension", "str"),
        property_type(11, "tags", "tags"),
    ),
)

FILE = MediaType(
    content_type_id=1033,
    alias="file",
    name="File",
    property_types=(
        property_type(24, "umbracoFile", "str", mandatory=True),
        property_type(25, "umbracoExtension", "str"),
        property_type(26, "umbracoBytes", "int"),
    ),
)

BUILTIN_MEDIA_TYPES = (FOLDER, IMAGE, FILE)


def builtin_registry() -> MediaTypeRegistry:
    """A new, unfrozen registry holding the built-in media types."""
    registry = MediaTypeRegistry()
    for media_type in BUILTIN_MEDIA_TYPES:
        registry.register(media_type)
    return registry
