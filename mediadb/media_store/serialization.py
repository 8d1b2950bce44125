"""
XML rendering of media snapshots.

to_xml() is the default serializer for the live and preview snapshot
tables. Names and string values are sanitized before they are stored,
so a snapshot can always be parsed back.
"""

from __future__ import annotations

import json
import re
import xml.etree.ElementTree as ET
from typing import Any

from .models import Media
from .schema import PropertyKind

# Characters outside the XML 1.0 Char production
_INVALID_XML_CHARS = re.compile(
    "[^\u0009\u000a\u000d\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]"
)

_STRING_KINDS = (PropertyKind.STRING, PropertyKind.TEXT)


def sanitize_xml_text(value: str) -> str:
    """Remove characters that cannot appear in an XML document."""
    return _INVALID_XML_CHARS.sub("", value)


def sanitize_for_xml_storage(entity: Media) -> None:
    """Strip XML-invalid characters from the name and string property values."""
    if entity.name:
        clean = sanitize_xml_text(entity.name)
        if clean != entity.name:
            entity.name = clean
    for prop in entity.properties:
        if prop.property_type.kind in _STRING_KINDS and isinstance(prop.value, str):
            clean = sanitize_xml_text(prop.value)
            if clean != prop.value:
                prop.value = clean


def _format_value(kind: PropertyKind, value: Any) -> str:
    if kind is PropertyKind.JSON:
        return json.dumps(value, sort_keys=True)
    if kind is PropertyKind.TAGS:
        return ",".join(value)
    if kind is PropertyKind.BOOLEAN:
        return "1" if value else "0"
    return sanitize_xml_text(str(value))


def to_xml(media: Media) -> str:
    """Render a media item as an XML element.

    The element is named after the media type alias and carries the node
    attributes; every property with a value becomes a child element named
    after its alias.

    Example:
        >>> to_xml(photo)
        '<image id="1050" parentID="-1" level="1" ... ><umbracoWidth>800</umbracoWidth></image>'
    """
    element = ET.Element(
        media.content_type.alias,
        {
            "id": str(media.id),
            "key": media.key,
            "parentID": str(media.parent_id),
            "level": str(media.level),
            "sortOrder": str(media.sort_order),
            "nodeName": sanitize_xml_text(media.name),
            "path": media.path,
            "nodeType": str(media.content_type_id),
            "version": media.version,
            "createDate": str(media.create_date),
            "updateDate": str(media.update_date),
            "creatorID": str(media.creator_id),
            "isDoc": "",
        },
    )
    for prop in media.properties:
        child = ET.SubElement(element, prop.alias)
        if prop.value is not None:
            child.text = _format_value(prop.property_type.kind, prop.value)
    return ET.tostring(element, encoding="unicode")
