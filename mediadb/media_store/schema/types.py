"""
Type descriptors for media.

This module defines the types that describe what a media item may carry:
- PropertyKind: Value kind of a property and its storage column
- PropertyType: One declared property of a media type
- MediaType: The type descriptor of a media item (its content type)

Invariants:
    - content_type_id and property_type_id are positive integers
    - Aliases are unique within a media type
    - Each PropertyKind is stored in exactly one property_data column

How to change safely:
    - Add new property types with new property_type_ids
    - Never change the kind of an existing property type; stored values
      live in the column of the original kind

Example:
    >>> Image = MediaType(
    ...     content_type_id=1032,
    ...     alias="image",
    ...     property_types=(
    ...         property_type(6, "umbracoFile", "str"),
    ...         property_type(7, "umbracoWidth", "int"),
    ...     ),
    ... )
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any


class PropertyKind(Enum):
    """Supported property value kinds.

    These map to property_data storage columns and conversion rules.
    """

    STRING = "str"
    TEXT = "text"
    INTEGER = "int"
    FLOAT = "float"
    BOOLEAN = "bool"
    TIMESTAMP = "timestamp"  # Unix milliseconds
    JSON = "json"
    TAGS = "tags"  # List of tag strings

    @classmethod
    def from_str(cls, value: str) -> PropertyKind:
        """Convert string representation to PropertyKind.

        Args:
            value: String name of the property kind

        Returns:
            Corresponding PropertyKind enum value

        Raises:
            ValueError: If value is not a valid property kind
        """
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid property kind '{value}'. Valid kinds: {valid}")

    @property
    def storage_column(self) -> str:
        """The property_data column holding values of this kind."""
        return _STORAGE_COLUMNS[self]

    def to_storage(self, value: Any) -> Any:
        """Convert a property value to its column representation."""
        if value is None:
            return None
        if self is PropertyKind.BOOLEAN:
            return 1 if value else 0
        if self is PropertyKind.JSON:
            return json.dumps(value, sort_keys=True)
        if self is PropertyKind.TAGS:
            if isinstance(value, str):
                value = value.split(",")
            return ",".join(tag.strip() for tag in value if tag and tag.strip())
        return value

    def from_storage(self, raw: Any) -> Any:
        """Convert a column value back to a property value."""
        if raw is None:
            return None
        if self is PropertyKind.BOOLEAN:
            return bool(raw)
        if self is PropertyKind.JSON:
            return json.loads(raw)
        if self is PropertyKind.TAGS:
            return [tag for tag in raw.split(",") if tag]
        if self is PropertyKind.INTEGER or self is PropertyKind.TIMESTAMP:
            return int(raw)
        if self is PropertyKind.FLOAT:
            return float(raw)
        return raw


_STORAGE_COLUMNS = {
    PropertyKind.STRING: "data_nvarchar",
    PropertyKind.TEXT: "data_ntext",
    PropertyKind.INTEGER: "data_int",
    PropertyKind.FLOAT: "data_decimal",
    PropertyKind.BOOLEAN: "data_int",
    PropertyKind.TIMESTAMP: "data_date",
    PropertyKind.JSON: "data_ntext",
    PropertyKind.TAGS: "data_nvarchar",
}

STORAGE_COLUMNS = ("data_int", "data_decimal", "data_date", "data_nvarchar", "data_ntext")


@dataclass(frozen=True)
class PropertyType:
    """Declaration of a single property on a media type.

    Attributes:
        property_type_id: Stable numeric identifier (unique across media types)
        alias: Name used to address the property
        kind: The value kind of the property
        mandatory: Whether editors must supply a value
        default: Value used when the property has never been set
        description: Human-readable description

    Invariants:
        - property_type_id never changes once values are stored
        - kind cannot change after definition
    """

    property_type_id: int
    alias: str
    kind: PropertyKind
    mandatory: bool = False
    default: Any = None
    description: str = ""

    def __post_init__(self) -> None:
        """Validate property type definition."""
        if self.property_type_id <= 0:
            raise ValueError(f"property_type_id must be positive, got {self.property_type_id}")
        if not self.alias:
            raise ValueError("Property alias cannot be empty")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: dict[str, Any] = {
            "property_type_id": self.property_type_id,
            "alias": self.alias,
            "kind": self.kind.value,
        }
        if self.mandatory:
            result["mandatory"] = True
        if self.default is not None:
            result["default"] = self.default
        if self.description:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PropertyType:
        """Create from dictionary representation."""
        return cls(
            property_type_id=data["property_type_id"],
            alias=data["alias"],
            kind=PropertyKind.from_str(data["kind"]),
            mandatory=data.get("mandatory", False),
            default=data.get("default"),
            description=data.get("description", ""),
        )


@dataclass(frozen=True)
class MediaType:
    """Type descriptor of a media item.

    Declares the set of property types a media item of this content
    type may hold. Owned by the MediaTypeRegistry; the repository only
    looks descriptors up.

    Attributes:
        content_type_id: Stable numeric identifier
        alias: Unique alias (e.g. "image", "folder")
        name: Display name
        property_types: Declared property types
        description: Human-readable description
    """

    content_type_id: int
    alias: str
    name: str = ""
    property_types: tuple[PropertyType, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        """Validate media type definition."""
        if self.content_type_id <= 0:
            raise ValueError(f"content_type_id must be positive, got {self.content_type_id}")
        if not self.alias:
            raise ValueError("Media type alias cannot be empty")

        seen_ids: set[int] = set()
        seen_aliases: set[str] = set()
        for prop in self.property_types:
            if prop.property_type_id in seen_ids:
                raise ValueError(
                    f"Duplicate property_type_id {prop.property_type_id} in media type '{self.alias}'"
                )
            if prop.alias in seen_aliases:
                raise ValueError(f"Duplicate property alias '{prop.alias}' in media type '{self.alias}'")
            seen_ids.add(prop.property_type_id)
            seen_aliases.add(prop.alias)

    def get_property_type(self, alias_or_id: int | str) -> PropertyType | None:
        """Get a declared property type by id or alias."""
        for prop in self.property_types:
            if isinstance(alias_or_id, int):
                if prop.property_type_id == alias_or_id:
                    return prop
            elif prop.alias == alias_or_id:
                return prop
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: dict[str, Any] = {
            "content_type_id": self.content_type_id,
            "alias": self.alias,
            "property_types": [p.to_dict() for p in self.property_types],
        }
        if self.name:
            result["name"] = self.name
        if self.description:
            result["description"] = self.description
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MediaType:
        """Create from dictionary representation."""
        return cls(
            content_type_id=data["content_type_id"],
            alias=data["alias"],
            name=data.get("name", ""),
            property_types=tuple(
                PropertyType.from_dict(p) for p in data.get("property_types", [])
            ),
            description=data.get("description", ""),
        )


def property_type(
    property_type_id: int,
    alias: str,
    kind: str | PropertyKind,
    *,
    mandatory: bool = False,
    default: Any = None,
    description: str = "",
) -> PropertyType:
    """Convenience function to create a PropertyType.

    Args:
        property_type_id: Stable numeric identifier
        alias: Property alias
        kind: Value kind (string or PropertyKind enum)
        mandatory: Whether a value is required
        default: Default value
        description: Human-readable description

    Returns:
        PropertyType instance

    Example:
        >>> width = property_type(7, "umbracoWidth", "int")
        >>> tags = property_type(9, "tags", "tags")
    """
    if isinstance(kind, str):
        kind = PropertyKind.from_str(kind)
    return PropertyType(
        property_type_id=property_type_id,
        alias=alias,
        kind=kind,
        mandatory=mandatory,
        default=default,
        description=description,
    )
