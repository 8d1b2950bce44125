"""
In-memory media entities.

This module defines the objects the repository reads and writes:
- Media: one node of the media tree at one version
- Property / PropertyCollection: typed values declared by the media type
- DocumentDefinition: transient tuple driving one batched property fetch

Media and Property track which of their fields changed since the last
reset. The repository resets tracking after every load and every
persist, so downstream logic only ever sees user modifications.

Invariants:
    - A PropertyCollection holds exactly the property types its media type declares
    - Entities loaded from storage are not dirty
    - id == 0 means "not persisted yet"; negative ids are reserved system nodes

How to change safely:
    - New tracked fields must be added to TRACKED_FIELDS
    - Keep Media deep-copyable; the cache and registry rely on it
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, ClassVar, Iterator

from .schema.types import MediaType, PropertyType

# Object type tag of every media node row
MEDIA_OBJECT_TYPE = "b796f64c-1f99-4ffb-b886-4bf4bc011a9c"

# Reserved system nodes
SYSTEM_ROOT_ID = -1
RECYCLE_BIN_MEDIA_ID = -21


class ChangeTracking:
    """Mixin recording assignments to tracked fields after construction."""

    TRACKED_FIELDS: ClassVar[frozenset[str]] = frozenset()

    def _start_tracking(self) -> None:
        object.__setattr__(self, "_dirty", set())
        object.__setattr__(self, "_previous_dirty", set())
        object.__setattr__(self, "_tracking", True)

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, "_tracking", False) and name in self.TRACKED_FIELDS:
            if getattr(self, name) != value:
                self._dirty.add(name)
        object.__setattr__(self, name, value)

    def is_property_dirty(self, name: str) -> bool:
        """Whether the named field changed since the last reset."""
        return name in self._dirty

    def was_property_dirty(self, name: str) -> bool:
        """Whether the named field was dirty when tracking was last reset."""
        return name in self._previous_dirty

    def dirty_properties(self) -> set[str]:
        return set(self._dirty)

    def reset_dirty_properties(self, remember_previous: bool = True) -> None:
        """Clear change tracking.

        Args:
            remember_previous: Keep the cleared set for was_property_dirty()
        """
        object.__setattr__(
            self, "_previous_dirty", set(self._dirty) if remember_previous else set()
        )
        self._dirty.clear()


@dataclass(eq=False)
class Property(ChangeTracking):
    """A typed value for one declared property type.

    Attributes:
        property_type: The declaration this value belongs to
        value: Current value (None when unset)
        id: property_data row id (0 until persisted for the current version)
    """

    TRACKED_FIELDS: ClassVar[frozenset[str]] = frozenset({"value"})

    property_type: PropertyType
    value: Any = None
    id: int = 0

    def __post_init__(self) -> None:
        self._start_tracking()

    @property
    def alias(self) -> str:
        return self.property_type.alias

    @property
    def property_type_id(self) -> int:
        return self.property_type.property_type_id

    def is_dirty(self) -> bool:
        return bool(self._dirty)


class PropertyCollection:
    """Properties of one media item, addressable by alias or property type id."""

    def __init__(self, properties: list[Property] | None = None) -> None:
        self._properties: dict[str, Property] = {}
        for prop in properties or []:
            self._properties[prop.alias] = prop

    @classmethod
    def from_media_type(cls, media_type: MediaType) -> PropertyCollection:
        """Build an unset collection shaped by the media type's declarations."""
        return cls([Property(property_type=pt, value=pt.default) for pt in media_type.property_types])

    def __iter__(self) -> Iterator[Property]:
        return iter(self._properties.values())

    def __len__(self) -> int:
        return len(self._properties)

    def __contains__(self, alias: str) -> bool:
        return alias in self._properties

    def __getitem__(self, alias: str) -> Property:
        return self._properties[alias]

    def get(self, alias: str) -> Property | None:
        return self._properties.get(alias)

    def by_type_id(self, property_type_id: int) -> Property | None:
        for prop in self._properties.values():
            if prop.property_type_id == property_type_id:
                return prop
        return None

    def is_dirty(self) -> bool:
        return any(prop.is_dirty() for prop in self._properties.values())

    def reset_dirty_properties(self, remember_previous: bool = True) -> None:
        for prop in self._properties.values():
            prop.reset_dirty_properties(remember_previous)

    def to_dict(self) -> dict[str, Any]:
        """Alias to value mapping."""
        return {alias: prop.value for alias, prop in self._properties.items()}


@dataclass(eq=False)
class Media(ChangeTracking):
    """A media item: one node of the media tree at one version.

    Attributes:
        name: Display name (node text)
        parent_id: Parent node id (-1 for top-level media)
        content_type: Type descriptor of this media item
        id: Node id (0 until persisted)
        key: Unique node key (uuid)
        path: Comma-joined ancestor ids ending in the node's own id
        level: Depth in the tree (top-level media = 1)
        sort_order: Position among siblings
        trashed: Whether the item sits in the recycle bin
        creator_id: User who created the node
        version: Version id (uuid) this instance represents
        create_date: Node creation time (Unix ms)
        update_date: Version time (Unix ms)
        properties: Property values for this version

    Example:
        >>> media = Media(name="Photo", parent_id=-1, content_type=Image)
        >>> media.set_value("umbracoWidth", 800)
        >>> repository.add_or_update(media)
    """

    TRACKED_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {
            "id",
            "key",
            "name",
            "parent_id",
            "content_type",
            "path",
            "level",
            "sort_order",
            "trashed",
            "creator_id",
            "version",
            "create_date",
            "update_date",
        }
    )

    name: str
    parent_id: int
    content_type: MediaType
    id: int = 0
    key: str = ""
    path: str = ""
    level: int = 0
    sort_order: int = 0
    trashed: bool = False
    creator_id: int = 0
    version: str = ""
    create_date: int = 0
    update_date: int = 0
    properties: PropertyCollection = field(default=None)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.properties is None:
            self.properties = PropertyCollection.from_media_type(self.content_type)
        self._start_tracking()

    @property
    def content_type_id(self) -> int:
        return self.content_type.content_type_id

    @property
    def has_identity(self) -> bool:
        return self.id > 0

    def is_dirty(self) -> bool:
        return bool(self._dirty) or self.properties.is_dirty()

    def reset_dirty_properties(self, remember_previous: bool = True) -> None:
        super().reset_dirty_properties(remember_previous)
        self.properties.reset_dirty_properties(remember_previous)

    def get_value(self, alias: str) -> Any:
        return self.properties[alias].value

    def set_value(self, alias: str, value: Any) -> None:
        """Set a property value.

        Raises:
            KeyError: If the media type declares no property with this alias
        """
        if alias not in self.properties:
            raise KeyError(f"Media type '{self.content_type.alias}' has no property '{alias}'")
        self.properties[alias].value = value

    def adding_entity(self) -> None:
        """Stamp key, version and dates before the first persist."""
        now = int(time.time() * 1000)
        if not self.key:
            self.key = str(uuid.uuid4())
        if not self.version:
            self.version = str(uuid.uuid4())
        if not self.create_date:
            self.create_date = now
        self.update_date = now

    def updating_entity(self) -> None:
        """Stamp the update date before persisting changes."""
        now = int(time.time() * 1000)
        self.update_date = max(now, self.update_date + 1)

    def new_version(self) -> str:
        """Start a new version; the next persist writes a new version row.

        Returns:
            The new version id
        """
        self.version = str(uuid.uuid4())
        for prop in self.properties:
            prop.id = 0
        return self.version


@dataclass(frozen=True)
class DocumentDefinition:
    """Drives the batched property fetch for one media/version pair.

    Attributes:
        id: Node id
        version: Version id whose property rows belong to this entity
        version_date: Version timestamp (Unix ms)
        create_date: Node creation timestamp (Unix ms)
        media_type: Type descriptor shaping the property collection
    """

    id: int
    version: str
    version_date: int
    create_date: int
    media_type: MediaType
