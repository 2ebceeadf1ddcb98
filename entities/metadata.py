"""
==================================
Entity metadata reflection.
==================================

Derives an EntityShape from a plain entity class: its ordered properties,
their markers, the role each property plays, and the table it maps onto.
Shapes are immutable and cached per class, so reflection happens once per
entity type for the lifetime of the process.

Key detection runs a single pass in declaration order:
    1. A property marked Key is a generated key.
    2. A property marked ExplicitKey is a caller-supplied key.
    3. Until a marked key has been seen, a property named exactly 'Id'
       typed int, BigInt or UUID is an implicit generated key.
An 'Id' property declared after a marked key is ordinary data.

Functions:
- describe_entity: Cached EntityShape for an entity class
- entity_properties: Ordered PropertyInfo list for a class (uncached)

Example:
    >>> from entities.metadata import describe_entity
    >>> shape = describe_entity(User)
    >>> shape.table_name
    '[Users]'
    >>> shape.key_names(generated_only=False)
    ['Id']
"""

import enum
import functools
import types
from dataclasses import dataclass, field
from typing import (
    Annotated,
    Any,
    ClassVar,
    Dict,
    FrozenSet,
    List,
    Optional,
    Tuple,
    Type,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)
from uuid import UUID

from core.config import config
from core.logger import get_logger
from entities.markers import BigInt, Computed, ExplicitKey, Key, Marker, get_table_name

logger = get_logger(__name__)

POTENTIAL_KEY_NAME = 'Id'
POTENTIAL_KEY_TYPES = frozenset({int, BigInt, UUID})

_NONE_TYPE = type(None)


class NoPropertiesError(Exception):
    """Raised when an entity class declares no public properties."""
    pass


class PropertyRole(enum.Enum):
    """Role a property plays in CRUD statements."""

    GENERATED_KEY = 'generated_key'
    EXPLICIT_KEY = 'explicit_key'
    COMPUTED = 'computed'
    REGULAR = 'regular'


@dataclass(frozen=True)
class PropertyInfo:
    """A single reflected entity property.

    Attributes:
        name: Attribute name, also used as column and parameter name
        value_type: Declared type with Annotated and Optional stripped
        markers: Markers attached through Annotated
        nullable: True when declared as Optional
    """

    name: str
    value_type: Any
    markers: FrozenSet[Marker] = field(default_factory=frozenset)
    nullable: bool = False

    def has_marker(self, marker_type: Type[Marker]) -> bool:
        """Check whether a marker of the given class is attached."""
        return any(isinstance(marker, marker_type) for marker in self.markers)

    def has_any_marker(self, marker_types) -> bool:
        """Check whether any marker of the given classes is attached."""
        return any(type(marker) in marker_types for marker in self.markers)

    def is_potential_key(self) -> bool:
        """Check the implicit key convention: named 'Id', typed int/BigInt/UUID."""
        return self.name == POTENTIAL_KEY_NAME and self.value_type in POTENTIAL_KEY_TYPES

    def get_value(self, entity: Any) -> Any:
        """Read the property from an entity; unset attributes read as None."""
        return getattr(entity, self.name, None)

    def set_value(self, entity: Any, value: Any) -> None:
        """Write the property on an entity."""
        setattr(entity, self.name, value)


@dataclass(frozen=True, eq=False)
class EntityShape:
    """Immutable reflected description of an entity class.

    Attributes:
        entity_type: The described class
        name: Class name
        table_name: Bracket-quoted table name
        properties: All properties in declaration order
        roles: Role of each property, keyed by name
        all_keys: Generated and explicit keys
        generated_keys: Keys whose values are assigned by the store
        computed: Properties marked Computed
        non_keys: All properties except generated keys
    """

    entity_type: type
    name: str
    table_name: str
    properties: Tuple[PropertyInfo, ...]
    roles: Dict[str, PropertyRole]
    all_keys: Tuple[PropertyInfo, ...]
    generated_keys: Tuple[PropertyInfo, ...]
    computed: Tuple[PropertyInfo, ...]
    non_keys: Tuple[PropertyInfo, ...]

    @property
    def property_names(self) -> List[str]:
        return [p.name for p in self.properties]

    def get_property(self, name: str) -> PropertyInfo:
        """Look up a property by exact name.

        Raises:
            KeyError: If the entity has no such property
        """
        for prop in self.properties:
            if prop.name == name:
                return prop
        raise KeyError(f"{self.name} has no property '{name}'")

    def role_of(self, name: str) -> PropertyRole:
        return self.roles[name]

    def key_names(self, generated_only: bool = False) -> List[str]:
        keys = self.generated_keys if generated_only else self.all_keys
        return [k.name for k in keys]


def _split_annotation(hint: Any) -> Tuple[Any, FrozenSet[Marker], bool]:
    """Strip Annotated and Optional wrappers from a type hint.

    Returns:
        (value_type, markers, nullable)
    """
    markers = set()
    nullable = False

    while True:
        origin = get_origin(hint)
        if origin is Annotated:
            for meta in hint.__metadata__:
                if isinstance(meta, type) and issubclass(meta, Marker):
                    meta = meta()
                if isinstance(meta, Marker):
                    markers.add(meta)
            hint = hint.__origin__
            continue

        if origin is Union or origin is types.UnionType:
            args = get_args(hint)
            remaining = tuple(a for a in args if a is not _NONE_TYPE)
            if len(remaining) != len(args):
                nullable = True
            if len(remaining) == 1:
                hint = remaining[0]
                continue
            hint = Union[remaining]

        return hint, frozenset(markers), nullable


def entity_properties(entity_type: type) -> List[PropertyInfo]:
    """Reflect the public annotated properties of a class.

    Base class annotations come first. ClassVar and underscore-prefixed
    names are not properties.

    Args:
        entity_type: Entity class

    Returns:
        Ordered list of PropertyInfo
    """
    hints = get_type_hints(entity_type, include_extras=True)
    properties = []

    for name, hint in hints.items():
        if name.startswith('_'):
            continue
        if get_origin(hint) is ClassVar or hint is ClassVar:
            continue

        value_type, markers, nullable = _split_annotation(hint)
        properties.append(PropertyInfo(
            name=name,
            value_type=value_type,
            markers=markers,
            nullable=nullable
        ))

    return properties


def _classify(properties: List[PropertyInfo]) -> Tuple[Dict[str, PropertyRole], list, list]:
    """Assign roles in a single declaration-order pass.

    Returns:
        (roles, all_keys, generated_keys)
    """
    roles = {}
    all_keys = []
    generated_keys = []
    found_key = False

    for prop in properties:
        if prop.has_marker(Key):
            found_key = True
            roles[prop.name] = PropertyRole.GENERATED_KEY
            all_keys.append(prop)
            generated_keys.append(prop)
        elif prop.has_marker(ExplicitKey):
            found_key = True
            roles[prop.name] = PropertyRole.EXPLICIT_KEY
            all_keys.append(prop)
        elif not found_key and prop.is_potential_key():
            roles[prop.name] = PropertyRole.GENERATED_KEY
            all_keys.append(prop)
            generated_keys.append(prop)
        elif prop.has_marker(Computed):
            roles[prop.name] = PropertyRole.COMPUTED
        else:
            roles[prop.name] = PropertyRole.REGULAR

    return roles, all_keys, generated_keys


def default_table_name(entity_type: type) -> str:
    """Derive the table name: declared name, else '[<ClassName>s]'."""
    declared = get_table_name(entity_type)
    if declared is not None:
        return declared
    return f"[{entity_type.__name__}{config.table_suffix}]"


def build_entity_shape(entity_type: type) -> EntityShape:
    """Reflect an entity class into an EntityShape (uncached).

    Args:
        entity_type: Entity class

    Returns:
        EntityShape describing the class

    Raises:
        NoPropertiesError: If the class declares no properties
    """
    properties = entity_properties(entity_type)
    if not properties:
        raise NoPropertiesError(
            f"Cannot use {entity_type.__name__}: it does not expose any public properties"
        )

    roles, all_keys, generated_keys = _classify(properties)
    generated_names = {k.name for k in generated_keys}
    non_keys = [p for p in properties if p.name not in generated_names]
    computed = [p for p in properties if p.has_marker(Computed)]

    shape = EntityShape(
        entity_type=entity_type,
        name=entity_type.__name__,
        table_name=default_table_name(entity_type),
        properties=tuple(properties),
        roles=types.MappingProxyType(roles),
        all_keys=tuple(all_keys),
        generated_keys=tuple(generated_keys),
        computed=tuple(computed),
        non_keys=tuple(non_keys)
    )

    logger.debug(
        f"Reflected {shape.name} -> {shape.table_name}: "
        f"keys={shape.key_names()}, generated={shape.key_names(generated_only=True)}, "
        f"computed={[p.name for p in computed]}"
    )
    return shape


def resolve_entity_type(entity_type: type) -> type:
    """Map a change-tracking subclass back to the entity class it wraps."""
    return entity_type.__dict__.get('__entity_type__', entity_type)


@functools.lru_cache(maxsize=None)
def _cached_shape(entity_type: type) -> EntityShape:
    return build_entity_shape(entity_type)


def describe_entity(entity_type: type) -> EntityShape:
    """Get the cached EntityShape of an entity class.

    Change-tracking subclasses resolve to the class they wrap.

    Raises:
        NoPropertiesError: If the class declares no properties
    """
    return _cached_shape(resolve_entity_type(entity_type))


def clear_shape_cache() -> None:
    """Forget all cached shapes."""
    _cached_shape.cache_clear()
