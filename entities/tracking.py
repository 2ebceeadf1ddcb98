"""
=====================================
Change tracking for entity instances.
=====================================

Wraps entity instances so the SQL generator can tell which properties were
changed since the entity was loaded or last saved.

A tracked entity is an instance of a subclass generated once per entity
class. Reads and writes go straight to the instance; a snapshot of the
tracked values is taken on reset_changes() and compared with the current
values whenever get_dirty_fields() is called.

Properties carrying a special marker (Key, ExplicitKey and Computed by
default) are never tracked. An implicit 'Id' key is not snapshotted while
no special-marked property has been seen in declaration order.

Classes:
    ProxyDetails: Contract implemented by tracked entities
    DirtyFieldsTracker: Snapshot and comparison state of one instance
    TrackedEntity: Mixin implementing ProxyDetails through a tracker

Functions:
    create_proxy: Create a tracked (or plain) entity instance
    should_proxy_entity: Eligibility gate for tracking
    is_proxied_entity: Check whether an instance is tracked

Example:
    >>> user = create_proxy(User, existing=loaded_user)
    >>> user.get_dirty_fields()
    []
    >>> user.Name = "Grace"
    >>> user.get_dirty_fields()
    ['Name']
"""

import functools
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type, TypeVar

from core.logger import get_logger
from entities.markers import Computed, ExplicitKey, Key, Marker, get_table_name, is_sealed
from entities.metadata import PropertyInfo, entity_properties, resolve_entity_type

logger = get_logger(__name__)

T = TypeVar('T')

DEFAULT_SPECIAL_MARKERS = (Key, ExplicitKey, Computed)

_TRACKER_ATTRIBUTE = '_change_tracker'


class ProxyDetails(ABC):
    """Contract of an entity decorated for change tracking."""

    @abstractmethod
    def reset_changes(self) -> None:
        """Forget all pending changes on the object."""

    @abstractmethod
    def get_dirty_fields(self) -> List[str]:
        """Get the names of the fields changed since the last reset."""


class DirtyFieldsTracker:
    """Snapshot of tracked property values for one entity instance.

    Attributes:
        special_markers: Marker classes excluding a property from tracking
    """

    def __init__(self, special_markers: Iterable[Type[Marker]] = ()):
        self._current_values: Dict[str, Any] = {}
        self.special_markers = set(special_markers)

    def add_special_marker(self, marker_type: Type[Marker]) -> None:
        """Exclude properties carrying this marker class from tracking."""
        self.special_markers.add(marker_type)

    def is_special(self, prop: PropertyInfo) -> bool:
        return prop.has_any_marker(self.special_markers)

    def reset(self, entity: Any, properties: Iterable[PropertyInfo]) -> None:
        """Replace the snapshot with the entity's current values."""
        self._current_values.clear()
        found_key = False

        for prop in properties:
            if self.is_special(prop):
                found_key = True
                continue

            if not found_key and prop.is_potential_key():
                continue

            self._current_values[prop.name] = prop.get_value(entity)

    def dirty_fields(self, entity: Any, properties: Iterable[PropertyInfo]) -> List[str]:
        """List non-special properties whose value differs from the snapshot."""
        return [
            prop.name
            for prop in properties
            if not self.is_special(prop) and self.has_changed(prop.name, prop.get_value(entity))
        ]

    def copy(self) -> 'DirtyFieldsTracker':
        """Independent tracker with the same special markers and snapshot."""
        tracker = DirtyFieldsTracker(self.special_markers)
        tracker._current_values = dict(self._current_values)
        return tracker

    def has_changed(self, name: str, value: Any) -> bool:
        if name not in self._current_values:
            return value is not None

        current_value = self._current_values[name]

        if current_value is None and value is None:
            return False

        if value is None or current_value is None:
            return True

        return not value == current_value


@functools.lru_cache(maxsize=None)
def _tracked_properties(entity_type: type) -> Tuple[PropertyInfo, ...]:
    return tuple(entity_properties(entity_type))


class TrackedEntity(ProxyDetails):
    """Mixin giving a generated entity subclass change tracking."""

    def _tracker(self) -> DirtyFieldsTracker:
        try:
            return object.__getattribute__(self, _TRACKER_ATTRIBUTE)
        except AttributeError:
            tracker = DirtyFieldsTracker(DEFAULT_SPECIAL_MARKERS)
            object.__setattr__(self, _TRACKER_ATTRIBUTE, tracker)
            return tracker

    def _properties(self) -> Tuple[PropertyInfo, ...]:
        return _tracked_properties(resolve_entity_type(type(self)))

    def reset_changes(self) -> None:
        self._tracker().reset(self, self._properties())

    def get_dirty_fields(self) -> List[str]:
        return self._tracker().dirty_fields(self, self._properties())

    def __copy__(self):
        # the copy keeps pending changes but owns its snapshot
        clone = type(self).__new__(type(self))
        clone.__dict__.update(self.__dict__)
        object.__setattr__(clone, _TRACKER_ATTRIBUTE, self._tracker().copy())
        return clone


@functools.lru_cache(maxsize=None)
def proxy_class_for(entity_type: type) -> type:
    """Get the change-tracking subclass of an entity class (cached)."""
    name = f"{entity_type.__name__}Proxy"
    proxy_type = type(name, (entity_type, TrackedEntity), {
        '__entity_type__': entity_type,
        '__module__': entity_type.__module__,
        '__qualname__': name,
    })
    logger.debug(f"Generated change-tracking class {name}")
    return proxy_type


def should_proxy_entity(entity_type: type) -> bool:
    """Check whether instances of a class get change tracking.

    Only classes mapped 1:1 onto a table (declared with @table_name) and
    open for subclassing (not marked @sealed or typing.final) are tracked.
    Other classes are read-only composites such as view or procedure results.
    """
    return not is_sealed(entity_type) and get_table_name(entity_type) is not None


def is_proxied_entity(entity: Any) -> bool:
    return isinstance(entity, ProxyDetails)


def create_proxy(
    entity_type: Type[T],
    existing: Optional[T] = None,
    force_proxy: bool = False,
    special_markers: Optional[Iterable[Type[Marker]]] = None
) -> T:
    """Create a change-tracked instance of an entity class.

    Args:
        entity_type: Entity class; must be constructible without arguments
        existing: Instance whose property values are copied into the proxy;
            the proxy then starts with no pending changes
        force_proxy: Track the instance even if the class is not eligible
        special_markers: Marker classes excluded from tracking
            (defaults to Key, ExplicitKey and Computed)

    Returns:
        A tracked instance, or when the class is not eligible, `existing`
        itself or a new plain instance

    Example:
        >>> fresh = create_proxy(User)
        >>> fresh.Name = "Ada"
        >>> fresh.get_dirty_fields()
        ['Name']
    """
    entity_type = resolve_entity_type(entity_type)

    if not (force_proxy or should_proxy_entity(entity_type)):
        return existing if existing is not None else entity_type()

    proxy = proxy_class_for(entity_type)()
    tracker = DirtyFieldsTracker(
        DEFAULT_SPECIAL_MARKERS if special_markers is None else special_markers
    )
    object.__setattr__(proxy, _TRACKER_ATTRIBUTE, tracker)

    if existing is None:
        return proxy

    for prop in _tracked_properties(entity_type):
        prop.set_value(proxy, prop.get_value(existing))

    proxy.reset_changes()
    return proxy
