"""
========================================
Entity metadata and change tracking.
========================================

Everything SlimGen knows about entity classes: how their properties are
marked, how those markers classify properties into keys and data, how
instances are wrapped for change tracking, and how result rows become
entity instances.

Modules:
    markers: Key/ExplicitKey/Computed markers and the table_name decorator
    metadata: Reflection of entity classes into cached EntityShape records
    tracking: Change-tracking proxies (ProxyDetails, create_proxy)
    materializer: Result rows and DataFrames to entity instances

Example:
    >>> from typing import Annotated, Optional
    >>> from entities import Key, create_proxy, table_name
    >>>
    >>> @table_name("Users")
    ... class User:
    ...     Id: Annotated[int, Key()] = 0
    ...     Name: Optional[str] = None
    >>>
    >>> user = create_proxy(User, existing=User())
    >>> user.Name = "Ada"
    >>> user.get_dirty_fields()
    ['Name']
"""

__version__ = "0.1.0"
__all__ = [
    # Markers
    'Key', 'ExplicitKey', 'Computed', 'table_name', 'sealed',
    'TinyInt', 'SmallInt', 'BigInt', 'Real',
    # Metadata
    'EntityShape', 'PropertyInfo', 'PropertyRole', 'NoPropertiesError',
    'describe_entity',
    # Change tracking
    'ProxyDetails', 'create_proxy', 'is_proxied_entity', 'should_proxy_entity',
    # Materialization
    'RowMappingError', 'map_rows_to_entities', 'map_frame_to_entities',
]

from .markers import BigInt, Computed, ExplicitKey, Key, Real, SmallInt, TinyInt, sealed, table_name
from .materializer import RowMappingError, map_frame_to_entities, map_rows_to_entities
from .metadata import (
    EntityShape,
    NoPropertiesError,
    PropertyInfo,
    PropertyRole,
    describe_entity,
)
from .tracking import ProxyDetails, create_proxy, is_proxied_entity, should_proxy_entity
