"""
=================================
Entity marker declarations.
=================================

Markers describe how an entity property maps onto its table. They are
attached to class annotations with typing.Annotated, and the table name is
attached with a class decorator.

Markers:
- Key: store-generated primary key (identity column, default value)
- ExplicitKey: primary key whose value the caller supplies
- Computed: store-managed column, never written

Class decorators:
- table_name: table the entity maps onto
- sealed: exclude the class from change tracking

Column width aliases (for the SQL type lookup):
- TinyInt, SmallInt, BigInt, Real

Usage:
    from typing import Annotated, Optional
    from entities.markers import Computed, Key, table_name

    @table_name("Users")
    class User:
        Id: Annotated[int, Key()] = 0
        Name: Optional[str] = None
        CreatedAt: Annotated[Optional[datetime], Computed()] = None
"""

import typing
from typing import NewType, Type, TypeVar

T = TypeVar('T')

TinyInt = NewType('TinyInt', int)
SmallInt = NewType('SmallInt', int)
BigInt = NewType('BigInt', int)
Real = NewType('Real', float)


class Marker:
    """Base class for property markers.

    Markers carry no state; two markers of the same class are equal.
    """

    def __eq__(self, other):
        return type(self) is type(other)

    def __hash__(self):
        return hash(type(self))

    def __repr__(self):
        return f"{type(self).__name__}()"


class Key(Marker):
    """Primary key whose value is generated by the store."""


class ExplicitKey(Marker):
    """Primary key whose value is supplied by the caller."""


class Computed(Marker):
    """Column computed by the store; never written."""


def table_name(name: str):
    """Class decorator declaring the table an entity maps onto.

    The name is bracket-quoted unless it already starts with '['.

    Args:
        name: Table name, optionally schema-qualified and quoted

    Raises:
        ValueError: If the name is blank or shorter than two characters

    Example:
        >>> @table_name("Users")
        ... class User:
        ...     Id: int = 0
        >>> User.__table_name__
        '[Users]'
    """
    if not name or not name.strip() or len(name) < 2:
        raise ValueError(f"Provided table name is invalid: '{name}'")

    quoted = name if name[0] == '[' else f"[{name}]"

    def decorator(cls: Type[T]) -> Type[T]:
        cls.__table_name__ = quoted
        return cls

    return decorator


def get_table_name(cls: type):
    """Return the declared table name of a class, or None.

    The declaration is inherited by subclasses.
    """
    return getattr(cls, '__table_name__', None)


def sealed(cls: Type[T]) -> Type[T]:
    """Class decorator marking an entity class as closed for change tracking.

    Sealed classes are materialized as plain instances. typing.final has
    the same effect on Python 3.11+, where it records __final__ on the
    class; on 3.10 it leaves no trace, so use @sealed there.

    Example:
        >>> @sealed
        ... @table_name("Settings")
        ... class Setting:
        ...     Id: int = 0
    """
    cls.__sealed__ = True
    return typing.final(cls)


def is_sealed(cls: type) -> bool:
    """Check whether a class is marked @sealed or typing.final."""
    return bool(getattr(cls, '__sealed__', False) or getattr(cls, '__final__', False))
