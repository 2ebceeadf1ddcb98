"""
=================================
SQL Server type lookup.
=================================

Immutable process-wide mapping from Python value types to SQLAlchemy's
SQL Server dialect types. Used wherever a column type must be named
explicitly, such as table-valued parameter metadata.

Python has a single int type, so column widths other than INT are declared
with the aliases from entities.markers (TinyInt, SmallInt, BigInt, Real).

Functions:
- get_sql_type: SQL type class for a Python value type
- get_property_sql_type: SQL type class for a reflected property
- is_string_type: Whether a SQL type takes a character length

Usage:
    from sql.sql_types import get_sql_type

    get_sql_type(str)        # NVARCHAR
    get_sql_type(BigInt)     # BIGINT
"""

import enum
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Type
from uuid import UUID

from sqlalchemy.dialects.mssql import (
    BIGINT,
    BINARY,
    BIT,
    CHAR,
    DATE,
    DATETIME,
    DECIMAL,
    FLOAT,
    INTEGER,
    NCHAR,
    NVARCHAR,
    REAL,
    SMALLINT,
    TIME,
    TINYINT,
    UNIQUEIDENTIFIER,
    VARCHAR,
)
from sqlalchemy.types import TypeEngine

from entities.markers import BigInt, Real, SmallInt, TinyInt
from entities.metadata import PropertyInfo


class UnmappableTypeError(Exception):
    """Raised when a Python type has no known SQL Server type."""
    pass


SQL_TYPE_MAP = MappingProxyType({
    bool: BIT,
    TinyInt: TINYINT,
    SmallInt: SMALLINT,
    int: INTEGER,
    BigInt: BIGINT,
    str: NVARCHAR,
    datetime: DATETIME,
    date: DATE,
    Decimal: DECIMAL,
    float: FLOAT,
    Real: REAL,
    timedelta: TIME,
    time: TIME,
    UUID: UNIQUEIDENTIFIER,
    bytes: BINARY,
    bytearray: BINARY,
})

STRING_SQL_TYPES = frozenset({NVARCHAR, VARCHAR, NCHAR, CHAR})


def _underlying_enum_type(enum_type: Type[enum.Enum]) -> Any:
    """Resolve the storage type of an enum class."""
    for base in (int, str):
        if issubclass(enum_type, base):
            return base
    members = list(enum_type)
    if members:
        return type(members[0].value)
    return enum_type


def get_sql_type(value_type: Any) -> Type[TypeEngine]:
    """Look up the SQL Server type for a Python value type.

    Args:
        value_type: Python type (Optional already stripped)

    Returns:
        SQLAlchemy MSSQL type class

    Raises:
        UnmappableTypeError: If the type has no SQL mapping
    """
    lookup_type = value_type
    if isinstance(value_type, type) and issubclass(value_type, enum.Enum):
        lookup_type = _underlying_enum_type(value_type)

    try:
        return SQL_TYPE_MAP[lookup_type]
    except (KeyError, TypeError):
        name = getattr(value_type, '__name__', repr(value_type))
        raise UnmappableTypeError(f"Cannot convert a {name} to a SQL data type") from None


def get_property_sql_type(prop: PropertyInfo) -> Type[TypeEngine]:
    """Look up the SQL Server type of a reflected entity property.

    Raises:
        UnmappableTypeError: If the property type has no SQL mapping
    """
    return get_sql_type(prop.value_type)


def is_string_type(sql_type: Type[TypeEngine]) -> bool:
    return sql_type in STRING_SQL_TYPES
