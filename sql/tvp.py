"""
=====================================
Table-valued parameter construction.
=====================================

Builds SQL Server table-valued parameters (TVPs) from Python iterables.
Each column is described by a selector, a name, a Python value type and an
optional max length; the SQL type comes from sql.sql_types.

Records are produced lazily as tuples in column order, the shape expected
by pyodbc for TVP parameters. to_frame() returns the same data as a pandas
DataFrame for inspection or bulk loading.

Classes:
- TvpColumn: Metadata of one TVP column
- TableValueParameter: Built TVP (name, columns, records)
- TvpBuilder: Fluent builder of a TableValueParameter

Functions:
- as_table_parameter: Single-column TVP shortcut

Usage:
    from sql.tvp import TvpBuilder, as_table_parameter

    ids = as_table_parameter([1, 2, 3], 'dbo.IdList', 'Id', int)

    tvp = (
        TvpBuilder('dbo.UserList', users)
        .add_parameter(lambda u: u.Id, 'Id', int)
        .add_parameter(lambda u: u.Name, 'Name', str, max_length=200)
        .build()
    )
"""

from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, Iterator, List, Optional, Tuple, Type, TypeVar

import pandas as pd
from sqlalchemy.types import TypeEngine

from core.config import config
from core.logger import get_logger
from sql.sql_types import get_sql_type, is_string_type

logger = get_logger(__name__)

TInput = TypeVar('TInput')


@dataclass(frozen=True)
class TvpColumn:
    """Metadata of one table-valued parameter column.

    Attributes:
        name: Column name
        order: Zero-based position in each record
        sql_type: SQLAlchemy MSSQL type class
        max_length: Character/byte length, None when not applicable
    """

    name: str
    order: int
    sql_type: Type[TypeEngine]
    max_length: Optional[int] = None

    def type_engine(self) -> TypeEngine:
        """Instantiate the column type, applying max_length when set."""
        if self.max_length is not None:
            return self.sql_type(self.max_length)
        return self.sql_type()


@dataclass(frozen=True)
class _ValueProvider:
    column: TvpColumn
    selector: Callable[[Any], Any]


class TableValueParameter:
    """A named table-valued parameter.

    Attributes:
        name: SQL Server table type name
        columns: Column metadata in record order
    """

    def __init__(self, name: str, columns: List[TvpColumn], records: Callable[[], Iterator[tuple]]):
        self.name = name
        self.columns = columns
        self._records = records

    @property
    def records(self) -> Iterator[tuple]:
        """Lazily produced records, one tuple per input item."""
        return self._records()

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def to_frame(self) -> pd.DataFrame:
        """Materialize all records into a DataFrame."""
        return pd.DataFrame(list(self.records), columns=self.column_names)

    def __repr__(self):
        return f"TableValueParameter(name={self.name!r}, columns={self.column_names!r})"


class TvpBuilder(Generic[TInput]):
    """Fluent builder mapping items of an iterable onto TVP columns.

    Example:
        >>> tvp = TvpBuilder('dbo.NameList', ['a', 'b']).add_parameter(lambda s: s, 'Name', str).build()
        >>> list(tvp.records)
        [('a',), ('b',)]
    """

    def __init__(self, tvp_name: str, items: Iterable[TInput]):
        self._tvp_name = tvp_name
        self._items = items
        self._value_providers: List[_ValueProvider] = []

    def add_parameter(
        self,
        selector: Callable[[TInput], Any],
        column_name: str,
        value_type: Any,
        max_length: Optional[int] = None
    ) -> 'TvpBuilder[TInput]':
        """Map a value of each item to a TVP column.

        Args:
            selector: Function extracting the column value from an item
            column_name: TVP column name
            value_type: Python type of the selected values
            max_length: Column length; string columns default to the
                configured length when None or 0

        Returns:
            The builder, for chaining

        Raises:
            UnmappableTypeError: If value_type has no SQL mapping
        """
        sql_type = get_sql_type(value_type)

        if is_string_type(sql_type) and not max_length:
            max_length = config.tvp_string_length

        column = TvpColumn(
            name=column_name,
            order=len(self._value_providers),
            sql_type=sql_type,
            max_length=max_length
        )
        self._value_providers.append(_ValueProvider(column=column, selector=selector))
        return self

    def build(self) -> TableValueParameter:
        """Convert the builder into a TableValueParameter."""
        providers = list(self._value_providers)
        items = self._items

        def records() -> Iterator[Tuple[Any, ...]]:
            for item in items:
                yield tuple(p.selector(item) for p in providers)

        logger.debug(f"Built TVP {self._tvp_name} with columns {[p.column.name for p in providers]}")
        return TableValueParameter(
            name=self._tvp_name,
            columns=[p.column for p in providers],
            records=records
        )


def as_table_parameter(
    items: Iterable[Any],
    tvp_name: str,
    column_name: str,
    value_type: Any,
    max_length: Optional[int] = None
) -> TableValueParameter:
    """Build a single-column TVP whose values are the items themselves.

    Raises:
        UnmappableTypeError: If value_type has no SQL mapping
    """
    return (
        TvpBuilder(tvp_name, items)
        .add_parameter(lambda x: x, column_name, value_type, max_length)
        .build()
    )
