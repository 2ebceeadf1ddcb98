"""
===================================
Result row materialization.
===================================

Turns result rows into entity instances. Rows can be SQLAlchemy Row
objects (as returned by Connection.execute), plain mappings, or the rows
of a pandas DataFrame.

Entity classes eligible for change tracking are materialized as tracked
instances and reset after population, so a freshly read entity reports no
dirty fields. Scalar targets (int, str, UUID, ...) read the first column.

Value conversion:
    - int -> bool when the property is declared bool
    - naive datetime -> UTC-aware datetime (configurable)
    - NULL (and NaN/NaT in frames) -> None

Functions:
- map_rows_to_entities: Materialize an iterable of rows
- map_frame_to_entities: Materialize a pandas DataFrame
- map_row_to_entity: Materialize one row

Usage:
    from sqlalchemy import text
    from entities.materializer import map_rows_to_entities

    with engine.connect() as conn:
        result = conn.execute(text(generator.get_select_sql(10)))
        users = list(map_rows_to_entities(result, User))
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Tuple, Type, TypeVar
from uuid import UUID

import pandas as pd
from sqlalchemy.engine import Row

from core.config import config
from core.logger import get_logger
from entities.markers import BigInt, SmallInt, TinyInt
from entities.metadata import describe_entity
from entities.tracking import create_proxy, is_proxied_entity

logger = get_logger(__name__)

T = TypeVar('T')

SCALAR_TYPES = frozenset({int, TinyInt, SmallInt, BigInt, str, UUID, bytes, float, bool})

CONVERTERS: Dict[Tuple[type, Any], Callable[[Any], Any]] = {
    (int, bool): lambda i: i != 0,
}


class RowMappingError(Exception):
    """Raised when a row cannot be mapped onto an entity."""
    pass


def _row_mapping(row: Any) -> Mapping[str, Any]:
    if isinstance(row, Row):
        return row._mapping
    if isinstance(row, Mapping):
        return row
    raise RowMappingError(f"Cannot read columns from a {type(row).__name__}")


def _first_column(row: Any) -> Any:
    if isinstance(row, Row):
        return row[0]
    if isinstance(row, Mapping):
        return next(iter(row.values()))
    return row[0]


def convert_value(value: Any, target_type: Any) -> Any:
    """Convert a raw column value for a property of the given type."""
    if value is None:
        return None

    converter = CONVERTERS.get((type(value), target_type))
    if converter is not None:
        value = converter(value)

    if isinstance(value, datetime) and value.tzinfo is None and config.utc_datetimes:
        value = value.replace(tzinfo=timezone.utc)

    return value


def map_row_to_entity(row: Any, entity_type: Type[T]) -> T:
    """Materialize one row into an entity instance.

    Args:
        row: SQLAlchemy Row or mapping keyed by column name
        entity_type: Entity class, or a scalar type to read column 0

    Returns:
        Entity instance (tracked when the class is eligible)

    Raises:
        RowMappingError: If a property has no matching column
    """
    if entity_type in SCALAR_TYPES:
        return _first_column(row)

    shape = describe_entity(entity_type)
    columns = _row_mapping(row)

    entity = create_proxy(shape.entity_type)

    for prop in shape.properties:
        try:
            value = columns[prop.name]
        except KeyError:
            raise RowMappingError(
                f"Row has no column '{prop.name}' for {shape.name}"
            ) from None
        prop.set_value(entity, convert_value(value, prop.value_type))

    if is_proxied_entity(entity):
        entity.reset_changes()

    return entity


def map_rows_to_entities(rows: Iterable[Any], entity_type: Type[T]) -> Iterator[T]:
    """Lazily materialize rows into entity instances.

    Raises:
        RowMappingError: If a property has no matching column
    """
    for row in rows:
        yield map_row_to_entity(row, entity_type)


def _frame_value(value: Any) -> Any:
    if pd.api.types.is_scalar(value) and pd.isna(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    return value


def map_frame_to_entities(frame: pd.DataFrame, entity_type: Type[T]) -> Iterator[T]:
    """Materialize the rows of a DataFrame into entity instances.

    Missing values (NaN, NaT, None) become None. Timestamps are converted
    to datetime objects.

    Raises:
        RowMappingError: If a property has no matching column
    """
    logger.debug(f"Materializing {len(frame)} frame rows as {getattr(entity_type, '__name__', entity_type)}")
    for record in frame.to_dict(orient='records'):
        record = {column: _frame_value(value) for column, value in record.items()}
        yield map_row_to_entity(record, entity_type)
