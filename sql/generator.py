"""
=================================
CRUD SQL generation for entities.
=================================

Builds readable SQL Server statements for trivial single-table CRUD
operations on an entity class. Generators are treated as black boxes; they
never produce joins or anything beyond one SELECT/INSERT/UPDATE/DELETE.

Identifiers are bracket-quoted ([Name]) and every value is a named
placeholder (@Name). Binding values to placeholders is the caller's job.

Classes:
- SqlGenerator: Abstract contract of a CRUD statement generator
- MssqlSqlGenerator: SQL Server implementation driven by entity metadata

Functions:
- get_sql_generator: Cached generator for an entity class

Usage:
    from sql.generator import get_sql_generator

    generator = get_sql_generator(User)
    generator.get_select_sql(10)
    # SELECT TOP (10) [Id], [Name], [Age] FROM [Users]

    user = create_proxy(User, existing=loaded_user)
    user.Name = "Grace"
    generator.get_update_sql(user)
    # UPDATE [Users] SET [Name] = @Name WHERE [Id] = @Id;
"""

import functools
from abc import ABC, abstractmethod
from typing import Generic, List, Optional, Sequence, Type, TypeVar
from uuid import UUID

from core.logger import get_logger
from entities.metadata import EntityShape, PropertyInfo, describe_entity
from entities.tracking import is_proxied_entity

logger = get_logger(__name__)

TEntity = TypeVar('TEntity')


class SqlGenerationError(Exception):
    """Base exception for statements that cannot be generated."""
    pass


class MultipleGeneratedKeysError(SqlGenerationError):
    """Raised when an INSERT would have more than one generated key."""
    pass


class InvalidInsertError(SqlGenerationError):
    """Raised when an entity has no non-key properties to insert."""
    pass


class NoKeysError(SqlGenerationError):
    """Raised when no key is available for a WHERE clause."""
    pass


def quote_identifier(name: str) -> str:
    """Wrap an identifier in SQL Server brackets."""
    return f"[{name}]"


def parameter_name(name: str) -> str:
    """Named placeholder for a column."""
    return f"@{name}"


class SqlGenerator(ABC, Generic[TEntity]):
    """Operations generating CRUD SQL for one entity class."""

    @abstractmethod
    def get_select_sql(self, max_rows: Optional[int] = None) -> str:
        """Build a SELECT of all columns, optionally limited to max_rows."""

    @abstractmethod
    def get_delete_sql(self) -> str:
        """Build a DELETE removing a single entity by all of its keys."""

    @abstractmethod
    def get_insert_sql(self, entity: Optional[TEntity] = None) -> str:
        """Build an INSERT of the non-key fields that returns the generated key."""

    @abstractmethod
    def get_update_sql(self, entity: Optional[TEntity] = None) -> str:
        """Build an UPDATE of the dirty (or non-null) non-key fields."""

    @abstractmethod
    def get_dirty_fields(self, entity: Optional[TEntity], for_create: bool) -> List[str]:
        """Get the changed or non-null non-key fields of an entity.

        All writable non-key fields are returned when entity is None.
        """

    @abstractmethod
    def get_keys(self, for_create: bool) -> List[str]:
        """Get the key fields: generated keys for create, all keys otherwise."""


class MssqlSqlGenerator(SqlGenerator[TEntity]):
    """SQL Server CRUD statement generator for an entity class.

    All metadata is derived at construction; the generator holds no
    mutable state afterwards and can be shared between threads.

    Attributes:
        shape: Reflected EntityShape of the entity class
        entity_name: Entity class name
        table_name: Bracket-quoted table name

    Raises:
        NoPropertiesError: If the entity class has no properties

    Example:
        >>> generator = MssqlSqlGenerator(Entity)
        >>> generator.get_insert_sql()
        'INSERT INTO [Entitys] ([Name], [Age]) VALUES (@Name, @Age); SELECT SCOPE_IDENTITY();'
    """

    def __init__(self, entity_type: Type[TEntity]):
        self.shape: EntityShape = describe_entity(entity_type)
        self.entity_type = self.shape.entity_type
        self.entity_name = self.shape.name
        self.table_name = self.shape.table_name

        self._properties = self.shape.properties
        self._all_keys = self.shape.all_keys
        self._generated_keys = self.shape.generated_keys
        self._computed_columns = self.shape.computed
        self._non_keys = self.shape.non_keys

    def get_insert_sql(self, entity: Optional[TEntity] = None) -> str:
        """Build an INSERT statement.

        With a tracked entity only its changed fields are inserted; with a
        plain entity only its non-null fields; with no entity every
        writable field.

        The statement always returns one scalar row: the generated key
        through OUTPUT INSERTED for UUID keys, SCOPE_IDENTITY() for numeric
        keys, or 0 when there is no generated key.

        Raises:
            InvalidInsertError: If the entity has no non-key properties
            MultipleGeneratedKeysError: If more than one key is generated
        """
        if not self._non_keys:
            raise InvalidInsertError(
                f"Cannot generate an INSERT statement for {self.entity_name}: "
                f"it does not have non-key properties"
            )

        if len(self._generated_keys) > 1:
            raise MultipleGeneratedKeysError(
                f"Cannot generate an INSERT statement for {self.entity_name}: "
                f"it has multiple generated keys {[k.name for k in self._generated_keys]}"
            )

        key = self._generated_keys[0] if self._generated_keys else None
        names = self.get_dirty_fields(entity, True)

        column_list = ", ".join(quote_identifier(n) for n in names)
        placeholder_list = ", ".join(parameter_name(n) for n in names)

        sql = f"INSERT INTO {self.table_name} ({column_list})"

        if key is not None and key.value_type is UUID:
            sql += f" OUTPUT INSERTED.{key.name}"

        sql += f" VALUES ({placeholder_list})"

        if key is not None and key.value_type is not UUID:
            sql += "; SELECT SCOPE_IDENTITY()"

        if key is None:
            # callers always read one scalar back
            sql += "; SELECT 0"

        sql += ";"
        logger.debug(f"INSERT for {self.entity_name}: {sql}")
        return sql

    def get_select_sql(self, max_rows: Optional[int] = None) -> str:
        select_keyword = "SELECT"
        if max_rows is not None:
            select_keyword += f" TOP ({int(max_rows)})"

        column_list = ", ".join(quote_identifier(p.name) for p in self._properties)
        return f"{select_keyword} {column_list} FROM {self.table_name}"

    def get_update_sql(self, entity: Optional[TEntity] = None) -> str:
        """Build an UPDATE statement keyed on all keys.

        Generated keys are never part of the SET clause.
        """
        generated = {k.name for k in self._generated_keys}
        names = [n for n in self.get_dirty_fields(entity, False) if n not in generated]

        if not names:
            logger.warning(f"UPDATE for {self.entity_name} has no fields to set")

        set_clause = ", ".join(f"{quote_identifier(n)} = {parameter_name(n)}" for n in names)
        sql = f"UPDATE {self.table_name} SET {set_clause} WHERE {self._keys_statement()};"

        logger.debug(f"UPDATE for {self.entity_name}: {sql}")
        return sql

    def get_delete_sql(self) -> str:
        """Build a DELETE statement keyed on all keys.

        Raises:
            NoKeysError: If the entity has no keys
        """
        if not self._all_keys:
            raise NoKeysError(
                f"Cannot find a key property for automatic delete SQL building on {self.entity_name}"
            )

        return f"DELETE FROM {self.table_name} WHERE {self._keys_statement()};"

    def get_dirty_fields(self, entity: Optional[TEntity], for_create: bool) -> List[str]:
        """Select the non-key fields to write.

        Args:
            entity: Tracked entity, plain entity, or None
            for_create: True for INSERT (only generated keys excluded),
                False for UPDATE (all keys excluded)

        Returns:
            Field names in declaration order
        """
        keys = self._generated_keys if for_create else self._all_keys
        # computed columns can't be written anyway
        excluded = {p.name for p in keys} | {p.name for p in self._computed_columns}

        if is_proxied_entity(entity):
            dirty_fields = {name.casefold() for name in entity.get_dirty_fields()}
            return [p.name for p in self._non_keys if p.name.casefold() in dirty_fields]

        if entity is None:
            return [p.name for p in self._non_keys if p.name not in excluded]

        return [
            p.name for p in self._non_keys
            if p.name not in excluded and p.get_value(entity) is not None
        ]

    def get_keys(self, for_create: bool) -> List[str]:
        keys = self._generated_keys if for_create else self._all_keys
        return [k.name for k in keys]

    def get_key_properties(self, for_create: bool) -> Sequence[PropertyInfo]:
        """Like get_keys(), returning the PropertyInfo records."""
        return self._generated_keys if for_create else self._all_keys

    def _keys_statement(self) -> str:
        return " AND ".join(
            f"{quote_identifier(k.name)} = {parameter_name(k.name)}" for k in self._all_keys
        )


@functools.lru_cache(maxsize=None)
def _cached_generator(entity_type: type) -> MssqlSqlGenerator:
    return MssqlSqlGenerator(entity_type)


def get_sql_generator(entity_type: Type[TEntity]) -> MssqlSqlGenerator:
    """Get the shared generator of an entity class.

    Change-tracking subclasses share the generator of the class they wrap.

    Raises:
        NoPropertiesError: If the entity class has no properties
    """
    return _cached_generator(describe_entity(entity_type).entity_type)


def clear_generator_cache() -> None:
    """Forget all cached generators."""
    _cached_generator.cache_clear()
