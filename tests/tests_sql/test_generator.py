"""
=============================================
Pytest suite for sql.generator
=============================================

Sections:
---------
1. Smoke tests - statements for a simple keyed entity
2. Unit tests - SELECT, INSERT, UPDATE, DELETE, dirty field selection
3. Integration tests - tracked entities driving INSERT/UPDATE
4. Edge case tests - no keys, multiple generated keys, key-only entities

How to Execute:
---------------
All tests:          pytest tests/tests_sql/test_generator.py -v
By category:        pytest tests/tests_sql/test_generator.py -m unit
Specific test:      pytest tests/tests_sql/test_generator.py::test_select_with_top
"""

from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

import pytest

from entities.markers import BigInt, Computed, ExplicitKey, Key, table_name
from entities.metadata import NoPropertiesError
from entities.tracking import ProxyDetails, create_proxy
from sql.generator import (
    InvalidInsertError,
    MssqlSqlGenerator,
    MultipleGeneratedKeysError,
    NoKeysError,
    SqlGenerationError,
    SqlGenerator,
    get_sql_generator,
)

# ====================
# Sample entities
# ====================


class Entity:
    Id: Annotated[int, Key()] = 0
    Name: Optional[str] = None
    Age: Optional[int] = None


@table_name("Users")
class User:
    Id: Annotated[int, Key()] = 0
    Name: Optional[str] = None
    Email: Optional[str] = None
    RowVersion: Annotated[Optional[int], Computed()] = None


@table_name("Documents")
class Document:
    Id: Annotated[UUID, Key()] = None
    Title: Optional[str] = None


class ImplicitLong:
    Id: BigInt = 0
    Label: Optional[str] = None


class LogLine:
    Message: Optional[str] = None
    Level: Optional[str] = None


@table_name("Memberships")
class Membership:
    TenantId: Annotated[int, ExplicitKey()] = 0
    UserId: Annotated[int, ExplicitKey()] = 0
    Role: Optional[str] = None


class KeyThenId:
    Code: Annotated[int, Key()] = 0
    Id: int = 0
    Name: Optional[str] = None


class TwoGeneratedKeys:
    A: Annotated[int, Key()] = 0
    B: Annotated[int, Key()] = 0
    Name: Optional[str] = None


class KeyOnly:
    Id: Annotated[int, Key()] = 0


class Measurement:
    Id: Annotated[int, Key()] = 0
    Value: Optional[float] = None
    Unit: Optional[str] = None
    Recorded: Annotated[Optional[datetime], Computed()] = None
    Source: Optional[str] = None


@pytest.fixture
def entity_generator():
    return MssqlSqlGenerator(Entity)


@pytest.fixture
def user_generator():
    return MssqlSqlGenerator(User)


# ====================
# Smoke tests
# ====================

@pytest.mark.smoke
def test_generator_implements_contract(entity_generator):
    assert isinstance(entity_generator, SqlGenerator)
    assert entity_generator.table_name == "[Entitys]"
    assert entity_generator.entity_name == "Entity"


@pytest.mark.smoke
def test_select_with_top(entity_generator):
    assert entity_generator.get_select_sql(10) == "SELECT TOP (10) [Id], [Name], [Age] FROM [Entitys]"


@pytest.mark.smoke
def test_update_with_single_dirty_field(entity_generator):
    entity = Entity()
    entity.Id = 1
    entity.Name = "Ada"
    proxy = create_proxy(Entity, existing=entity, force_proxy=True)
    proxy.Name = "Grace"

    assert entity_generator.get_update_sql(proxy) == "UPDATE [Entitys] SET [Name] = @Name WHERE [Id] = @Id;"


# ====================
# Unit tests - SELECT
# ====================

@pytest.mark.unit
def test_select_without_top(entity_generator):
    assert entity_generator.get_select_sql() == "SELECT [Id], [Name], [Age] FROM [Entitys]"


@pytest.mark.unit
def test_select_includes_every_role(user_generator):
    """SELECT lists all columns, computed and keys included."""
    assert user_generator.get_select_sql() == (
        "SELECT [Id], [Name], [Email], [RowVersion] FROM [Users]"
    )


@pytest.mark.edge_case
def test_select_top_zero(entity_generator):
    assert entity_generator.get_select_sql(0).startswith("SELECT TOP (0) ")


# ====================
# Unit tests - INSERT
# ====================

@pytest.mark.unit
def test_insert_with_numeric_generated_key(entity_generator):
    assert entity_generator.get_insert_sql() == (
        "INSERT INTO [Entitys] ([Name], [Age]) VALUES (@Name, @Age); SELECT SCOPE_IDENTITY();"
    )


@pytest.mark.unit
def test_insert_skips_computed_columns():
    sql = MssqlSqlGenerator(Measurement).get_insert_sql(None)

    assert sql == (
        "INSERT INTO [Measurements] ([Value], [Unit], [Source]) "
        "VALUES (@Value, @Unit, @Source); SELECT SCOPE_IDENTITY();"
    )


@pytest.mark.unit
def test_insert_with_uuid_key_outputs_inserted_key():
    sql = MssqlSqlGenerator(Document).get_insert_sql()

    assert sql == "INSERT INTO [Documents] ([Title]) OUTPUT INSERTED.Id VALUES (@Title);"
    assert "SCOPE_IDENTITY" not in sql


@pytest.mark.unit
def test_insert_with_implicit_bigint_key():
    sql = MssqlSqlGenerator(ImplicitLong).get_insert_sql()

    assert sql.endswith("; SELECT SCOPE_IDENTITY();")
    assert "[Id]" not in sql


@pytest.mark.unit
def test_insert_without_keys_selects_zero():
    sql = MssqlSqlGenerator(LogLine).get_insert_sql()

    assert sql == "INSERT INTO [LogLines] ([Message], [Level]) VALUES (@Message, @Level); SELECT 0;"


@pytest.mark.unit
def test_insert_with_explicit_keys_includes_them():
    """Explicit keys are supplied by the caller, so they are inserted."""
    sql = MssqlSqlGenerator(Membership).get_insert_sql()

    assert sql == (
        "INSERT INTO [Memberships] ([TenantId], [UserId], [Role]) "
        "VALUES (@TenantId, @UserId, @Role); SELECT 0;"
    )


@pytest.mark.unit
def test_insert_plain_entity_uses_non_null_fields(entity_generator):
    entity = Entity()
    entity.Name = "Ada"

    assert entity_generator.get_insert_sql(entity) == (
        "INSERT INTO [Entitys] ([Name]) VALUES (@Name); SELECT SCOPE_IDENTITY();"
    )


@pytest.mark.edge_case
def test_insert_with_multiple_generated_keys_raises():
    with pytest.raises(MultipleGeneratedKeysError, match="multiple generated keys"):
        MssqlSqlGenerator(TwoGeneratedKeys).get_insert_sql()


@pytest.mark.edge_case
def test_multiple_generated_keys_allowed_for_other_statements():
    generator = MssqlSqlGenerator(TwoGeneratedKeys)

    assert generator.get_delete_sql() == "DELETE FROM [TwoGeneratedKeyss] WHERE [A] = @A AND [B] = @B;"


@pytest.mark.edge_case
def test_insert_key_only_entity_raises():
    with pytest.raises(InvalidInsertError, match="does not have non-key properties"):
        MssqlSqlGenerator(KeyOnly).get_insert_sql()


@pytest.mark.unit
def test_generation_errors_share_base_class():
    assert issubclass(MultipleGeneratedKeysError, SqlGenerationError)
    assert issubclass(InvalidInsertError, SqlGenerationError)
    assert issubclass(NoKeysError, SqlGenerationError)


# ====================
# Unit tests - UPDATE
# ====================

@pytest.mark.unit
def test_update_without_entity_sets_all_writable_fields(user_generator):
    assert user_generator.get_update_sql() == (
        "UPDATE [Users] SET [Name] = @Name, [Email] = @Email WHERE [Id] = @Id;"
    )


@pytest.mark.unit
def test_update_with_composite_explicit_keys():
    """Explicit keys go to the WHERE clause, never the SET clause."""
    assert MssqlSqlGenerator(Membership).get_update_sql() == (
        "UPDATE [Memberships] SET [Role] = @Role WHERE [TenantId] = @TenantId AND [UserId] = @UserId;"
    )


@pytest.mark.unit
def test_update_plain_entity_skips_null_fields(user_generator):
    user = User()
    user.Id = 4
    user.Email = "ada@example.com"

    assert user_generator.get_update_sql(user) == (
        "UPDATE [Users] SET [Email] = @Email WHERE [Id] = @Id;"
    )


@pytest.mark.edge_case
def test_update_id_after_key_is_data():
    assert MssqlSqlGenerator(KeyThenId).get_update_sql() == (
        "UPDATE [KeyThenIds] SET [Id] = @Id, [Name] = @Name WHERE [Code] = @Code;"
    )


# ====================
# Unit tests - DELETE
# ====================

@pytest.mark.unit
def test_delete_by_key(entity_generator):
    assert entity_generator.get_delete_sql() == "DELETE FROM [Entitys] WHERE [Id] = @Id;"


@pytest.mark.unit
def test_delete_by_composite_key():
    assert MssqlSqlGenerator(Membership).get_delete_sql() == (
        "DELETE FROM [Memberships] WHERE [TenantId] = @TenantId AND [UserId] = @UserId;"
    )


@pytest.mark.edge_case
def test_delete_without_keys_raises():
    with pytest.raises(NoKeysError):
        MssqlSqlGenerator(LogLine).get_delete_sql()


# ====================
# Unit tests - dirty fields and keys
# ====================

@pytest.mark.unit
def test_get_dirty_fields_without_entity(user_generator):
    assert user_generator.get_dirty_fields(None, True) == ["Name", "Email"]
    assert user_generator.get_dirty_fields(None, False) == ["Name", "Email"]


@pytest.mark.unit
def test_get_dirty_fields_for_create_keeps_explicit_keys():
    generator = MssqlSqlGenerator(Membership)

    assert generator.get_dirty_fields(None, True) == ["TenantId", "UserId", "Role"]
    assert generator.get_dirty_fields(None, False) == ["Role"]


@pytest.mark.unit
def test_get_keys(user_generator):
    assert user_generator.get_keys(True) == ["Id"]
    assert user_generator.get_keys(False) == ["Id"]

    membership = MssqlSqlGenerator(Membership)
    assert membership.get_keys(True) == []
    assert membership.get_keys(False) == ["TenantId", "UserId"]


@pytest.mark.unit
def test_get_key_properties_returns_records(user_generator):
    assert [p.name for p in user_generator.get_key_properties(False)] == ["Id"]


# ====================
# Integration tests - tracked entities
# ====================

def loaded_user():
    user = User()
    user.Id = 7
    user.Name = "Ada"
    user.Email = "ada@example.com"
    user.RowVersion = 3
    return create_proxy(User, existing=user)


@pytest.mark.integration
def test_tracked_entity_updates_only_changed_fields(user_generator):
    user = loaded_user()
    user.Email = "grace@example.com"

    assert user_generator.get_update_sql(user) == (
        "UPDATE [Users] SET [Email] = @Email WHERE [Id] = @Id;"
    )


@pytest.mark.integration
def test_tracked_entity_never_writes_generated_key(user_generator):
    user = loaded_user()
    user.Id = 99
    user.Name = "Grace"

    assert user_generator.get_update_sql(user) == (
        "UPDATE [Users] SET [Name] = @Name WHERE [Id] = @Id;"
    )


@pytest.mark.integration
def test_tracked_entity_inserts_only_set_fields(user_generator):
    user = create_proxy(User)
    user.Name = "Ada"

    assert user_generator.get_insert_sql(user) == (
        "INSERT INTO [Users] ([Name]) VALUES (@Name); SELECT SCOPE_IDENTITY();"
    )


@pytest.mark.integration
def test_clean_tracked_entity_has_no_dirty_fields(user_generator):
    assert user_generator.get_dirty_fields(loaded_user(), False) == []


@pytest.mark.integration
def test_tracked_report_matches_names_case_insensitively(user_generator):
    class ShoutingTracker(User, ProxyDetails):
        def reset_changes(self):
            pass

        def get_dirty_fields(self):
            return ["EMAIL", "name"]

    assert user_generator.get_dirty_fields(ShoutingTracker(), False) == ["Name", "Email"]


@pytest.mark.integration
def test_implicit_key_reported_by_tracker_is_not_written():
    """A tracker may report an implicit Id; it is not a non-key field."""
    @table_name("Orders")
    class Order:
        Id: int = 0
        Reference: Optional[str] = None

    order = Order()
    order.Id = 12
    order.Reference = "A-1"
    proxy = create_proxy(Order, existing=order)
    proxy.Reference = "A-2"

    generator = MssqlSqlGenerator(Order)
    assert proxy.get_dirty_fields() == ["Id", "Reference"]
    assert generator.get_update_sql(proxy) == (
        "UPDATE [Orders] SET [Reference] = @Reference WHERE [Id] = @Id;"
    )


# ====================
# Construction and caching
# ====================

@pytest.mark.edge_case
def test_generator_for_class_without_properties_raises():
    class Empty:
        pass

    with pytest.raises(NoPropertiesError):
        MssqlSqlGenerator(Empty)


@pytest.mark.unit
def test_get_sql_generator_is_cached():
    assert get_sql_generator(User) is get_sql_generator(User)


@pytest.mark.unit
def test_proxy_class_shares_entity_generator():
    proxy = create_proxy(User)

    generator = get_sql_generator(type(proxy))

    assert generator is get_sql_generator(User)
    assert generator.table_name == "[Users]"
