"""
=============================================
Pytest suite for sql.tvp
=============================================

Sections:
---------
1. Unit tests - column metadata, record production
2. Integration tests - DataFrame export
3. Edge case tests - default string length, laziness, unmapped types

How to Execute:
---------------
All tests:          pytest tests/tests_sql/test_tvp.py -v
By category:        pytest tests/tests_sql/test_tvp.py -m unit
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest
from sqlalchemy.dialects import mssql

from core.config import config
from sql.sql_types import UnmappableTypeError
from sql.tvp import TableValueParameter, TvpBuilder, TvpColumn, as_table_parameter


@pytest.fixture
def users():
    return [
        SimpleNamespace(Id=1, Name="Ada", Score=9.5),
        SimpleNamespace(Id=2, Name="Grace", Score=None),
    ]


# ====================
# Unit tests
# ====================

@pytest.mark.smoke
def test_single_column_parameter():
    tvp = as_table_parameter([1, 2, 3], "dbo.IdList", "Id", int)

    assert isinstance(tvp, TableValueParameter)
    assert tvp.name == "dbo.IdList"
    assert tvp.column_names == ["Id"]
    assert list(tvp.records) == [(1,), (2,), (3,)]


@pytest.mark.unit
def test_builder_columns_follow_add_order(users):
    tvp = (
        TvpBuilder("dbo.UserList", users)
        .add_parameter(lambda u: u.Id, "Id", int)
        .add_parameter(lambda u: u.Name, "Name", str, max_length=200)
        .add_parameter(lambda u: u.Score, "Score", float)
        .build()
    )

    assert [(c.name, c.order) for c in tvp.columns] == [("Id", 0), ("Name", 1), ("Score", 2)]
    assert list(tvp.records) == [(1, "Ada", 9.5), (2, "Grace", None)]


@pytest.mark.unit
def test_column_sql_types(users):
    tvp = (
        TvpBuilder("dbo.UserList", users)
        .add_parameter(lambda u: u.Id, "Id", int)
        .add_parameter(lambda u: u.Name, "Name", str, max_length=200)
        .build()
    )

    id_column, name_column = tvp.columns
    assert id_column.sql_type is mssql.INTEGER
    assert id_column.max_length is None
    assert name_column.sql_type is mssql.NVARCHAR
    assert name_column.max_length == 200


@pytest.mark.unit
def test_type_engine_applies_length():
    column = TvpColumn(name="Name", order=0, sql_type=mssql.NVARCHAR, max_length=50)

    engine = column.type_engine()

    assert isinstance(engine, mssql.NVARCHAR)
    assert engine.length == 50
    assert isinstance(TvpColumn("Id", 0, mssql.INTEGER).type_engine(), mssql.INTEGER)


# ====================
# Edge cases
# ====================

@pytest.mark.edge_case
@pytest.mark.parametrize("max_length", [None, 0])
def test_string_column_defaults_to_configured_length(max_length):
    tvp = as_table_parameter(["a"], "dbo.NameList", "Name", str, max_length)

    assert tvp.columns[0].max_length == config.tvp_string_length


@pytest.mark.edge_case
def test_default_string_length_comes_from_config():
    with patch("sql.tvp.config") as mock_config:
        mock_config.tvp_string_length = 128
        tvp = as_table_parameter(["a"], "dbo.NameList", "Name", str)

    assert tvp.columns[0].max_length == 128


@pytest.mark.edge_case
def test_non_string_column_keeps_given_length():
    tvp = as_table_parameter([1], "dbo.IdList", "Id", int, 0)

    assert tvp.columns[0].max_length == 0


@pytest.mark.edge_case
def test_records_are_produced_lazily():
    calls = []

    def selector(value):
        calls.append(value)
        return value

    tvp = TvpBuilder("dbo.IdList", [1, 2]).add_parameter(selector, "Id", int).build()
    assert calls == []

    records = tvp.records
    assert next(records) == (1,)
    assert calls == [1]


@pytest.mark.edge_case
def test_records_can_be_read_again():
    tvp = as_table_parameter([1, 2], "dbo.IdList", "Id", int)

    assert list(tvp.records) == list(tvp.records)


@pytest.mark.edge_case
def test_unmapped_type_fails_on_add():
    builder = TvpBuilder("dbo.Things", [object()])

    with pytest.raises(UnmappableTypeError):
        builder.add_parameter(lambda x: x, "Thing", object)


@pytest.mark.unit
def test_repr_names_parameter():
    tvp = as_table_parameter([1], "dbo.IdList", "Id", int)

    assert repr(tvp) == "TableValueParameter(name='dbo.IdList', columns=['Id'])"


# ====================
# Integration tests
# ====================

@pytest.mark.integration
def test_to_frame(users):
    tvp = (
        TvpBuilder("dbo.UserList", users)
        .add_parameter(lambda u: u.Id, "Id", int)
        .add_parameter(lambda u: u.Name, "Name", str)
        .build()
    )

    frame = tvp.to_frame()

    assert list(frame.columns) == ["Id", "Name"]
    assert frame["Name"].tolist() == ["Ada", "Grace"]
    assert len(frame) == 2
