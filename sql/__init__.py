"""
=========================================
SQL generation package for SlimGen.
=========================================

Generates SQL Server text for entity classes. Nothing here executes SQL;
statements are returned as strings with @name placeholders for the caller
to bind and run (for example through sqlalchemy.text or pyodbc).

The package is organized as:
    - generator.py: CRUD statement generation (SELECT/INSERT/UPDATE/DELETE)
    - sql_types.py: Python type to SQL Server type lookup
    - tvp.py: Table-valued parameter construction

Example:
    >>> from sql.generator import get_sql_generator
    >>>
    >>> generator = get_sql_generator(User)
    >>> generator.get_delete_sql()
    'DELETE FROM [Users] WHERE [Id] = @Id;'
"""

__version__ = "0.1.0"
__all__ = [
    # Generation
    'SqlGenerator', 'MssqlSqlGenerator', 'get_sql_generator',
    'SqlGenerationError', 'MultipleGeneratedKeysError', 'InvalidInsertError', 'NoKeysError',
    # Types
    'get_sql_type', 'UnmappableTypeError',
    # Table-valued parameters
    'TvpBuilder', 'TableValueParameter', 'as_table_parameter',
]

from .generator import (
    InvalidInsertError,
    MssqlSqlGenerator,
    MultipleGeneratedKeysError,
    NoKeysError,
    SqlGenerationError,
    SqlGenerator,
    get_sql_generator,
)
from .sql_types import UnmappableTypeError, get_sql_type
from .tvp import TableValueParameter, TvpBuilder, as_table_parameter
