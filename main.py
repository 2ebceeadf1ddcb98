"""
===========================================
Command-line SQL preview for SlimGen.
===========================================

Prints the CRUD statements SlimGen generates for an entity class, together
with the key classification it derived. Useful for checking how markers
and naming conventions were interpreted before wiring an entity into a
data-access layer.

Usage:
    # All statements for an entity
    python main.py --entity myapp.models:User --all

    # SELECT limited to 10 rows, plus the DELETE
    python main.py --entity myapp.models:User --select --top 10 --delete

Example:
    >>> from main import SqlPreview
    >>>
    >>> preview = SqlPreview.from_path('myapp.models:User')
    >>> print(preview.render(select=True, insert=True))
"""

import argparse
import importlib
import sys
from typing import List, Optional

from core.logger import get_logger, setup_logging_from_config
from entities.metadata import NoPropertiesError
from sql.generator import MssqlSqlGenerator, SqlGenerationError, get_sql_generator

logger = get_logger(__name__)


class PreviewError(Exception):
    """Raised when the entity class cannot be located."""
    pass


def load_entity_class(path: str) -> type:
    """Import an entity class from a 'package.module:ClassName' path.

    Raises:
        PreviewError: If the path is malformed or cannot be resolved
    """
    module_name, _, class_name = path.partition(':')
    if not module_name or not class_name:
        raise PreviewError(f"Expected 'module:ClassName', got '{path}'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise PreviewError(f"Cannot import module '{module_name}': {e}") from e

    target = module
    for part in class_name.split('.'):
        try:
            target = getattr(target, part)
        except AttributeError:
            raise PreviewError(f"Module '{module_name}' has no attribute '{class_name}'") from None

    if not isinstance(target, type):
        raise PreviewError(f"'{path}' is not a class")
    return target


class SqlPreview:
    """Render generated SQL and key metadata for one entity class.

    Attributes:
        generator: Shared MssqlSqlGenerator of the entity class
    """

    def __init__(self, generator: MssqlSqlGenerator):
        self.generator = generator

    @classmethod
    def from_path(cls, path: str) -> 'SqlPreview':
        return cls(get_sql_generator(load_entity_class(path)))

    def summary(self) -> List[str]:
        shape = self.generator.shape
        return [
            f"-- Entity:         {shape.name}",
            f"-- Table:          {shape.table_name}",
            f"-- Keys:           {', '.join(shape.key_names()) or '(none)'}",
            f"-- Generated keys: {', '.join(shape.key_names(generated_only=True)) or '(none)'}",
            f"-- Computed:       {', '.join(p.name for p in shape.computed) or '(none)'}",
        ]

    def render(
        self,
        select: bool = False,
        top: Optional[int] = None,
        insert: bool = False,
        update: bool = False,
        delete: bool = False
    ) -> str:
        """Render the requested statements, one per line.

        Raises:
            SqlGenerationError: If a requested statement cannot be built
        """
        lines = self.summary()

        if select:
            lines.append(self.generator.get_select_sql(top))
        if insert:
            lines.append(self.generator.get_insert_sql())
        if update:
            lines.append(self.generator.get_update_sql())
        if delete:
            lines.append(self.generator.get_delete_sql())

        return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Command-line interface for previewing generated SQL.

    Exit Codes:
        0: Success
        1: Error
        130: User interrupt (Ctrl+C)
    """
    parser = argparse.ArgumentParser(
        description="SlimGen - preview generated CRUD SQL for an entity class",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # All statements
  python main.py --entity myapp.models:User --all

  # SELECT TOP (10)
  python main.py --entity myapp.models:User --select --top 10
        """
    )

    parser.add_argument(
        '--entity',
        required=True,
        help="Entity class as 'package.module:ClassName'"
    )
    parser.add_argument('--select', action='store_true', help='Print the SELECT statement')
    parser.add_argument('--top', type=int, default=None, help='Row limit for the SELECT statement')
    parser.add_argument('--insert', action='store_true', help='Print the INSERT statement')
    parser.add_argument('--update', action='store_true', help='Print the UPDATE statement')
    parser.add_argument('--delete', action='store_true', help='Print the DELETE statement')
    parser.add_argument('--all', action='store_true', help='Print every statement')
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging (DEBUG level)'
    )

    args = parser.parse_args(argv)

    setup_logging_from_config(log_level='DEBUG' if args.verbose else None)

    requested = {
        'select': args.select or args.all,
        'insert': args.insert or args.all,
        'update': args.update or args.all,
        'delete': args.delete or args.all,
    }

    try:
        preview = SqlPreview.from_path(args.entity)
        print(preview.render(top=args.top, **requested))
        return 0

    except (PreviewError, NoPropertiesError, SqlGenerationError) as e:
        logger.error(f"SQL preview failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Operation interrupted by user")
        return 130


if __name__ == '__main__':
    sys.exit(main())
