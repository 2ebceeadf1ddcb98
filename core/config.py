"""
===========================================
Configuration management for SlimGen.
===========================================

Loads configuration from environment variables (.env file) and provides
a centralized Config singleton for application-wide access.

The configuration covers:
- Logging output (level, file, colors)
- SQL generation defaults (table name suffix, TVP string length)
- Row materialization (UTC normalization of datetimes)

Example:
    >>> from core.config import config
    >>>
    >>> print(config.table_suffix)
    >>> print(config.logging.level)
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(dotenv_path=env_path)


def _env_flag(name: str, default: str) -> bool:
    """Read a boolean environment variable ('1', 'true', 'yes', 'on')."""
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class LoggingConfig:
    """Logging configuration settings.

    Attributes:
        level: Root log level (DEBUG/INFO/WARNING/ERROR/CRITICAL)
        log_file: Optional log file name; console only when None
        log_dir: Directory for the log file
        use_colors: Colored console output
    """

    level: str
    log_file: Optional[str]
    log_dir: str
    use_colors: bool


@dataclass
class GeneratorConfig:
    """SQL generation and materialization settings.

    Attributes:
        table_suffix: Suffix appended to a class name to derive its table name
        tvp_string_length: Default max length for string TVP columns
        utc_datetimes: Mark naive datetimes read from rows as UTC
    """

    table_suffix: str
    tvp_string_length: int
    utc_datetimes: bool


class Config:
    """Centralized configuration manager.

    Attributes:
        logging: LoggingConfig instance
        generator: GeneratorConfig instance

    Example:
        >>> config = Config()
        >>> config.generator.tvp_string_length
        4000
    """

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.logging = LoggingConfig(
            level=os.getenv('SLIMGEN_LOG_LEVEL', 'INFO'),
            log_file=os.getenv('SLIMGEN_LOG_FILE') or None,
            log_dir=os.getenv('SLIMGEN_LOG_DIR', 'logs'),
            use_colors=_env_flag('SLIMGEN_LOG_COLORS', 'true')
        )

        self.generator = GeneratorConfig(
            table_suffix=os.getenv('SLIMGEN_TABLE_SUFFIX', 's'),
            tvp_string_length=int(os.getenv('SLIMGEN_TVP_STRING_LENGTH', '4000')),
            utc_datetimes=_env_flag('SLIMGEN_UTC_DATETIMES', 'true')
        )

    @property
    def table_suffix(self) -> str:
        """Get the suffix used for default table names."""
        return self.generator.table_suffix

    @property
    def tvp_string_length(self) -> int:
        """Get the default max length for string TVP columns."""
        return self.generator.tvp_string_length

    @property
    def utc_datetimes(self) -> bool:
        """Get whether naive datetimes are marked as UTC."""
        return self.generator.utc_datetimes


# Global configuration instance
config = Config()
