"""Core infrastructure shared by every Strata package.

- Configuration management
- Logging
- Error handling
"""

from .config import AppConfig, BackendKind, get_config, reload_config
from .errors import (
    ConfigError,
    ExecutionError,
    ScanError,
    SinkError,
    StrataError,
)
from .logging import configure_logging, get_logger, get_run_id, set_run_id

__all__ = [
    # Config
    "AppConfig",
    "BackendKind",
    "get_config",
    "reload_config",
    # Errors
    "StrataError",
    "ConfigError",
    "ScanError",
    "ExecutionError",
    "SinkError",
    # Logging
    "get_logger",
    "configure_logging",
    "get_run_id",
    "set_run_id",
]
