"""Ambient infrastructure shared by the retention engine: logging, config, paths, tasks."""

from .config_manager import ConfigManager, get_config_manager
from .logging_config import configure_logging
from .logging_utils import LoggerLike, StructuredLogger, ensure_structured_logger, get_module_logger
from .task_manager import AsyncTaskManager

__all__ = [
    'AsyncTaskManager',
    'ConfigManager',
    'LoggerLike',
    'StructuredLogger',
    'configure_logging',
    'ensure_structured_logger',
    'get_config_manager',
    'get_module_logger',
]
