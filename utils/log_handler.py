"""
Logging setup for the portfolio engine.

Modules log through ``logging.getLogger(__name__)``; this module attaches
one formatted handler to the application package loggers and provides a
timing decorator for the manager operations.
"""

import functools
import logging
import time
from typing import Optional, Union

from config.constants import DEFAULT_LOG_DATE_FORMAT, DEFAULT_LOG_FORMAT

# Application package loggers that receive the handler
APP_MODULES = [
    'config',
    'data',
    'financial',
    'portfolio',
    'utils',
    '__main__',
]


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.INFO)


def setup_logging(level: Union[int, str] = logging.INFO, log_file: Optional[str] = None) -> logging.Handler:
    """Setup logging for the application modules.

    Attached only to app-specific loggers, not the root logger.

    Args:
        level: Log level name or number (default: INFO)
        log_file: Optional file to write to; logs go to stderr otherwise

    Returns:
        The handler that was attached
    """
    level = _resolve_level(level)

    if log_file:
        handler = logging.FileHandler(log_file, encoding='utf-8')
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT, datefmt=DEFAULT_LOG_DATE_FORMAT))
    handler.setLevel(level)

    for module_name in APP_MODULES:
        logger = logging.getLogger(module_name)

        # Remove existing handlers to avoid duplicates
        for h in logger.handlers[:]:
            logger.removeHandler(h)

        logger.addHandler(handler)
        logger.setLevel(level)
        logger.propagate = False

    return handler


def setup_logging_from_settings(settings=None) -> logging.Handler:
    """Setup logging from the 'logging' section of the settings."""
    if settings is None:
        from config.settings import get_settings
        settings = get_settings()
    logging_config = settings.get_logging_config()
    return setup_logging(logging_config.get('level', 'INFO'), logging_config.get('file'))


def log_message(message: str, level: str = 'INFO', module: str = 'portfolio'):
    """Log a message on the given module's logger."""
    logging.getLogger(module).log(_resolve_level(level), message)


def log_execution_time(module_name=None):
    """Decorator to log execution time of functions.

    Args:
        module_name: Optional module name for log record.
                    If None, uses function's module.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                duration = time.perf_counter() - start_time
                mod = module_name or func.__module__

                # Use INFO for slow ops (>1s), DEBUG for fast ones
                level = 'INFO' if duration > 1.0 else 'DEBUG'
                log_message(f"PERF: {func.__name__} took {duration:.3f}s", level=level, module=mod)
        return wrapper
    return decorator
