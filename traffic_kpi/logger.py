"""
Central logging configuration and debug decorator.

Everything logs under the ``traffic_kpi`` namespace: INFO and above to the
console, DEBUG and above to ``traffic_kpi_debug.log`` at the project root.
The decorator gives the ingestion and KPI entry points timing and failure
logging without cluttering their bodies.
"""

import functools
import logging
import traceback
from pathlib import Path
from time import time
from typing import Any, Callable, TypeVar

F = TypeVar("F", bound=Callable[..., Any])

LOG_FILE = Path(__file__).resolve().parent.parent / "traffic_kpi_debug.log"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(module)s]: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_logger = logging.getLogger("traffic_kpi")
_logger.setLevel(logging.DEBUG)


def _configure(logger: logging.Logger) -> None:
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console = logging.StreamHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(formatter)
    logger.addHandler(console)

    debug_file = logging.FileHandler(LOG_FILE, mode="a", encoding="utf-8")
    debug_file.setLevel(logging.DEBUG)
    debug_file.setFormatter(formatter)
    logger.addHandler(debug_file)


# Re-imports must not stack handlers
if not _logger.handlers:
    _configure(_logger)


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Module name (usually ``__name__``). If None, returns the package logger.

    Returns:
        Logger nested under the ``traffic_kpi`` namespace.
    """
    if not name:
        return _logger
    if name == "traffic_kpi" or name.startswith("traffic_kpi."):
        return logging.getLogger(name)
    return logging.getLogger(f"traffic_kpi.{name}")


def _describe(value: Any, limit: int) -> str:
    # Record collections can hold thousands of rows; log their size instead
    if isinstance(value, (list, tuple)):
        return f"<{type(value).__name__} of {len(value)}>"
    return str(value)[:limit]


def debug_watcher(func: F) -> F:
    """
    Decorator that logs function entry, execution time, and exceptions.

    The full traceback of a failure goes to the file handler only (DEBUG);
    the exception itself is re-raised unchanged.
    """
    logger = get_logger(func.__module__)

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        func_name = func.__name__
        start_time = time()

        params = [_describe(arg, 100) for arg in args[:3]]
        params += [f"{key}={_describe(value, 50)}" for key, value in list(kwargs.items())[:3]]
        logger.info(f"Starting {func_name}... ({', '.join(params)})")

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            elapsed = time() - start_time
            logger.error(f"{func_name} failed after {elapsed:.3f}s: {type(e).__name__}: {e}")
            logger.debug(f"Full traceback for {func_name}:\n{traceback.format_exc()}")
            raise

        elapsed = time() - start_time
        logger.info(f"Completed {func_name} in {elapsed:.3f} seconds -> {_describe(result, 80)}")
        return result

    return wrapper  # type: ignore[return-value]
