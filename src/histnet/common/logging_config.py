"""
Logging configuration for the histnet library.

All histnet modules obtain their logger through :func:`get_logger`, which
places them under the ``histnet`` logger hierarchy. Applications (or the
example notebooks) call :func:`setup_logging` once to attach console and/or
rotating file handlers. Settings resolve from keyword arguments first, then
``HISTNET_LOG_*`` environment variables, then module defaults.

Timing information for the heavier measures (betweenness, community
detection) is emitted on the ``histnet.performance`` logger by
:class:`LoggingTimer`.
"""

import json
import logging
import logging.handlers
import os
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any


ROOT_LOGGER_NAME = "histnet"

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s.%(funcName)s:%(lineno)d | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
DEFAULT_BACKUP_COUNT = 5

ENV_LOG_LEVEL = "HISTNET_LOG_LEVEL"
ENV_LOG_FILE = "HISTNET_LOG_FILE"
ENV_LOG_DIR = "HISTNET_LOG_DIR"
ENV_LOG_FORMAT = "HISTNET_LOG_FORMAT"
ENV_LOG_CONSOLE = "HISTNET_LOG_CONSOLE"
ENV_LOG_JSON = "HISTNET_LOG_JSON"
ENV_LOG_PERFORMANCE = "HISTNET_LOG_PERFORMANCE"

_RESERVED_RECORD_KEYS = {
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "lineno", "funcName", "created",
    "msecs", "relativeCreated", "thread", "threadName",
    "processName", "process", "getMessage", "exc_info", "exc_text",
    "stack_info", "message", "taskName", "asctime"
}


class PerformanceFilter(logging.Filter):
    """Pass only records that carry timing information."""

    KEYWORDS = ("performance", "timing", "duration", "elapsed", "completed in")

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage().lower()
        return any(keyword in message for keyword in self.KEYWORDS)


class JSONFormatter(logging.Formatter):
    """
    Format log records as single-line JSON objects.

    Extra fields passed through ``logger.info(..., extra={...})`` are copied
    into the JSON object alongside the standard fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_obj[key] = value

        return json.dumps(log_obj, default=str)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger inside the ``histnet`` hierarchy.

    Module names already start with ``histnet.``; any other name is nested
    under the root so that :func:`setup_logging` governs it.

    Examples
    --------
    >>> logger = get_logger(__name__)
    >>> logger.debug("Processing node %s", "NY")
    """
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    log_dir: Optional[str] = None,
    console: Optional[bool] = None,
    json_format: Optional[bool] = None,
    performance_logging: Optional[bool] = None,
    format_string: Optional[str] = None,
    date_format: Optional[str] = None,
    max_file_size: Optional[int] = None,
    backup_count: Optional[int] = None,
    force_setup: bool = False
) -> logging.Logger:
    """
    Configure the ``histnet`` root logger.

    Parameters
    ----------
    level : str, optional
        Logging level name. Falls back to HISTNET_LOG_LEVEL, then INFO.
    log_file : str, optional
        Path to a log file. Falls back to HISTNET_LOG_FILE.
    log_dir : str, optional
        Directory for ``histnet.log`` when no log_file is given. Falls back
        to HISTNET_LOG_DIR. No file logging when neither is set.
    console : bool, optional
        Log to stdout. Falls back to HISTNET_LOG_CONSOLE, then True.
    json_format : bool, optional
        Use :class:`JSONFormatter`. Falls back to HISTNET_LOG_JSON, then False.
    performance_logging : bool, optional
        Filter ``histnet.performance`` to timing records and, with file
        logging, write them to ``performance.log``.
    format_string : str, optional
        Format for plain-text records. Falls back to HISTNET_LOG_FORMAT.
    date_format : str, optional
        Timestamp format for plain-text records.
    max_file_size : int, optional
        Rotation size for file handlers in bytes.
    backup_count : int, optional
        Number of rotated files to keep.
    force_setup : bool, default False
        Replace existing handlers instead of returning early.

    Returns
    -------
    logging.Logger
        The configured ``histnet`` logger

    Raises
    ------
    ValueError
        If the logging level name is invalid

    Examples
    --------
    >>> logger = setup_logging(level="DEBUG", log_file="analysis.log")
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)

    if not force_setup and root_logger.handlers:
        return root_logger

    if force_setup:
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()

    config = _resolve_logging_config(
        level=level,
        log_file=log_file,
        log_dir=log_dir,
        console=console,
        json_format=json_format,
        performance_logging=performance_logging,
        format_string=format_string,
        date_format=date_format,
        max_file_size=max_file_size,
        backup_count=backup_count
    )

    log_level = getattr(logging, str(config["level"]).upper(), None)
    if not isinstance(log_level, int):
        raise ValueError(f"Invalid logging level: {config['level']}")
    root_logger.setLevel(log_level)

    if config["json_format"]:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            fmt=config["format_string"],
            datefmt=config["date_format"]
        )

    if config["console"]:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    log_path = None
    if config["log_file"]:
        log_path = Path(config["log_file"])
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=str(log_path),
            maxBytes=config["max_file_size"],
            backupCount=config["backup_count"],
            encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    if config["performance_logging"]:
        perf_filter = PerformanceFilter()
        perf_logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.performance")
        perf_logger.addFilter(perf_filter)

        if log_path is not None:
            perf_handler = logging.handlers.RotatingFileHandler(
                filename=str(log_path.parent / "performance.log"),
                maxBytes=config["max_file_size"],
                backupCount=config["backup_count"],
                encoding="utf-8"
            )
            perf_handler.setFormatter(formatter)
            perf_handler.addFilter(perf_filter)
            perf_logger.addHandler(perf_handler)

    root_logger.propagate = False

    root_logger.info(
        "Logging configured: level=%s, console=%s, file=%s, json=%s",
        config["level"], config["console"],
        config["log_file"] or "None", config["json_format"]
    )

    return root_logger


def _resolve_logging_config(**kwargs) -> Dict[str, Any]:
    """
    Resolve logging configuration.

    Parameters take precedence over environment variables, which take
    precedence over defaults.
    """
    def _get_bool_env(env_var: str, default: bool) -> bool:
        value = os.getenv(env_var, "").lower()
        if value in ("true", "yes", "1", "on"):
            return True
        elif value in ("false", "no", "0", "off"):
            return False
        return default

    level = kwargs.get("level") or os.getenv(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL)

    log_dir = kwargs.get("log_dir") or os.getenv(ENV_LOG_DIR)
    log_file = kwargs.get("log_file") or os.getenv(ENV_LOG_FILE)
    if not log_file and log_dir:
        log_file = os.path.join(log_dir, "histnet.log")

    console = kwargs.get("console")
    if console is None:
        console = _get_bool_env(ENV_LOG_CONSOLE, True)

    json_format = kwargs.get("json_format")
    if json_format is None:
        json_format = _get_bool_env(ENV_LOG_JSON, False)

    performance_logging = kwargs.get("performance_logging")
    if performance_logging is None:
        performance_logging = _get_bool_env(ENV_LOG_PERFORMANCE, False)

    return {
        "level": level,
        "log_file": log_file,
        "console": console,
        "json_format": json_format,
        "performance_logging": performance_logging,
        "format_string": kwargs.get("format_string") or os.getenv(ENV_LOG_FORMAT, DEFAULT_LOG_FORMAT),
        "date_format": kwargs.get("date_format") or DEFAULT_DATE_FORMAT,
        "max_file_size": kwargs.get("max_file_size") or DEFAULT_MAX_FILE_SIZE,
        "backup_count": kwargs.get("backup_count") or DEFAULT_BACKUP_COUNT,
    }


def configure_external_library_logging(
    libraries: Optional[Dict[str, str]] = None
) -> None:
    """
    Quiet the third-party libraries histnet sits on.

    Parameters
    ----------
    libraries : Dict[str, str], optional
        Library logger names mapped to level names. Defaults to WARNING for
        networkit, polars, matplotlib and concurrent.futures. Invalid level
        names are skipped.

    Examples
    --------
    >>> configure_external_library_logging({"networkit": "ERROR"})
    """
    config = libraries or {
        "networkit": "WARNING",
        "polars": "WARNING",
        "matplotlib": "WARNING",
        "concurrent.futures": "WARNING",
    }

    for library_name, level in config.items():
        library_level = getattr(logging, level.upper(), None)
        if not isinstance(library_level, int):
            continue
        logging.getLogger(library_name).setLevel(library_level)


def log_function_entry(func_name: str, **kwargs) -> None:
    """
    Log function entry with parameters at DEBUG level on ``histnet.debug``.

    Examples
    --------
    >>> log_function_entry("build_graph", directed=True)
    """
    logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.debug")
    if logger.isEnabledFor(logging.DEBUG):
        param_str = ", ".join(f"{k}={v}" for k, v in kwargs.items())
        logger.debug("Entering %s(%s)", func_name, param_str)


def log_performance_metric(
    operation: str,
    duration: float,
    details: Optional[Dict[str, Any]] = None
) -> None:
    """
    Log the duration of an operation on ``histnet.performance``.

    Examples
    --------
    >>> log_performance_metric("betweenness_centrality", 0.42, {"nodes": 50})
    """
    logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.performance")

    message = f"Performance: {operation} completed in {duration:.3f}s"
    if details:
        detail_str = ", ".join(f"{k}={v}" for k, v in details.items())
        message += f" ({detail_str})"

    extra = {"operation": operation, "duration": duration}
    for key, value in (details or {}).items():
        if key not in _RESERVED_RECORD_KEYS:
            extra[key] = value

    logger.info(message, extra=extra)


class LoggingTimer:
    """
    Context manager that logs how long its block took.

    Examples
    --------
    >>> with LoggingTimer("walktrap_communities", {"nodes": 120}):
    ...     pass
    """

    def __init__(self, operation: str, details: Optional[Dict[str, Any]] = None):
        self.operation = operation
        self.details = details or {}
        self.start_time: Optional[float] = None
        self.duration: Optional[float] = None

    def __enter__(self) -> "LoggingTimer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is not None:
            self.duration = time.perf_counter() - self.start_time
            log_performance_metric(self.operation, self.duration, self.details)
