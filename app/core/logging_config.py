"""
Logging Configuration Module.

Centralised logging setup for the Gradii backend:
- Console logging, optional file logging
- simple / detailed / json formats
- Per-module log levels (noisy third-party libraries are quietened)
"""

import json
import logging
from pathlib import Path
from typing import Optional

from app.core.config import get_settings


SIMPLE_FORMAT = "%(levelname)s - %(name)s - %(message)s"

DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(funcName)s() - %(message)s"

# Attributes every LogRecord has; anything else came in through `extra=`
_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """One JSON object per line; `extra=` fields such as error_id are carried along."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "module": record.filename,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and key not in entry:
                entry[key] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)

MODULE_LOG_LEVELS = {
    "app": "INFO",
    "app.api": "INFO",
    "app.services": "DEBUG",
    "app.services.webhook_service": "INFO",
    # Third-party libraries (reduce noise)
    "sqlalchemy": "WARNING",
    "sqlalchemy.engine": "WARNING",
    "sqlalchemy.pool": "WARNING",
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "pymongo": "WARNING",
    "stripe": "WARNING",
    "azure": "WARNING",
    "uvicorn": "INFO",
    "uvicorn.access": "INFO",
}


def _build_formatter(log_format: str) -> logging.Formatter:
    datefmt = "%Y-%m-%d %H:%M:%S"
    if log_format == "json":
        return JsonFormatter(datefmt=datefmt)
    if log_format == "simple":
        return logging.Formatter(SIMPLE_FORMAT, datefmt=datefmt)
    return logging.Formatter(DETAILED_FORMAT, datefmt=datefmt)


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    enable_file: Optional[bool] = None,
) -> None:
    """
    Configure logging for the application.

    Args:
        log_level: Override configured log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Override configured format (simple, detailed, json)
        enable_file: Override whether a log file is written under log_file_dir
    """
    settings = get_settings()
    level = (log_level or settings.log_level).upper()
    fmt = log_format or settings.log_format
    write_file = settings.enable_file_logging if enable_file is None else enable_file

    formatter = _build_formatter(fmt)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if write_file:
        log_dir = Path(settings.log_file_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / "gradii.log")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for module_name, module_level in MODULE_LOG_LEVELS.items():
        logging.getLogger(module_name).setLevel(module_level)

    root_logger.info(f"Logging configured: level={level}, format={fmt}, file_logging={write_file}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The module name (typically __name__)
    """
    return logging.getLogger(name)
