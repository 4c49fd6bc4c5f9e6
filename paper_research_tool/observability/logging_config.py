"""
Logging configuration for the paper research tool.

JSON output uses python-json-logger; text output uses the standard
formatter. uvicorn gets a matching dictConfig with health and metrics
polls filtered out of the access log.
"""

import logging
import sys
from typing import Any

from pythonjsonlogger.json import JsonFormatter

JSON_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"
TEXT_FORMAT = "%(levelname)s [%(asctime)s] %(name)s - %(message)s"

QUIET_ENDPOINTS = ("/health/live", "/metrics")


class HealthCheckFilter(logging.Filter):
    """Drops uvicorn access lines for health check and metrics polls."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        return not any(endpoint in message for endpoint in QUIET_ENDPOINTS)


class StructuredFormatter(JsonFormatter):
    """JSON formatter with consistently named standard fields."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["message"] = record.getMessage()

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)


def _formatter(log_format: str) -> logging.Formatter:
    if log_format.lower() == "json":
        return StructuredFormatter(JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")
    return logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def setup_logging(log_format: str = "text", log_level: str = "INFO") -> None:
    """
    Configure root logging.

    Args:
        log_format: "json" for JSON logging, "text" for human-readable text
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    # stderr keeps CLI output on stdout clean
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(_formatter(log_format))
    root_logger.addHandler(console_handler)

    configure_component_loggers(log_level)

    root_logger.debug(f"Logging configured: format={log_format}, level={log_level}")


def configure_component_loggers(default_level: str = "INFO") -> None:
    """Set per-component log levels; HTTP client libraries stay at WARNING."""
    logger_levels = {
        "paper_research_tool": default_level,
        "paper_research_tool.client": default_level,
        "paper_research_tool.api": default_level,
        "httpx": "WARNING",
        "httpcore": "WARNING",
        "aiosqlite": "WARNING",
        "uvicorn": "INFO",
        "uvicorn.access": "INFO",
        "uvicorn.error": "INFO",
    }

    for logger_name, level in logger_levels.items():
        logging.getLogger(logger_name).setLevel(getattr(logging, level.upper(), logging.INFO))


# (logger, handler, level) for uvicorn's dictConfig; none of these propagate
_UVICORN_LOGGERS = (
    ("uvicorn", "default", "INFO"),
    ("uvicorn.access", "access", "INFO"),
    ("uvicorn.error", "default", "INFO"),
    ("httpx", "default", "WARNING"),
    ("httpcore", "default", "WARNING"),
)


def get_uvicorn_logging_config(log_format: str = "text", log_level: str = "INFO") -> dict:
    """Build the ``log_config`` dict passed to ``uvicorn.run``.

    Access lines go through :class:`HealthCheckFilter`; everything writes to
    stdout with the same formatter as :func:`setup_logging`.
    """
    module = __name__
    if log_format.lower() == "json":
        formatter = {"()": f"{module}.StructuredFormatter", "format": JSON_FORMAT}
    else:
        formatter = {"()": "logging.Formatter", "format": TEXT_FORMAT}
    formatter["datefmt"] = "%Y-%m-%d %H:%M:%S"

    def stdout_handler(**extra) -> dict:
        return {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "stream": "ext://sys.stdout",
            **extra,
        }

    loggers = {"": {"handlers": ["default"], "level": log_level.upper()}}
    for name, handler, level in _UVICORN_LOGGERS:
        loggers[name] = {"handlers": [handler], "level": level, "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "filters": {"health_check_filter": {"()": f"{module}.HealthCheckFilter"}},
        "handlers": {
            "default": stdout_handler(),
            "access": stdout_handler(filters=["health_check_filter"]),
        },
        "loggers": loggers,
    }
