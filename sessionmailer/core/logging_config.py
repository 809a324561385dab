"""Structured logging configuration.

Two modes via the LOG_FORMAT setting:
- "json" (production): one JSON object per line, including request_id
- "text" (development / CLI): human-readable lines
"""

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from sessionmailer.middleware.request_id import get_request_id

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s"
JSON_FIELDS = "%(asctime)s %(name)s %(levelname)s %(message)s %(request_id)s"
JSON_RENAMES = {"levelname": "level", "name": "logger", "asctime": "timestamp"}

# Third-party loggers that are only interesting when something breaks
QUIET_LOGGERS = {"playwright": logging.ERROR, "httpx": logging.WARNING}


class RequestIDFilter(logging.Filter):
    """Stamp the current request id (or "") on each record."""

    def filter(self, record):
        record.request_id = get_request_id()
        return True


class PlaywrightPipeFilter(logging.Filter):
    """Drop Playwright's 'pipe closed by peer' warnings.

    They are emitted once per pending write when a browser context is torn
    down mid-navigation, which happens on every cancelled or timed-out fetch.
    """

    def filter(self, record):
        return "pipe closed by peer" not in record.getMessage()


def _formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return JsonFormatter(fmt=JSON_FIELDS, rename_fields=JSON_RENAMES)
    return logging.Formatter(TEXT_FORMAT)


def configure_logging(log_format: str = "json", log_level: str = "INFO", stream=None):
    """Replace the root logger's handlers with a single filtered stream handler.

    Args:
        log_format: "json" or "text"
        log_level: Python log level name; unknown names mean INFO
        stream: Output stream, stdout by default (the CLI passes stderr so
            the generated HTML on stdout stays clean)
    """
    handler = logging.StreamHandler(stream or sys.stdout)
    for log_filter in (RequestIDFilter(), PlaywrightPipeFilter()):
        handler.addFilter(log_filter)
    handler.setFormatter(_formatter(log_format))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
