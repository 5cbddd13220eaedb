"""
Logging Configuration

Provides:
- ConsoleFormatter: colored, human oriented CLI output
- CustomJsonFormatter: one JSON object per line for log shippers
- setup_logging: load logging.yml, substitute variables, apply dictConfig
"""

import json
import logging
import logging.config
import os
import string
from datetime import datetime, timezone
from pathlib import Path

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).with_name("logging.yml")

# Attributes every LogRecord carries; anything else on a record came from extra=.
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))) | {
    "message",
    "asctime",
}


# ANSI Escape Codes for Colors
class Color:
    BLUE = "\033[94m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    END = "\033[0m"


class ConsoleFormatter(logging.Formatter):
    """Colored single-line output. Color is dropped when NO_COLOR is set."""

    _STYLES = {
        logging.DEBUG: (Color.BLUE, "·"),
        logging.INFO: (Color.CYAN, "ℹ"),
        logging.WARNING: (Color.YELLOW, "⚠️"),
        logging.ERROR: (Color.RED, "❌"),
        logging.CRITICAL: (Color.RED + Color.BOLD, "❌"),
    }

    def __init__(self, use_color: bool | None = None):
        super().__init__()
        if use_color is None:
            use_color = "NO_COLOR" not in os.environ
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        color, marker = self._STYLES.get(record.levelno, (Color.CYAN, "ℹ"))
        message = f"{marker} {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        if not self.use_color:
            return message
        return f"{color}{message}{Color.END}"


class CustomJsonFormatter(logging.Formatter):
    """
    JSON Formatter.

    Fields:
      - _time: ISO8601 timestamp (millisecond precision)
      - level: Log level
      - logger: Logger name (e.g. imagesync.core.engine)
      - message: Log message
      - any extra= fields (image, phase, ...)
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "_time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(
    level: str = "INFO",
    log_format: str = "console",
    config_path: Path | str | None = None,
) -> None:
    """
    Load the YAML config, substitute variables, and initialize logging.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        logging.basicConfig(level=level)
        return

    # Supports ${LOG_LEVEL} and ${LOG_FORMATTER}; other ${VARS} come from the environment.
    template = string.Template(path.read_text(encoding="utf-8"))
    mapping = os.environ.copy()
    mapping["LOG_LEVEL"] = level.upper()
    mapping["LOG_FORMATTER"] = log_format

    config = yaml.safe_load(template.safe_substitute(mapping))
    logging.config.dictConfig(config)
