from __future__ import annotations
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# Attributes every LogRecord carries; anything else was passed via ``extra``
_RESERVED_ATTRS = frozenset({
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'exc_info', 'exc_text',
    'stack_info', 'taskName', 'message',
})

NOISY_LOGGERS = ("aiohttp", "urllib3", "httpx", "openai", "sentence_transformers", "trafilatura", "filelock")


class JSONFormatter(logging.Formatter):
    """One JSON object per log line, for files and log shippers."""

    def __init__(self, service_name: str = "docvault"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                entry[key] = value

        return json.dumps(entry, default=str)


class ColoredFormatter(logging.Formatter):
    """Human readable console output, colored by level."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S')
        message = f"{timestamp} | {record.levelname:8} | {record.name} | {record.getMessage()}"

        if self.use_colors and record.levelname in self.COLORS:
            message = f"{self.COLORS[record.levelname]}{message}{self.RESET}"

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return message


def setup_logging(
    level: str = "INFO",
    service_name: str = "docvault",
    log_file: Optional[str] = None,
    use_json: bool = False,
    use_colors: Optional[bool] = None
) -> None:
    """Configure the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        service_name: Service name written into JSON records
        log_file: Optional path for an additional JSON log file
        use_json: Emit JSON on the console instead of colored text
        use_colors: Force colors on or off; defaults to whether stderr is a TTY
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(numeric_level)

    if use_colors is None:
        use_colors = sys.stderr.isatty()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(JSONFormatter(service_name) if use_json else ColoredFormatter(use_colors))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(JSONFormatter(service_name))
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)
