"""
Logging configuration for the preservation E2E harness.

Console output is colored for local runs and JSON lines in CI. Shard worker
processes tag every record with their worker number and can mirror their
records to a per-worker JSON log in the results directory.

Bearer tokens and client secrets are masked before a record is emitted.
"""

import json
import logging
import os
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

EXTRA_FIELDS = ("scenario", "deposit_id", "uri", "status", "attempt", "duration_ms", "error_type")

QUIET_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3", "msal")

_SECRET_PATTERNS = (
    re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"(client_secret[\"']?\s*[:=]\s*[\"']?)[^\s\"',}]+", re.IGNORECASE),
)


def mask_secrets(text: str) -> str:
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(r"\1***", text)
    return text


class HarnessContextFilter(logging.Filter):
    """Stamps the worker number on records and masks secrets in the message."""

    def __init__(self, worker: Optional[int] = None):
        super().__init__()
        self.worker = worker

    def filter(self, record: logging.LogRecord) -> bool:
        record.worker = self.worker if self.worker is not None else "-"
        message = record.getMessage()
        masked = mask_secrets(message)
        if masked != message:
            record.msg, record.args = masked, None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for CI log collectors and worker log files."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "worker": getattr(record, "worker", "-"),
            "message": record.getMessage(),
        }
        for field in EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if record.exc_info:
            log_data["exception"] = mask_secrets(self.formatException(record.exc_info))

        return json.dumps(log_data, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Colored level names when writing to a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[35m",   # Magenta
        "RESET": "\033[0m",
    }

    def __init__(self, fmt: str = None, datefmt: str = None, use_colors: bool = True):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        if not (self.use_colors and sys.stdout.isatty()):
            return super().format(record)

        levelname = record.levelname
        color = self.COLORS.get(levelname, self.COLORS["RESET"])
        record.levelname = f"{color}{levelname}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def _wants_json() -> bool:
    explicit = os.getenv("LOG_FORMAT", "").lower()
    if explicit in ("json", "console"):
        return explicit == "json"
    return os.getenv("ENVIRONMENT", "development").lower() == "production"


def setup_logging(worker: Optional[int] = None, log_dir: Optional[str] = None) -> None:
    """
    Configure logging for the runner or for one shard worker.

    ``LOG_FORMAT`` (json|console) picks the console format explicitly,
    otherwise ``ENVIRONMENT=production`` selects JSON. ``LOG_LEVEL`` sets the
    level (DEBUG locally, INFO in production). When ``log_dir`` is given the
    records are also written as JSON to ``worker-<n>.log`` (or
    ``runner.log``) inside it.
    """
    is_development = os.getenv("ENVIRONMENT", "development").lower() == "development"
    log_level_name = os.getenv("LOG_LEVEL", "DEBUG" if is_development else "INFO").upper()
    log_level = getattr(logging, log_level_name, logging.INFO)
    use_json = _wants_json()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    context_filter = HarnessContextFilter(worker)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.addFilter(context_filter)
    if use_json:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(ColoredConsoleFormatter(
            fmt="%(asctime)s | %(levelname)-8s | w%(worker)s | %(name)s | %(message)s",
            datefmt="%H:%M:%S",
        ))
    root_logger.addHandler(console_handler)

    log_path = None
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        log_path = Path(log_dir) / (f"worker-{worker}.log" if worker is not None else "runner.log")
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.addFilter(context_filter)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        f"Logging configured: level={log_level_name}, format={'json' if use_json else 'console'}, "
        f"worker={worker if worker is not None else '-'}, file={log_path or '-'}"
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Usage:
        logger = get_logger(__name__)
        logger.info("Deposit ready", extra={"deposit_id": "abc123def456", "status": "waiting"})
    """
    return logging.getLogger(name)
