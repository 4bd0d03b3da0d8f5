"""Logging setup: rotating file log, quiet console, API keys redacted."""

import logging
import os
import re
from logging.handlers import RotatingFileHandler

DEFAULT_LOG_DIR = os.path.expanduser("~/.local/share/maktaba/logs")
LOG_FILE = "maktaba.log"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_BACKUP_COUNT = 3

_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Client libraries that log full request URLs at INFO/DEBUG
_QUIET_LOGGERS = ("httpx", "httpcore", "websockets", "google_genai")

_KEY_PARAM_RE = re.compile(r"([?&]key=)[^&\s'\"]+")


class RedactKeysFilter(logging.Filter):
    """Replace ``key=`` query values in the rendered message with ``***``."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _KEY_PARAM_RE.sub(r"\1***", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(level: str = "INFO", log_dir: str | None = None) -> None:
    """Configure the root logger once per process.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR).
        log_dir: Directory for maktaba.log. Defaults to ~/.local/share/maktaba/logs.
    """
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(numeric_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if root.handlers:
        return

    log_dir = os.path.expanduser(log_dir or DEFAULT_LOG_DIR)
    os.makedirs(log_dir, exist_ok=True)

    formatter = logging.Formatter(_FORMAT, datefmt=_DATEFMT)
    redact = RedactKeysFilter()

    file_handler = RotatingFileHandler(
        os.path.join(log_dir, LOG_FILE),
        maxBytes=_MAX_BYTES,
        backupCount=_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(numeric_level)

    # Console stays at WARNING+ so it doesn't trample the chat prompt
    console_handler = logging.StreamHandler()
    console_handler.setLevel(max(numeric_level, logging.WARNING))

    for handler in (file_handler, console_handler):
        handler.setFormatter(formatter)
        handler.addFilter(redact)
        root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
