import logging
from typing import Optional

LOGGER_NAME = "spotifyweb"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_log = logging.getLogger(LOGGER_NAME)


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Attach console (and optional file) handlers to the package logger."""

    _log.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if _log.handlers:
        return _log

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    _log.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        _log.addHandler(file_handler)

    return _log


def log_info(msg: str) -> None:
    _log.info(msg)


def log_success(msg: str) -> None:
    _log.info("✅ %s", msg)


def log_warning(msg: str) -> None:
    _log.warning(msg)


def log_error(msg: str) -> None:
    _log.error(msg)
