"""
Logging configuration for the VoxPay service.

Creates rotating file-based loggers under the configured log directory.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .config import Settings, get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAX_BYTES = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5

# logger name -> log file name
SERVICE_LOGGERS = {
    "voxpay": "voxpay.log",
    "voxpay.ledger": "ledger.log",
    "voxpay.orchestrator": "orchestrator.log",
}


def _setup_file_logger(name: str, log_file: Path, level: int) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    # Avoid duplicate handlers if setup_logging is called multiple times
    logger.handlers = []

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    return logger


def setup_logging(settings: Optional[Settings] = None) -> Path:
    """
    Configure root + service loggers. Returns the log directory in use.
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level, logging.INFO)
    log_dir = settings.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for name, filename in SERVICE_LOGGERS.items():
        _setup_file_logger(name, log_dir / filename, level)

    # Child loggers write to their own file only
    logging.getLogger("voxpay.ledger").propagate = False
    logging.getLogger("voxpay.orchestrator").propagate = False

    # SQL echo is controlled by DATABASE_ECHO; keep the engine logger quiet otherwise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logging.getLogger("voxpay").info("Logging configured. Log files in: %s", log_dir)
    return log_dir


def get_logger(name: str) -> logging.Logger:
    """
    Convenience wrapper to get a named logger.
    """
    return logging.getLogger(name)
