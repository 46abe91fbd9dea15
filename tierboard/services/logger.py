import logging
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

from tierboard.config import Config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def log_file_path(day: Optional[date] = None) -> Path:
    """Log file for one day, e.g. logs/tierboard_20240501.log."""
    day = day or date.today()
    return Config.LOGS_DIR / f"tierboard_{day.strftime('%Y%m%d')}.log"


def _library_levels() -> dict:
    # discord.py gateway chatter and SQL echo drown out placement logs.
    return {
        "discord": logging.WARNING,
        "discord.http": logging.WARNING,
        "sqlalchemy.engine": logging.INFO if Config.DATABASE_ECHO else logging.WARNING,
    }


def _build_handlers(level: int) -> List[logging.Handler]:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    Config.LOGS_DIR.mkdir(parents=True, exist_ok=True)

    handlers: List[logging.Handler] = [
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(log_file_path(), encoding="utf-8"),
    ]
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def setup_logging() -> None:
    """
    Route every tierboard logger to stdout and to the day's log file.

    Runs once per process, on first import of this module; later calls are
    no-ops so importing services in any order never duplicates handlers.
    The level comes from Config.LOG_LEVEL (unknown names fall back to INFO).
    """
    root_logger = logging.getLogger()
    if getattr(root_logger, "_tierboard_configured", False):
        return

    level = getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO)
    root_logger.setLevel(level)
    for handler in _build_handlers(level):
        root_logger.addHandler(handler)
    root_logger._tierboard_configured = True

    for name, library_level in _library_levels().items():
        logging.getLogger(name).setLevel(library_level)


def get_logger(name: str) -> logging.Logger:
    """
    Module logger. Services call this once at import time:

        >>> logger = get_logger(__name__)
        >>> logger.info("Placement Steve smp -> HT1 (total 50, rank 1)")
    """
    return logging.getLogger(name)


setup_logging()
