"""
Logging for the goalboard namespace.

Every engine and adapter logs through get_logger(); nothing is emitted
until setup_logging() installs the handlers:
- system.log: writes, transfers, reconciles (INFO+ by default)
- error.log: failed writes and store errors with tracebacks (ERROR+)
- stderr: warnings a person at the terminal should see

Both files rotate at config.LOG_MAX_BYTES.
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from goalboard.config_manager import config
from goalboard.paths import LOGS_DIR

ROOT_LOGGER_NAME = "goalboard"

FILE_FORMAT = logging.Formatter(
    "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
CONSOLE_FORMAT = logging.Formatter("[%(levelname)s] %(message)s")


def _rotating_handler(path: Path, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=config.LOG_MAX_BYTES,
        backupCount=config.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(FILE_FORMAT)
    return handler


def setup_logging(
    log_level: int = logging.INFO,
    console_level: int = logging.WARNING,
    logs_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Attach the system, error and console handlers to the "goalboard" logger.

    Safe to call again (for example after the data dir changes): the old
    handlers are closed and replaced.

    Args:
        log_level: threshold for system.log
        console_level: threshold for stderr
        logs_dir: where the files go; defaults to <data dir>/logs
    """
    logs_dir = logs_dir or LOGS_DIR
    logs_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(CONSOLE_FORMAT)

    for handler in (
        _rotating_handler(logs_dir / "system.log", log_level),
        _rotating_handler(logs_dir / "error.log", logging.ERROR),
        console,
    ):
        root.addHandler(handler)
    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger for one goalboard module, e.g. get_logger("transfer")."""
    if name:
        return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
    return logging.getLogger(ROOT_LOGGER_NAME)
