import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from ..config.config import settings

LOG_FORMAT = "%(asctime)s - [%(name)s] - %(levelname)s - %(message)s"
LOG_FILE_NAME = "track4health.log"

# Per-request chatter from these libraries drowns the sync and heartbeat logs.
QUIET_LOGGERS = ("httpx", "httpcore", "apscheduler.executors.default")


def setup_logging(log_dir: Optional[str] = None, level: Optional[str] = None) -> Path:
    """
    Installs the application-wide logging configuration and returns the log file path.

    Records go to stdout and to a size-rotated file under `LOG_DIR`; on field
    devices that file is what gets collected during support visits.
    """
    directory = Path(log_dir or settings.LOG_DIR)
    directory.mkdir(parents=True, exist_ok=True)
    log_file = directory / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())

    # Drop uvicorn's default handlers so every record uses our format.
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root.addHandler(stdout_handler)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file
