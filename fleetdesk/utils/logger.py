"""
Logging setup shared by every fleetdesk module.

One console handler and one rotating file ({LOG_DIR}/{LOG_FILE}), attached to
the root logger the first time get_logger() is called. Record-store traffic
(httpx) and SQL echo are kept at WARNING unless LOG_LEVEL is DEBUG.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from fleetdesk.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
NOISY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "multipart")

_configured = False


def configure_logging(level: str = None, log_dir: str = None):
    """Attach the console and file handlers. Later calls are no-ops."""
    global _configured
    if _configured:
        return
    _configured = True

    level = (level or settings.LOG_LEVEL).upper()
    log_dir = log_dir or settings.LOG_DIR
    os.makedirs(log_dir, exist_ok=True)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler()
    console.setFormatter(formatter)

    file_handler = RotatingFileHandler(
        filename=os.path.join(log_dir, settings.LOG_FILE),
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(console)
    root.addHandler(file_handler)

    if level != "DEBUG":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
