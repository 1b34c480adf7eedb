"""Logging setup for navconsole entry points.

Usage:
    from shared.utils.logging_config import setup_logging

    path = setup_logging("console")              # stderr + logs/console.log
    setup_logging("console", debug=True)         # DEBUG, third-party loggers unmuted
    setup_logging("console", log_dir="/var/log/navconsole")

The log directory defaults to ``$NAVCONSOLE_LOG_DIR`` and then to
``<project root>/logs``.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# 5 MB per file, three rotated backups
MAX_BYTES = 5 * 1024 * 1024
BACKUP_COUNT = 3

LOG_DIR_ENV = "NAVCONSOLE_LOG_DIR"
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

# Request logs from uvicorn and the httpx test client drown out click events
NOISY_LOGGERS = ("httpx", "uvicorn.access")


def log_path(server_name: str, log_dir: Optional[str | Path] = None) -> Path:
    """File a server named *server_name* writes to."""
    directory = log_dir or os.getenv(LOG_DIR_ENV) or _PROJECT_ROOT / "logs"
    return Path(directory) / f"{server_name}.log"


def setup_logging(
    server_name: str = "console",
    *,
    debug: bool = False,
    log_dir: Optional[str | Path] = None,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> Path:
    """Route the root logger to stderr and a rotating per-server file.

    Returns the log file path. Call once per process, before the server
    starts handling requests.
    """
    path = log_path(server_name, log_dir)
    path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT)
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr), file_handler],
    )

    for name in quiet:
        logging.getLogger(name).setLevel(logging.NOTSET if debug else logging.WARNING)

    logging.getLogger(__name__).info("%s logging to %s", server_name, path)
    return path
