"""Logging configuration for Job Enricher.

Pooled runs log from worker threads, so every line carries the thread name.
Handlers installed here are tagged, which lets ``force=True`` replace them
without touching handlers that belong to someone else (pytest, a host app).
"""
import logging
import logging.handlers
from pathlib import Path
from typing import Iterable, Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# SQL echo and scheduler job chatter drown out per-job lines at INFO
QUIET_LOGGERS = ("sqlalchemy.engine", "apscheduler")

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

_OWNER_ATTR = "_job_enricher_handler"


def _owned(handler: logging.Handler) -> bool:
    return getattr(handler, _OWNER_ATTR, False)


def _install(root: logging.Logger, handler: logging.Handler, formatter: logging.Formatter) -> None:
    handler.setFormatter(formatter)
    setattr(handler, _OWNER_ATTR, True)
    root.addHandler(handler)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    force: bool = False,
    quiet: Iterable[str] = QUIET_LOGGERS,
) -> logging.Logger:
    """Configure the root logger for the CLI and the scheduler.

    A no-op when the root logger already has handlers, unless ``force`` is
    set, in which case handlers from an earlier call are closed and replaced.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional path for a rotating log file
        force: Reconfigure even if logging is already set up
        quiet: Loggers capped at WARNING

    Returns:
        The root logger
    """
    root = logging.getLogger()

    if root.handlers and not force:
        return root

    for handler in [h for h in root.handlers if _owned(h)]:
        root.removeHandler(handler)
        handler.close()

    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    _install(root, logging.StreamHandler(), formatter)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        _install(
            root,
            logging.handlers.RotatingFileHandler(
                log_path,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            ),
            formatter,
        )

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root
