"""Logging configuration for the command line tools."""

import logging
import logging.handlers
import sys
from pathlib import Path


class DetailedFormatter(logging.Formatter):
    """Human-readable formatter used for the application log file."""

    def __init__(self) -> None:
        fmt = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
        super().__init__(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S")


class SimpleFormatter(logging.Formatter):
    """Short formatter for console output."""

    def __init__(self) -> None:
        super().__init__(fmt="%(levelname)-8s | %(name)s | %(message)s")


def setup_logging(
    verbose: bool = False,
    log_file: Path | None = None,
    max_file_size_mb: int = 10,
    backup_count: int = 5,
) -> None:
    """Configure the root logger.

    Console output goes to stderr at WARNING (DEBUG when verbose). When
    ``log_file`` is given, INFO and above are also appended to a rotating
    application log so failed scans can be diagnosed afterwards.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(SimpleFormatter())
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(DetailedFormatter())
        root_logger.addHandler(file_handler)

    logging.getLogger("PIL").setLevel(logging.WARNING)
