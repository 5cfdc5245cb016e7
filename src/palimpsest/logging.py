"""Logging configuration for palimpsest.

Module loggers live under the ``palimpsest`` logger; setup_logging() attaches
the file and console handlers to it once per process.
"""

import logging
import sys
from pathlib import Path

# Default log directory
DEFAULT_LOG_DIR = Path.home() / "palimpsest" / "logs"


def setup_logging(
    name: str,
    log_dir: Path | None = None,
    level: int = logging.INFO,
    console: bool = True,
) -> logging.Logger:
    """Configure logging for the palimpsest package.

    Handlers are attached to the ``palimpsest`` package logger, so records
    from every module logger returned by get_logger() reach them. Log files
    are written to <log_dir>/<name>.log. A second call keeps the handlers
    of the first.

    Args:
        name: Component name (used for the log filename)
        log_dir: Directory for log files (defaults to ~/palimpsest/logs/)
        level: Logging level (defaults to INFO)
        console: Whether to also log to stderr (defaults to True)

    Returns:
        The ``palimpsest.<name>`` logger
    """
    if log_dir is None:
        log_dir = DEFAULT_LOG_DIR

    log_dir.mkdir(parents=True, exist_ok=True)

    # Configure the package root so every module logger propagates here
    logger = logging.getLogger("palimpsest")
    logger.setLevel(level)

    # Avoid adding duplicate handlers if already configured
    if logger.handlers:
        return logging.getLogger(f"palimpsest.{name}")

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    log_file = log_dir / f"{name}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logging.getLogger(f"palimpsest.{name}")


def get_logger(name: str) -> logging.Logger:
    """Return the ``palimpsest.<name>`` logger for a module."""
    return logging.getLogger(f"palimpsest.{name}")
