"""Logging setup shared by the API process and the pipeline services."""

import logging
import sys
from pathlib import Path

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    format_string: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Configure the ``scribe`` logger hierarchy.

    Logs go to stdout, and additionally to *log_file* when one is given.
    Safe to call more than once (e.g. one app per test): existing handlers
    are replaced rather than stacked.
    """
    logger = logging.getLogger("scribe")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(format_string)
    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
