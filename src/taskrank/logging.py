"""Logging configuration for taskrank."""

import logging
import sys
from pathlib import Path

from . import __version__

NAMESPACE = "taskrank"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Marks handlers installed here so a second call replaces rather than stacks them
_OWNED = "_taskrank_handler"


def setup_logging(verbose: int = 0, log_file: Path | None = None) -> None:
    """Configure the ``taskrank`` logger.

    Silent unless asked: ``-v`` logs INFO to stderr, ``-vv`` DEBUG. A log
    file receives the same records at INFO (or DEBUG with ``-vv``) even
    without ``-v``. Calling it again replaces the handlers it installed.

    Args:
        verbose: Verbosity level (0=off, 1=INFO, 2+=DEBUG)
        log_file: Optional path to write logs to file
    """
    logger = logging.getLogger(NAMESPACE)
    for handler in [h for h in logger.handlers if getattr(h, _OWNED, False)]:
        logger.removeHandler(handler)
        handler.close()

    if verbose == 0 and log_file is None:
        return

    level = logging.DEBUG if verbose >= 2 else logging.INFO
    logger.setLevel(level)

    handlers: list[logging.Handler] = []
    if verbose > 0:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        setattr(handler, _OWNED, True)
        logger.addHandler(handler)

    logger.info(
        "taskrank %s starting (level=%s, log_file=%s)",
        __version__,
        logging.getLevelName(level),
        log_file or "-",
    )
