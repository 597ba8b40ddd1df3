import logging
import sys
from collections.abc import Iterable

# e.g. "2025-03-14 09:30:00 [INFO] wave_ops.pipeline: Cycle inputs for wave W-101..."
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers held at WARNING regardless of the requested level
QUIET_LOGGERS = ("faker", "openpyxl")


def configure_logging(
    level: str = "INFO",
    fmt: str = LOG_FORMAT,
    quiet: Iterable[str] = QUIET_LOGGERS,
) -> logging.Handler:
    """
    Route every wave_ops logger to a single stdout handler.

    Replaces any handlers already on the root logger so repeated runner
    invocations do not duplicate lines. Returns the installed handler.
    """
    numeric_level = logging.getLevelName(level.upper())
    invalid = not isinstance(numeric_level, int)
    if invalid:
        numeric_level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=DATE_FORMAT))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    if invalid:
        logging.getLogger(__name__).warning(
            "Unknown log level %r; using INFO", level
        )
    return handler
