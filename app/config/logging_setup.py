"""Process-wide logging configuration for API and job entrypoints."""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty at INFO.
NOISY_LOGGERS = [
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "alembic.runtime.migration",
    "httpx",
    "httpcore",
]


def config_setup_logging(level: str = "INFO") -> logging.Logger:
    """Install one stdout handler on the root logger.

    Calling this again replaces the previously installed handler, so repeated
    entrypoint setup does not duplicate log lines.

    Args:
        level: Logging level name such as `INFO` or `DEBUG`.

    Returns:
        logging.Logger: Configured root logger.

    Raises:
        ValueError: Raised when level is not a known logging level name.
    """

    normalized_level = str(level).strip().upper()
    numeric_level = logging.getLevelName(normalized_level)
    if not isinstance(numeric_level, int):
        raise ValueError(f"unsupported log level={normalized_level}")

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    for handler in list(root_logger.handlers):
        if getattr(handler, "_balance_ledger_handler", False):
            root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    console_handler._balance_ledger_handler = True  # pylint: disable=protected-access
    root_logger.addHandler(console_handler)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(numeric_level, logging.WARNING))

    return root_logger


__all__ = ["LOG_DATE_FORMAT", "LOG_FORMAT", "NOISY_LOGGERS", "config_setup_logging"]
