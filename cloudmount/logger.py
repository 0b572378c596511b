"""Module containing utilities for logging, along with a standard logger."""

import logging
from typing import Any, Optional


def _get_logger(name: Optional[str] = "cloudmount") -> logging.Logger:
    stderrOutput = logging.StreamHandler()

    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    stderrOutput.setFormatter(formatter)

    logger = logging.getLogger(name)
    logger.addHandler(stderrOutput)

    return logger


def summarize(obj: Any, max_length: int = 255) -> str:
    """Return a stringified representation of the object up to the given length."""
    stringified_obj = str(obj)

    if len(stringified_obj) <= max_length:
        return stringified_obj
    else:
        return stringified_obj[: max_length - 3] + "..."


# Level below DEBUG for per-item output, like every applied change
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# Levels selectable with --log-level, from least to most verbose.
LOG_LEVELS = (logging.ERROR, logging.WARNING, logging.INFO, logging.DEBUG, TRACE)


def level_from_verbosity(verbosity: int) -> int:
    """Map a numeric verbosity (0 = errors only) to a logging level."""
    if verbosity < 0:
        return logging.WARNING

    return LOG_LEVELS[min(verbosity, len(LOG_LEVELS) - 1)]


# Default logger
log = _get_logger()
