"""Console logging for cartage runs."""

from __future__ import annotations

import logging

LOGGER_NAME = "cartage"


def setup_logger(*, verbose: bool = False, quiet: bool = False) -> logging.Logger:
    """
    Configure the `cartage` logger for a CLI run.

    Display messages are logged at INFO, so they only reach the console with
    `verbose`; `quiet` wins over `verbose` and leaves only errors.
    """

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s"))

    logger.addHandler(stream_handler)
    logger.propagate = False

    logger.debug("Logging initialized (verbose=%s quiet=%s)", verbose, quiet)
    return logger


def close_logger(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        handler.flush()
        handler.close()
    logger.handlers.clear()
    logger.propagate = True
