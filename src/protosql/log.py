from __future__ import annotations

import sys

from loguru import logger


def level_for(*, verbose: bool = False, quiet: bool = False) -> str:
    if verbose:
        return "DEBUG"
    if quiet:
        return "WARNING"
    return "INFO"


def configure_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Route loguru output to stderr as `level: message`."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level_for(verbose=verbose, quiet=quiet),
        format="<level>{level}</level>: <level>{message}</level>",
    )
