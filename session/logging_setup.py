"""
One-time logging setup.

Nothing in the session engine installs handlers at import time; the CLI, the
host API and the demos call configure_logging() during bootstrap instead.
"""

import logging
from typing import Union

LOG_FORMAT = "%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s"
DATE_FORMAT = "%H:%M:%S"

_configured = False


def configure_logging(level: Union[int, str] = logging.INFO, force: bool = False) -> None:
    """
    Install the console handler used across the session engine.

    Repeated calls are ignored unless force=True.
    """
    global _configured
    if _configured and not force:
        return
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT, force=force)
    _configured = True
