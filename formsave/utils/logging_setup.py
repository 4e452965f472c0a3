import logging
import sys
from typing import Union

_CONFIGURED = False

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(threadName)s | %(message)s"


def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Configure root logging once per process.

    Accepts a level number or name ("DEBUG", "info", ...). Later calls are
    ignored, as are calls made after someone else installed handlers.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    if root.handlers:
        _CONFIGURED = True
        return

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    _CONFIGURED = True
