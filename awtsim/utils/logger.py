"""Logging setup shared by every awtsim component."""

import logging
import sys
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_ROOT_NAME = "awtsim"


def setup_logger(name: str, level: Optional[Union[str, int]] = None,
                 verbose: bool = False) -> logging.Logger:
    """Return a named logger under the ``awtsim`` hierarchy.

    The stream handler is installed once on the ``awtsim`` root logger, so
    component loggers created with ``setup_logger(self.__class__.__name__)``
    share its format and level.

    Args:
        name: Logger name (usually the component class name)
        level: Optional level name or number applied to the root logger
        verbose: Shortcut for ``level="DEBUG"``

    Returns:
        Configured logger
    """
    root = logging.getLogger(_ROOT_NAME)

    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(handler)
        root.setLevel(logging.INFO)
        root.propagate = False

    if verbose:
        level = "DEBUG"
    if level is not None:
        if isinstance(level, str):
            level = getattr(logging, level.upper(), logging.INFO)
        root.setLevel(level)

    if name == _ROOT_NAME or name.startswith(_ROOT_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT_NAME}.{name}")
