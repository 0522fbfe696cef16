"""Logger setup shared by all cesta modules."""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}

_ROOT = "cesta"


def _coerce_level(value: str | None) -> int:
    if isinstance(value, str):
        return _LEVELS.get(value.upper().strip(), logging.WARNING)
    return logging.WARNING


def _configure_root() -> logging.Logger:
    root = logging.getLogger(_ROOT)
    if getattr(root, "_cesta_configured", False):
        return root

    level = _coerce_level(os.environ.get("LOG_LEVEL"))
    root.setLevel(level)

    # stderr keeps --json output on stdout parseable
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("[%(name)s] %(message)s"))
    root.addHandler(handler)

    log_file = os.environ.get("LOG_FILE")
    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError:
            root.warning("LOG_FILE %s could not be opened; logging to stderr only", log_file)
        else:
            file_handler.setLevel(level)
            file_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s [%(name)s] %(levelname)s: %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
            root.addHandler(file_handler)

    root.propagate = False
    setattr(root, "_cesta_configured", True)
    return root


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the configured ``cesta`` hierarchy.

    Honors LOG_LEVEL (default WARNING) and LOG_FILE (optional path).
    """
    _configure_root()
    if name == _ROOT or name.startswith(_ROOT + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT}.{name}")
