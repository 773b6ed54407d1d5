# utils/logging.py
import logging
import os

from rich.console import Console
from rich.logging import RichHandler

LOG_LEVEL_ENV = "CRYPTO_ALLOCATOR_LOG_LEVEL"
_ROOT = "crypto_allocator"


def _configure_root() -> logging.Logger:
    root = logging.getLogger(_ROOT)
    if not root.handlers:
        handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        root.addHandler(handler)
        root.propagate = False
    level = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
    root.setLevel(getattr(logging, level, logging.WARNING))
    return root


def get_logger(name: str) -> logging.Logger:
    """Child logger under the project root, e.g. get_logger("cli")."""
    _configure_root()
    return logging.getLogger(f"{_ROOT}.{name}")
