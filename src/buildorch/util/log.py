from __future__ import annotations

import logging
import os

_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
_configured = False


def configure_logging(level: str | None = None) -> None:
    """Configure the root ``buildorch`` logger once.

    ``level`` wins over ``BUILDORCH_LOG_LEVEL``; default is WARNING so CLI
    output stays clean.
    """
    global _configured
    name = (level or os.getenv("BUILDORCH_LOG_LEVEL") or "WARNING").upper()
    root = logging.getLogger("buildorch")
    root.setLevel(getattr(logging, name, logging.WARNING))
    if _configured:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    if not name.startswith("buildorch"):
        name = f"buildorch.{name}"
    return logging.getLogger(name)
