from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s:%(name)s: %(message)s"


# PUBLIC_INTERFACE
def configure_logging(level: str = "INFO") -> None:
    """
    Install one stdout handler on the root logger and set its level.

    Calling it again only updates the level, so building several apps in one
    process does not duplicate log lines.

    Args:
        level: Level name such as "DEBUG" or "INFO". Unknown names fall back to INFO.
    """
    root = logging.getLogger()
    if not any(getattr(h, "_todo_service", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._todo_service = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    resolved = logging.getLevelName(level.upper())
    root.setLevel(resolved if isinstance(resolved, int) else logging.INFO)
