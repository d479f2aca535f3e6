from __future__ import annotations

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s"


def _level(value: object, fallback: int) -> int:
    if isinstance(value, int):
        return value
    return getattr(logging, str(value).upper(), fallback)


def configure_logging(level: object = "INFO", module_levels: Optional[dict[str, object]] = None) -> None:
    """Install one stderr handler on the root logger, replacing any previous ones."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.setLevel(_level(level, logging.INFO))
    root.handlers.clear()
    root.addHandler(handler)

    for name, module_level in (module_levels or {}).items():
        logging.getLogger(name).setLevel(_level(module_level, logging.INFO))
