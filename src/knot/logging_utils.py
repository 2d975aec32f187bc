"""Configure the engine's loguru sink and render records for log lines."""

from __future__ import annotations

import json
import sys
from dataclasses import asdict, is_dataclass
from enum import Enum
from typing import Any

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{module}</cyan>:<cyan>{line}</cyan>\n"
    "{message}"
)


def configure_logging(level: str = "INFO", sink: Any = None) -> int:
    """Replace loguru's default handler with a single formatted sink.

    Args:
        level: Minimum level name (case-insensitive).
        sink: Destination accepted by ``logger.add``; defaults to stderr.

    Returns:
        The id of the new handler.
    """
    logger.remove()
    return logger.add(sink if sink is not None else sys.stderr, level=level.upper(), format=LOG_FORMAT)


def _jsonable(obj: Any) -> Any:
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    return str(obj)


def pretty(obj: Any) -> str:
    """Render *obj* as indented JSON, falling back to ``str`` for unknown types."""
    return json.dumps(obj, indent=2, sort_keys=True, default=_jsonable)
