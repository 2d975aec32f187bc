from __future__ import annotations

import uuid
from datetime import datetime, timezone


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _generate_id(prefix: str) -> str:
    """Short human-friendly identifier: ``<prefix>-<12hex>``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"
