from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC now. All timestamp columns are stored as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
