from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite test databases)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def as_utc(dt: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything is stored as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt
