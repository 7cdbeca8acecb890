# procurement/models/disqualification.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy import String, DateTime, ForeignKey, Index, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from procurement.db.base import Base
from procurement.db.types import JSONType


def _now():
    return datetime.now(timezone.utc)


class Disqualification(Base):
    """
    Reviewer decision excluding a supplier from winning specific items.
    Soft-revertible; rows are never deleted.
    """
    __tablename__ = "disqualifications"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    selection_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("selections.id", ondelete="CASCADE"),
        nullable=False,
    )
    supplier_id: Mapped[str] = mapped_column(String(128), nullable=False)

    # sorted list of item numbers
    affected_item_numbers: Mapped[List[int]] = mapped_column(
        JSONType, nullable=False, default=list
    )

    reason: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, server_default=sa.func.now()
    )

    reverted: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.false()
    )
    revert_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reverted_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    reverted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_disqualifications_active", "selection_id", "reverted"),
    )
