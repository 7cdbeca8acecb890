# procurement/models/bid.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

import sqlalchemy as sa
from sqlalchemy import (
    String,
    DateTime,
    Integer,
    Numeric,
    ForeignKey,
    CheckConstraint,
    Index,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from procurement.db.base import Base
from procurement.models.enums import BidType


def _now():
    return datetime.now(timezone.utc)


class Bid(Base):
    """
    A supplier's offer (price, or discount percentage) for one item.

    Append-only: every bid is kept as history. Only ``is_winner`` is ever
    rewritten, by the winner-flagging pass.
    """
    __tablename__ = "bids"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    selection_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("selections.id", ondelete="CASCADE"),
        nullable=False,
    )
    item_number: Mapped[int] = mapped_column(Integer, nullable=False)

    supplier_id: Mapped[str] = mapped_column(String(128), nullable=False)

    value: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False)

    bid_type: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=BidType.normal.value,
        server_default=text(f"'{BidType.normal.value}'"),
    )

    is_winner: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.false()
    )

    # client-independent ordering key for ties
    placed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, server_default=sa.func.now()
    )

    __table_args__ = (
        CheckConstraint("value > 0", name="ck_bids_value_positive"),
        Index("ix_bids_selection_item", "selection_id", "item_number"),
        Index("ix_bids_selection_supplier", "selection_id", "supplier_id"),
    )
