# procurement/models/selection_item.py
from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String,
    Integer,
    Numeric,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement.db.base import Base


class SelectionItem(Base):
    __tablename__ = "selection_items"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    selection_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("selections.id", ondelete="CASCADE"),
        nullable=False,
    )

    item_number: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(1024), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False)
    unit: Mapped[str] = mapped_column(String(32), nullable=False)

    # items without a lot are grouped together for per-lot totals
    lot_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    selection = relationship("Selection", back_populates="items")

    __table_args__ = (
        UniqueConstraint("selection_id", "item_number", name="uq_selection_item_number"),
        CheckConstraint("item_number > 0", name="ck_selection_item_number_positive"),
        CheckConstraint("quantity > 0", name="ck_selection_item_quantity_positive"),
    )
