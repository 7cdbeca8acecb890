# procurement/models/selection.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Integer,
    ForeignKey,
    Index,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement.db.base import Base
from procurement.models.enums import SelectionStatus


class Selection(Base):
    __tablename__ = "selections"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    process_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("purchase_processes.id", ondelete="CASCADE"),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(512), nullable=False)

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=SelectionStatus.draft.value,
        server_default=text(f"'{SelectionStatus.draft.value}'"),
    )

    # bumped by every winner-flagging pass
    ranking_version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    ranked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    finalized_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    process = relationship("PurchaseProcess", back_populates="selections")

    items = relationship(
        "SelectionItem",
        back_populates="selection",
        cascade="all, delete-orphan",
        order_by="SelectionItem.item_number",
    )

    __table_args__ = (
        Index("ix_selections_process", "process_id"),
    )
