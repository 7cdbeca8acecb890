# procurement/models/process.py
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, Uuid, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement.db.base import Base


class PurchaseProcess(Base):
    __tablename__ = "purchase_processes"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    number: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(512), nullable=False)

    # Raw value as stored; parsed (with logged fallback) by the ranking layer.
    judgment_criterion: Mapped[str] = mapped_column(String(32), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    selections = relationship("Selection", back_populates="process")

    __table_args__ = (
        UniqueConstraint("number", name="uq_purchase_process_number"),
    )
