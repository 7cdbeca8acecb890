from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import String, DateTime, Index, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from procurement.db.base import Base
from procurement.db.types import JSONType


class AuditLog(Base):
    """
    Append-only audit trail (never UPDATE).
    Stores request-id, actor, selection scope, action and a payload hash with
    a safe summary of the details.
    """
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    selection_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)

    actor_id: Mapped[str] = mapped_column(String(128), nullable=False)
    action: Mapped[str] = mapped_column(String(96), nullable=False)

    request_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    payload_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    details_json: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_audit_selection", "selection_id"),
        Index("ix_audit_action", "action"),
        Index("ix_audit_created_at", "created_at"),
    )
