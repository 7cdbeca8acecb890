from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement.core.hashing import canonical_dumps, sha256_hex
from procurement.models.audit_log import AuditLog


class AuditAction:
    # Processes / selections
    PROCESS_CREATED = "PROCESS_CREATED"
    SELECTION_CREATED = "SELECTION_CREATED"
    SESSION_FINALIZED = "SESSION_FINALIZED"

    # Item bidding windows
    ITEMS_OPENED = "ITEMS_OPENED"
    ITEMS_CLOSED = "ITEMS_CLOSED"
    ITEM_CLOSING_STARTED = "ITEM_CLOSING_STARTED"
    ITEMS_AUTO_CLOSED = "ITEMS_AUTO_CLOSED"
    NEGOTIATION_OPENED = "NEGOTIATION_OPENED"
    NEGOTIATION_CLOSED = "NEGOTIATION_CLOSED"
    NEGOTIATION_SKIPPED = "NEGOTIATION_SKIPPED"

    # Bids
    BID_PLACED = "BID_PLACED"
    BID_DELETED = "BID_DELETED"

    # Disqualifications
    SUPPLIER_DISQUALIFIED = "SUPPLIER_DISQUALIFIED"
    DISQUALIFICATION_REVERTED = "DISQUALIFICATION_REVERTED"
    ITEMS_REINSTATED = "ITEMS_REINSTATED"

    # Compute
    RANKING_RUN = "RANKING_RUN"


class AuditService:
    def write(
        self,
        db: Session,
        *,
        selection_id: Optional[uuid.UUID],
        actor_id: str,
        action: str,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        """
        Adds the record to the caller's transaction; the caller commits so the
        audit row and the audited change land together.
        """
        details = dict(details or {})
        row = AuditLog(
            selection_id=selection_id,
            actor_id=actor_id,
            action=action,
            request_id=request_id,
            payload_hash=sha256_hex(canonical_dumps(details)),
            details_json=details,
        )
        db.add(row)
        return row

    def list_for_selection(self, db: Session, selection_id: uuid.UUID) -> List[AuditLog]:
        return list(
            db.execute(
                select(AuditLog)
                .where(AuditLog.selection_id == selection_id)
                .order_by(AuditLog.created_at.asc())
            )
            .scalars()
            .all()
        )
