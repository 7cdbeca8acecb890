# procurement/services/disqualification_service.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement.core.change_feed import change_feed
from procurement.core.deps import normalize_supplier_id
from procurement.models.disqualification import Disqualification
from procurement.models.enums import SelectionStatus
from procurement.models.selection import Selection
from procurement.services.audit_service import AuditAction, AuditService
from procurement.services.item_control_service import ItemControlService
from procurement.services.selections_service import SelectionService
from procurement.services.winner_flagging_service import WinnerFlaggingService

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc)


def _require_reason(reason: Optional[str], what: str) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise ValueError(f"A reason must be given to {what}.")
    return reason


class DisqualificationService:
    """
    Reviewer decisions after the documentary analysis.

    A disqualification only bars the supplier from the listed items. Records
    are soft-reverted, never deleted, so the trail of who excluded whom stays
    intact.
    """

    def __init__(self):
        self.flagging = WinnerFlaggingService()
        self.items = ItemControlService()

    # ---------------------------
    # READS
    # ---------------------------

    def list(
        self,
        db: Session,
        *,
        selection_id: uuid.UUID,
        include_reverted: bool = False,
    ) -> List[Disqualification]:
        if not SelectionService().get_selection(db, selection_id):
            raise ValueError("Selection not found.")

        q = select(Disqualification).where(Disqualification.selection_id == selection_id)
        if not include_reverted:
            q = q.where(Disqualification.reverted.is_(False))
        q = q.order_by(Disqualification.created_at.asc())
        return list(db.execute(q).scalars().all())

    # ---------------------------
    # helpers
    # ---------------------------

    def _lock_record(self, db: Session, disqualification_id: uuid.UUID):
        row = db.get(Disqualification, disqualification_id)
        if not row:
            raise ValueError("Disqualification not found.")
        sel = SelectionService().require_selection_for_update(db, row.selection_id)
        # re-read under the selection lock
        db.refresh(row)
        if row.reverted:
            raise ValueError("Disqualification is already reverted.")
        return sel, row

    def _reopen_for_negotiation(
        self, db: Session, *, selection: Selection, item_numbers: List[int], result
    ) -> Dict[str, Optional[str]]:
        """
        Hands each affected item to its new leader for negotiation. Items left
        without an eligible bid are closed with negotiation skipped.
        """
        outcome: Dict[str, Optional[str]] = {}
        for n in item_numbers:
            leader = result.winners.get(n)
            if leader is not None:
                self.items.begin_negotiation(
                    db,
                    selection_id=selection.id,
                    item_number=n,
                    supplier_id=leader.supplier_id,
                )
                outcome[str(n)] = leader.supplier_id
            else:
                self.items.end_without_negotiation(
                    db, selection_id=selection.id, item_number=n
                )
                outcome[str(n)] = None
        return outcome

    # ---------------------------
    # MUTATIONS
    # ---------------------------

    def disqualify(
        self,
        db: Session,
        *,
        selection_id: uuid.UUID,
        supplier_id: str,
        item_numbers: List[int],
        reason: str,
        actor_id: str,
        reopen_negotiation: bool = False,
        request_id: Optional[str] = None,
    ) -> Disqualification:
        supplier_id = normalize_supplier_id(supplier_id)
        reason = _require_reason(reason, "disqualify a supplier")
        if not item_numbers:
            raise ValueError("At least one item must be given.")

        sel = SelectionService().require_selection_for_update(db, selection_id)
        SelectionService().ensure_items_exist(db, selection_id, item_numbers)
        if reopen_negotiation and sel.status == SelectionStatus.finalized.value:
            raise ValueError("Selection session is finalized; negotiation cannot reopen.")

        numbers = sorted(set(int(n) for n in item_numbers))
        row = Disqualification(
            selection_id=selection_id,
            supplier_id=supplier_id,
            affected_item_numbers=numbers,
            reason=reason,
            created_by=actor_id,
            reverted=False,
        )
        db.add(row)
        db.flush()

        result = self.flagging.apply(db, selection=sel)

        details = {
            "disqualification_id": str(row.id),
            "supplier_id": supplier_id,
            "items": numbers,
            "reason": reason,
            "ranking_version": result.ranking_version,
        }
        if reopen_negotiation:
            details["negotiation"] = self._reopen_for_negotiation(
                db, selection=sel, item_numbers=numbers, result=result
            )

        AuditService().write(
            db,
            selection_id=selection_id,
            actor_id=actor_id,
            action=AuditAction.SUPPLIER_DISQUALIFIED,
            request_id=request_id,
            details=details,
        )
        db.commit()
        db.refresh(row)

        logger.info(
            "supplier disqualified",
            extra={
                "selection_id": str(selection_id),
                "supplier_id": supplier_id,
                "items": numbers,
            },
        )
        change_feed.publish(selection_id, "disqualifications")
        return row

    def revert(
        self,
        db: Session,
        *,
        disqualification_id: uuid.UUID,
        reason: str,
        actor_id: str,
        request_id: Optional[str] = None,
    ) -> Disqualification:
        reason = _require_reason(reason, "revert a disqualification")
        sel, row = self._lock_record(db, disqualification_id)

        row.reverted = True
        row.revert_reason = reason
        row.reverted_by = actor_id
        row.reverted_at = _now()
        db.flush()

        result = self.flagging.apply(db, selection=sel)

        AuditService().write(
            db,
            selection_id=sel.id,
            actor_id=actor_id,
            action=AuditAction.DISQUALIFICATION_REVERTED,
            request_id=request_id,
            details={
                "disqualification_id": str(row.id),
                "supplier_id": row.supplier_id,
                "reason": reason,
                "ranking_version": result.ranking_version,
            },
        )
        db.commit()
        db.refresh(row)

        change_feed.publish(sel.id, "disqualifications")
        return row

    def reinstate_items(
        self,
        db: Session,
        *,
        disqualification_id: uuid.UUID,
        item_numbers: List[int],
        reason: str,
        actor_id: str,
        request_id: Optional[str] = None,
    ) -> Disqualification:
        """
        Partial appeal: the supplier competes again for ``item_numbers``.
        Reinstating the last item reverts the whole record.
        """
        reason = _require_reason(reason, "reinstate items")
        if not item_numbers:
            raise ValueError("At least one item must be given.")

        sel, row = self._lock_record(db, disqualification_id)

        current = set(int(n) for n in (row.affected_item_numbers or []))
        requested = set(int(n) for n in item_numbers)
        unknown = sorted(requested - current)
        if unknown:
            raise ValueError(
                "Items are not part of this disqualification: "
                f"{', '.join(str(n) for n in unknown)}."
            )

        remaining = sorted(current - requested)
        # reassign, JSON columns do not track in-place mutation
        row.affected_item_numbers = remaining
        if not remaining:
            row.reverted = True
            row.revert_reason = reason
            row.reverted_by = actor_id
            row.reverted_at = _now()
        db.flush()

        result = self.flagging.apply(db, selection=sel)

        AuditService().write(
            db,
            selection_id=sel.id,
            actor_id=actor_id,
            action=AuditAction.ITEMS_REINSTATED,
            request_id=request_id,
            details={
                "disqualification_id": str(row.id),
                "supplier_id": row.supplier_id,
                "reinstated": sorted(requested),
                "remaining": remaining,
                "reverted": row.reverted,
                "reason": reason,
                "ranking_version": result.ranking_version,
            },
        )
        db.commit()
        db.refresh(row)

        change_feed.publish(sel.id, "disqualifications")
        return row
