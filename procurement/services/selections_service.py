# procurement/services/selections_service.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement.core.change_feed import change_feed
from procurement.models.enums import JudgmentCriterion, SelectionStatus
from procurement.models.item_bidding_control import ItemBiddingControl
from procurement.models.process import PurchaseProcess
from procurement.models.selection import Selection
from procurement.models.selection_item import SelectionItem
from procurement.services.audit_service import AuditAction, AuditService
from procurement.services.winner_flagging_service import WinnerFlaggingService


def _now():
    return datetime.now(timezone.utc)


class SelectionService:
    # ---------------------------
    # READS
    # ---------------------------

    def get_process(self, db: Session, process_id: uuid.UUID) -> Optional[PurchaseProcess]:
        return db.get(PurchaseProcess, process_id)

    def get_selection(self, db: Session, selection_id: uuid.UUID) -> Optional[Selection]:
        return db.get(Selection, selection_id)

    def get_selection_for_update(
        self, db: Session, selection_id: uuid.UUID
    ) -> Optional[Selection]:
        """
        Lock the selection row (FOR UPDATE). Every mutation and every ranking
        pass of a selection goes through this lock, so they run one at a time.
        """
        return (
            db.execute(
                select(Selection)
                .where(Selection.id == selection_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            .scalars()
            .one_or_none()
        )

    def require_selection_for_update(
        self, db: Session, selection_id: uuid.UUID
    ) -> Selection:
        sel = self.get_selection_for_update(db, selection_id)
        if not sel:
            raise ValueError("Selection not found.")
        return sel

    def get_items(self, db: Session, selection_id: uuid.UUID) -> List[SelectionItem]:
        return list(
            db.execute(
                select(SelectionItem)
                .where(SelectionItem.selection_id == selection_id)
                .order_by(SelectionItem.item_number)
            )
            .scalars()
            .all()
        )

    def ensure_items_exist(
        self, db: Session, selection_id: uuid.UUID, item_numbers: List[int]
    ) -> None:
        known = {i.item_number for i in self.get_items(db, selection_id)}
        missing = sorted(set(item_numbers) - known)
        if missing:
            raise ValueError(
                f"Items not found in selection: {', '.join(str(n) for n in missing)}."
            )

    # ---------------------------
    # MUTATIONS
    # ---------------------------

    def create_process(
        self,
        db: Session,
        *,
        number: str,
        title: str,
        judgment_criterion: JudgmentCriterion,
        actor_id: str,
        request_id: Optional[str] = None,
    ) -> PurchaseProcess:
        existing = db.execute(
            select(PurchaseProcess).where(PurchaseProcess.number == number)
        ).scalar_one_or_none()
        if existing:
            raise ValueError(f"Purchase process {number} already exists.")

        row = PurchaseProcess(
            number=number,
            title=title,
            judgment_criterion=judgment_criterion.value,
        )
        db.add(row)
        db.flush()

        AuditService().write(
            db,
            selection_id=None,
            actor_id=actor_id,
            action=AuditAction.PROCESS_CREATED,
            request_id=request_id,
            details={
                "process_id": str(row.id),
                "number": number,
                "judgment_criterion": judgment_criterion.value,
            },
        )
        db.commit()
        db.refresh(row)
        return row

    def create_selection(
        self,
        db: Session,
        *,
        process_id: uuid.UUID,
        title: str,
        items: List[Dict[str, Any]],
        actor_id: str,
        request_id: Optional[str] = None,
    ) -> Selection:
        if not self.get_process(db, process_id):
            raise ValueError("Purchase process not found.")
        if not items:
            raise ValueError("A selection must have at least one item.")

        numbers = [int(i["item_number"]) for i in items]
        if len(numbers) != len(set(numbers)):
            raise ValueError("Item numbers must be unique within a selection.")

        sel = Selection(
            process_id=process_id,
            title=title,
            status=SelectionStatus.draft.value,
        )
        for i in items:
            sel.items.append(
                SelectionItem(
                    item_number=int(i["item_number"]),
                    description=i["description"],
                    quantity=i["quantity"],
                    unit=i["unit"],
                    lot_number=i.get("lot_number"),
                )
            )
        db.add(sel)
        db.flush()

        AuditService().write(
            db,
            selection_id=sel.id,
            actor_id=actor_id,
            action=AuditAction.SELECTION_CREATED,
            request_id=request_id,
            details={"process_id": str(process_id), "items": sorted(numbers)},
        )
        db.commit()
        db.refresh(sel)
        return sel

    def finalize_session(
        self,
        db: Session,
        *,
        selection_id: uuid.UUID,
        actor_id: str,
        request_id: Optional[str] = None,
    ) -> Selection:
        """
        FINAL operation:
        - flags winners one last time
        - closes every item (including open negotiations)
        - marks the selection finalized; later bids are rejected
        """
        sel = self.require_selection_for_update(db, selection_id)
        if sel.status == SelectionStatus.finalized.value:
            raise ValueError("Selection session is already finalized.")

        result = WinnerFlaggingService().apply(db, selection=sel)

        now = _now()
        controls = (
            db.execute(
                select(ItemBiddingControl).where(
                    ItemBiddingControl.selection_id == selection_id
                )
            )
            .scalars()
            .all()
        )
        for c in controls:
            if c.is_open:
                c.is_open = False
                c.closed_at = now
            c.closing_started_at = None
            c.seconds_to_close = None
            if c.in_negotiation:
                c.in_negotiation = False
                c.negotiation_concluded = True

        sel.status = SelectionStatus.finalized.value
        sel.finalized_at = now

        AuditService().write(
            db,
            selection_id=selection_id,
            actor_id=actor_id,
            action=AuditAction.SESSION_FINALIZED,
            request_id=request_id,
            details={
                "ranking_version": result.ranking_version,
                "winners": {str(n): str(b.id) for n, b in result.winners.items()},
                "unresolved_items": result.unresolved_items,
            },
        )
        db.commit()
        db.refresh(sel)

        change_feed.publish(selection_id, "selections")
        return sel
