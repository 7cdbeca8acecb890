# procurement/services/bids_service.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement.core.change_feed import change_feed
from procurement.core.deps import normalize_supplier_id
from procurement.models.bid import Bid
from procurement.models.enums import BidType, JudgmentCriterion, SelectionStatus
from procurement.services.audit_service import AuditAction, AuditService
from procurement.services.item_control_service import ItemControlService, countdown_expired
from procurement.services.selections_service import SelectionService
from procurement.services.winner_flagging_service import WinnerFlaggingService

logger = logging.getLogger(__name__)

MAX_DISCOUNT_PERCENT = Decimal("100")


def _now():
    return datetime.now(timezone.utc)


class BidService:
    """
    Bid submission and operator removal.

    Every accepted or removed bid re-flags winners inside the same locked
    transaction, then notifies live viewers after commit.
    """

    def __init__(self):
        self.items = ItemControlService()
        self.flagging = WinnerFlaggingService()

    # ---------------------------
    # READS
    # ---------------------------

    def list_bids(
        self,
        db: Session,
        *,
        selection_id: uuid.UUID,
        item_number: Optional[int] = None,
        supplier_id: Optional[str] = None,
    ) -> List[Bid]:
        if not SelectionService().get_selection(db, selection_id):
            raise ValueError("Selection not found.")

        q = select(Bid).where(Bid.selection_id == selection_id)
        if item_number is not None:
            q = q.where(Bid.item_number == item_number)
        if supplier_id is not None:
            q = q.where(Bid.supplier_id == supplier_id)
        q = q.order_by(Bid.item_number.asc(), Bid.placed_at.asc())
        return list(db.execute(q).scalars().all())

    # ---------------------------
    # WRITE
    # ---------------------------

    def _reject(self, selection_id: uuid.UUID, item_number: int, supplier_id: str, why: str):
        logger.warning(
            "bid rejected",
            extra={
                "selection_id": str(selection_id),
                "item_number": item_number,
                "supplier_id": supplier_id,
                "reason": why,
            },
        )

    def place_bid(
        self,
        db: Session,
        *,
        selection_id: uuid.UUID,
        item_number: int,
        supplier_id: str,
        value: Decimal,
        bid_type: BidType = BidType.normal,
        actor_id: str,
        request_id: Optional[str] = None,
    ) -> Bid:
        supplier_id = normalize_supplier_id(supplier_id)
        sel = SelectionService().require_selection_for_update(db, selection_id)
        if sel.status == SelectionStatus.finalized.value:
            self._reject(selection_id, item_number, supplier_id, "finalized")
            raise ValueError("Selection session is finalized; bids are not accepted.")

        SelectionService().ensure_items_exist(db, selection_id, [item_number])

        value = Decimal(str(value))
        if value <= 0:
            raise ValueError("Bid value must be greater than zero.")
        criterion = self.flagging.criterion_for(db, sel)
        if criterion == JudgmentCriterion.DESCONTO and value > MAX_DISCOUNT_PERCENT:
            raise ValueError("Discount bid must not exceed 100 percent.")

        control = self.items.get_control(db, selection_id, item_number)

        if bid_type == BidType.normal:
            if control is None or not control.is_open:
                self._reject(selection_id, item_number, supplier_id, "item closed")
                raise ValueError(f"Item {item_number} is not open for bidding.")
            if control.in_negotiation:
                self._reject(selection_id, item_number, supplier_id, "in negotiation")
                raise ValueError(
                    f"Item {item_number} is in negotiation; only negotiation bids are accepted."
                )
            if countdown_expired(control, _now()):
                # the window ran out before anyone closed it
                db.rollback()
                self.items.close_expired(db, selection_id=selection_id)
                self._reject(selection_id, item_number, supplier_id, "countdown expired")
                raise ValueError(f"Item {item_number} bidding window has closed.")
        else:
            if control is None or not control.in_negotiation:
                self._reject(selection_id, item_number, supplier_id, "no negotiation")
                raise ValueError(f"Item {item_number} is not in negotiation.")
            if control.negotiation_supplier_id != supplier_id:
                self._reject(selection_id, item_number, supplier_id, "not negotiation supplier")
                raise PermissionError(
                    f"Only the negotiating supplier may bid on item {item_number}."
                )

        row = Bid(
            selection_id=selection_id,
            item_number=item_number,
            supplier_id=supplier_id,
            value=value,
            bid_type=bid_type.value,
            is_winner=False,
            placed_at=_now(),
        )
        db.add(row)
        db.flush()

        result = self.flagging.apply(db, selection=sel)

        AuditService().write(
            db,
            selection_id=selection_id,
            actor_id=actor_id,
            action=AuditAction.BID_PLACED,
            request_id=request_id,
            details={
                "bid_id": str(row.id),
                "item": item_number,
                "supplier_id": supplier_id,
                "value": str(value),
                "bid_type": bid_type.value,
                "ranking_version": result.ranking_version,
            },
        )
        db.commit()
        db.refresh(row)

        change_feed.publish(selection_id, "bids")
        return row

    def delete_bid(
        self,
        db: Session,
        *,
        selection_id: uuid.UUID,
        bid_id: uuid.UUID,
        actor_id: str,
        request_id: Optional[str] = None,
    ) -> None:
        """Operator removal of a mistaken bid."""
        sel = SelectionService().require_selection_for_update(db, selection_id)
        if sel.status == SelectionStatus.finalized.value:
            raise ValueError("Selection session is finalized; bids cannot be removed.")

        row = db.get(Bid, bid_id)
        if not row or row.selection_id != selection_id:
            raise ValueError("Bid not found.")

        snapshot = {
            "bid_id": str(row.id),
            "item": row.item_number,
            "supplier_id": row.supplier_id,
            "value": str(row.value),
            "bid_type": row.bid_type,
            "was_winner": bool(row.is_winner),
        }
        db.delete(row)
        db.flush()

        result = self.flagging.apply(db, selection=sel)
        snapshot["ranking_version"] = result.ranking_version

        AuditService().write(
            db,
            selection_id=selection_id,
            actor_id=actor_id,
            action=AuditAction.BID_DELETED,
            request_id=request_id,
            details=snapshot,
        )
        db.commit()

        change_feed.publish(selection_id, "bids")
