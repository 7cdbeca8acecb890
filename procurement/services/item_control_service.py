# procurement/services/item_control_service.py
from __future__ import annotations

import logging
import random
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement.core.change_feed import change_feed
from procurement.core.deps import SYSTEM_ACTOR
from procurement.db.types import as_utc
from procurement.models.enums import SelectionStatus
from procurement.models.item_bidding_control import ItemBiddingControl
from procurement.models.selection import Selection
from procurement.models.selection_item import SelectionItem
from procurement.services.audit_service import AuditAction, AuditService
from procurement.services.selections_service import SelectionService
from procurement.services.winner_flagging_service import WinnerFlaggingService

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc)


def closing_deadline(control: ItemBiddingControl) -> Optional[datetime]:
    if control.closing_started_at is None or control.seconds_to_close is None:
        return None
    return as_utc(control.closing_started_at) + timedelta(seconds=control.seconds_to_close)


def countdown_expired(control: ItemBiddingControl, now: datetime) -> bool:
    deadline = closing_deadline(control)
    return bool(control.is_open and deadline is not None and deadline <= now)


class ItemControlService:
    # ---------------------------
    # READS
    # ---------------------------

    def get_control(
        self, db: Session, selection_id: uuid.UUID, item_number: int
    ) -> Optional[ItemBiddingControl]:
        return db.execute(
            select(ItemBiddingControl).where(
                ItemBiddingControl.selection_id == selection_id,
                ItemBiddingControl.item_number == item_number,
            )
        ).scalar_one_or_none()

    def list_items(
        self, db: Session, selection_id: uuid.UUID
    ) -> List[Tuple[SelectionItem, Optional[ItemBiddingControl]]]:
        if not SelectionService().get_selection(db, selection_id):
            raise ValueError("Selection not found.")

        controls = {
            c.item_number: c
            for c in db.execute(
                select(ItemBiddingControl).where(
                    ItemBiddingControl.selection_id == selection_id
                )
            )
            .scalars()
            .all()
        }
        return [
            (item, controls.get(item.item_number))
            for item in SelectionService().get_items(db, selection_id)
        ]

    # ---------------------------
    # helpers
    # ---------------------------

    def _get_or_create(
        self, db: Session, selection_id: uuid.UUID, item_number: int
    ) -> ItemBiddingControl:
        row = self.get_control(db, selection_id, item_number)
        if row is None:
            row = ItemBiddingControl(
                selection_id=selection_id,
                item_number=item_number,
                is_open=False,
                in_negotiation=False,
                negotiation_concluded=False,
                skip_negotiation=False,
            )
            db.add(row)
            db.flush()
        return row

    def _lock_active_selection(self, db: Session, selection_id: uuid.UUID) -> Selection:
        sel = SelectionService().require_selection_for_update(db, selection_id)
        if sel.status == SelectionStatus.finalized.value:
            raise ValueError("Selection session is finalized; items cannot change.")
        return sel

    def _close(self, control: ItemBiddingControl, now: datetime) -> None:
        control.is_open = False
        control.closed_at = now
        control.closing_started_at = None
        control.seconds_to_close = None

    # ---------------------------
    # BIDDING WINDOW
    # ---------------------------

    def open_items(
        self,
        db: Session,
        *,
        selection_id: uuid.UUID,
        item_numbers: List[int],
        actor_id: str,
        request_id: Optional[str] = None,
    ) -> List[ItemBiddingControl]:
        """
        Opens (or reopens) items for normal bids. The first opening moves the
        selection from draft to in_progress.
        """
        sel = self._lock_active_selection(db, selection_id)
        SelectionService().ensure_items_exist(db, selection_id, item_numbers)

        rows = []
        for n in sorted(set(item_numbers)):
            c = self._get_or_create(db, selection_id, n)
            c.is_open = True
            c.closed_at = None
            c.closing_started_at = None
            c.seconds_to_close = None
            rows.append(c)

        if sel.status == SelectionStatus.draft.value:
            sel.status = SelectionStatus.in_progress.value

        AuditService().write(
            db,
            selection_id=selection_id,
            actor_id=actor_id,
            action=AuditAction.ITEMS_OPENED,
            request_id=request_id,
            details={"items": [c.item_number for c in rows]},
        )
        db.commit()
        change_feed.publish(selection_id, "item_bidding_controls")
        return rows

    def close_items(
        self,
        db: Session,
        *,
        selection_id: uuid.UUID,
        item_numbers: List[int],
        actor_id: str,
        request_id: Optional[str] = None,
    ) -> List[ItemBiddingControl]:
        self._lock_active_selection(db, selection_id)
        SelectionService().ensure_items_exist(db, selection_id, item_numbers)

        now = _now()
        rows = []
        for n in sorted(set(item_numbers)):
            c = self._get_or_create(db, selection_id, n)
            self._close(c, now)
            rows.append(c)

        AuditService().write(
            db,
            selection_id=selection_id,
            actor_id=actor_id,
            action=AuditAction.ITEMS_CLOSED,
            request_id=request_id,
            details={"items": [c.item_number for c in rows]},
        )
        db.commit()
        change_feed.publish(selection_id, "item_bidding_controls")
        return rows

    def start_closing(
        self,
        db: Session,
        *,
        selection_id: uuid.UUID,
        item_numbers: List[int],
        max_seconds: int,
        actor_id: str,
        request_id: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ) -> List[ItemBiddingControl]:
        """
        Starts a random countdown of 0..max_seconds per item; suppliers are
        not told when the item closes.
        """
        self._lock_active_selection(db, selection_id)
        SelectionService().ensure_items_exist(db, selection_id, item_numbers)
        rng = rng or random.Random()

        numbers = sorted(set(item_numbers))
        for n in numbers:
            c = self.get_control(db, selection_id, n)
            if c is None or not c.is_open:
                raise ValueError(f"Item {n} is not open for bidding.")

        now = _now()
        rows = []
        for n in numbers:
            c = self.get_control(db, selection_id, n)
            c.closing_started_at = now
            c.seconds_to_close = rng.randint(0, max_seconds)
            rows.append(c)

        AuditService().write(
            db,
            selection_id=selection_id,
            actor_id=actor_id,
            action=AuditAction.ITEM_CLOSING_STARTED,
            request_id=request_id,
            details={"items": {str(c.item_number): c.seconds_to_close for c in rows}},
        )
        db.commit()
        change_feed.publish(selection_id, "item_bidding_controls")
        return rows

    def close_expired(
        self,
        db: Session,
        *,
        selection_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> List[int]:
        """Closes every item whose countdown has run out. Returns their numbers."""
        now = now or _now()
        candidates = (
            db.execute(
                select(ItemBiddingControl).where(
                    ItemBiddingControl.selection_id == selection_id,
                    ItemBiddingControl.is_open.is_(True),
                    ItemBiddingControl.closing_started_at.is_not(None),
                )
            )
            .scalars()
            .all()
        )
        if not any(countdown_expired(c, now) for c in candidates):
            return []

        SelectionService().require_selection_for_update(db, selection_id)
        closed = []
        for c in candidates:
            db.refresh(c)
            if countdown_expired(c, now):
                self._close(c, now)
                closed.append(c.item_number)

        if closed:
            AuditService().write(
                db,
                selection_id=selection_id,
                actor_id=SYSTEM_ACTOR,
                action=AuditAction.ITEMS_AUTO_CLOSED,
                details={"items": closed},
            )
            logger.info(
                "items closed by countdown",
                extra={"selection_id": str(selection_id), "items": closed},
            )
        db.commit()
        if closed:
            change_feed.publish(selection_id, "item_bidding_controls")
        return closed

    # ---------------------------
    # NEGOTIATION
    # ---------------------------

    def begin_negotiation(
        self, db: Session, *, selection_id: uuid.UUID, item_number: int, supplier_id: str
    ) -> ItemBiddingControl:
        """Puts the item in negotiation with ``supplier_id``. Caller holds the lock and commits."""
        c = self._get_or_create(db, selection_id, item_number)
        c.is_open = True
        c.closed_at = None
        c.closing_started_at = None
        c.seconds_to_close = None
        c.in_negotiation = True
        c.negotiation_supplier_id = supplier_id
        c.negotiation_concluded = False
        c.skip_negotiation = False
        return c

    def end_without_negotiation(
        self, db: Session, *, selection_id: uuid.UUID, item_number: int
    ) -> ItemBiddingControl:
        """Closes the item and marks it as not negotiated. Caller holds the lock and commits."""
        c = self._get_or_create(db, selection_id, item_number)
        self._close(c, _now())
        c.in_negotiation = False
        c.negotiation_supplier_id = None
        c.skip_negotiation = True
        c.negotiation_concluded = True
        return c

    def open_negotiation(
        self,
        db: Session,
        *,
        selection_id: uuid.UUID,
        item_number: int,
        actor_id: str,
        request_id: Optional[str] = None,
    ) -> ItemBiddingControl:
        """Opens negotiation with the item's current leader."""
        sel = self._lock_active_selection(db, selection_id)
        SelectionService().ensure_items_exist(db, selection_id, [item_number])

        result = WinnerFlaggingService().apply(db, selection=sel)
        leader = result.winners.get(item_number)
        if leader is None:
            raise ValueError(f"Item {item_number} has no eligible bid to negotiate.")

        c = self.begin_negotiation(
            db,
            selection_id=selection_id,
            item_number=item_number,
            supplier_id=leader.supplier_id,
        )

        AuditService().write(
            db,
            selection_id=selection_id,
            actor_id=actor_id,
            action=AuditAction.NEGOTIATION_OPENED,
            request_id=request_id,
            details={"item": item_number, "supplier_id": leader.supplier_id},
        )
        db.commit()
        change_feed.publish(selection_id, "item_bidding_controls")
        return c

    def close_negotiation(
        self,
        db: Session,
        *,
        selection_id: uuid.UUID,
        item_number: int,
        actor_id: str,
        request_id: Optional[str] = None,
    ) -> ItemBiddingControl:
        self._lock_active_selection(db, selection_id)
        c = self.get_control(db, selection_id, item_number)
        if c is None or not c.in_negotiation:
            raise ValueError(f"Item {item_number} is not in negotiation.")

        self._close(c, _now())
        c.in_negotiation = False
        c.negotiation_concluded = True

        AuditService().write(
            db,
            selection_id=selection_id,
            actor_id=actor_id,
            action=AuditAction.NEGOTIATION_CLOSED,
            request_id=request_id,
            details={"item": item_number, "supplier_id": c.negotiation_supplier_id},
        )
        db.commit()
        change_feed.publish(selection_id, "item_bidding_controls")
        return c

    def skip_negotiation(
        self,
        db: Session,
        *,
        selection_id: uuid.UUID,
        item_number: int,
        actor_id: str,
        request_id: Optional[str] = None,
    ) -> ItemBiddingControl:
        self._lock_active_selection(db, selection_id)
        SelectionService().ensure_items_exist(db, selection_id, [item_number])

        c = self._get_or_create(db, selection_id, item_number)
        if c.in_negotiation:
            raise ValueError(f"Item {item_number} is in negotiation; close it instead.")
        c.skip_negotiation = True
        c.negotiation_concluded = True

        AuditService().write(
            db,
            selection_id=selection_id,
            actor_id=actor_id,
            action=AuditAction.NEGOTIATION_SKIPPED,
            request_id=request_id,
            details={"item": item_number},
        )
        db.commit()
        change_feed.publish(selection_id, "item_bidding_controls")
        return c
