# procurement/services/winner_flagging_service.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Tuple

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from procurement.models.bid import Bid
from procurement.models.disqualification import Disqualification
from procurement.models.process import PurchaseProcess
from procurement.models.selection import Selection
from procurement.models.selection_item import SelectionItem
from procurement.services.ranking import (
    BidEntry,
    DisqualificationEntry,
    ItemInfo,
    RankingResult,
    build_result,
    parse_criterion,
)

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc)


class WinnerFlaggingService:
    # -------------------------
    # INPUTS
    # -------------------------
    def _load_bids(self, db: Session, selection_id: uuid.UUID) -> List[Bid]:
        return list(
            db.execute(select(Bid).where(Bid.selection_id == selection_id))
            .scalars()
            .all()
        )

    def _load_active_disqualifications(
        self, db: Session, selection_id: uuid.UUID
    ) -> List[Disqualification]:
        return list(
            db.execute(
                select(Disqualification).where(
                    Disqualification.selection_id == selection_id,
                    Disqualification.reverted.is_(False),
                )
            )
            .scalars()
            .all()
        )

    def _load_items(self, db: Session, selection_id: uuid.UUID) -> List[SelectionItem]:
        return list(
            db.execute(
                select(SelectionItem).where(SelectionItem.selection_id == selection_id)
            )
            .scalars()
            .all()
        )

    def load_inputs(
        self, db: Session, selection: Selection
    ) -> Tuple[List[Bid], List[DisqualificationEntry], List[ItemInfo]]:
        bids = self._load_bids(db, selection.id)
        disq = [
            DisqualificationEntry.from_row(d)
            for d in self._load_active_disqualifications(db, selection.id)
        ]
        items = [ItemInfo.from_row(i) for i in self._load_items(db, selection.id)]
        return bids, disq, items

    def criterion_for(self, db: Session, selection: Selection):
        process = db.get(PurchaseProcess, selection.process_id)
        return parse_criterion(process.judgment_criterion if process else None)

    # -------------------------
    # READ-ONLY RESULT
    # -------------------------
    def compute(self, db: Session, *, selection: Selection) -> RankingResult:
        bids, disq, items = self.load_inputs(db, selection)
        return build_result(
            selection_id=selection.id,
            criterion=self.criterion_for(db, selection),
            ranking_version=selection.ranking_version,
            ranked_at=selection.ranked_at,
            bids=[BidEntry.from_row(b) for b in bids],
            disqualifications=disq,
            items=items,
        )

    # -------------------------
    # MAIN ENTRY
    # -------------------------
    def apply(self, db: Session, *, selection: Selection) -> RankingResult:
        """
        Re-rank and write ``is_winner`` back: clear every flag of the
        selection, then set it on the winner of each item.

        The caller must hold the selection row lock
        (SelectionService.get_selection_for_update) and commits; the pass
        joins the caller's transaction. When the flagged set already matches
        the ranking nothing is written and the version stays put.
        """
        bids, disq, items = self.load_inputs(db, selection)
        criterion = self.criterion_for(db, selection)

        result = build_result(
            selection_id=selection.id,
            criterion=criterion,
            ranking_version=selection.ranking_version,
            ranked_at=selection.ranked_at,
            bids=[BidEntry.from_row(b) for b in bids],
            disqualifications=disq,
            items=items,
        )

        winner_ids = {b.id for b in result.winners.values()}
        flagged_ids = {b.id for b in bids if b.is_winner}
        if winner_ids == flagged_ids:
            return result

        db.execute(
            update(Bid)
            .where(Bid.selection_id == selection.id)
            .values(is_winner=False)
        )
        if winner_ids:
            db.execute(
                update(Bid)
                .where(Bid.id.in_(list(winner_ids)))
                .values(is_winner=True)
            )

        selection.ranking_version = (selection.ranking_version or 0) + 1
        selection.ranked_at = _now()
        db.flush()

        result.ranking_version = selection.ranking_version
        result.ranked_at = selection.ranked_at

        logger.info(
            "winners flagged",
            extra={
                "selection_id": str(selection.id),
                "ranking_version": selection.ranking_version,
                "criterion": criterion.value,
                "winners": len(winner_ids),
                "unresolved_items": len(result.unresolved_items),
            },
        )
        return result
