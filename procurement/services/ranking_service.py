# procurement/services/ranking_service.py
from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy.orm import Session

from procurement.services.audit_service import AuditAction, AuditService
from procurement.services.item_control_service import ItemControlService
from procurement.services.ranking import RankingResult
from procurement.services.selections_service import SelectionService
from procurement.services.winner_flagging_service import WinnerFlaggingService


class RankingService:
    def __init__(self):
        self.flagging = WinnerFlaggingService()

    def run(
        self,
        db: Session,
        *,
        selection_id: uuid.UUID,
        actor_id: str,
        request_id: Optional[str] = None,
    ) -> RankingResult:
        """Explicit operator run. Always audited, even when no flag changed."""
        sel = SelectionService().require_selection_for_update(db, selection_id)
        result = self.flagging.apply(db, selection=sel)

        AuditService().write(
            db,
            selection_id=selection_id,
            actor_id=actor_id,
            action=AuditAction.RANKING_RUN,
            request_id=request_id,
            details={
                "criterion": result.criterion.value,
                "ranking_version": result.ranking_version,
                "winners": {str(n): str(b.id) for n, b in result.winners.items()},
                "unresolved_items": result.unresolved_items,
            },
        )
        db.commit()
        return result

    def snapshot(self, db: Session, *, selection_id: uuid.UUID) -> RankingResult:
        """Read-only view of the current ranking; writes nothing."""
        sel = SelectionService().get_selection(db, selection_id)
        if not sel:
            raise ValueError("Selection not found.")
        return self.flagging.compute(db, selection=sel)

    def refresh(self, db: Session, *, selection_id: uuid.UUID) -> RankingResult:
        """
        One live-view pass: close expired countdowns, re-flag, commit.
        Idempotent; the version moves only when the winners change.
        """
        ItemControlService().close_expired(db, selection_id=selection_id)
        sel = SelectionService().require_selection_for_update(db, selection_id)
        result = self.flagging.apply(db, selection=sel)
        db.commit()
        return result
