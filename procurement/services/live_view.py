# procurement/services/live_view.py
"""
Live ranking view: one reactive subscription per connected client.

Each pass opens a short-lived session, closes expired countdowns, re-flags
winners and yields a snapshot. Passes are triggered by committed changes
(debounced) or by the periodic resync when nothing happens.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, AsyncIterator, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from procurement.core.change_feed import ChangeFeed, change_feed, debounced_changes
from procurement.schemas.ranking import ranking_payload
from procurement.services.ranking_service import RankingService

logger = logging.getLogger(__name__)


class LiveRankingView:
    def __init__(
        self,
        session_factory: Callable,
        *,
        feed: Optional[ChangeFeed] = None,
        debounce_seconds: float = 0.5,
        resync_seconds: float = 5.0,
    ):
        self.session_factory = session_factory
        self.feed = feed or change_feed
        self.debounce_seconds = debounce_seconds
        self.resync_seconds = resync_seconds

    def _pass(self, selection_id: uuid.UUID) -> Dict[str, Any]:
        db = self.session_factory()
        try:
            result = RankingService().refresh(db, selection_id=selection_id)
            return ranking_payload(result)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def snapshots(self, selection_id: uuid.UUID) -> AsyncIterator[Dict[str, Any]]:
        """
        Yields an initial snapshot, then one per trigger. A database error
        yields ``{"error": "transient", ...}`` and the stream carries on;
        the next trigger retries. A missing selection ends the stream.
        """
        sub = self.feed.subscribe(selection_id)
        changes = debounced_changes(
            sub,
            debounce_seconds=self.debounce_seconds,
            resync_seconds=self.resync_seconds,
        )
        try:
            trigger = "initial"
            while True:
                try:
                    payload = await run_in_threadpool(self._pass, selection_id)
                except ValueError as e:
                    logger.info(
                        "live view stopped",
                        extra={"selection_id": str(selection_id), "reason": str(e)},
                    )
                    return
                except SQLAlchemyError:
                    logger.exception(
                        "live ranking pass failed",
                        extra={"selection_id": str(selection_id), "trigger": trigger},
                    )
                    payload = {"error": "transient", "selection_id": str(selection_id)}
                else:
                    payload["trigger"] = trigger
                yield payload

                trigger = await changes.__anext__()
        finally:
            await changes.aclose()
            self.feed.unsubscribe(sub)
