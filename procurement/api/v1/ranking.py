# procurement/api/v1/ranking.py
from __future__ import annotations

import json
import uuid
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from procurement.core.config import get_settings
from procurement.core.deps import get_actor_id, get_request_id
from procurement.core.errors import http_error_from
from procurement.db.session import get_db, get_session_factory
from procurement.schemas.ranking import RankingResponse, ranking_response
from procurement.services.live_view import LiveRankingView
from procurement.services.ranking_service import RankingService
from procurement.services.selections_service import SelectionService

router = APIRouter(prefix="/selections/{selection_id}/ranking")


@router.post("/run", response_model=RankingResponse)
def run_ranking(
    selection_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
    request_id: str = Depends(get_request_id),
):
    try:
        result = RankingService().run(
            db, selection_id=selection_id, actor_id=actor_id, request_id=request_id
        )
    except ValueError as e:
        raise http_error_from(e)
    return ranking_response(result)


@router.get("", response_model=RankingResponse)
def get_ranking(selection_id: uuid.UUID, db: Session = Depends(get_db)):
    """Read-only; persisted flags may lag until the next pass."""
    try:
        result = RankingService().snapshot(db, selection_id=selection_id)
    except ValueError as e:
        raise http_error_from(e)
    return ranking_response(result)


# ---------------------------------------------------------------------
# GET /selections/{id}/ranking/stream  (Server-Sent Events)
# ---------------------------------------------------------------------


def sse_event(event: str, data: dict) -> bytes:
    return f"event: {event}\ndata: {json.dumps(data, separators=(',', ':'))}\n\n".encode(
        "utf-8"
    )


def _selection_exists(session_factory: sessionmaker, selection_id: uuid.UUID) -> bool:
    db = session_factory()
    try:
        return SelectionService().get_selection(db, selection_id) is not None
    finally:
        db.close()


@router.get("/stream")
async def stream_ranking(
    request: Request,
    selection_id: uuid.UUID,
    session_factory: sessionmaker = Depends(get_session_factory),
):
    if not await run_in_threadpool(_selection_exists, session_factory, selection_id):
        raise HTTPException(status_code=404, detail="Selection not found.")

    settings = get_settings()
    view = LiveRankingView(
        session_factory,
        debounce_seconds=settings.live_debounce_seconds,
        resync_seconds=settings.live_resync_seconds,
    )

    async def events() -> AsyncIterator[bytes]:
        async for payload in view.snapshots(selection_id):
            if await request.is_disconnected():
                break
            name = "error" if "error" in payload else "ranking"
            yield sse_event(name, payload)

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
