# procurement/api/v1/items.py
from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from procurement.core.config import get_settings
from procurement.core.deps import get_actor_id, get_request_id
from procurement.core.errors import http_error_from
from procurement.db.session import get_db
from procurement.schemas.items import ItemNumbersRequest, ItemStateResponse
from procurement.services.item_control_service import ItemControlService

router = APIRouter(prefix="/selections/{selection_id}/items")


def _states(db: Session, selection_id: uuid.UUID) -> List[ItemStateResponse]:
    return [
        ItemStateResponse.from_rows(item, control)
        for item, control in ItemControlService().list_items(db, selection_id)
    ]


@router.get("", response_model=List[ItemStateResponse])
def list_items(selection_id: uuid.UUID, db: Session = Depends(get_db)):
    try:
        return _states(db, selection_id)
    except ValueError as e:
        raise http_error_from(e)


# ---------------------------------------------------------------------
# bidding window
# ---------------------------------------------------------------------


@router.post("/open", response_model=List[ItemStateResponse])
def open_items(
    selection_id: uuid.UUID,
    body: ItemNumbersRequest,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
    request_id: str = Depends(get_request_id),
):
    try:
        ItemControlService().open_items(
            db,
            selection_id=selection_id,
            item_numbers=body.item_numbers,
            actor_id=actor_id,
            request_id=request_id,
        )
        return _states(db, selection_id)
    except ValueError as e:
        raise http_error_from(e)


@router.post("/close", response_model=List[ItemStateResponse])
def close_items(
    selection_id: uuid.UUID,
    body: ItemNumbersRequest,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
    request_id: str = Depends(get_request_id),
):
    try:
        ItemControlService().close_items(
            db,
            selection_id=selection_id,
            item_numbers=body.item_numbers,
            actor_id=actor_id,
            request_id=request_id,
        )
        return _states(db, selection_id)
    except ValueError as e:
        raise http_error_from(e)


@router.post("/closing", response_model=List[ItemStateResponse])
def start_closing(
    selection_id: uuid.UUID,
    body: ItemNumbersRequest,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
    request_id: str = Depends(get_request_id),
):
    try:
        ItemControlService().start_closing(
            db,
            selection_id=selection_id,
            item_numbers=body.item_numbers,
            max_seconds=get_settings().closing_countdown_max_seconds,
            actor_id=actor_id,
            request_id=request_id,
        )
        return _states(db, selection_id)
    except ValueError as e:
        raise http_error_from(e)


# ---------------------------------------------------------------------
# negotiation
# ---------------------------------------------------------------------


@router.post("/{item_number}/negotiation/{action}", response_model=ItemStateResponse)
def negotiation(
    selection_id: uuid.UUID,
    item_number: int,
    action: str,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
    request_id: str = Depends(get_request_id),
):
    svc = ItemControlService()
    handlers = {
        "open": svc.open_negotiation,
        "close": svc.close_negotiation,
        "skip": svc.skip_negotiation,
    }
    handler = handlers.get(action)
    if handler is None:
        raise http_error_from(ValueError("Negotiation action not found."))

    try:
        handler(
            db,
            selection_id=selection_id,
            item_number=item_number,
            actor_id=actor_id,
            request_id=request_id,
        )
        states = {s.item_number: s for s in _states(db, selection_id)}
        return states[item_number]
    except ValueError as e:
        raise http_error_from(e)
