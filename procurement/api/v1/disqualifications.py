# procurement/api/v1/disqualifications.py
from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from procurement.core.deps import get_actor_id, get_request_id
from procurement.core.errors import http_error_from
from procurement.db.session import get_db
from procurement.schemas.disqualifications import (
    DisqualificationCreate,
    DisqualificationResponse,
    ReinstateRequest,
    RevertRequest,
)
from procurement.services.disqualification_service import DisqualificationService

router = APIRouter()


@router.post(
    "/selections/{selection_id}/disqualifications",
    response_model=DisqualificationResponse,
    status_code=201,
)
def disqualify(
    selection_id: uuid.UUID,
    body: DisqualificationCreate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
    request_id: str = Depends(get_request_id),
):
    try:
        return DisqualificationService().disqualify(
            db,
            selection_id=selection_id,
            supplier_id=body.supplier_id,
            item_numbers=body.item_numbers,
            reason=body.reason,
            reopen_negotiation=body.reopen_negotiation,
            actor_id=actor_id,
            request_id=request_id,
        )
    except ValueError as e:
        raise http_error_from(e)


@router.get(
    "/selections/{selection_id}/disqualifications",
    response_model=List[DisqualificationResponse],
)
def list_disqualifications(
    selection_id: uuid.UUID,
    include_reverted: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    try:
        return DisqualificationService().list(
            db, selection_id=selection_id, include_reverted=include_reverted
        )
    except ValueError as e:
        raise http_error_from(e)


@router.post(
    "/disqualifications/{disqualification_id}/revert",
    response_model=DisqualificationResponse,
)
def revert(
    disqualification_id: uuid.UUID,
    body: RevertRequest,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
    request_id: str = Depends(get_request_id),
):
    try:
        return DisqualificationService().revert(
            db,
            disqualification_id=disqualification_id,
            reason=body.reason,
            actor_id=actor_id,
            request_id=request_id,
        )
    except ValueError as e:
        raise http_error_from(e)


@router.post(
    "/disqualifications/{disqualification_id}/reinstate",
    response_model=DisqualificationResponse,
)
def reinstate(
    disqualification_id: uuid.UUID,
    body: ReinstateRequest,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
    request_id: str = Depends(get_request_id),
):
    try:
        return DisqualificationService().reinstate_items(
            db,
            disqualification_id=disqualification_id,
            item_numbers=body.item_numbers,
            reason=body.reason,
            actor_id=actor_id,
            request_id=request_id,
        )
    except ValueError as e:
        raise http_error_from(e)
