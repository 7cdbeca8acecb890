# procurement/api/v1/selections.py
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from procurement.core.deps import get_actor_id, get_request_id
from procurement.core.errors import http_error_from
from procurement.db.session import get_db
from procurement.schemas.selections import SelectionCreate, SelectionResponse
from procurement.services.selections_service import SelectionService

router = APIRouter(prefix="/selections")


@router.post("", response_model=SelectionResponse, status_code=201)
def create_selection(
    body: SelectionCreate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
    request_id: str = Depends(get_request_id),
):
    try:
        return SelectionService().create_selection(
            db,
            process_id=body.process_id,
            title=body.title,
            items=[i.model_dump() for i in body.items],
            actor_id=actor_id,
            request_id=request_id,
        )
    except ValueError as e:
        raise http_error_from(e)


@router.get("/{selection_id}", response_model=SelectionResponse)
def get_selection(selection_id: uuid.UUID, db: Session = Depends(get_db)):
    row = SelectionService().get_selection(db, selection_id)
    if not row:
        raise HTTPException(status_code=404, detail="Selection not found.")
    return row


# ---------------------------------------------------------------------
# POST /selections/{id}/finalize  (operator, FINAL)
# ---------------------------------------------------------------------


@router.post("/{selection_id}/finalize", response_model=SelectionResponse)
def finalize_session(
    selection_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
    request_id: str = Depends(get_request_id),
):
    try:
        return SelectionService().finalize_session(
            db, selection_id=selection_id, actor_id=actor_id, request_id=request_id
        )
    except ValueError as e:
        raise http_error_from(e)
