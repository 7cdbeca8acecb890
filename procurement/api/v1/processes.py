# procurement/api/v1/processes.py
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from procurement.core.deps import get_actor_id, get_request_id
from procurement.core.errors import http_error_from
from procurement.db.session import get_db
from procurement.schemas.processes import ProcessCreate, ProcessResponse
from procurement.services.selections_service import SelectionService

router = APIRouter(prefix="/processes")


@router.post("", response_model=ProcessResponse, status_code=201)
def create_process(
    body: ProcessCreate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
    request_id: str = Depends(get_request_id),
):
    try:
        return SelectionService().create_process(
            db,
            number=body.number,
            title=body.title,
            judgment_criterion=body.judgment_criterion,
            actor_id=actor_id,
            request_id=request_id,
        )
    except ValueError as e:
        raise http_error_from(e)


@router.get("/{process_id}", response_model=ProcessResponse)
def get_process(process_id: uuid.UUID, db: Session = Depends(get_db)):
    row = SelectionService().get_process(db, process_id)
    if not row:
        raise HTTPException(status_code=404, detail="Purchase process not found.")
    return row
