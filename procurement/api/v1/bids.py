# procurement/api/v1/bids.py
from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from procurement.core.deps import get_actor_id, get_request_id
from procurement.core.errors import http_error_from
from procurement.db.session import get_db
from procurement.schemas.bids import BidCreate, BidResponse
from procurement.services.bids_service import BidService

# Bid submission is rate limited per actor by BidRateLimitMiddleware
# (POST only). Listing and removal are operator actions.

router = APIRouter(prefix="/selections/{selection_id}/bids")


@router.post("", response_model=BidResponse, status_code=201)
def place_bid(
    selection_id: uuid.UUID,
    body: BidCreate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
    request_id: str = Depends(get_request_id),
):
    try:
        return BidService().place_bid(
            db,
            selection_id=selection_id,
            item_number=body.item_number,
            supplier_id=body.supplier_id,
            value=body.value,
            bid_type=body.bid_type,
            actor_id=actor_id,
            request_id=request_id,
        )
    except (ValueError, PermissionError) as e:
        raise http_error_from(e)


@router.get("", response_model=List[BidResponse])
def list_bids(
    selection_id: uuid.UUID,
    item_number: Optional[int] = Query(default=None, gt=0),
    supplier_id: Optional[str] = Query(default=None, min_length=1),
    db: Session = Depends(get_db),
):
    try:
        return BidService().list_bids(
            db,
            selection_id=selection_id,
            item_number=item_number,
            supplier_id=supplier_id,
        )
    except ValueError as e:
        raise http_error_from(e)


@router.delete("/{bid_id}", status_code=204)
def delete_bid(
    selection_id: uuid.UUID,
    bid_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor_id: str = Depends(get_actor_id),
    request_id: str = Depends(get_request_id),
):
    try:
        BidService().delete_bid(
            db,
            selection_id=selection_id,
            bid_id=bid_id,
            actor_id=actor_id,
            request_id=request_id,
        )
    except ValueError as e:
        raise http_error_from(e)
    return Response(status_code=204)
