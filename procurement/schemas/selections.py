from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from procurement.schemas.primitives import PosDec4, PosInt


class SelectionItemIn(BaseModel):
    item_number: PosInt
    description: str = Field(..., min_length=1)
    quantity: PosDec4
    unit: str = Field(..., min_length=1, max_length=32)
    lot_number: Optional[PosInt] = None


class SelectionItemOut(SelectionItemIn):
    model_config = {"from_attributes": True}


class SelectionCreate(BaseModel):
    process_id: uuid.UUID
    title: str = Field(..., min_length=1, max_length=255)
    items: List[SelectionItemIn] = Field(..., min_length=1)


class SelectionResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: uuid.UUID
    process_id: uuid.UUID
    title: str
    status: str
    ranking_version: int
    ranked_at: Optional[datetime] = None
    finalized_at: Optional[datetime] = None
    created_at: datetime
    items: List[SelectionItemOut] = Field(default_factory=list)
