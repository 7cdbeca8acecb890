from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from procurement.schemas.primitives import PosInt, SupplierId


class DisqualificationCreate(BaseModel):
    supplier_id: SupplierId
    item_numbers: List[PosInt] = Field(..., min_length=1)
    reason: str = Field(..., min_length=1, max_length=4000)
    reopen_negotiation: bool = Field(
        default=False,
        description="Reopen each affected item for negotiation with its new leader",
    )


class RevertRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=4000)


class ReinstateRequest(BaseModel):
    item_numbers: List[PosInt] = Field(..., min_length=1)
    reason: str = Field(..., min_length=1, max_length=4000)


class DisqualificationResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: uuid.UUID
    selection_id: uuid.UUID
    supplier_id: str
    affected_item_numbers: List[int]
    reason: str
    created_by: str
    created_at: datetime

    reverted: bool
    revert_reason: Optional[str] = None
    reverted_by: Optional[str] = None
    reverted_at: Optional[datetime] = None
