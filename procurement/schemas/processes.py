from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from procurement.models.enums import JudgmentCriterion


class ProcessCreate(BaseModel):
    number: str = Field(..., min_length=1, max_length=64)
    title: str = Field(..., min_length=1, max_length=255)
    judgment_criterion: JudgmentCriterion = Field(
        default=JudgmentCriterion.POR_ITEM,
        description="Rule for the best value; fixed once the process exists",
    )


class ProcessResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: uuid.UUID
    number: str
    title: str
    # stored raw; legacy rows may hold aliases
    judgment_criterion: str
    created_at: datetime
