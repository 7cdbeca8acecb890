from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from procurement.models.enums import BidType
from procurement.schemas.primitives import PosDec4, PosInt, SupplierId


class BidCreate(BaseModel):
    """
    Price bid, or a discount percentage when the process judges by ``desconto``.
    The upper bound for discounts depends on the process and is checked by the service.
    """

    item_number: PosInt
    supplier_id: SupplierId
    value: PosDec4
    bid_type: BidType = Field(default=BidType.normal)


class BidResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: uuid.UUID
    selection_id: uuid.UUID
    item_number: int
    supplier_id: str
    value: Decimal
    bid_type: str
    is_winner: bool
    placed_at: datetime
