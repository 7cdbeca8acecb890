from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from procurement.schemas.primitives import PosInt


class ItemNumbersRequest(BaseModel):
    item_numbers: List[PosInt] = Field(..., min_length=1)


class ItemStateResponse(BaseModel):
    """Selection item joined with its bidding window state."""

    item_number: int
    description: str
    quantity: Decimal
    unit: str
    lot_number: Optional[int] = None

    is_open: bool = False
    closing_started_at: Optional[datetime] = None
    seconds_to_close: Optional[int] = None
    closed_at: Optional[datetime] = None
    in_negotiation: bool = False
    negotiation_supplier_id: Optional[str] = None
    negotiation_concluded: bool = False
    skip_negotiation: bool = False

    @classmethod
    def from_rows(cls, item, control) -> "ItemStateResponse":
        out = cls(
            item_number=item.item_number,
            description=item.description,
            quantity=item.quantity,
            unit=item.unit,
            lot_number=item.lot_number,
        )
        if control is None:
            return out
        return out.model_copy(
            update={
                "is_open": control.is_open,
                "closing_started_at": control.closing_started_at,
                "seconds_to_close": control.seconds_to_close,
                "closed_at": control.closed_at,
                "in_negotiation": control.in_negotiation,
                "negotiation_supplier_id": control.negotiation_supplier_id,
                "negotiation_concluded": control.negotiation_concluded,
                "skip_negotiation": control.skip_negotiation,
            }
        )
