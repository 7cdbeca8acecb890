from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from procurement.services.ranking import BidEntry, RankingResult


class RankedBid(BaseModel):
    id: uuid.UUID
    supplier_id: str
    value: Decimal
    bid_type: str
    placed_at: datetime


class ItemStanding(BaseModel):
    item_number: int
    winner: Optional[RankedBid] = None
    # eligible bids, best first
    bids: List[RankedBid] = Field(default_factory=list)


class SupplierTotalOut(BaseModel):
    supplier_id: str
    lot_number: Optional[int] = None
    items_won: int
    total_value: Decimal


class RankingResponse(BaseModel):
    selection_id: uuid.UUID
    criterion: str
    ranking_version: int
    ranked_at: Optional[datetime] = None
    items: List[ItemStanding]
    unresolved_items: List[int]
    supplier_totals: List[SupplierTotalOut]


def _ranked(b: BidEntry) -> RankedBid:
    return RankedBid(
        id=b.id,
        supplier_id=b.supplier_id,
        value=b.value,
        bid_type=b.bid_type,
        placed_at=b.placed_at,
    )


def ranking_response(result: RankingResult) -> RankingResponse:
    numbers = sorted(set(result.standings) | set(result.unresolved_items))
    items = []
    for n in numbers:
        group = result.standings.get(n, [])
        winner = result.winners.get(n)
        items.append(
            ItemStanding(
                item_number=n,
                winner=_ranked(winner) if winner else None,
                bids=[_ranked(b) for b in group],
            )
        )

    return RankingResponse(
        selection_id=result.selection_id,
        criterion=result.criterion.value,
        ranking_version=result.ranking_version,
        ranked_at=result.ranked_at,
        items=items,
        unresolved_items=list(result.unresolved_items),
        supplier_totals=[
            SupplierTotalOut(
                supplier_id=t.supplier_id,
                lot_number=t.lot_number,
                items_won=t.items_won,
                total_value=t.total_value,
            )
            for t in result.supplier_totals
        ],
    )


def ranking_payload(result: RankingResult) -> Dict:
    """JSON-ready dict, as sent on the live stream."""
    return ranking_response(result).model_dump(mode="json")
