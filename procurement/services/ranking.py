# procurement/services/ranking.py
"""
Bid ranking and winner determination.

Everything in this module is pure: it works on plain entries built from the
bid / disqualification rows and never touches the database. Persisting the
result (``is_winner`` flags) is WinnerFlaggingService's job.

Ordering inside an item, best first:
  1. negotiation bids before normal bids, whatever their value;
  2. value ascending (price criteria) or descending (``desconto``);
  3. earliest ``placed_at``;
  4. bid id.
"""
from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from procurement.db.types import as_utc
from procurement.models.enums import BidType, JudgmentCriterion

logger = logging.getLogger(__name__)

DEFAULT_CRITERION = JudgmentCriterion.POR_ITEM

# legacy spellings still present in older processes
_CRITERION_ALIASES = {
    "item": JudgmentCriterion.POR_ITEM,
    "lote": JudgmentCriterion.POR_LOTE,
}


@dataclass(frozen=True)
class BidEntry:
    id: uuid.UUID
    item_number: int
    supplier_id: str
    value: Decimal
    bid_type: str
    placed_at: datetime

    @property
    def is_negotiation(self) -> bool:
        return self.bid_type == BidType.negotiation.value

    @classmethod
    def from_row(cls, row) -> "BidEntry":
        return cls(
            id=row.id,
            item_number=int(row.item_number),
            supplier_id=row.supplier_id,
            value=Decimal(str(row.value)),
            bid_type=row.bid_type,
            placed_at=as_utc(row.placed_at),
        )


@dataclass(frozen=True)
class DisqualificationEntry:
    supplier_id: str
    item_numbers: FrozenSet[int]

    @classmethod
    def from_row(cls, row) -> "DisqualificationEntry":
        return cls(
            supplier_id=row.supplier_id,
            item_numbers=frozenset(int(n) for n in (row.affected_item_numbers or [])),
        )


@dataclass(frozen=True)
class ItemInfo:
    item_number: int
    quantity: Decimal
    lot_number: Optional[int] = None

    @classmethod
    def from_row(cls, row) -> "ItemInfo":
        return cls(
            item_number=int(row.item_number),
            quantity=Decimal(str(row.quantity)),
            lot_number=row.lot_number,
        )


@dataclass(frozen=True)
class SupplierTotal:
    supplier_id: str
    # None for the single overall bucket of the ``global`` criterion
    lot_number: Optional[int]
    items_won: int
    total_value: Decimal


@dataclass
class RankingResult:
    selection_id: uuid.UUID
    criterion: JudgmentCriterion
    ranking_version: int
    ranked_at: Optional[datetime]
    winners: Dict[int, BidEntry] = field(default_factory=dict)
    standings: Dict[int, List[BidEntry]] = field(default_factory=dict)
    unresolved_items: List[int] = field(default_factory=list)
    supplier_totals: List[SupplierTotal] = field(default_factory=list)


# ---------------------------------------------------------------------
# criterion
# ---------------------------------------------------------------------


def parse_criterion(raw: Optional[str]) -> JudgmentCriterion:
    """
    Stored criterion string -> enum.

    Missing or unknown values rank as ``por_item`` (lowest price per item);
    the fallback is logged so bad process data gets noticed.
    """
    if raw is not None:
        key = str(raw).strip().lower()
        if key in _CRITERION_ALIASES:
            return _CRITERION_ALIASES[key]
        try:
            return JudgmentCriterion(key)
        except ValueError:
            pass

    logger.warning(
        "judgment criterion missing or unknown; falling back to lowest price",
        extra={"criterion": raw, "fallback": DEFAULT_CRITERION.value},
    )
    return DEFAULT_CRITERION


def prefers_highest(criterion: JudgmentCriterion) -> bool:
    return criterion == JudgmentCriterion.DESCONTO


# ---------------------------------------------------------------------
# ranking
# ---------------------------------------------------------------------


def excluded_pairs(
    disqualifications: Iterable[DisqualificationEntry],
) -> Set[Tuple[str, int]]:
    """(supplier_id, item_number) pairs that may not win."""
    out: Set[Tuple[str, int]] = set()
    for d in disqualifications:
        for n in d.item_numbers:
            out.add((d.supplier_id, n))
    return out


def eligible_bids(
    bids: Iterable[BidEntry],
    disqualifications: Iterable[DisqualificationEntry],
) -> List[BidEntry]:
    excluded = excluded_pairs(disqualifications)
    return [b for b in bids if (b.supplier_id, b.item_number) not in excluded]


def _sort_key(criterion: JudgmentCriterion):
    highest = prefers_highest(criterion)

    def key(b: BidEntry):
        return (
            0 if b.is_negotiation else 1,
            -b.value if highest else b.value,
            b.placed_at,
            str(b.id),
        )

    return key


def rank_item_standings(
    bids: Iterable[BidEntry],
    disqualifications: Iterable[DisqualificationEntry],
    criterion: JudgmentCriterion,
) -> Dict[int, List[BidEntry]]:
    """
    Eligible bids grouped by item number, best first.
    Items without eligible bids are absent.
    """
    grouped: Dict[int, List[BidEntry]] = defaultdict(list)
    for b in eligible_bids(bids, disqualifications):
        grouped[b.item_number].append(b)

    key = _sort_key(criterion)
    return {n: sorted(group, key=key) for n, group in sorted(grouped.items())}


def rank_winners(
    bids: Iterable[BidEntry],
    disqualifications: Iterable[DisqualificationEntry],
    criterion: JudgmentCriterion,
) -> Dict[int, BidEntry]:
    """item_number -> winning bid. Per-item winner-take-all for every criterion."""
    standings = rank_item_standings(bids, disqualifications, criterion)
    return {n: group[0] for n, group in standings.items()}


def runner_up(
    bids: Iterable[BidEntry],
    disqualifications: Iterable[DisqualificationEntry],
    criterion: JudgmentCriterion,
    *,
    item_number: int,
    exclude_supplier_id: str,
) -> Optional[BidEntry]:
    """
    Best eligible bid for ``item_number`` once ``exclude_supplier_id`` is out
    of the race (the second place that inherits a disqualified win).
    """
    extra = DisqualificationEntry(
        supplier_id=exclude_supplier_id, item_numbers=frozenset({item_number})
    )
    item_bids = [b for b in bids if b.item_number == item_number]
    ranked = rank_item_standings(item_bids, [*disqualifications, extra], criterion)
    group = ranked.get(item_number)
    return group[0] if group else None


def supplier_totals(
    winners: Dict[int, BidEntry],
    items: Iterable[ItemInfo],
    criterion: JudgmentCriterion,
) -> List[SupplierTotal]:
    """
    Reporting totals for aggregate criteria: winning value x item quantity,
    summed per supplier (``global``) or per lot and supplier (``por_lote``).
    Winners are never re-ranked by these totals.
    """
    if criterion not in {JudgmentCriterion.GLOBAL, JudgmentCriterion.POR_LOTE}:
        return []

    by_number = {i.item_number: i for i in items}
    per_lot = criterion == JudgmentCriterion.POR_LOTE

    acc: Dict[Tuple[Optional[int], str], List] = {}
    for n, bid in winners.items():
        info = by_number.get(n)
        if info is None:
            continue
        lot = info.lot_number if per_lot else None
        slot = acc.setdefault((lot, bid.supplier_id), [0, Decimal("0")])
        slot[0] += 1
        slot[1] += bid.value * info.quantity

    totals = [
        SupplierTotal(
            supplier_id=supplier_id,
            lot_number=lot,
            items_won=count,
            total_value=total,
        )
        for (lot, supplier_id), (count, total) in acc.items()
    ]
    # lots in order (no-lot bucket last), cheapest supplier first inside a lot
    totals.sort(
        key=lambda t: (t.lot_number is None, t.lot_number or 0, t.total_value, t.supplier_id)
    )
    return totals


def build_result(
    *,
    selection_id: uuid.UUID,
    criterion: JudgmentCriterion,
    ranking_version: int,
    ranked_at: Optional[datetime],
    bids: List[BidEntry],
    disqualifications: List[DisqualificationEntry],
    items: List[ItemInfo],
) -> RankingResult:
    standings = rank_item_standings(bids, disqualifications, criterion)
    winners = {n: group[0] for n, group in standings.items()}

    item_numbers = {i.item_number for i in items} | {b.item_number for b in bids}
    unresolved = sorted(n for n in item_numbers if n not in winners)

    return RankingResult(
        selection_id=selection_id,
        criterion=criterion,
        ranking_version=ranking_version,
        ranked_at=ranked_at,
        winners=winners,
        standings=standings,
        unresolved_items=unresolved,
        supplier_totals=supplier_totals(winners, items, criterion),
    )
