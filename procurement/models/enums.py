from __future__ import annotations
from enum import Enum


class JudgmentCriterion(str, Enum):
    # lowest unit price wins per item
    POR_ITEM = "por_item"
    # per-item winners, supplier totals reported overall
    GLOBAL = "global"
    # per-item winners, supplier totals reported per lot
    POR_LOTE = "por_lote"
    # highest discount percentage wins
    DESCONTO = "desconto"


class BidType(str, Enum):
    normal = "normal"
    negotiation = "negotiation"


class SelectionStatus(str, Enum):
    draft = "draft"
    in_progress = "in_progress"
    finalized = "finalized"
