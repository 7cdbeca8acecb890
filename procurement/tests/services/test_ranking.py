import logging
import uuid
from decimal import Decimal

from procurement.models.enums import BidType, JudgmentCriterion
from procurement.services.ranking import (
    DisqualificationEntry,
    ItemInfo,
    build_result,
    parse_criterion,
    rank_item_standings,
    rank_winners,
    runner_up,
    supplier_totals,
)
from procurement.tests.factories import entry


def disq(supplier, *items):
    return DisqualificationEntry(supplier_id=supplier, item_numbers=frozenset(items))


def test_lowest_value_wins_per_item():
    bids = [
        entry("A", 100, item=1),
        entry("B", 90, item=1),
        entry("A", 50, item=2),
        entry("B", 70, item=2),
    ]
    winners = rank_winners(bids, [], JudgmentCriterion.POR_ITEM)

    assert winners[1].supplier_id == "B"
    assert winners[2].supplier_id == "A"


def test_negotiation_bid_wins_regardless_of_value():
    bids = [
        entry("A", 80),
        entry("B", 95, bid_type=BidType.negotiation),
    ]
    winners = rank_winners(bids, [], JudgmentCriterion.POR_ITEM)

    assert winners[1].supplier_id == "B"
    assert winners[1].value == Decimal("95")


def test_discount_highest_value_wins():
    bids = [entry("A", 12), entry("B", 18.5), entry("C", 15)]
    winners = rank_winners(bids, [], JudgmentCriterion.DESCONTO)

    assert winners[1].supplier_id == "B"


def test_disqualification_is_scoped_to_listed_items():
    bids = [
        entry("B", 90, item=1),
        entry("A", 100, item=1),
        entry("B", 40, item=2),
        entry("A", 60, item=2),
    ]
    winners = rank_winners(bids, [disq("B", 1)], JudgmentCriterion.POR_ITEM)

    assert winners[1].supplier_id == "A"
    # B still wins the item it was not disqualified for
    assert winners[2].supplier_id == "B"


def test_disqualify_then_revert_restores_previous_winner():
    bids = [entry("A", 100), entry("B", 90)]

    assert rank_winners(bids, [], JudgmentCriterion.POR_ITEM)[1].supplier_id == "B"
    assert rank_winners(bids, [disq("B", 1)], JudgmentCriterion.POR_ITEM)[1].supplier_id == "A"
    # reverted disqualifications are simply not passed in
    assert rank_winners(bids, [], JudgmentCriterion.POR_ITEM)[1].supplier_id == "B"


def test_equal_values_resolve_to_earliest_bid():
    bids = [
        entry("late", 90, seconds=30),
        entry("early", 90, seconds=5),
        entry("mid", 90, seconds=10),
    ]
    for ordering in (bids, list(reversed(bids))):
        winners = rank_winners(ordering, [], JudgmentCriterion.POR_ITEM)
        assert winners[1].supplier_id == "early"


def test_same_timestamp_resolves_by_bid_id():
    low = uuid.UUID(int=1)
    high = uuid.UUID(int=2)
    bids = [entry("X", 90, bid_id=high), entry("Y", 90, bid_id=low)]

    assert rank_winners(bids, [], JudgmentCriterion.POR_ITEM)[1].id == low


def test_standings_are_best_first_and_skip_empty_items():
    bids = [entry("A", 100), entry("B", 90), entry("C", 95)]
    standings = rank_item_standings(bids, [disq("A", 1), disq("B", 1), disq("C", 1)], JudgmentCriterion.POR_ITEM)
    assert standings == {}

    standings = rank_item_standings(bids, [], JudgmentCriterion.POR_ITEM)
    assert [b.supplier_id for b in standings[1]] == ["B", "C", "A"]


def test_runner_up_excludes_leader():
    bids = [entry("A", 100), entry("B", 90), entry("C", 95), entry("B", 85)]
    second = runner_up(
        bids, [], JudgmentCriterion.POR_ITEM, item_number=1, exclude_supplier_id="B"
    )
    assert second.supplier_id == "C"

    none_left = runner_up(
        [entry("B", 90)], [], JudgmentCriterion.POR_ITEM, item_number=1, exclude_supplier_id="B"
    )
    assert none_left is None


def test_unknown_criterion_falls_back_to_lowest_price(caplog):
    with caplog.at_level(logging.WARNING, logger="procurement.services.ranking"):
        criterion = parse_criterion("menor_preco_global_v2")

    assert criterion == JudgmentCriterion.POR_ITEM
    assert any("falling back" in r.getMessage() for r in caplog.records)

    bids = [entry("A", 100), entry("B", 90)]
    assert rank_winners(bids, [], criterion)[1].supplier_id == "B"


def test_parse_criterion_accepts_legacy_aliases():
    assert parse_criterion("lote") == JudgmentCriterion.POR_LOTE
    assert parse_criterion("item") == JudgmentCriterion.POR_ITEM
    assert parse_criterion(" Desconto ") == JudgmentCriterion.DESCONTO
    assert parse_criterion(None) == JudgmentCriterion.POR_ITEM


def test_supplier_totals_per_lot():
    items = [
        ItemInfo(item_number=1, quantity=Decimal("10"), lot_number=1),
        ItemInfo(item_number=2, quantity=Decimal("2"), lot_number=1),
        ItemInfo(item_number=3, quantity=Decimal("5"), lot_number=2),
    ]
    winners = {
        1: entry("A", 3, item=1),
        2: entry("A", 10, item=2),
        3: entry("B", 4, item=3),
    }
    totals = supplier_totals(winners, items, JudgmentCriterion.POR_LOTE)

    assert [(t.lot_number, t.supplier_id, t.items_won, t.total_value) for t in totals] == [
        (1, "A", 2, Decimal("50")),
        (2, "B", 1, Decimal("20")),
    ]
    assert supplier_totals(winners, items, JudgmentCriterion.POR_ITEM) == []


def test_build_result_reports_unresolved_items():
    items = [ItemInfo(item_number=n, quantity=Decimal("1")) for n in (1, 2, 3)]
    bids = [entry("A", 10, item=1), entry("B", 20, item=2)]

    result = build_result(
        selection_id=uuid.uuid4(),
        criterion=JudgmentCriterion.GLOBAL,
        ranking_version=0,
        ranked_at=None,
        bids=bids,
        disqualifications=[disq("B", 2)],
        items=items,
    )

    assert set(result.winners) == {1}
    assert result.unresolved_items == [2, 3]
    assert [(t.lot_number, t.supplier_id) for t in result.supplier_totals] == [(None, "A")]
