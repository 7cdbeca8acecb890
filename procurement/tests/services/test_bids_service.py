from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from procurement.models.enums import BidType, JudgmentCriterion
from procurement.services.bids_service import BidService
from procurement.services.item_control_service import ItemControlService
from procurement.services.selections_service import SelectionService
from procurement.tests.factories import OPERATOR, bid, create_selection, open_all


def test_bid_rejected_when_item_not_open(db):
    sel = create_selection(db)

    with pytest.raises(ValueError, match="not open"):
        bid(db, sel, "A", 100)


def test_bid_rejected_for_unknown_item(db):
    sel = create_selection(db)
    open_all(db, sel)

    with pytest.raises(ValueError, match="not found"):
        bid(db, sel, "A", 100, item=99)


def test_discount_bid_capped_at_100_percent(db):
    sel = create_selection(db, criterion=JudgmentCriterion.DESCONTO)
    open_all(db, sel)

    with pytest.raises(ValueError, match="must not exceed"):
        bid(db, sel, "A", 101)

    row = bid(db, sel, "A", 100)
    assert row.is_winner is True


def test_nonpositive_value_rejected(db):
    sel = create_selection(db)
    open_all(db, sel)

    with pytest.raises(ValueError, match="must be greater than zero"):
        bid(db, sel, "A", 0)


def test_expired_countdown_closes_item_and_rejects_bid(db):
    sel = create_selection(db)
    open_all(db, sel)

    controls = ItemControlService()
    c = controls.get_control(db, sel.id, 1)
    c.closing_started_at = datetime.now(timezone.utc) - timedelta(minutes=5)
    c.seconds_to_close = 0
    db.commit()

    with pytest.raises(ValueError, match="window has closed"):
        bid(db, sel, "A", 100)

    db.expire_all()
    c = controls.get_control(db, sel.id, 1)
    assert c.is_open is False
    assert c.closed_at is not None


def test_negotiation_bid_only_from_negotiating_supplier(db):
    sel = create_selection(db)
    open_all(db, sel)
    bid(db, sel, "A", 100)
    bid(db, sel, "B", 90)

    ItemControlService().open_negotiation(
        db, selection_id=sel.id, item_number=1, actor_id=OPERATOR
    )

    # normal bids stop during negotiation
    with pytest.raises(ValueError, match="in negotiation"):
        bid(db, sel, "A", 50)

    with pytest.raises(PermissionError):
        bid(db, sel, "A", 85, bid_type=BidType.negotiation)

    row = bid(db, sel, "B", 88, bid_type=BidType.negotiation)
    assert row.is_winner is True


def test_negotiation_bid_wins_even_when_higher(db):
    sel = create_selection(db)
    open_all(db, sel)
    bid(db, sel, "A", 100)
    bid(db, sel, "B", 90)
    ItemControlService().open_negotiation(
        db, selection_id=sel.id, item_number=1, actor_id=OPERATOR
    )

    # counter-offer above the auction price still wins
    row = bid(db, sel, "B", 95, bid_type=BidType.negotiation)

    db.expire_all()
    winners = [b for b in BidService().list_bids(db, selection_id=sel.id) if b.is_winner]
    assert [w.id for w in winners] == [row.id]


def test_delete_bid_reflags_previous_leader(db):
    sel = create_selection(db)
    open_all(db, sel)
    a = bid(db, sel, "A", 100)
    b = bid(db, sel, "B", 90)

    BidService().delete_bid(db, selection_id=sel.id, bid_id=b.id, actor_id=OPERATOR)

    db.expire_all()
    rows = BidService().list_bids(db, selection_id=sel.id)
    assert [r.id for r in rows] == [a.id]
    assert rows[0].is_winner is True


def test_list_bids_filters(db):
    sel = create_selection(db)
    open_all(db, sel)
    bid(db, sel, "A", 100, item=1)
    bid(db, sel, "B", 90, item=1)
    bid(db, sel, "A", 10, item=2)

    svc = BidService()
    assert len(svc.list_bids(db, selection_id=sel.id)) == 3
    assert len(svc.list_bids(db, selection_id=sel.id, item_number=1)) == 2
    assert {b.item_number for b in svc.list_bids(db, selection_id=sel.id, supplier_id="A")} == {1, 2}


def test_finalized_selection_rejects_bids(db):
    sel = create_selection(db)
    open_all(db, sel)
    bid(db, sel, "A", 100)

    SelectionService().finalize_session(db, selection_id=sel.id, actor_id=OPERATOR)

    with pytest.raises(ValueError, match="finalized"):
        bid(db, sel, "B", Decimal("50"))


def test_supplier_id_is_stripped_and_required(db):
    sel = create_selection(db)
    open_all(db, sel)

    assert bid(db, sel, "  A ", 100).supplier_id == "A"
    with pytest.raises(ValueError, match="must not be empty"):
        bid(db, sel, "   ", 90)
