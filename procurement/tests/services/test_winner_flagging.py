from procurement.models.bid import Bid
from procurement.models.enums import JudgmentCriterion
from procurement.services.ranking_service import RankingService
from procurement.services.selections_service import SelectionService
from procurement.services.winner_flagging_service import WinnerFlaggingService
from procurement.tests.factories import OPERATOR, bid, create_selection, open_all


def flagged(db, selection):
    db.expire_all()
    rows = db.query(Bid).filter(Bid.selection_id == selection.id, Bid.is_winner.is_(True)).all()
    return {r.item_number: r.supplier_id for r in rows}


def test_placing_bids_flags_one_winner_per_item(db):
    sel = create_selection(db)
    open_all(db, sel)

    bid(db, sel, "A", 100, item=1)
    bid(db, sel, "B", 90, item=1)
    bid(db, sel, "A", 30, item=2)

    assert flagged(db, sel) == {1: "B", 2: "A"}


def test_version_moves_only_when_winners_change(db):
    sel = create_selection(db)
    open_all(db, sel)

    bid(db, sel, "A", 100)
    db.refresh(sel)
    v1 = sel.ranking_version
    assert v1 == 1

    # worse bid, same winner
    bid(db, sel, "B", 120)
    db.refresh(sel)
    assert sel.ranking_version == v1

    bid(db, sel, "B", 80)
    db.refresh(sel)
    assert sel.ranking_version == v1 + 1


def test_apply_is_idempotent(db):
    sel = create_selection(db)
    open_all(db, sel)
    bid(db, sel, "A", 100)

    locked = SelectionService().require_selection_for_update(db, sel.id)
    first = WinnerFlaggingService().apply(db, selection=locked)
    second = WinnerFlaggingService().apply(db, selection=locked)
    db.commit()

    assert first.ranking_version == second.ranking_version
    assert flagged(db, sel) == {1: "A"}


def test_explicit_run_is_audited_and_reports_unresolved(db):
    sel = create_selection(db, criterion=JudgmentCriterion.GLOBAL)
    open_all(db, sel)
    bid(db, sel, "A", 5, item=1)

    result = RankingService().run(db, selection_id=sel.id, actor_id=OPERATOR)

    assert set(result.winners) == {1}
    assert result.unresolved_items == [2]
    assert result.supplier_totals[0].supplier_id == "A"


def test_snapshot_does_not_write(db):
    sel = create_selection(db)
    open_all(db, sel)
    bid(db, sel, "A", 100)

    db.query(Bid).update({Bid.is_winner: False})
    db.commit()

    result = RankingService().snapshot(db, selection_id=sel.id)

    assert result.winners[1].supplier_id == "A"
    assert flagged(db, sel) == {}
