import asyncio
import threading
import uuid
from decimal import Decimal

from procurement.core.change_feed import ChangeFeed, change_feed, debounced_changes
from procurement.services.bids_service import BidService
from procurement.services.live_view import LiveRankingView
from procurement.tests.factories import bid, create_selection, open_all


def test_burst_of_notices_yields_one_trigger():
    feed = ChangeFeed()
    selection_id = uuid.uuid4()

    async def main():
        sub = feed.subscribe(selection_id)
        changes = debounced_changes(sub, debounce_seconds=0.05, resync_seconds=2.0)

        def burst():
            for source in ("bids", "bids", "disqualifications", "bids"):
                feed.publish(selection_id, source)

        threading.Thread(target=burst).start()
        first = await asyncio.wait_for(changes.__anext__(), timeout=2.0)

        # nothing else queued: the next trigger is a resync, not a second pass
        leftover = sub.queue.qsize()
        await changes.aclose()
        feed.unsubscribe(sub)
        return first, leftover

    first, leftover = asyncio.run(main())

    assert first == "bids,disqualifications"
    assert leftover == 0
    assert feed.subscriber_count(selection_id) == 0


def test_quiet_feed_resyncs():
    feed = ChangeFeed()

    async def main():
        sub = feed.subscribe(uuid.uuid4())
        changes = debounced_changes(sub, debounce_seconds=0.01, resync_seconds=0.05)
        trigger = await asyncio.wait_for(changes.__anext__(), timeout=1.0)
        await changes.aclose()
        return trigger

    assert asyncio.run(main()) == "resync"


def test_publish_without_subscribers_is_a_noop():
    assert ChangeFeed().publish(uuid.uuid4(), "bids") == 0


def test_live_view_streams_initial_snapshot_then_changes(db, session_factory):
    sel = create_selection(db)
    open_all(db, sel)
    bid(db, sel, "A", 100)
    selection_id = sel.id

    view = LiveRankingView(session_factory, debounce_seconds=0.05, resync_seconds=2.0)

    def place_lower_bid():
        s = session_factory()
        try:
            BidService().place_bid(
                s,
                selection_id=selection_id,
                item_number=1,
                supplier_id="B",
                value=Decimal("90"),
                actor_id="B",
            )
        finally:
            s.close()

    async def main():
        stream = view.snapshots(selection_id)
        initial = await asyncio.wait_for(stream.__anext__(), timeout=2.0)

        await asyncio.to_thread(place_lower_bid)
        update = await asyncio.wait_for(stream.__anext__(), timeout=2.0)

        await stream.aclose()
        return initial, update

    initial, update = asyncio.run(main())

    assert initial["trigger"] == "initial"
    assert initial["items"][0]["winner"]["supplier_id"] == "A"
    assert initial["unresolved_items"] == [2]

    assert update["trigger"] == "bids"
    assert update["items"][0]["winner"]["supplier_id"] == "B"
    assert update["ranking_version"] > initial["ranking_version"]

    assert change_feed.subscriber_count(selection_id) == 0


def test_live_view_ends_for_missing_selection(session_factory):
    view = LiveRankingView(session_factory, debounce_seconds=0.01, resync_seconds=0.05)

    async def main():
        return [p async for p in view.snapshots(uuid.uuid4())]

    assert asyncio.run(main()) == []
