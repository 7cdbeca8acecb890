# procurement/core/change_feed.py
"""
In-process change notifications keyed by selection id.

Services publish after they commit (from worker threads); live-view
subscribers consume on the event loop. A notice carries only the name of the
table that changed: it is a trigger to re-rank, not data.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Set

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Subscription:
    selection_id: uuid.UUID
    loop: asyncio.AbstractEventLoop
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)


class ChangeFeed:
    def __init__(self) -> None:
        self._subs: Dict[uuid.UUID, Set[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, selection_id: uuid.UUID) -> Subscription:
        """Must be called from the consuming event loop."""
        sub = Subscription(selection_id=selection_id, loop=asyncio.get_running_loop())
        with self._lock:
            self._subs.setdefault(selection_id, set()).add(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subs.get(sub.selection_id)
            if subs is None:
                return
            subs.discard(sub)
            if not subs:
                del self._subs[sub.selection_id]

    def subscriber_count(self, selection_id: uuid.UUID) -> int:
        with self._lock:
            return len(self._subs.get(selection_id, ()))

    def publish(self, selection_id: uuid.UUID, source: str) -> int:
        """Thread-safe. Returns the number of subscribers notified."""
        with self._lock:
            subs = list(self._subs.get(selection_id, ()))

        delivered = 0
        for sub in subs:
            try:
                sub.loop.call_soon_threadsafe(sub.queue.put_nowait, source)
                delivered += 1
            except RuntimeError:
                # subscriber's loop is gone
                logger.debug("dropping subscriber with closed loop", extra={"selection_id": str(selection_id)})
                self.unsubscribe(sub)
        return delivered


async def debounced_changes(
    sub: Subscription,
    *,
    debounce_seconds: float,
    resync_seconds: float,
) -> AsyncIterator[str]:
    """
    Yields one trigger per burst of notices.

    A burst ends after ``debounce_seconds`` of quiet (capped at
    ``resync_seconds`` so a steady stream still produces passes). With no
    notice for ``resync_seconds`` it yields ``"resync"``.
    """
    loop = asyncio.get_running_loop()
    while True:
        try:
            first = await asyncio.wait_for(sub.queue.get(), timeout=resync_seconds)
        except asyncio.TimeoutError:
            yield "resync"
            continue

        sources = {first}
        deadline = loop.time() + resync_seconds
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            try:
                sources.add(
                    await asyncio.wait_for(
                        sub.queue.get(), timeout=min(debounce_seconds, remaining)
                    )
                )
            except asyncio.TimeoutError:
                break

        yield ",".join(sorted(sources))


change_feed = ChangeFeed()
