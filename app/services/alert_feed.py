# app/services/alert_feed.py
"""
Live alert feed: publish/subscribe for open dashboards.

subscribe(on_change) → unsubscribe()
  - on subscribe, the subscriber gets one full snapshot of the most recent alerts
  - every notify() (alert created or acknowledged) schedules one more snapshot
    per subscriber; snapshots may coalesce but always re-read current state
  - each subscriber runs in its own task, so a slow or failing subscriber
    never delays or breaks the others

Each subscription owns its state (pending flag + task); nothing is cached
across subscribers. Use `async with alert_feed.subscription(cb)` to guarantee
release on every exit path.
"""

import asyncio
import inspect
import itertools
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional
from app.config import settings
from app.database import SessionLocal
from app.utils.logger import get_logger

logger = get_logger(__name__)

OnChange = Callable[[list], Optional[Awaitable[None]]]
Loader = Callable[[int], Awaitable[list]]


async def load_recent_alerts(limit: int) -> list:
    """Default loader: fresh DB session per snapshot, returns AlertOut models."""
    from app.services.alert_service import list_recent_alerts
    from app.schemas.alert import AlertOut

    db = SessionLocal()
    try:
        alerts = await list_recent_alerts(db, limit)
        return [AlertOut.model_validate(a) for a in alerts]
    finally:
        db.close()


class _Subscription:
    def __init__(self, sub_id: int, on_change: OnChange, loop: asyncio.AbstractEventLoop):
        self.id = sub_id
        self.on_change = on_change
        self.loop = loop
        self.pending = asyncio.Event()
        self.task: Optional[asyncio.Task] = None


class AlertFeed:
    def __init__(self, loader: Optional[Loader] = None, limit: Optional[int] = None):
        self._loader = loader or load_recent_alerts
        self._limit = limit or settings.ALERT_FEED_LIMIT
        self._subscriptions: dict[int, _Subscription] = {}
        self._ids = itertools.count(1)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, on_change: OnChange) -> Callable[[], None]:
        """Must be called from inside the running event loop."""
        loop = asyncio.get_running_loop()
        sub = _Subscription(next(self._ids), on_change, loop)
        sub.pending.set()   # initial snapshot
        sub.task = loop.create_task(self._run(sub), name=f"alert-feed-{sub.id}")
        self._subscriptions[sub.id] = sub
        logger.debug(f"[FEED] Subscriber {sub.id} attached ({self.subscriber_count} total)")

        def unsubscribe():
            self._release(sub.id)

        return unsubscribe

    @asynccontextmanager
    async def subscription(self, on_change: OnChange):
        unsubscribe = self.subscribe(on_change)
        try:
            yield unsubscribe
        finally:
            unsubscribe()

    def notify(self):
        """Schedule a refresh for every subscriber. Safe to call from any thread."""
        for sub in list(self._subscriptions.values()):
            try:
                sub.loop.call_soon_threadsafe(sub.pending.set)
            except RuntimeError:
                # loop already closed, the subscription died with it
                self._release(sub.id)

    async def close(self):
        """Cancel every subscription. Called on application shutdown."""
        tasks = [sub.task for sub in self._subscriptions.values() if sub.task]
        for sub_id in list(self._subscriptions):
            self._release(sub_id)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _release(self, sub_id: int):
        sub = self._subscriptions.pop(sub_id, None)
        if sub is None:
            return
        if sub.task and not sub.task.done():
            sub.task.cancel()
        logger.debug(f"[FEED] Subscriber {sub_id} released ({self.subscriber_count} left)")

    async def _run(self, sub: _Subscription):
        while True:
            await sub.pending.wait()
            sub.pending.clear()
            try:
                alerts = await self._loader(self._limit)
                result = sub.on_change(alerts)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # Next notify() retries; other subscribers are unaffected
                logger.warning(f"[FEED] Refresh failed for subscriber {sub.id}: {e}")


# Singleton instance
alert_feed = AlertFeed()
