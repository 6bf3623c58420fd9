"""
Order status watcher.

Turns a stream of order status observations into notifications, at most one
per distinct status value, no matter how often the same status is re-polled
or how many times the page is reloaded.

The dedup ledger:
    "notified-status:<orderId>" -> the last status we already surfaced

Algorithm for an observation (order_id, S):
1. Ledger empty  -> record S, emit nothing. This is the first time this
   browser sees the order; it may be well into its lifecycle already, and
   announcing old history would be misleading back-fill.
2. Ledger == S   -> nothing to do.
3. Ledger is a later known status than S -> stale response, nothing to do.
4. Otherwise     -> emit one notification for S, then record S.

Design decisions:
- The check is keyed on the target status, not on a transition count, and a
  known status earlier in the lifecycle than the ledger is dropped, so a
  stale response arriving after a newer one is harmless. Skipping forward is
  never enforced, and statuses outside OrderStatus are only compared for
  equality
- Status aliases ("stitching_completed", "out_for_delivery") are folded to
  their canonical status before comparing, so a backend that mixes
  spellings doesn't cause duplicates
- Feed and ledger failures degrade silently (logged); the worst case is a
  missing or duplicate notification, never a crash
"""

import asyncio
import logging
from typing import Iterable, Optional

from session.config import SessionSettings, get_settings
from session.errors import FeedError, PersistenceUnavailable
from session.models import OrderStatus, StatusObservation, normalize_status
from session.persistence import PersistencePort
from commerce.notification_store import NotificationStore
from commerce.status_feed import OrderStatusFeed
from commerce.templates import STATUS_ALIASES, render_order_status

logger = logging.getLogger("order_watcher")


LEDGER_KEY_PREFIX = "notified-status:"


def ledger_key(order_id: str) -> str:
    return f"{LEDGER_KEY_PREFIX}{order_id}"


def canonical_status(status: str) -> str:
    """Normalize a status string and fold known aliases."""
    status = normalize_status(status)
    return STATUS_ALIASES.get(status, status)


_FORWARD_ORDER = {status.value: index for index, status in enumerate(OrderStatus)}


def is_stale(previous: str, status: str) -> bool:
    """True when both statuses are known and `status` comes before `previous`."""
    if previous not in _FORWARD_ORDER or status not in _FORWARD_ORDER:
        return False
    return _FORWARD_ORDER[status] < _FORWARD_ORDER[previous]


class OrderStatusWatcher:
    """
    Emits one notification per novel order status.

    Example:
        watcher = OrderStatusWatcher(notification_store, storage, feed=feed)
        await watcher.poll("O1")          # first sighting: baseline only
        await watcher.poll("O1")          # same status: nothing
        # ... backend moves the order on ...
        await watcher.poll("O1")          # new status: one notification
    """

    def __init__(
        self,
        notification_store: NotificationStore,
        storage: PersistencePort,
        feed: Optional[OrderStatusFeed] = None,
        settings: Optional[SessionSettings] = None,
    ):
        self.notification_store = notification_store
        self.storage = storage
        self.feed = feed
        self.settings = settings or get_settings()

    # =========================================================================
    # Ledger
    # =========================================================================

    def last_notified(self, order_id: str) -> Optional[str]:
        """The status already surfaced for an order, or None if never seen."""
        return self.storage.get(ledger_key(order_id))

    def forget(self, order_id: str) -> None:
        """Drop an order from the ledger; its next observation becomes a new baseline."""
        try:
            self.storage.remove(ledger_key(order_id))
        except PersistenceUnavailable as e:
            logger.error(f"Could not forget order {order_id}: {e}")

    def _record(self, order_id: str, status: str) -> None:
        try:
            self.storage.set(ledger_key(order_id), status)
        except PersistenceUnavailable as e:
            logger.error(f"Could not record status '{status}' for order {order_id}: {e}")

    # =========================================================================
    # Observations
    # =========================================================================

    def observe(self, observation: StatusObservation) -> Optional[str]:
        """
        Process one status observation.

        Returns:
            The id of the notification created, or None when nothing was emitted
        """
        order_id = observation.order_id
        status = canonical_status(observation.status)
        previous = self.last_notified(order_id)

        if previous is None:
            logger.info(f"Order {order_id}: first sighting at '{status}', recording baseline")
            self._record(order_id, status)
            return None

        previous = canonical_status(previous)
        if previous == status:
            logger.debug(f"Order {order_id}: still '{status}', nothing to do")
            return None
        if is_stale(previous, status):
            logger.debug(f"Order {order_id}: ignoring stale '{status}', already at '{previous}'")
            return None

        draft = render_order_status(observation.model_copy(update={"status": status}))
        notification_id = self.notification_store.add_notification(draft)
        self._record(order_id, status)
        logger.info(f"Order {order_id}: '{previous}' -> '{status}', notified ({notification_id})")
        return notification_id

    def observe_status(
        self,
        order_id: str,
        status: str,
        assigned_tailor: Optional[str] = None,
        tracking_number: Optional[str] = None,
        estimated_delivery: Optional[str] = None,
    ) -> Optional[str]:
        """Convenience wrapper around observe() for callers holding raw values."""
        return self.observe(StatusObservation(
            order_id=order_id,
            status=status,
            assigned_tailor=assigned_tailor,
            tracking_number=tracking_number,
            estimated_delivery=estimated_delivery,
        ))

    # =========================================================================
    # Polling
    # =========================================================================

    async def poll(self, order_id: str) -> Optional[str]:
        """
        Fetch an order's status from the feed and observe it.

        Feed failures are logged and produce no notification.
        """
        if self.feed is None:
            raise RuntimeError("OrderStatusWatcher has no status feed to poll")
        try:
            observation = await self.feed.fetch_status(order_id)
        except FeedError as e:
            logger.warning(f"Skipping poll of order {order_id}: {e}")
            return None
        return self.observe(observation)

    async def watch(
        self,
        order_ids: Iterable[str],
        interval: Optional[float] = None,
        max_polls: Optional[int] = None,
    ) -> list[str]:
        """
        Poll orders repeatedly until cancelled or max_polls rounds are done.

        Returns:
            Ids of every notification created while watching
        """
        order_ids = list(order_ids)
        interval = self.settings.poll_interval_seconds if interval is None else interval
        created: list[str] = []
        rounds = 0

        logger.info(f"Watching {len(order_ids)} order(s) every {interval}s")
        while max_polls is None or rounds < max_polls:
            for order_id in order_ids:
                notification_id = await self.poll(order_id)
                if notification_id is not None:
                    created.append(notification_id)
            rounds += 1
            if max_polls is not None and rounds >= max_polls:
                break
            await asyncio.sleep(interval)

        return created
