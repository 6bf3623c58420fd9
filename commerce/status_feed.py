"""
Order status feeds.

A feed answers one question: "what is order X's status right now?". The
watcher polls a feed and turns novel answers into notifications.

Implementations:
- ScriptedStatusFeed: in-memory, replays a per-order script (demos, tests)
- HttpOrderStatusFeed: asks the storefront backend over HTTP (httpx)

Design decisions:
- fetch_status is async; it is the only suspension point in the engine
- Feeds raise FeedError on failure; deciding what to do about it is the
  watcher's job
- Timeouts belong to the feed (httpx timeout), never to the stores
"""

import logging
from collections import defaultdict, deque
from typing import Any, Callable, Optional, Protocol, Union

import httpx
from pydantic import ValidationError

from session.config import SessionSettings
from session.errors import FeedError
from session.identity import TOKEN_KEY
from session.models import StatusObservation
from session.persistence import PersistencePort

logger = logging.getLogger("status_feed")


class OrderStatusFeed(Protocol):
    """Anything that can report an order's current status."""

    async def fetch_status(self, order_id: str) -> StatusObservation:
        ...


class ScriptedStatusFeed:
    """
    Feed that replays scripted observations per order.

    Each fetch consumes the next scripted value; once the script runs out the
    last value keeps repeating, the way a real backend keeps reporting the
    same status until something happens.

    Example:
        feed = ScriptedStatusFeed()
        feed.script("O1", "placed", "placed", "assigned")
    """

    def __init__(self):
        self._scripts: dict[str, deque[StatusObservation]] = defaultdict(deque)
        self._last: dict[str, StatusObservation] = {}
        self.fetch_count = 0

    def script(self, order_id: str, *statuses: Union[str, StatusObservation, dict[str, Any]]) -> None:
        """Queue statuses (strings, observations or observation dicts) for an order."""
        for status in statuses:
            self._scripts[order_id].append(self._to_observation(order_id, status))

    def set_status(self, order_id: str, status: Union[str, StatusObservation, dict[str, Any]]) -> None:
        """Replace the script with a single, repeating status."""
        self._scripts[order_id].clear()
        self._last[order_id] = self._to_observation(order_id, status)

    async def fetch_status(self, order_id: str) -> StatusObservation:
        self.fetch_count += 1
        queue = self._scripts.get(order_id)
        if queue:
            self._last[order_id] = queue.popleft()
        observation = self._last.get(order_id)
        if observation is None:
            raise FeedError(order_id, "no status scripted")
        return observation

    @staticmethod
    def _to_observation(
        order_id: str,
        status: Union[str, StatusObservation, dict[str, Any]],
    ) -> StatusObservation:
        if isinstance(status, StatusObservation):
            return status
        if isinstance(status, dict):
            return StatusObservation.model_validate({"order_id": order_id, **status})
        return StatusObservation(order_id=order_id, status=status)


class HttpOrderStatusFeed:
    """
    Feed backed by the storefront API: GET {base_url}/api/orders/{order_id}.

    The backend wraps the order in {"data": {...}} and uses camelCase fields
    (status, assignedTailor, trackingNumber, estimatedDelivery).

    The bearer token is either fixed (`token`) or looked up before every
    request (`token_provider`), so a sign-in after the feed was built is
    picked up.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._client = client
        self._token_provider = token_provider

    @classmethod
    def from_settings(
        cls,
        settings: SessionSettings,
        storage: PersistencePort,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "HttpOrderStatusFeed":
        """Feed for the configured backend, authenticated with the persisted token."""
        return cls(
            settings.feed_base_url,
            timeout=settings.feed_timeout_seconds,
            client=client,
            token_provider=lambda: storage.get(TOKEN_KEY),
        )

    def _headers(self) -> dict[str, str]:
        token = self.token
        if token is None and self._token_provider is not None:
            token = self._token_provider()
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    async def fetch_status(self, order_id: str) -> StatusObservation:
        url = f"{self.base_url}/api/orders/{order_id}"
        try:
            if self._client is not None:
                response = await self._client.get(url, headers=self._headers(), timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, headers=self._headers())
        except httpx.HTTPError as e:
            raise FeedError(order_id, f"request failed: {e}") from e

        if not response.is_success:
            raise FeedError(order_id, f"HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise FeedError(order_id, "response is not JSON") from e

        order = body.get("data", body) if isinstance(body, dict) else None
        if not isinstance(order, dict):
            raise FeedError(order_id, "response has no order record")

        try:
            observation = StatusObservation.model_validate({
                "order_id": order_id,
                "status": order.get("status"),
                "assigned_tailor": order.get("assignedTailor"),
                "tracking_number": order.get("trackingNumber"),
                "estimated_delivery": order.get("estimatedDelivery"),
            })
        except ValidationError as e:
            raise FeedError(order_id, f"invalid order record: {e}") from e

        logger.debug(f"Fetched status for {order_id}: {observation.status}")
        return observation
