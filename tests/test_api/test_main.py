"""
Tests for the session API.

These tests verify the FastAPI host surface over a fresh in-memory session
for every test.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from api.main import SessionContext, app, reset_api_state
from commerce.status_feed import HttpOrderStatusFeed, ScriptedStatusFeed
from session.config import SessionSettings
from session.persistence import MemoryStorage


@pytest.fixture
def context():
    """A fresh session context backed by in-memory storage."""
    return SessionContext.create(settings=SessionSettings(), storage=MemoryStorage())


@pytest.fixture
def api_client(context):
    """Create a test client with fresh state."""
    reset_api_state(context)
    yield TestClient(app)
    reset_api_state(None)


@pytest.fixture
def signed_in(api_client):
    response = api_client.post("/session/sign-in", json={"id": "U1", "name": "Asha", "token": "jwt"})
    assert response.status_code == 200
    return response.json()


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    def test_health_check(self, api_client):
        """Test that health endpoint returns healthy."""
        response = api_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestSessionEndpoints:
    """Tests for /session."""

    def test_guest_by_default(self, api_client):
        data = api_client.get("/session").json()

        assert data["isGuest"] is True
        assert data["identityKey"] == "guest"

    def test_sign_in_and_out(self, api_client, signed_in):
        """Test that sign-in rebinds the cart and sign-out returns to guest."""
        assert signed_in["identityKey"] == "U1"
        assert signed_in["cart"]["key"] == "cart:U1"

        data = api_client.post("/session/sign-out").json()
        assert data["isGuest"] is True
        assert data["cart"]["key"] == "cart:guest"

    def test_sign_in_requires_id(self, api_client):
        response = api_client.post("/session/sign-in", json={"name": "Nobody"})
        assert response.status_code == 422


class TestCartEndpoints:
    """Tests for /cart."""

    def test_guest_add_is_unauthorized(self, api_client):
        """Test that guests get 401."""
        response = api_client.post("/cart/items", json={"id": "d1", "price": 100})
        assert response.status_code == 401

    def test_zero_price_is_invalid(self, api_client, signed_in):
        """Test that a zero price item gets 422."""
        response = api_client.post("/cart/items", json={"id": "d1", "price": 0})
        assert response.status_code == 422

    def test_add_and_merge(self, api_client, signed_in):
        """Test that two adds of the same id merge quantities."""
        api_client.post("/cart/items", json={"id": "d1", "price": 100, "quantity": 2})
        response = api_client.post("/cart/items", json={"id": "d1", "price": 100, "quantity": 3})

        data = response.json()
        assert response.status_code == 200
        assert data["itemCount"] == 5
        assert data["total"] == "500"
        assert data["isOpen"] is True
        assert data["item"]["quantity"] == 5

    def test_update_and_remove(self, api_client, signed_in):
        api_client.post("/cart/items", json={"id": "d1", "price": 100})

        data = api_client.patch("/cart/items/d1", json={"quantity": 4}).json()
        assert data["itemCount"] == 4

        data = api_client.delete("/cart/items/d1").json()
        assert data["items"] == []

    def test_unknown_item_is_404(self, api_client, signed_in):
        assert api_client.patch("/cart/items/nope", json={"quantity": 2}).status_code == 404
        assert api_client.delete("/cart/items/nope").status_code == 404

    def test_clear_cart(self, api_client, signed_in, context):
        """Test that clearing removes the persisted cart."""
        api_client.post("/cart/items", json={"id": "d1", "price": 100})

        data = api_client.delete("/cart").json()

        assert data["items"] == []
        assert context.storage.get("cart:U1") is None


class TestNotificationEndpoints:
    """Tests for /notifications."""

    def test_create_and_list(self, api_client):
        response = api_client.post("/notifications", json={
            "type": "promotion",
            "title": "Festive Sale",
            "message": "20% off",
            "linkTo": "/catalog",
        })
        assert response.status_code == 200
        assert response.json()["unreadCount"] == 1

        data = api_client.get("/notifications").json()
        assert data["notifications"][0]["linkTo"] == "/catalog"
        assert data["notifications"][0]["icon"] == "🎉"

    def test_mark_read(self, api_client):
        """Test that marking read twice reports no change the second time."""
        notification_id = api_client.post(
            "/notifications", json={"title": "Hi", "message": "Welcome"}
        ).json()["id"]

        first = api_client.post(f"/notifications/{notification_id}/read").json()
        second = api_client.post(f"/notifications/{notification_id}/read").json()

        assert first["changed"] is True
        assert second["changed"] is False
        assert second["unreadCount"] == 0

    def test_mark_unknown_read_is_404(self, api_client):
        assert api_client.post("/notifications/nope/read").status_code == 404

    def test_read_all_and_clear(self, api_client):
        for title in ("a", "b"):
            api_client.post("/notifications", json={"title": title, "message": "m"})

        assert api_client.post("/notifications/read-all").json()["changed"] == 2
        assert api_client.delete("/notifications").json()["notifications"] == []

    def test_delete_notification(self, api_client):
        notification_id = api_client.post(
            "/notifications", json={"title": "Hi", "message": "m"}
        ).json()["id"]

        assert api_client.delete(f"/notifications/{notification_id}").status_code == 200
        assert api_client.delete(f"/notifications/{notification_id}").status_code == 404


class TestOrderStatusEndpoint:
    """Tests for /orders/{order_id}/status."""

    def test_baseline_then_change(self, api_client):
        """Test that the first report is silent and a new status notifies once."""
        first = api_client.post("/orders/O1/status", json={"status": "in_progress"}).json()
        assert first["notified"] is False

        second = api_client.post("/orders/O1/status", json={"status": "completed"}).json()
        repeat = api_client.post("/orders/O1/status", json={"status": "completed"}).json()

        assert second["notified"] is True
        assert second["notificationId"] is not None
        assert repeat["notified"] is False

        notifications = api_client.get("/notifications").json()["notifications"]
        assert [n["title"] for n in notifications] == ["Stitching Completed"]

    def test_tracking_details(self, api_client):
        api_client.post("/orders/O1/status", json={"status": "packed"})
        api_client.post("/orders/O1/status", json={"status": "shipped", "trackingNumber": 12345})

        message = api_client.get("/notifications").json()["notifications"][0]["message"]
        assert "Tracking: 12345." in message

    def test_blank_status_rejected(self, api_client):
        """Test that a whitespace-only status is a 422, not a server error."""
        response = api_client.post("/orders/O1/status", json={"status": "   "})

        assert response.status_code == 422
        assert api_client.get("/notifications").json()["notifications"] == []

    def test_stale_report_ignored(self, api_client):
        """Test that an out-of-order older status doesn't notify again."""
        for status in ("placed", "assigned", "placed", "assigned"):
            api_client.post("/orders/O1/status", json={"status": status})

        notifications = api_client.get("/notifications").json()["notifications"]
        assert [n["title"] for n in notifications] == ["Assigned to Tailor"]


class TestOrderPollEndpoint:
    """Tests for /orders/{order_id}/poll."""

    @pytest.fixture
    def scripted_feed(self):
        return ScriptedStatusFeed()

    @pytest.fixture
    def polling_client(self, scripted_feed):
        context = SessionContext.create(
            settings=SessionSettings(), storage=MemoryStorage(), feed=scripted_feed
        )
        reset_api_state(context)
        yield TestClient(app)
        reset_api_state(None)

    def test_baseline_then_change(self, polling_client, scripted_feed):
        """Test that polling records a baseline and then notifies once."""
        scripted_feed.script("O1", "packed", "shipped", "shipped")

        first = polling_client.post("/orders/O1/poll").json()
        second = polling_client.post("/orders/O1/poll").json()
        third = polling_client.post("/orders/O1/poll").json()

        assert first["notified"] is False
        assert first["lastNotified"] == "packed"
        assert second["notified"] is True
        assert second["lastNotified"] == "shipped"
        assert third["notified"] is False

    def test_feed_failure(self, polling_client):
        """Test that an unreachable order reports notified=false."""
        response = polling_client.post("/orders/missing/poll")

        assert response.status_code == 200
        assert response.json()["notified"] is False
        assert response.json()["lastNotified"] is None

    def test_http_feed_with_session_token(self):
        """Test the default HTTP feed against the configured backend and signed-in token."""
        storage = MemoryStorage()
        settings = SessionSettings(feed_base_url="http://shop.test")
        statuses = iter(["in_progress", "completed"])
        headers = []

        def handler(request):
            headers.append(request.headers.get("Authorization"))
            assert str(request.url) == "http://shop.test/api/orders/O1"
            return httpx.Response(200, json={"data": {"status": next(statuses)}})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        feed = HttpOrderStatusFeed.from_settings(settings, storage, client=client)
        reset_api_state(SessionContext.create(settings=settings, storage=storage, feed=feed))
        try:
            api = TestClient(app)
            api.post("/session/sign-in", json={"id": "U1", "token": "jwt-1"})

            api.post("/orders/O1/poll")
            result = api.post("/orders/O1/poll").json()
            notifications = api.get("/notifications").json()["notifications"]
        finally:
            reset_api_state(None)

        assert headers == ["Bearer jwt-1", "Bearer jwt-1"]
        assert result["notified"] is True
        assert [n["title"] for n in notifications] == ["Stitching Completed"]
