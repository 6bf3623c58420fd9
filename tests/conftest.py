"""
Shared pytest fixtures for the commerce session engine tests.

These fixtures provide fresh storage, identities and stores for every test,
and reset the module-level settings between tests.
"""

import pytest

from session.config import SessionSettings, reset_settings
from session.identity import IdentityResolver
from session.models import Identity, Role
from session.persistence import MemoryStorage
from commerce.cart_store import CartStore
from commerce.notification_store import NotificationStore
from commerce.order_watcher import OrderStatusWatcher
from commerce.status_feed import ScriptedStatusFeed


@pytest.fixture(autouse=True)
def default_settings():
    """Make get_settings() ignore the environment during tests."""
    settings = reset_settings(SessionSettings())
    yield settings
    reset_settings(None)


@pytest.fixture
def settings() -> SessionSettings:
    """Settings with a near-zero poll interval so watch() tests are fast."""
    return SessionSettings(poll_interval_seconds=0.001)


# =============================================================================
# Storage Fixtures
# =============================================================================

@pytest.fixture
def storage() -> MemoryStorage:
    """Fresh in-memory storage, acting as tab A of a browser."""
    return MemoryStorage(tab_id="tab-a")


@pytest.fixture
def other_tab(storage: MemoryStorage) -> MemoryStorage:
    """A second tab sharing the same backend as `storage`."""
    return storage.open_tab(tab_id="tab-b")


# =============================================================================
# Identity Fixtures
# =============================================================================

@pytest.fixture
def asha() -> Identity:
    """Customer U1, the main signed-in user in most tests."""
    return Identity(id="U1", role=Role.CUSTOMER, name="Asha")


@pytest.fixture
def ravi() -> Identity:
    """Customer U2, the 'someone else' in isolation tests."""
    return Identity(id="U2", role=Role.CUSTOMER, name="Ravi")


@pytest.fixture
def resolver(storage: MemoryStorage) -> IdentityResolver:
    """Identity resolver for tab A, starting as guest."""
    return IdentityResolver(storage)


# =============================================================================
# Store Fixtures
# =============================================================================

@pytest.fixture
def cart_store(storage, resolver, settings):
    """Started cart store for tab A."""
    store = CartStore(storage, resolver, settings=settings)
    store.start()
    yield store
    store.stop()


@pytest.fixture
def notification_store(storage, settings):
    """Started notification store using the shared (unscoped) list."""
    store = NotificationStore(storage, settings=settings)
    store.start()
    yield store
    store.stop()


@pytest.fixture
def feed() -> ScriptedStatusFeed:
    return ScriptedStatusFeed()


@pytest.fixture
def watcher(notification_store, storage, feed, settings) -> OrderStatusWatcher:
    return OrderStatusWatcher(notification_store, storage, feed=feed, settings=settings)


@pytest.fixture
def kurti() -> dict:
    """A product as the design page hands it to the cart."""
    return {"id": "kurti-01", "name": "Designer Kurti", "price": 1200}
