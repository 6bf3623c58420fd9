"""
Demonstration scripts for the commerce session engine.

These functions walk through the behaviours that matter most: carts that
stay with their owner, and order updates that are announced exactly once.
Run them through the CLI: `python cli.py demo all`.
"""

import asyncio

from session.config import SessionSettings
from session.identity import IdentityResolver
from session.models import Identity, Role
from session.persistence import MemoryStorage, write_record
from commerce.cart_store import CartStore
from commerce.notification_store import NotificationStore
from commerce.order_watcher import OrderStatusWatcher
from commerce.status_feed import ScriptedStatusFeed


def _banner(title: str) -> None:
    print("\n" + "=" * 70)
    print(title)
    print("=" * 70 + "\n")


def _show_cart(label: str, cart: CartStore) -> None:
    lines = ", ".join(f"{item.name} x{item.quantity}" for item in cart.items) or "(empty)"
    print(f"  {label:<28} {cart.key:<14} {lines}  | total {cart.get_total()}")


def run_cart_isolation_demo():
    """
    Demonstrate identity-scoped carts.

    This shows:
    1. A guest cart left over from an earlier visit
    2. Signing in replaces it with the user's own cart (no merge)
    3. A second tab signing in as someone else re-keys the first tab's cart
    4. Signing out leaves each user's cart safely persisted
    """
    _banner("SESSION DEMO: Identity-Scoped Carts")

    settings = SessionSettings()
    tab_a = MemoryStorage(tab_id="tab-a")
    tab_b = tab_a.open_tab(tab_id="tab-b")

    # A guest cart persisted by an earlier visit
    write_record(tab_a, "cart:guest", [{"id": "X", "name": "Silk Scarf", "price": "450", "quantity": 1}])

    resolver_a = IdentityResolver(tab_a)
    cart_a = CartStore(tab_a, resolver_a, settings=settings)
    cart_a.start()
    _show_cart("Guest opens the store", cart_a)

    result = cart_a.add_to_cart({"id": "kurti-01", "name": "Designer Kurti", "price": 1200})
    print(f"  Guest add_to_cart -> success={result.success} failure={result.failure}")

    resolver_a.sign_in(Identity(id="U1", role=Role.CUSTOMER, name="Asha"))
    _show_cart("Asha signs in", cart_a)

    cart_a.add_to_cart({"id": "kurti-01", "name": "Designer Kurti", "price": 1200, "quantity": 2})
    cart_a.add_to_cart({"id": "kurti-01", "name": "Designer Kurti", "price": 1200, "quantity": 3})
    _show_cart("Asha adds 2 + 3 kurtis", cart_a)

    # Another tab on the same browser signs in as someone else
    IdentityResolver(tab_b).sign_in(Identity(id="U2", role=Role.CUSTOMER, name="Ravi"))
    _show_cart("Ravi signs in on tab B", cart_a)

    resolver_a.sign_in(Identity(id="U1", role=Role.CUSTOMER, name="Asha"))
    _show_cart("Asha signs back in", cart_a)

    resolver_a.sign_out()
    _show_cart("Asha signs out", cart_a)

    cart_a.stop()


def run_order_watch_demo():
    """
    Demonstrate deduplicated order notifications.

    This shows:
    1. The first observation only records a baseline
    2. Re-polling the same status never notifies again
    3. Each new status produces exactly one notification
    """
    _banner("SESSION DEMO: Order Status Notifications")

    settings = SessionSettings(poll_interval_seconds=0.01)
    storage = MemoryStorage()
    notifications = NotificationStore(storage, settings=settings)
    feed = ScriptedStatusFeed()
    feed.script(
        "ORD-2024-001234",
        "in_progress",
        "in_progress",
        {"status": "completed", "estimatedDelivery": "Dec 28"},
        "completed",
        {"status": "packed", "trackingNumber": "DT001234"},
        {"status": "shipped", "trackingNumber": "DT001234"},
        "delivered",
        "delivered",
    )
    watcher = OrderStatusWatcher(notifications, storage, feed=feed, settings=settings)

    created = asyncio.run(watcher.watch(["ORD-2024-001234"], max_polls=8))

    print(f"  Polls: {feed.fetch_count}, notifications created: {len(created)}")
    print(f"  Unread: {notifications.unread_count}\n")
    for notification in reversed(notifications.notifications):
        print(f"  {notification.icon} {notification.title}: {notification.message}")
