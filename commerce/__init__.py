"""
Commerce session stores.

- CartStore: the identity-scoped cart
- NotificationStore: the local notification list and its unread count
- OrderStatusWatcher: one notification per novel order status
- Status feeds the watcher can poll
"""

from commerce.cart_store import CartFailure, CartResult, CartStore
from commerce.notification_store import NotificationStore
from commerce.order_watcher import OrderStatusWatcher
from commerce.status_feed import HttpOrderStatusFeed, OrderStatusFeed, ScriptedStatusFeed

__all__ = [
    "CartFailure",
    "CartResult",
    "CartStore",
    "NotificationStore",
    "OrderStatusWatcher",
    "HttpOrderStatusFeed",
    "OrderStatusFeed",
    "ScriptedStatusFeed",
]
