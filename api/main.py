"""
FastAPI host surface for the commerce session engine.

The storefront UI talks to this application instead of reaching into the
stores directly:
1. Session endpoints (/session) to sign in and out
2. Cart endpoints (/cart) for the identity-scoped cart
3. Notification endpoints (/notifications) for the bell and notifications page
4. Order status intake (/orders/{order_id}/status) feeding the watcher, and
   on-demand polls of the order backend (/orders/{order_id}/poll)

Run with:
    python cli.py serve

Then visit http://localhost:8000/docs for interactive API documentation.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from session.config import SessionSettings, get_settings
from session.identity import IdentityResolver
from session.logging_setup import configure_logging
from session.models import Identity, NotificationDraft, Role, StatusObservation
from session.persistence import PersistencePort, create_storage
from commerce.cart_store import CartFailure, CartStore
from commerce.notification_store import NotificationStore
from commerce.order_watcher import OrderStatusWatcher
from commerce.status_feed import HttpOrderStatusFeed, OrderStatusFeed

logger = logging.getLogger("session_api")


# =============================================================================
# Session context
# =============================================================================

@dataclass
class SessionContext:
    """Every store the API serves, wired to one storage and one resolver."""
    storage: PersistencePort
    resolver: IdentityResolver
    cart: CartStore
    notifications: NotificationStore
    watcher: OrderStatusWatcher

    @classmethod
    def create(
        cls,
        settings: Optional[SessionSettings] = None,
        storage: Optional[PersistencePort] = None,
        feed: Optional[OrderStatusFeed] = None,
    ) -> "SessionContext":
        settings = settings or get_settings()
        storage = storage or create_storage(settings.storage_path, key_prefix=settings.key_prefix)
        feed = feed or HttpOrderStatusFeed.from_settings(settings, storage)
        resolver = IdentityResolver(storage)
        cart = CartStore(storage, resolver, settings=settings)
        notifications = NotificationStore(storage, identity_resolver=resolver, settings=settings)
        watcher = OrderStatusWatcher(notifications, storage, feed=feed, settings=settings)
        cart.start()
        notifications.start()
        return cls(storage, resolver, cart, notifications, watcher)

    def close(self) -> None:
        self.cart.stop()
        self.notifications.stop()


# Module-level instance (tests swap it with reset_api_state)
_context: Optional[SessionContext] = None


def get_context() -> SessionContext:
    global _context
    if _context is None:
        _context = SessionContext.create()
    return _context


def reset_api_state(context: Optional[SessionContext] = None) -> None:
    """Replace the session context (for testing)."""
    global _context
    if _context is not None and _context is not context:
        _context.close()
    _context = context


# =============================================================================
# Request/response models
# =============================================================================

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SignInRequest(CamelModel):
    id: str = Field(..., min_length=1)
    role: Role = Field(default=Role.CUSTOMER)
    name: Optional[str] = None
    email: Optional[str] = None
    token: Optional[str] = None


class QuantityUpdate(BaseModel):
    quantity: Any


class StatusReport(CamelModel):
    status: str = Field(..., min_length=1)
    assigned_tailor: Optional[Any] = None
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[str] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    @field_validator("status")
    @classmethod
    def _status_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("status must not be blank")
        return value


class NotificationCreated(CamelModel):
    id: str
    unread_count: int


class StatusResult(CamelModel):
    order_id: str
    status: str
    notified: bool
    notification_id: Optional[str] = None


class PollResult(CamelModel):
    order_id: str
    notified: bool
    notification_id: Optional[str] = None
    last_notified: Optional[str] = None


def _session_view(context: SessionContext) -> dict[str, Any]:
    identity = context.resolver.current_identity()
    return {
        "identity": identity.model_dump(mode="json") if identity else None,
        "identityKey": context.resolver.current_key,
        "isGuest": identity is None,
    }


def _cart_view(cart: CartStore) -> dict[str, Any]:
    return {
        "key": cart.key,
        "items": [item.model_dump(mode="json", by_alias=True) for item in cart.items],
        "total": str(cart.get_total()),
        "itemCount": cart.get_item_count(),
        "isOpen": cart.is_open,
    }


def _notifications_view(store: NotificationStore) -> dict[str, Any]:
    return {
        "notifications": [n.model_dump(mode="json", by_alias=True) for n in store.notifications],
        "unreadCount": store.unread_count,
    }


# =============================================================================
# Application
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    configure_logging(get_settings().log_level)
    logger.info("Starting DigiTailor session API")
    yield
    logger.info("Shutting down")
    reset_api_state(None)


app = FastAPI(
    title="DigiTailor Session API",
    description="Identity-scoped cart, local notifications, and order status watching.",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "digitailor-session"}


# -----------------------------------------------------------------------------
# Session
# -----------------------------------------------------------------------------

@app.get("/session", tags=["Session"])
def read_session(context: SessionContext = Depends(get_context)):
    return _session_view(context)


@app.post("/session/sign-in", tags=["Session"])
def sign_in(request: SignInRequest, context: SessionContext = Depends(get_context)):
    identity = Identity(id=request.id, role=request.role, name=request.name, email=request.email)
    context.resolver.sign_in(identity, token=request.token)
    return {**_session_view(context), "cart": _cart_view(context.cart)}


@app.post("/session/sign-out", tags=["Session"])
def sign_out(context: SessionContext = Depends(get_context)):
    context.resolver.sign_out()
    return {**_session_view(context), "cart": _cart_view(context.cart)}


# -----------------------------------------------------------------------------
# Cart
# -----------------------------------------------------------------------------

@app.get("/cart", tags=["Cart"])
def read_cart(context: SessionContext = Depends(get_context)):
    return _cart_view(context.cart)


@app.post("/cart/items", tags=["Cart"])
def add_cart_item(
    candidate: dict[str, Any] = Body(...),
    context: SessionContext = Depends(get_context),
):
    """
    Add an item to the active cart.

    401 when nobody is signed in, 422 when the item is invalid (e.g. price 0).
    """
    result = context.cart.add_to_cart(candidate)
    if result.failure == CartFailure.AUTH_REQUIRED:
        raise HTTPException(status_code=401, detail=result.error)
    if result.failure == CartFailure.INVALID_ITEM:
        raise HTTPException(status_code=422, detail=result.error)
    return {
        **_cart_view(context.cart),
        "item": result.item.model_dump(mode="json", by_alias=True),
        "persisted": result.persisted,
    }


@app.patch("/cart/items/{item_id}", tags=["Cart"])
def update_cart_item(
    item_id: str,
    update: QuantityUpdate,
    context: SessionContext = Depends(get_context),
):
    if context.cart.get_item(item_id) is None:
        raise HTTPException(status_code=404, detail=f"Item not in cart: {item_id}")
    context.cart.update_quantity(item_id, update.quantity)
    return _cart_view(context.cart)


@app.delete("/cart/items/{item_id}", tags=["Cart"])
def remove_cart_item(item_id: str, context: SessionContext = Depends(get_context)):
    if not context.cart.remove_from_cart(item_id):
        raise HTTPException(status_code=404, detail=f"Item not in cart: {item_id}")
    return _cart_view(context.cart)


@app.delete("/cart", tags=["Cart"])
def clear_cart(context: SessionContext = Depends(get_context)):
    context.cart.clear_cart()
    return _cart_view(context.cart)


# -----------------------------------------------------------------------------
# Notifications
# -----------------------------------------------------------------------------

@app.get("/notifications", tags=["Notifications"])
def list_notifications(context: SessionContext = Depends(get_context)):
    return _notifications_view(context.notifications)


@app.post("/notifications", response_model=NotificationCreated, tags=["Notifications"])
def create_notification(draft: NotificationDraft, context: SessionContext = Depends(get_context)):
    notification_id = context.notifications.add_notification(draft)
    return NotificationCreated(id=notification_id, unread_count=context.notifications.unread_count)


@app.post("/notifications/read-all", tags=["Notifications"])
def mark_all_read(context: SessionContext = Depends(get_context)):
    changed = context.notifications.mark_all_as_read()
    return {**_notifications_view(context.notifications), "changed": changed}


@app.post("/notifications/{notification_id}/read", tags=["Notifications"])
def mark_read(notification_id: str, context: SessionContext = Depends(get_context)):
    if context.notifications.get(notification_id) is None:
        raise HTTPException(status_code=404, detail=f"Notification not found: {notification_id}")
    changed = context.notifications.mark_as_read(notification_id)
    return {**_notifications_view(context.notifications), "changed": changed}


@app.delete("/notifications/{notification_id}", tags=["Notifications"])
def delete_notification(notification_id: str, context: SessionContext = Depends(get_context)):
    if not context.notifications.remove_notification(notification_id):
        raise HTTPException(status_code=404, detail=f"Notification not found: {notification_id}")
    return _notifications_view(context.notifications)


@app.delete("/notifications", tags=["Notifications"])
def clear_notifications(context: SessionContext = Depends(get_context)):
    context.notifications.clear_all_notifications()
    return _notifications_view(context.notifications)


# -----------------------------------------------------------------------------
# Order status intake
# -----------------------------------------------------------------------------

@app.post("/orders/{order_id}/status", response_model=StatusResult, tags=["Orders"])
def report_order_status(
    order_id: str,
    report: StatusReport,
    context: SessionContext = Depends(get_context),
):
    """
    Feed one status observation into the watcher.

    The first report for an order only records a baseline; later reports
    notify once per new status.
    """
    observation = StatusObservation(
        order_id=order_id,
        status=report.status,
        assigned_tailor=report.assigned_tailor,
        tracking_number=report.tracking_number,
        estimated_delivery=report.estimated_delivery,
    )
    notification_id = context.watcher.observe(observation)
    return StatusResult(
        order_id=order_id,
        status=observation.status,
        notified=notification_id is not None,
        notification_id=notification_id,
    )


@app.post("/orders/{order_id}/poll", response_model=PollResult, tags=["Orders"])
async def poll_order_status(order_id: str, context: SessionContext = Depends(get_context)):
    """
    Ask the order backend for the current status and feed it to the watcher.

    Feed failures are logged by the watcher and reported as notified=false.
    """
    notification_id = await context.watcher.poll(order_id)
    return PollResult(
        order_id=order_id,
        notified=notification_id is not None,
        notification_id=notification_id,
        last_notified=context.watcher.last_notified(order_id),
    )
