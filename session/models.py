"""
Domain models for the commerce session engine.

These models describe everything the session engine persists or hands to the
host UI: the signed-in identity, cart lines, notifications, and the ephemeral
order status observations that drive the watcher.

Design decisions:
- Using Pydantic for validation and serialization
- Persisted/UI-facing field names are camelCase (linkTo, isRead, createdAt),
  the Python attribute names are snake_case; both are accepted on input
- Prices are Decimal so cart totals don't accumulate float error
- Status strings stay plain strings on observations, because the feed may send
  values this module doesn't know about
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


GUEST_KEY = "guest"
DEFAULT_ITEM_IMAGE = "https://via.placeholder.com/300x300?text=Design"
DEFAULT_ITEM_CATEGORY = "Custom Design"
DEFAULT_ITEM_NAME = "Custom Design"
DEFAULT_ITEM_DESCRIPTION = "Beautiful custom tailored design"


def utcnow() -> datetime:
    """Timezone-aware current time, used for every timestamp we persist."""
    return datetime.now(timezone.utc)


# =============================================================================
# Enums
# =============================================================================

class Role(str, Enum):
    """Roles a signed-in actor can hold."""
    CUSTOMER = "customer"
    TAILOR = "tailor"
    ADMIN = "admin"


class OrderStatus(str, Enum):
    """
    Order lifecycle states, in forward order.

    The watcher trusts the feed, so skipping states is allowed.
    """
    PLACED = "placed"
    CONFIRMED = "confirmed"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"       # Stitching underway
    COMPLETED = "completed"           # Stitching completed
    PACKED = "packed"
    SHIPPED = "shipped"               # Out for delivery
    DELIVERED = "delivered"


class NotificationType(str, Enum):
    """Every kind of notification the UI knows how to render."""
    # Order lifecycle
    ORDER_PLACED = "order_placed"
    ORDER_CONFIRMED = "order_confirmed"
    ORDER_ASSIGNED = "order_assigned"
    ORDER_STITCHING_COMPLETED = "order_stitching_completed"
    ORDER_PACKED = "order_packed"
    ORDER_SHIPPED = "order_shipped"
    ORDER_DELIVERED = "order_delivered"

    # Account and design
    MEASUREMENT_SAVED = "measurement_saved"
    DESIGN_READY = "design_ready"
    ACCOUNT_UPDATE = "account_update"

    # Everything else
    SYSTEM = "system"
    PROMOTION = "promotion"


def normalize_status(value: str) -> str:
    """Lower-case a feed status and turn whitespace into underscores."""
    return "_".join(str(value).strip().lower().split())


# =============================================================================
# Identity
# =============================================================================

class Identity(BaseModel):
    """
    The signed-in actor.

    Built from the persisted credential record. User records from the backend
    carry either `id` or `_id`, so both are accepted.
    """
    id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("id", "_id"),
        description="Unique user identifier",
    )
    role: Role = Field(default=Role.CUSTOMER)
    name: Optional[str] = Field(default=None)
    email: Optional[str] = Field(default=None)

    model_config = ConfigDict(use_enum_values=True, coerce_numbers_to_str=True)

    @property
    def key(self) -> str:
        """Storage key segment for this identity."""
        return self.id


def identity_key(identity: Optional[Identity]) -> str:
    """Storage key segment for an identity, or 'guest' when nobody is signed in."""
    return identity.key if identity is not None else GUEST_KEY


# =============================================================================
# Cart
# =============================================================================

class ItemMetadata(BaseModel):
    """Tailoring details attached to a cart line."""
    fabric: str = Field(default="Cotton")
    color: str = Field(default="Default")
    size: str = Field(default="Custom")
    difficulty: str = Field(default="Medium")
    estimated_days: int = Field(default=7, ge=0)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CartItem(BaseModel):
    """
    A single line in a cart.

    `id` is unique within a cart; adding the same id again merges quantities.
    """
    id: str = Field(..., min_length=1, description="Line identifier (design or product id)")
    name: str = Field(default=DEFAULT_ITEM_NAME)
    price: Decimal = Field(..., ge=0, description="Unit price")
    quantity: int = Field(default=1, ge=1)
    category: str = Field(default=DEFAULT_ITEM_CATEGORY)
    image: str = Field(default=DEFAULT_ITEM_IMAGE)
    description: str = Field(default=DEFAULT_ITEM_DESCRIPTION)
    design_id: Optional[str] = Field(default=None)
    metadata: ItemMetadata = Field(default_factory=ItemMetadata)
    added_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


# =============================================================================
# Notifications
# =============================================================================

class NotificationDraft(BaseModel):
    """What a caller supplies to create a notification."""
    type: NotificationType = Field(default=NotificationType.SYSTEM)
    title: str
    message: str
    icon: Optional[str] = Field(default=None, description="Defaults to the type's icon")
    link_to: Optional[str] = Field(default=None, description="Opaque route reference")

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )


class Notification(BaseModel):
    """
    A notification as stored and surfaced to the UI.

    Lifecycle: Unread -> Read (one way), and either state -> Deleted.
    """
    id: str
    type: NotificationType
    title: str
    message: str
    icon: str
    link_to: Optional[str] = Field(default=None)
    is_read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )


# =============================================================================
# Order status observations
# =============================================================================

class StatusObservation(BaseModel):
    """
    One reading of an order's status from the feed.

    Never persisted as an entity; only the status string ends up in the
    watcher's ledger.
    """
    order_id: str = Field(..., min_length=1)
    status: str = Field(..., min_length=1)
    assigned_tailor: Optional[str] = Field(default=None)
    tracking_number: Optional[str] = Field(default=None)
    estimated_delivery: Optional[str] = Field(default=None)

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    @field_validator("status")
    @classmethod
    def _normalize_status(cls, value: str) -> str:
        status = normalize_status(value)
        if not status:
            raise ValueError("status must not be blank")
        return status

    @field_validator("assigned_tailor", mode="before")
    @classmethod
    def _tailor_display_name(cls, value: Any) -> Optional[str]:
        # The backend sends either a name or a tailor record
        if isinstance(value, dict):
            first = value.get("firstName")
            last = value.get("lastName")
            if first and last:
                return f"{first} {last}"
            return value.get("name") or first or None
        return value

    @property
    def known_status(self) -> Optional[OrderStatus]:
        """The status as an OrderStatus, or None when the feed sent something new."""
        try:
            return OrderStatus(self.status)
        except ValueError:
            return None
