"""
Identity-scoped shopping cart store.

Keeps one cart snapshot in memory, keyed by the signed-in identity
("cart:<userId>", or "cart:guest"), and persists it after every mutation.

Design decisions:
- Every mutation builds a new item list and swaps it in, so an operation
  either fully applies or does nothing
- Switching identity REPLACES the snapshot with the new identity's persisted
  cart; guest items are never merged into a user's cart
- Persistence failures are logged and the in-memory change is kept; the
  caller still gets success
- Failures the host UI should explain (sign-in needed, bad item) come back as
  CartResult values, not exceptions
- Candidate items are normalized the way the storefront's product and design
  pages send them (id/_id, price/basePrice, title/name, ...)
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping, Optional, Union
from uuid import uuid4

from pydantic import TypeAdapter, ValidationError

from session.change_bus import StorageEvent
from session.config import SessionSettings, get_settings
from session.errors import AuthRequired, InvalidItem
from session.identity import IdentityResolver
from session.models import (
    DEFAULT_ITEM_CATEGORY,
    DEFAULT_ITEM_DESCRIPTION,
    DEFAULT_ITEM_IMAGE,
    DEFAULT_ITEM_NAME,
    CartItem,
    Identity,
    ItemMetadata,
    identity_key,
)
from session.persistence import PersistencePort, read_record, remove_record, write_record

logger = logging.getLogger("cart_store")


CART_KEY_PREFIX = "cart:"

_snapshot_adapter = TypeAdapter(list[CartItem])

# Candidate keys that may carry tailoring metadata at the top level
_METADATA_FIELDS = {
    "fabric": "fabric",
    "color": "color",
    "size": "size",
    "difficulty": "difficulty",
    "estimatedDays": "estimated_days",
    "estimated_days": "estimated_days",
}


def cart_key(identity: Optional[Identity]) -> str:
    """Storage key for an identity's cart."""
    return f"{CART_KEY_PREFIX}{identity_key(identity)}"


class CartFailure(str, Enum):
    """Why a cart mutation was refused."""
    AUTH_REQUIRED = "auth_required"
    INVALID_ITEM = "invalid_item"


@dataclass
class CartResult:
    """
    Outcome of add_to_cart.

    Truthy on success, so callers can write `if cart.add_to_cart(item): ...`.
    `persisted` is False when the change only lives in memory.
    """
    success: bool
    item: Optional[CartItem] = None
    failure: Optional[CartFailure] = None
    error: Optional[str] = None
    persisted: bool = True

    def __bool__(self) -> bool:
        return self.success


# =============================================================================
# Lenient numeric coercion
# =============================================================================

def parse_decimal(value: Any) -> Optional[Decimal]:
    """Parse a number-like value, or None if it isn't a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def as_decimal(value: Any) -> Decimal:
    """Parse a price-like value; anything non-numeric counts as zero."""
    number = parse_decimal(value)
    return number if number is not None else Decimal(0)


def as_int(value: Any) -> int:
    """Parse a quantity-like value; anything non-numeric counts as zero."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(as_decimal(value))
    except (InvalidOperation, ValueError, OverflowError):
        return 0


def normalize_candidate(candidate: Union[CartItem, Mapping[str, Any]]) -> CartItem:
    """
    Turn whatever the product page hands us into a CartItem.

    Missing id -> temporary id; missing quantity -> 1; missing descriptive
    fields -> storefront defaults.

    Raises:
        InvalidItem: If the price isn't positive or the item can't be built
    """
    if isinstance(candidate, CartItem):
        data = candidate.model_dump()
    elif isinstance(candidate, Mapping):
        data = dict(candidate)
    else:
        raise InvalidItem(f"Unsupported cart candidate: {type(candidate).__name__}")

    item_id = data.get("id") or data.get("_id") or f"temp-{uuid4().hex[:12]}"
    # A zero price still falls back to basePrice
    price = as_decimal(data.get("price")) or as_decimal(data.get("basePrice"))
    if price <= 0:
        raise InvalidItem(f"Item {item_id} has invalid price {price}")

    quantity = as_int(data.get("quantity"))
    if quantity < 1:
        quantity = 1

    metadata = dict(data.get("metadata") or {})
    for source, target in _METADATA_FIELDS.items():
        if data.get(source) is not None:
            metadata[target] = data[source]

    try:
        return CartItem(
            id=str(item_id),
            name=data.get("name") or data.get("title") or DEFAULT_ITEM_NAME,
            price=price,
            quantity=quantity,
            category=data.get("category") or DEFAULT_ITEM_CATEGORY,
            image=(
                data.get("image")
                or data.get("primaryImage")
                or data.get("imageUrl")
                or DEFAULT_ITEM_IMAGE
            ),
            description=data.get("description") or DEFAULT_ITEM_DESCRIPTION,
            design_id=data.get("design_id") or data.get("designId") or str(item_id),
            metadata=ItemMetadata.model_validate(metadata),
        )
    except ValidationError as e:
        raise InvalidItem(f"Item {item_id} failed validation: {e}") from e


# =============================================================================
# Cart store
# =============================================================================

class CartStore:
    """
    The active cart for whoever is signed in.

    Example:
        cart = CartStore(storage, resolver)
        cart.start()                      # follow sign-in/out and other tabs
        if not cart.add_to_cart({"id": "d1", "price": 1200}):
            ...                           # prompt sign-in or show the error
        cart.get_total()
    """

    def __init__(
        self,
        storage: PersistencePort,
        identity_resolver: IdentityResolver,
        settings: Optional[SessionSettings] = None,
    ):
        self.storage = storage
        self.identity_resolver = identity_resolver
        self.settings = settings or get_settings()

        # Cart panel open/closed (UI flag, not persisted)
        self.is_open = False

        self._identity: Optional[Identity] = identity_resolver.current_identity()
        self._items: list[CartItem] = []
        self._started = False
        self.load()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Follow identity changes and cart writes made in other tabs."""
        if self._started:
            logger.warning("CartStore already started")
            return
        self.identity_resolver.on_identity_change(self.switch_identity)
        self.storage.subscribe(self._handle_storage_event)
        self._started = True
        logger.info(f"CartStore started for {self.key}")

    def stop(self) -> None:
        if not self._started:
            return
        self.identity_resolver.remove_identity_listener(self.switch_identity)
        self.storage.unsubscribe(self._handle_storage_event)
        self._started = False
        logger.info("CartStore stopped")

    # =========================================================================
    # Reads
    # =========================================================================

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def key(self) -> str:
        return cart_key(self._identity)

    @property
    def items(self) -> tuple[CartItem, ...]:
        return tuple(self._items)

    def get_item(self, item_id: str) -> Optional[CartItem]:
        return next((item for item in self._items if item.id == item_id), None)

    def get_total(self) -> Decimal:
        """Sum of price x quantity; non-numeric values contribute zero."""
        return sum(
            (as_decimal(item.price) * as_int(item.quantity) for item in self._items),
            Decimal(0),
        )

    def get_item_count(self) -> int:
        """Sum of quantities; non-numeric quantities contribute zero."""
        return sum(as_int(item.quantity) for item in self._items)

    def load(self) -> tuple[CartItem, ...]:
        """
        (Re)load the snapshot for the bound identity from storage.

        A corrupt snapshot is cleared and replaced by an empty cart. Safe to
        call any number of times.
        """
        snapshot = read_record(
            self.storage,
            self.key,
            parse=_snapshot_adapter.validate_python,
            default=None,
        )
        self._items = list(snapshot or [])
        logger.info(f"Loaded {self.key} with {len(self._items)} item(s)")
        return self.items

    # =========================================================================
    # Mutations
    # =========================================================================

    def add_to_cart(self, candidate: Union[CartItem, Mapping[str, Any]]) -> CartResult:
        """
        Add an item, merging quantities when the id is already in the cart.

        On success the cart panel opens and the snapshot is persisted.
        """
        if self._identity is None and not self.settings.allow_guest_cart:
            error = AuthRequired("Sign in to add items to your cart")
            logger.warning(f"Rejected add to cart for guest: {error}")
            return CartResult(success=False, failure=CartFailure.AUTH_REQUIRED, error=str(error))

        try:
            item = normalize_candidate(candidate)
        except InvalidItem as e:
            logger.warning(f"Rejected add to cart: {e.reason}")
            return CartResult(success=False, failure=CartFailure.INVALID_ITEM, error=e.reason)

        updated: list[CartItem] = []
        stored = item
        for existing in self._items:
            if existing.id == item.id:
                stored = existing.model_copy(
                    update={"quantity": as_int(existing.quantity) + item.quantity}
                )
                updated.append(stored)
            else:
                updated.append(existing)
        if stored is item:
            updated.append(item)
            logger.info(f"Added {item.id} x{item.quantity} to {self.key}")
        else:
            logger.info(f"Merged {item.id} into {self.key}, quantity now {stored.quantity}")

        self._items = updated
        self.is_open = True
        return CartResult(success=True, item=stored, persisted=self._persist())

    def remove_from_cart(self, item_id: str) -> bool:
        """Drop a line. Returns False if it wasn't in the cart."""
        remaining = [item for item in self._items if item.id != item_id]
        if len(remaining) == len(self._items):
            logger.debug(f"Remove ignored, {item_id} not in {self.key}")
            return False
        self._items = remaining
        self._persist()
        logger.info(f"Removed {item_id} from {self.key}")
        return True

    def update_quantity(self, item_id: str, quantity: Any) -> bool:
        """
        Set a line's quantity.

        Zero or negative removes the line; anything unparseable becomes 1.
        Returns False if the item isn't in the cart.
        """
        number = parse_decimal(quantity)
        if number is not None and number <= 0:
            return self.remove_from_cart(item_id)
        new_quantity = int(number) if number is not None and number >= 1 else 1

        if self.get_item(item_id) is None:
            logger.debug(f"Quantity update ignored, {item_id} not in {self.key}")
            return False
        self._items = [
            item.model_copy(update={"quantity": new_quantity}) if item.id == item_id else item
            for item in self._items
        ]
        self._persist()
        logger.info(f"Set {item_id} quantity to {new_quantity} in {self.key}")
        return True

    def clear_cart(self) -> None:
        """Empty the cart and delete its persisted key entirely."""
        self._items = []
        remove_record(self.storage, self.key)
        logger.info(f"Cleared {self.key}")

    def switch_identity(self, identity: Optional[Identity]) -> tuple[CartItem, ...]:
        """
        Rebind to another identity and load its cart.

        The current snapshot is discarded, not merged. It is already
        persisted under the previous identity's key.
        """
        previous = self.key
        self._identity = identity
        self._items = []
        logger.info(f"Switching cart {previous} -> {self.key}")
        return self.load()

    # =========================================================================
    # UI flag
    # =========================================================================

    def open_cart(self) -> None:
        self.is_open = True

    def close_cart(self) -> None:
        self.is_open = False

    def toggle_cart(self) -> bool:
        self.is_open = not self.is_open
        return self.is_open

    # =========================================================================
    # Internals
    # =========================================================================

    def _persist(self) -> bool:
        snapshot = [item.model_dump(mode="json", by_alias=True) for item in self._items]
        return write_record(self.storage, self.key, snapshot)

    def _handle_storage_event(self, event: StorageEvent) -> None:
        if event.key != self.key:
            return
        logger.info(f"{self.key} changed in another tab, reloading")
        self.load()

