"""
Identity resolver for the commerce session engine.

Works out who the current actor is from the persisted credential record and
tells interested stores when that changes.

Design decisions:
- The resolved identity is cached; storage is only re-read on refresh() or
  when another tab changes the identity key
- Same-tab changes go through sign_in()/sign_out(); cross-tab changes arrive
  through the persistence port's change events when it supports them
- Listeners only hear about real changes of identity key (guest -> u1,
  u1 -> u2, u1 -> guest), never about re-writes of the same user
- A corrupt credential record is logged, cleared, and read as guest
"""

import logging
from typing import Callable, Optional, Protocol

from session.change_bus import StorageEvent
from session.errors import PersistenceUnavailable
from session.models import Identity, identity_key
from session.persistence import PersistencePort, read_record, remove_record, write_record

logger = logging.getLogger("identity")


IDENTITY_KEY = "identity"
TOKEN_KEY = "token"

# Listener signature: called with the new identity (None for guest)
IdentityListener = Callable[[Optional[Identity]], None]


class SessionIdentityProvider(Protocol):
    """Anything that can say who is signed in right now."""

    def get_identity(self) -> Optional[Identity]:
        ...


class IdentityResolver:
    """
    Resolves and caches the current identity.

    Example:
        resolver = IdentityResolver(storage)
        resolver.on_identity_change(cart_store.switch_identity)
        resolver.sign_in(Identity(id="u1", role="customer"))
    """

    def __init__(self, storage: PersistencePort):
        self.storage = storage
        self._listeners: list[IdentityListener] = []
        self._identity: Optional[Identity] = self._read_identity()
        self._watching = False

    # =========================================================================
    # Resolution
    # =========================================================================

    def _read_identity(self) -> Optional[Identity]:
        return read_record(self.storage, IDENTITY_KEY, parse=Identity.model_validate)

    def current_identity(self) -> Optional[Identity]:
        """The cached identity, or None for a guest."""
        return self._identity

    def get_identity(self) -> Optional[Identity]:
        """SessionIdentityProvider interface."""
        return self._identity

    @property
    def is_guest(self) -> bool:
        return self._identity is None

    @property
    def current_key(self) -> str:
        return identity_key(self._identity)

    def refresh(self) -> Optional[Identity]:
        """Re-read storage and notify listeners if the identity changed."""
        self._update(self._read_identity())
        return self._identity

    # =========================================================================
    # Same-tab changes
    # =========================================================================

    def sign_in(self, identity: Identity, token: Optional[str] = None) -> None:
        """Persist a signed-in identity (and optional token) and notify listeners."""
        write_record(self.storage, IDENTITY_KEY, identity.model_dump(mode="json"))
        if token is not None:
            try:
                self.storage.set(TOKEN_KEY, token)
            except PersistenceUnavailable as e:
                logger.error(f"Could not persist token: {e}")
        logger.info(f"Signed in as {identity.id} ({identity.role})")
        self._update(identity)

    def sign_out(self) -> None:
        """Forget the identity and token and notify listeners."""
        remove_record(self.storage, IDENTITY_KEY)
        remove_record(self.storage, TOKEN_KEY)
        logger.info("Signed out")
        self._update(None)

    # =========================================================================
    # Listeners
    # =========================================================================

    def on_identity_change(self, listener: IdentityListener) -> None:
        """
        Register a listener for identity changes.

        The first registration also starts watching the storage for changes
        made in other tabs, if the storage supports that.
        """
        self._listeners.append(listener)
        if not self._watching:
            self._watching = self.storage.subscribe(self._handle_storage_event)
            if not self._watching:
                logger.debug("Storage has no change events; identity sync is same-tab only")

    def remove_identity_listener(self, listener: IdentityListener) -> bool:
        try:
            self._listeners.remove(listener)
        except ValueError:
            return False
        if not self._listeners and self._watching:
            self.storage.unsubscribe(self._handle_storage_event)
            self._watching = False
        return True

    def _handle_storage_event(self, event: StorageEvent) -> None:
        if event.key != IDENTITY_KEY:
            return
        logger.info("Identity changed in another tab")
        self.refresh()

    def _update(self, identity: Optional[Identity]) -> None:
        previous_key = identity_key(self._identity)
        self._identity = identity
        new_key = identity_key(identity)
        if new_key == previous_key:
            return

        logger.info(f"Identity changed: {previous_key} -> {new_key}")
        for listener in list(self._listeners):
            try:
                listener(identity)
            except Exception as e:
                logger.error(f"Identity listener raised: {e}")
