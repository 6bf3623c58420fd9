"""
Local notification store.

Holds the notification list the bell icon and the notifications page show,
newest first, and persists it after every change. Nothing here talks to a
server: notifications are created locally, by the order watcher or by the
storefront's own actions.

Design decisions:
- unread_count is derived from the list every time; there is no separate
  counter that could drift
- Read state is monotonic: Unread -> Read, never back
- One shared list ("notifications") by default, matching how the storefront
  has always behaved on a shared device. Setting
  scope_notifications_by_identity keys the list per identity instead
  ("notifications:<identityKey>") and re-keys on sign-in/out
- Persistence failures are logged and the in-memory list is kept
"""

import logging
from typing import Any, Mapping, Optional, Union
from uuid import uuid4

from pydantic import TypeAdapter

from session.change_bus import StorageEvent
from session.config import SessionSettings, get_settings
from session.identity import IdentityResolver
from session.models import Identity, Notification, NotificationDraft, identity_key, utcnow
from session.persistence import PersistencePort, read_record, write_record
from commerce.templates import get_notification_icon

logger = logging.getLogger("notification_store")


NOTIFICATIONS_KEY = "notifications"

_list_adapter = TypeAdapter(list[Notification])


class NotificationStore:
    """
    Notification list with read-state bookkeeping.

    Example:
        store = NotificationStore(storage)
        notification_id = store.add_notification(
            NotificationDraft(type="system", title="Hi", message="Welcome")
        )
        store.unread_count        # 1
        store.mark_as_read(notification_id)
    """

    def __init__(
        self,
        storage: PersistencePort,
        identity_resolver: Optional[IdentityResolver] = None,
        settings: Optional[SessionSettings] = None,
    ):
        self.storage = storage
        self.identity_resolver = identity_resolver
        self.settings = settings or get_settings()

        if self.settings.scope_notifications_by_identity and identity_resolver is None:
            raise ValueError("Identity-scoped notifications need an identity resolver")

        self._identity: Optional[Identity] = (
            identity_resolver.current_identity() if identity_resolver else None
        )
        self._notifications: list[Notification] = []
        self._started = False
        self.load()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Follow writes from other tabs (and identity changes when scoped)."""
        if self._started:
            logger.warning("NotificationStore already started")
            return
        if self.is_scoped:
            self.identity_resolver.on_identity_change(self.switch_identity)
        self.storage.subscribe(self._handle_storage_event)
        self._started = True
        logger.info(f"NotificationStore started for {self.key}")

    def stop(self) -> None:
        if not self._started:
            return
        if self.is_scoped:
            self.identity_resolver.remove_identity_listener(self.switch_identity)
        self.storage.unsubscribe(self._handle_storage_event)
        self._started = False
        logger.info("NotificationStore stopped")

    # =========================================================================
    # Reads
    # =========================================================================

    @property
    def is_scoped(self) -> bool:
        return self.settings.scope_notifications_by_identity

    @property
    def key(self) -> str:
        if self.is_scoped:
            return f"{NOTIFICATIONS_KEY}:{identity_key(self._identity)}"
        return NOTIFICATIONS_KEY

    @property
    def notifications(self) -> tuple[Notification, ...]:
        """All notifications, newest first."""
        return tuple(self._notifications)

    @property
    def unread_count(self) -> int:
        return sum(1 for notification in self._notifications if not notification.is_read)

    def get(self, notification_id: str) -> Optional[Notification]:
        return next((n for n in self._notifications if n.id == notification_id), None)

    def load(self) -> tuple[Notification, ...]:
        """(Re)load the list from storage; a corrupt list is cleared."""
        stored = read_record(
            self.storage,
            self.key,
            parse=_list_adapter.validate_python,
            default=None,
        )
        self._notifications = list(stored or [])
        logger.info(f"Loaded {len(self._notifications)} notification(s) from {self.key}")
        return self.notifications

    # =========================================================================
    # Mutations
    # =========================================================================

    def add_notification(self, draft: Union[NotificationDraft, Mapping[str, Any]]) -> str:
        """
        Create a notification at the top of the list.

        Returns:
            The new notification's id
        """
        if not isinstance(draft, NotificationDraft):
            draft = NotificationDraft.model_validate(draft)

        notification = Notification(
            id=uuid4().hex,
            type=draft.type,
            title=draft.title,
            message=draft.message,
            icon=draft.icon or get_notification_icon(draft.type),
            link_to=draft.link_to,
            is_read=False,
            created_at=utcnow(),
        )
        self._notifications = [notification, *self._notifications]
        self._persist()
        logger.info(f"Added {notification.type} notification {notification.id}: {notification.title}")
        return notification.id

    def mark_as_read(self, notification_id: str) -> bool:
        """
        Mark one notification read.

        Returns:
            True if its state changed; False if it was already read or unknown
        """
        target = self.get(notification_id)
        if target is None or target.is_read:
            logger.debug(f"mark_as_read no-op for {notification_id}")
            return False
        self._notifications = [
            n.model_copy(update={"is_read": True}) if n.id == notification_id else n
            for n in self._notifications
        ]
        self._persist()
        return True

    def mark_all_as_read(self) -> int:
        """
        Mark every notification read.

        Returns:
            How many notifications changed state
        """
        changed = self.unread_count
        if changed == 0:
            return 0
        self._notifications = [
            n if n.is_read else n.model_copy(update={"is_read": True})
            for n in self._notifications
        ]
        self._persist()
        logger.info(f"Marked {changed} notification(s) read")
        return changed

    def remove_notification(self, notification_id: str) -> bool:
        remaining = [n for n in self._notifications if n.id != notification_id]
        if len(remaining) == len(self._notifications):
            return False
        self._notifications = remaining
        self._persist()
        logger.info(f"Removed notification {notification_id}")
        return True

    def clear_all_notifications(self) -> int:
        """Delete every notification. Returns how many were removed."""
        removed = len(self._notifications)
        self._notifications = []
        self._persist()
        logger.info(f"Cleared {removed} notification(s)")
        return removed

    def switch_identity(self, identity: Optional[Identity]) -> tuple[Notification, ...]:
        """Rebind a scoped store to another identity's list."""
        self._identity = identity
        self._notifications = []
        return self.load()

    # =========================================================================
    # Internals
    # =========================================================================

    def _persist(self) -> bool:
        payload = [n.model_dump(mode="json", by_alias=True) for n in self._notifications]
        return write_record(self.storage, self.key, payload)

    def _handle_storage_event(self, event: StorageEvent) -> None:
        if event.key != self.key:
            return
        logger.info(f"{self.key} changed in another tab, reloading")
        self.load()
