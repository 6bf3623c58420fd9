"""
Session infrastructure for the DigiTailor commerce session engine.

This package contains the pieces both stores build on:
- Domain models (Identity, CartItem, Notification, StatusObservation)
- The persistence port and its in-memory / JSON file implementations
- The identity resolver (who is signed in, and when that changes)
- Settings, logging setup, and the error taxonomy
"""

from session.config import SessionSettings, get_settings
from session.errors import (
    AuthRequired,
    CorruptPersistedData,
    FeedError,
    InvalidItem,
    PersistenceUnavailable,
    SessionError,
)
from session.identity import IdentityResolver, SessionIdentityProvider
from session.models import (
    CartItem,
    Identity,
    ItemMetadata,
    Notification,
    NotificationDraft,
    NotificationType,
    OrderStatus,
    Role,
    StatusObservation,
)
from session.persistence import JsonFileStorage, MemoryStorage, PersistencePort

__all__ = [
    "SessionSettings",
    "get_settings",
    "AuthRequired",
    "CorruptPersistedData",
    "FeedError",
    "InvalidItem",
    "PersistenceUnavailable",
    "SessionError",
    "IdentityResolver",
    "SessionIdentityProvider",
    "CartItem",
    "Identity",
    "ItemMetadata",
    "Notification",
    "NotificationDraft",
    "NotificationType",
    "OrderStatus",
    "Role",
    "StatusObservation",
    "JsonFileStorage",
    "MemoryStorage",
    "PersistencePort",
]
