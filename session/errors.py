"""
Error taxonomy for the commerce session engine.

None of these errors are meant to reach the host UI as a crash:
- CorruptPersistedData is caught by the JSON helpers, which clear the key
- AuthRequired / InvalidItem are reported through CartResult values
- PersistenceUnavailable is caught by the stores, which keep in-memory state
- FeedError is caught by the order watcher, which skips that poll
"""

from typing import Optional


class SessionError(Exception):
    """Base class for all session engine errors."""


class CorruptPersistedData(SessionError):
    """A known key holds a record that can't be parsed."""

    def __init__(self, key: str, detail: Optional[str] = None):
        self.key = key
        self.detail = detail
        message = f"Corrupt data at key '{key}'"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class PersistenceUnavailable(SessionError):
    """The storage substrate failed on a write or remove."""

    def __init__(self, key: str, operation: str, detail: Optional[str] = None):
        self.key = key
        self.operation = operation
        self.detail = detail
        message = f"Storage unavailable for {operation} of '{key}'"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class AuthRequired(SessionError):
    """A cart mutation was attempted without a signed-in identity."""


class InvalidItem(SessionError):
    """A cart candidate failed validation."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class FeedError(SessionError):
    """The order status feed could not produce an observation."""

    def __init__(self, order_id: str, detail: str):
        self.order_id = order_id
        self.detail = detail
        super().__init__(f"Status feed failed for order {order_id}: {detail}")
