"""
Persistence port for the commerce session engine.

Every piece of state the session engine keeps (identity, carts,
notifications, the order watcher's ledger) lives in a flat key-value
substrate of strings, the way a browser's local storage works.

Design decisions:
- get() never raises: a broken substrate reads as "absent" so callers fall
  back to their empty defaults
- set()/remove() raise PersistenceUnavailable; the record helpers below catch
  it, log it, and report False so stores can keep going in memory
- Corrupt JSON is logged and the offending key removed (read_record)
- Change notification is an optional capability (supports_change_events).
  MemoryStorage views sharing a backend behave like browser tabs; the JSON
  file store has no cross-tab signal and says so
- No cross-key transactions
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar
from uuid import uuid4

from session.change_bus import ChangeBus, StorageEvent, StorageListener
from session.errors import CorruptPersistedData, PersistenceUnavailable

logger = logging.getLogger("persistence")

T = TypeVar("T")


class PersistencePort(ABC):
    """
    Typed get/set/remove over a key-value substrate.

    Subclasses implement _read/_write/_delete against full (prefixed) keys.
    Callers always use logical keys such as "cart:guest".
    """

    supports_change_events: bool = False

    def __init__(self, key_prefix: str = ""):
        self.key_prefix = key_prefix

    def _full_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def _logical_key(self, full_key: str) -> Optional[str]:
        """Strip our prefix, or None if the key belongs to someone else."""
        if not full_key.startswith(self.key_prefix):
            return None
        return full_key[len(self.key_prefix):]

    # =========================================================================
    # Public contract
    # =========================================================================

    def get(self, key: str) -> Optional[str]:
        """Read a raw value; None when absent or when the substrate fails."""
        try:
            return self._read(self._full_key(key))
        except Exception as e:
            logger.error(f"Read of '{key}' failed, treating as absent: {e}")
            return None

    def set(self, key: str, value: str) -> None:
        """
        Write a raw value.

        Raises:
            PersistenceUnavailable: If the substrate rejects the write
        """
        try:
            self._write(self._full_key(key), value)
        except PersistenceUnavailable:
            raise
        except Exception as e:
            raise PersistenceUnavailable(key, "set", str(e)) from e

    def remove(self, key: str) -> None:
        """
        Delete a key. Removing an absent key is a no-op.

        Raises:
            PersistenceUnavailable: If the substrate rejects the delete
        """
        try:
            self._delete(self._full_key(key))
        except PersistenceUnavailable:
            raise
        except Exception as e:
            raise PersistenceUnavailable(key, "remove", str(e)) from e

    def subscribe(self, listener: StorageListener) -> bool:
        """
        Listen for changes made by other views of the same substrate.

        Returns:
            False when this substrate has no change signal
        """
        logger.debug(f"{type(self).__name__} has no change events; listener ignored")
        return False

    def unsubscribe(self, listener: StorageListener) -> bool:
        return False

    # =========================================================================
    # Substrate hooks
    # =========================================================================

    @abstractmethod
    def _read(self, full_key: str) -> Optional[str]:
        ...

    @abstractmethod
    def _write(self, full_key: str, value: str) -> None:
        ...

    @abstractmethod
    def _delete(self, full_key: str) -> None:
        ...


# =============================================================================
# In-memory storage (tabs sharing one backend)
# =============================================================================

class SharedMemoryBackend:
    """
    The data every MemoryStorage view of one "browser" shares.

    Set `available = False` to simulate a substrate that throws.
    """

    def __init__(self):
        self.data: dict[str, str] = {}
        self.bus = ChangeBus()
        self.available = True

    def check_available(self, full_key: str, operation: str) -> None:
        if not self.available:
            raise PersistenceUnavailable(full_key, operation, "storage disabled")


class MemoryStorage(PersistencePort):
    """
    Dict-backed storage. Each instance is one tab's view of a backend.

    Writes from one view are announced to listeners of every other view on
    the same backend, never to the writer itself.

    Example:
        tab_a = MemoryStorage()
        tab_b = tab_a.open_tab()
        tab_b.subscribe(lambda event: print(event.key))
        tab_a.set("identity", "{}")   # tab_b's listener prints "identity"
    """

    supports_change_events = True

    def __init__(
        self,
        backend: Optional[SharedMemoryBackend] = None,
        key_prefix: str = "",
        tab_id: Optional[str] = None,
    ):
        super().__init__(key_prefix=key_prefix)
        self.backend = backend or SharedMemoryBackend()
        self.tab_id = tab_id or f"tab-{uuid4().hex[:8]}"
        self._listeners: dict[StorageListener, StorageListener] = {}

    def open_tab(self, tab_id: Optional[str] = None) -> "MemoryStorage":
        """Another view of the same backend, as if a second tab were opened."""
        return MemoryStorage(backend=self.backend, key_prefix=self.key_prefix, tab_id=tab_id)

    def keys(self) -> list[str]:
        """Logical keys currently stored under our prefix."""
        logical = (self._logical_key(k) for k in self.backend.data)
        return sorted(k for k in logical if k is not None)

    def _read(self, full_key: str) -> Optional[str]:
        self.backend.check_available(full_key, "get")
        return self.backend.data.get(full_key)

    def _write(self, full_key: str, value: str) -> None:
        self.backend.check_available(full_key, "set")
        old_value = self.backend.data.get(full_key)
        self.backend.data[full_key] = value
        self.backend.bus.publish(StorageEvent(full_key, old_value, value, origin=self.tab_id))

    def _delete(self, full_key: str) -> None:
        self.backend.check_available(full_key, "remove")
        if full_key not in self.backend.data:
            return
        old_value = self.backend.data.pop(full_key)
        self.backend.bus.publish(StorageEvent(full_key, old_value, None, origin=self.tab_id))

    def subscribe(self, listener: StorageListener) -> bool:
        if listener in self._listeners:
            return True

        def deliver(event: StorageEvent) -> None:
            if event.origin == self.tab_id:
                return
            key = self._logical_key(event.key)
            if key is None:
                return
            listener(StorageEvent(key, event.old_value, event.new_value, event.origin, event.timestamp))

        self._listeners[listener] = deliver
        self.backend.bus.subscribe(deliver)
        return True

    def unsubscribe(self, listener: StorageListener) -> bool:
        deliver = self._listeners.pop(listener, None)
        if deliver is None:
            return False
        return self.backend.bus.unsubscribe(deliver)


# =============================================================================
# JSON file storage
# =============================================================================

class JsonFileStorage(PersistencePort):
    """
    Storage backed by a single JSON object on disk.

    The file is re-read on every get so separate processes see each other's
    writes, but there is no change signal: cross-tab sync degrades to
    same-tab only. A corrupt file reads as empty and is replaced on the next
    write.
    """

    supports_change_events = False

    def __init__(self, path: Path, key_prefix: str = ""):
        super().__init__(key_prefix=key_prefix)
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except ValueError as e:
            logger.warning(f"Storage file {self.path} is corrupt, treating as empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Storage file {self.path} does not hold an object, treating as empty")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _save(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _read(self, full_key: str) -> Optional[str]:
        return self._load().get(full_key)

    def _write(self, full_key: str, value: str) -> None:
        data = self._load()
        data[full_key] = value
        self._save(data)

    def _delete(self, full_key: str) -> None:
        data = self._load()
        if data.pop(full_key, None) is not None:
            self._save(data)


def create_storage(path: Optional[Path] = None, key_prefix: str = "") -> PersistencePort:
    """JSON file storage when a path is given, otherwise in-memory storage."""
    if path is not None:
        return JsonFileStorage(path, key_prefix=key_prefix)
    return MemoryStorage(key_prefix=key_prefix)


# =============================================================================
# Record helpers
# =============================================================================

def decode_record(key: str, raw: str, parse: Optional[Callable[[Any], T]] = None) -> T:
    """
    Decode a raw JSON value and optionally validate it.

    Raises:
        CorruptPersistedData: If the JSON or the validation fails
    """
    try:
        value = json.loads(raw)
        return parse(value) if parse is not None else value
    except (ValueError, TypeError) as e:
        raise CorruptPersistedData(key, str(e)) from e


def read_record(
    port: PersistencePort,
    key: str,
    parse: Optional[Callable[[Any], T]] = None,
    default: Optional[T] = None,
) -> Optional[T]:
    """
    Read and decode a JSON record.

    Absent keys return `default`. Corrupt records are logged, removed, and
    also return `default`.
    """
    raw = port.get(key)
    if raw is None:
        return default
    try:
        return decode_record(key, raw, parse)
    except CorruptPersistedData as error:
        logger.warning(f"{error}; clearing it")
        remove_record(port, key)
        return default


def write_record(port: PersistencePort, key: str, value: Any) -> bool:
    """
    Serialize and store a JSON record.

    Returns:
        False if the substrate was unavailable (already logged)
    """
    try:
        port.set(key, json.dumps(value))
        return True
    except PersistenceUnavailable as e:
        logger.error(f"{e}; keeping in-memory state only")
        return False


def remove_record(port: PersistencePort, key: str) -> bool:
    """
    Delete a record.

    Returns:
        False if the substrate was unavailable (already logged)
    """
    try:
        port.remove(key)
        return True
    except PersistenceUnavailable as e:
        logger.error(f"{e}; keeping in-memory state only")
        return False
