"""
Persistent Consent State

File-based key/value storage for everything that must survive a restart:
saved preferences, config version, config cache, pending-event queue,
device unique id and locale.

Each logical key is one JSON file. Writes go to a temp file and are
atomically renamed into place, so readers never observe a half-written
value. Writes (and read-modify-write helpers) are serialized with a
per-store lock.

Values that fail to decode are treated as absent: corrupt state degrades
to "re-fetch / re-ask" instead of crashing the host application.
"""

import json
import os
import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from pydantic import ValidationError as PydanticValidationError

from .config import ConsentConfig, load_consent_config
from .exceptions import ParseError, StorageError
from .logging_setup import get_service_logger
from .preferences import ConsentPreferences
from .timestamp import utc_now_iso

logger = get_service_logger("state")

# Default state directory, overridable per store or via settings
STATE_DIR = Path(os.environ.get("CONSENTKIT_STATE_DIR", Path.home() / ".consentkit" / "state"))


class StateKey(str, Enum):
    """Logical keys (each becomes <key>.json)"""
    PREFERENCES = "preferences"
    CONFIG_VERSION = "config_version"
    CONFIG_CACHE = "config_cache"
    PENDING_EVENTS = "pending_events"
    UNIQUE_ID = "unique_id"
    LOCALE_CODE = "locale_code"


class Endpoint(str, Enum):
    """Backend endpoints an event can be queued for"""
    SAVE_PREFERENCES = "save_preferences"
    SAVE_OPEN = "save_open"


@dataclass
class PendingEvent:
    """An outbound write that failed delivery and awaits a flush"""
    endpoint: Endpoint
    payload: dict[str, Any]
    queued_at: str = field(default_factory=utc_now_iso)
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "endpoint": self.endpoint.value,
            "payload": self.payload,
            "queued_at": self.queued_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PendingEvent":
        """Raises KeyError/ValueError/TypeError on malformed entries"""
        payload = data["payload"]
        if not isinstance(payload, dict):
            raise TypeError("payload must be an object")
        return cls(
            endpoint=Endpoint(data["endpoint"]),
            payload=payload,
            queued_at=data.get("queued_at", ""),
            event_id=data.get("event_id") or uuid.uuid4().hex,
        )


class ConsentStore:
    """
    Durable key/value storage for consent state.

    One instance per state directory. Instances are safe to share between
    threads and coroutines.
    """

    def __init__(self, state_dir: Path | str | None = None):
        self.state_dir = Path(state_dir) if state_dir else STATE_DIR
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Raw access
    # ------------------------------------------------------------------

    def _ensure_dir(self) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)

    def _get_path(self, key: StateKey) -> Path:
        return self.state_dir / f"{key.value}.json"

    def write(self, key: StateKey, value: Any) -> None:
        """
        Write a value atomically.

        Raises:
            StorageError: If the value cannot be encoded or the file written
        """
        envelope = {"value": value, "_updated_at": utc_now_iso()}

        try:
            encoded = json.dumps(envelope, indent=2, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Failed to encode {key.value}: {e}", cause=e) from e

        with self._lock:
            path = self._get_path(key)
            temp_path = path.with_suffix(".tmp")
            try:
                self._ensure_dir()
                with open(temp_path, "w", encoding="utf-8") as f:
                    f.write(encoded)
                    f.flush()
                    os.fsync(f.fileno())
                temp_path.replace(path)
            except OSError as e:
                raise StorageError(f"Failed to write {key.value}: {e}", cause=e) from e

    def read(self, key: StateKey) -> Any | None:
        """
        Read a value.

        Returns:
            The stored value, or None if missing or unreadable
        """
        path = self._get_path(key)
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                envelope = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable state '{key.value}': {e}")
            return None

        if not isinstance(envelope, dict) or "value" not in envelope:
            logger.warning(f"Ignoring malformed state '{key.value}'")
            return None

        return envelope["value"]

    def clear(self, key: StateKey) -> bool:
        """
        Delete a single key.

        Returns:
            True if deleted, False if not found
        """
        with self._lock:
            path = self._get_path(key)
            if path.exists():
                path.unlink()
                return True
            return False

    def clear_all(self) -> None:
        """Clear all stored consent data"""
        with self._lock:
            for key in StateKey:
                self.clear(key)
        logger.info("Consent state cleared")

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    def save_preferences(self, preferences: ConsentPreferences) -> None:
        self.write(StateKey.PREFERENCES, preferences.to_storage())

    def load_preferences(self) -> ConsentPreferences | None:
        data = self.read(StateKey.PREFERENCES)
        if data is None:
            return None

        try:
            return ConsentPreferences.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(f"Ignoring corrupt saved preferences: {e.error_count()} error(s)")
            return None

    # ------------------------------------------------------------------
    # Config version and cache
    # ------------------------------------------------------------------

    def save_config_version(self, version: str) -> None:
        self.write(StateKey.CONFIG_VERSION, version)

    def load_config_version(self) -> str | None:
        version = self.read(StateKey.CONFIG_VERSION)
        return version if isinstance(version, str) else None

    def save_config_cache(self, config: ConsentConfig) -> None:
        self.write(StateKey.CONFIG_CACHE, config.to_wire())

    def load_config_cache(self) -> ConsentConfig | None:
        data = self.read(StateKey.CONFIG_CACHE)
        if data is None:
            return None

        try:
            return load_consent_config(data)
        except ParseError as e:
            logger.warning(f"Ignoring corrupt config cache: {e.detail}")
            return None

    # ------------------------------------------------------------------
    # Pending events
    # ------------------------------------------------------------------

    def load_pending_events(self) -> list[PendingEvent]:
        """Pending-event queue in FIFO order; malformed entries are skipped"""
        data = self.read(StateKey.PENDING_EVENTS)
        if not isinstance(data, list):
            return []

        events = []
        for entry in data:
            try:
                events.append(PendingEvent.from_dict(entry))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Dropping malformed pending event: {e}")
        return events

    def save_pending_events(self, events: list[PendingEvent]) -> None:
        self.write(StateKey.PENDING_EVENTS, [event.to_dict() for event in events])

    def update_pending_events(
        self,
        update: Callable[[list[PendingEvent]], list[PendingEvent]],
    ) -> list[PendingEvent]:
        """
        Read, transform and write the queue as one locked operation.

        Returns:
            The queue as written
        """
        with self._lock:
            events = update(self.load_pending_events())
            self.save_pending_events(events)
            return events

    def append_pending_event(self, event: PendingEvent) -> None:
        self.update_pending_events(lambda events: [*events, event])

    # ------------------------------------------------------------------
    # Identity and locale
    # ------------------------------------------------------------------

    def get_or_create_unique_id(self) -> str:
        """
        Stable per-install identifier.

        Generated and persisted on first access; later calls return the
        stored value unchanged.
        """
        with self._lock:
            existing = self.read(StateKey.UNIQUE_ID)
            if isinstance(existing, str) and existing:
                return existing

            new_id = str(uuid.uuid4())
            self.write(StateKey.UNIQUE_ID, new_id)
            logger.debug("Generated new consent id")
            return new_id

    def save_locale_code(self, locale_code: str) -> None:
        self.write(StateKey.LOCALE_CODE, locale_code)

    def load_locale_code(self) -> str | None:
        locale_code = self.read(StateKey.LOCALE_CODE)
        return locale_code if isinstance(locale_code, str) else None
