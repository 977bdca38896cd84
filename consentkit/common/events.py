"""
Consent Event Bus

Publish/subscribe channel for "preferences changed" notifications.
Handed to the context at construction so several listeners can observe
the same engine without sharing a mutable callback slot.
"""

import threading
from typing import Callable

from .logging_setup import get_service_logger
from .preferences import ConsentPreferences

logger = get_service_logger("events")

PreferencesListener = Callable[[ConsentPreferences], None]


class ConsentEventBus:
    """Thread-safe list of preference-change listeners"""

    def __init__(self):
        self._listeners: list[PreferencesListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: PreferencesListener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            A callable that removes the listener again
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, preferences: ConsentPreferences) -> int:
        """
        Deliver preferences to every listener.

        A failing listener is logged and does not stop the others.

        Returns:
            Number of listeners that ran without raising
        """
        with self._lock:
            listeners = list(self._listeners)

        delivered = 0
        for listener in listeners:
            try:
                listener(preferences)
                delivered += 1
            except Exception as e:
                logger.error(f"Preferences listener {listener!r} failed: {e}", exc_info=True)
        return delivered

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)
