"""
Typed publish/subscribe channel.
"""

import logging
import threading
from typing import Callable, Generic, List, TypeVar


T = TypeVar("T")

Listener = Callable[[T], None]


class EventChannel(Generic[T]):
    """
    Synchronous fan-out of typed messages to subscribed listeners.

    Listeners are called in subscription order. A listener that raises is
    logged and skipped; it never affects the publisher or other listeners.
    """

    def __init__(self, name: str = "events"):
        self.name = name
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a function that detaches it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, message: T) -> int:
        """Deliver ``message``; returns the number of listeners reached."""
        with self._lock:
            listeners = list(self._listeners)

        delivered = 0
        for listener in listeners:
            try:
                listener(message)
                delivered += 1
            except Exception as e:
                self.logger.error(f"Listener on {self.name} failed: {str(e)}")
        return delivered

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)
