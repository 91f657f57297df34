import logging
import threading
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]
_Key = Tuple[uuid.UUID, Optional[str]]


class Subscription:
    """Handle returned by ``SubscriptionHub.subscribe``; call ``dispose`` when done."""

    def __init__(self, hub: "SubscriptionHub", key: _Key, listener: Listener) -> None:
        self._hub = hub
        self._key = key
        self._listener = listener
        self.active = True

    def dispose(self) -> None:
        if self.active:
            self._hub._remove(self._key, self._listener)
            self.active = False

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.dispose()


class SubscriptionHub:
    """In-process fan-out of committed debate changes.

    Listeners are keyed by debate and optionally by child collection
    (``"arguments"``). Publishing happens after commit, so a listener only ever
    sees durable state.
    """

    def __init__(self) -> None:
        self._listeners: Dict[_Key, List[Listener]] = {}
        self._lock = threading.Lock()

    def subscribe(
        self,
        debate_id: uuid.UUID,
        on_change: Listener,
        collection: Optional[str] = None,
    ) -> Subscription:
        key = (debate_id, collection)
        with self._lock:
            self._listeners.setdefault(key, []).append(on_change)
        return Subscription(self, key, on_change)

    def publish(self, debate_id: uuid.UUID, value: Any, collection: Optional[str] = None) -> None:
        with self._lock:
            listeners = list(self._listeners.get((debate_id, collection), ()))
        for listener in listeners:
            try:
                listener(value)
            except Exception:
                logger.exception("Subscriber for debate %s (%s) failed", debate_id, collection or "document")

    def listener_count(self, debate_id: uuid.UUID, collection: Optional[str] = None) -> int:
        with self._lock:
            return len(self._listeners.get((debate_id, collection), ()))

    def _remove(self, key: _Key, listener: Listener) -> None:
        with self._lock:
            listeners = self._listeners.get(key)
            if not listeners:
                return
            try:
                listeners.remove(listener)
            except ValueError:
                return
            if not listeners:
                del self._listeners[key]


hub = SubscriptionHub()
