"""Blackboard system for typed cross-component signals."""
import logging
import threading
import time
from collections import defaultdict, deque
from datetime import datetime
from typing import Callable, Deque, Dict, List, Optional, Any

from models.blackboard_entry import BlackboardEntry, REFRESH_REQUESTED

logger = logging.getLogger(__name__)

Subscriber = Callable[[BlackboardEntry], None]

class Blackboard:
    def __init__(self, maxlen: int = 256, clock: Optional[Callable[[], float]] = None):
        self._entries: Deque[BlackboardEntry] = deque(maxlen=maxlen)
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)
        self._refresh_requested_ms: Optional[float] = None
        self._counter = 0
        self._clock = clock or (lambda: time.time() * 1000)
        self._lock = threading.Lock()

    def subscribe(self, entry_type: str, callback: Subscriber) -> None:
        """Register a callback for one entry type."""
        with self._lock:
            self._subscribers[entry_type].append(callback)

    def unsubscribe(self, entry_type: str, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers.get(entry_type, []):
                self._subscribers[entry_type].remove(callback)

    def publish(self, entry_type: str, data: Dict[str, Any], status: str = "completed") -> BlackboardEntry:
        """Record an entry and deliver it to subscribers of its type."""
        with self._lock:
            self._counter += 1
            entry = BlackboardEntry(
                entry_id=f"{entry_type}_{self._counter}",
                entry_type=entry_type,
                data=data,
                timestamp=datetime.now(),
                status=status
            )
            self._entries.append(entry)
            subscribers = list(self._subscribers.get(entry_type, []))

        # Delivered outside the lock so subscribers may publish in turn
        for callback in subscribers:
            try:
                callback(entry)
            except Exception as e:
                logger.error(f"Subscriber for {entry_type} failed: {e}")
        return entry

    def entries(self, entry_type: Optional[str] = None) -> List[BlackboardEntry]:
        with self._lock:
            return [e for e in self._entries if entry_type is None or e.entry_type == entry_type]

    def request_refresh(self, source: str) -> float:
        """Flag that activity logs changed elsewhere and should be refetched."""
        now = self._clock()
        with self._lock:
            self._refresh_requested_ms = now
        logger.info(f"Refresh requested by {source}")
        self.publish(REFRESH_REQUESTED, {"source": source, "requested_at_ms": now}, status="pending")
        return now

    def consume_refresh_request(self, since_ms: float) -> bool:
        """Return True once for a refresh request newer than since_ms."""
        with self._lock:
            requested = self._refresh_requested_ms
            if requested is None:
                return False
            self._refresh_requested_ms = None
            return requested > since_ms
