"""Device location access with accuracy degradation and last-known fallback."""
import json
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from loguru import logger

from configurations.config import Config
from models.navigation import LocationPoint

PERMISSION_DENIED_MESSAGE = "Location permission denied. Please enable location access in settings."

class LocationPermissionError(Exception):
    """Location permission was denied; terminal for a tracking session."""

class LocationTimeoutError(Exception):
    """A single position read timed out."""

class LocationUnavailableError(Exception):
    """No position could be read at any accuracy level."""

class Accuracy(Enum):
    HIGH = "high"
    BALANCED = "balanced"
    LOW = "low"

# Read timeouts in seconds, tried in this order
DEGRADATION_CHAIN = [
    (Accuracy.HIGH, 15.0),
    (Accuracy.BALANCED, 10.0),
    (Accuracy.LOW, 8.0),
]

class Subscription:
    """Handle for a position watch; remove() is idempotent."""

    def __init__(self, on_remove: Optional[Callable[[], None]] = None):
        self._on_remove = on_remove
        self.active = True

    def remove(self) -> None:
        if not self.active:
            return
        self.active = False
        if self._on_remove:
            self._on_remove()

class LocationSource:
    """Interface to a device's location services."""

    def services_enabled(self) -> bool:
        return True

    def request_permission(self) -> bool:
        raise NotImplementedError

    def read_position(self, accuracy: Accuracy, timeout: float) -> LocationPoint:
        raise NotImplementedError

    def watch_position(self, callback: Callable[[LocationPoint], None],
                       accuracy: Accuracy = Accuracy.HIGH) -> Subscription:
        raise NotImplementedError

def read_with_degradation(source: LocationSource) -> LocationPoint:
    """Read a position at high accuracy, degrading to balanced then low on timeout."""
    for accuracy, timeout in DEGRADATION_CHAIN:
        try:
            return source.read_position(accuracy, timeout)
        except LocationTimeoutError:
            logger.warning(f"{accuracy.value} accuracy read timed out after {timeout:.0f}s")
    raise LocationUnavailableError("Position unavailable at every accuracy level")

class LastKnownLocationStore:
    """Persist the last good fix as JSON."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or Config.LAST_KNOWN_LOCATION_PATH)

    def load(self) -> Optional[LocationPoint]:
        if not self.path.exists():
            return None
        try:
            return LocationPoint.from_dict(json.loads(self.path.read_text()))
        except (OSError, ValueError) as e:
            logger.error(f"Error reading last known location: {e}")
            return None

    def save(self, point: LocationPoint) -> None:
        try:
            self.path.write_text(json.dumps(point.to_dict()))
        except OSError as e:
            logger.error(f"Error storing last known location: {e}")

@dataclass
class LocationResult:
    success: bool
    location: Optional[LocationPoint] = None
    error: Optional[str] = None
    is_using_fallback: bool = False

class LocationResolver:
    def __init__(self, source: LocationSource, store: Optional[LastKnownLocationStore] = None,
                 default: Optional[LocationPoint] = None):
        self.source = source
        self.store = store or LastKnownLocationStore()
        self.default = default or LocationPoint(Config.DEFAULT_LATITUDE, Config.DEFAULT_LONGITUDE)

    def current_location(self) -> LocationResult:
        """Get current location, falling back to last known then default."""
        if not self.source.services_enabled():
            logger.info("Location services are disabled")
            return self._fallback(allow_default=True)

        if not self.source.request_permission():
            logger.info("Location permission denied")
            return self._fallback(allow_default=False)

        try:
            point = read_with_degradation(self.source)
        except LocationUnavailableError as e:
            logger.error(f"Error getting location: {e}")
            return self._fallback(allow_default=True)

        self.store.save(point)
        return LocationResult(success=True, location=point)

    def _fallback(self, allow_default: bool) -> LocationResult:
        last_known = self.store.load()
        if last_known:
            return LocationResult(success=True, location=last_known, is_using_fallback=True)
        if allow_default:
            return LocationResult(success=True, location=self.default, is_using_fallback=True)
        return LocationResult(success=False, error=PERMISSION_DENIED_MESSAGE)

class ReplayLocationSource(LocationSource):
    """Replays a recorded track; each watcher receives every point in order."""

    def __init__(self, track: Iterable[LocationPoint], permission_granted: bool = True,
                 enabled: bool = True, timeouts: Iterable[Accuracy] = ()):
        self.track: List[LocationPoint] = list(track)
        self.permission_granted = permission_granted
        self.enabled = enabled
        self.timeouts = set(timeouts)
        self.watchers: List[Callable[[LocationPoint], None]] = []
        self._lock = threading.Lock()

    def services_enabled(self) -> bool:
        return self.enabled

    def request_permission(self) -> bool:
        return self.permission_granted

    def read_position(self, accuracy: Accuracy, timeout: float) -> LocationPoint:
        if accuracy in self.timeouts or not self.track:
            raise LocationTimeoutError(f"No {accuracy.value} fix within {timeout}s")
        return self.track[0]

    def watch_position(self, callback: Callable[[LocationPoint], None],
                       accuracy: Accuracy = Accuracy.HIGH) -> Subscription:
        with self._lock:
            self.watchers.append(callback)
        return Subscription(lambda: self._remove(callback))

    def _remove(self, callback: Callable[[LocationPoint], None]) -> None:
        with self._lock:
            if callback in self.watchers:
                self.watchers.remove(callback)

    def play(self) -> int:
        """Deliver the whole track to current watchers; returns points delivered."""
        delivered = 0
        for point in self.track:
            with self._lock:
                watchers = list(self.watchers)
            if not watchers:
                break
            for callback in watchers:
                callback(point)
            delivered += 1
        return delivered
