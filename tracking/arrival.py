"""Arrival tracking against a fixed destination."""
import threading
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from core.blackboard import Blackboard
from models.blackboard_entry import ARRIVAL
from models.navigation import LocationPoint
from routing.geo import haversine_distance
from tracking.location import LocationPermissionError, LocationSource, Subscription
from tracking.voice import DistanceAnnouncer

class TrackerState(Enum):
    IDLE = "idle"
    TRACKING = "tracking"
    ARRIVED = "arrived"

class ArrivalTracker:
    """Watch position updates and raise a one-shot arrival event.

    State moves IDLE -> TRACKING -> ARRIVED. The arrival callback fires once
    per tracking session; stop_tracking() returns to IDLE from any state.
    """

    def __init__(self, source: LocationSource, announcer: Optional[DistanceAnnouncer] = None,
                 on_arrival: Optional[Callable[[LocationPoint, float], None]] = None,
                 on_update: Optional[Callable[[float], None]] = None,
                 blackboard: Optional[Blackboard] = None, label: str = "destination"):
        self.source = source
        self.announcer = announcer
        self.on_arrival = on_arrival
        self.on_update = on_update
        self.blackboard = blackboard
        self.label = label

        self.state = TrackerState.IDLE
        self.target: Optional[LocationPoint] = None
        self.threshold_meters: Optional[float] = None
        self.current_position: Optional[LocationPoint] = None
        self.current_distance: Optional[float] = None
        self.arrival_count = 0
        self._subscription: Optional[Subscription] = None
        self._session = 0
        self._lock = threading.RLock()

    def start_tracking(self, target: LocationPoint, threshold_meters: float) -> None:
        if threshold_meters <= 0:
            raise ValueError("threshold_meters must be positive")

        self.stop_tracking()
        if not self.source.request_permission():
            logger.warning("Location permission denied, tracking not started")
            raise LocationPermissionError("Location permission denied")

        with self._lock:
            self._session += 1
            session = self._session
            self.target = target
            self.threshold_meters = threshold_meters
            self.current_position = None
            self.current_distance = None
            self.arrival_count = 0
            self.state = TrackerState.TRACKING
            if self.announcer:
                self.announcer.reset()

        subscription = self.source.watch_position(lambda point: self._on_position(session, point))
        with self._lock:
            if self._session == session and self.state != TrackerState.IDLE:
                self._subscription = subscription
                subscription = None
        if subscription is not None:
            # Stopped while subscribing
            subscription.remove()
            return
        logger.info(f"Tracking {self.label} at {target.as_query()} (threshold {threshold_meters:.0f}m)")

    def stop_tracking(self) -> None:
        """Cancel the position watch and return to IDLE; safe to call repeatedly."""
        with self._lock:
            subscription = self._subscription
            self._subscription = None
            was_active = self.state != TrackerState.IDLE
            self.state = TrackerState.IDLE
            self._session += 1
        if subscription is not None:
            subscription.remove()
        if was_active:
            logger.info(f"Stopped tracking {self.label}")

    def feed(self, point: LocationPoint) -> Optional[float]:
        """Process a position update for the current session."""
        return self._on_position(self._session, point)

    def _on_position(self, session: int, point: LocationPoint) -> Optional[float]:
        with self._lock:
            if session != self._session or self.state == TrackerState.IDLE:
                return None
            distance = haversine_distance(point, self.target)
            self.current_position = point
            self.current_distance = distance
            arrived_now = self.state == TrackerState.TRACKING and distance <= self.threshold_meters
            if arrived_now:
                self.state = TrackerState.ARRIVED
                self.arrival_count += 1

        if self.on_update:
            self.on_update(distance)

        if arrived_now:
            logger.success(f"Arrived at {self.label} ({distance:.1f}m)")
            if self.announcer:
                self.announcer.announce_arrival(self.label)
            if self.on_arrival:
                self.on_arrival(point, distance)
            if self.blackboard:
                self.blackboard.publish(ARRIVAL, {
                    "label": self.label,
                    "target": self.target.to_dict(),
                    "position": point.to_dict(),
                    "distance": distance
                })
        elif self.announcer and self.state == TrackerState.TRACKING:
            self.announcer.maybe_announce(distance, self.label)

        return distance
