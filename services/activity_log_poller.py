"""Background reconciliation of the activity log cache."""
import threading
from typing import Optional

from loguru import logger

from configurations.config import Config
from core.blackboard import Blackboard
from models.blackboard_entry import REFRESH_REQUESTED
from services.activity_log_cache import ActivityLogCache
from services.activity_log_client import ActivityLogQuery

class ActivityLogPoller:
    def __init__(self, cache: ActivityLogCache, query: ActivityLogQuery,
                 interval_seconds: Optional[float] = None, blackboard: Optional[Blackboard] = None):
        self.cache = cache
        self.query = query
        requested = Config.ACTIVITY_POLL_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        self.interval_seconds = max(requested, Config.ACTIVITY_MIN_POLL_INTERVAL_SECONDS)
        if self.interval_seconds != requested:
            logger.warning(f"Poll interval {requested}s raised to {self.interval_seconds}s minimum")
        self.blackboard = blackboard

        self._last_poll_ms: Optional[float] = None
        self._stop = threading.Event()
        self._wake = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def tick(self) -> str:
        """Run one reconciliation pass; returns what it did."""
        if self.blackboard and self.blackboard.consume_refresh_request(self.cache.last_fetch_ms(self.query) or 0):
            logger.info("Refresh requested by another session, fetching immediately")
            self.cache.fetch(self.query, force_refresh=True)
            self._last_poll_ms = self.cache.clock()
            return "signal"

        now = self.cache.clock()
        min_interval_ms = Config.ACTIVITY_MIN_POLL_INTERVAL_SECONDS * 1000
        if self._last_poll_ms is not None and now - self._last_poll_ms < min_interval_ms:
            return "skipped"
        self._last_poll_ms = now

        action = "idle"
        if self.cache.is_stale(self.query):
            logger.info("Activity logs are stale, refreshing")
            self.cache.fetch(self.query)
            action = "refreshed"

        if self.poll_new_records():
            action = "spliced" if action == "idle" else action
        return action

    def poll_new_records(self) -> int:
        """Fetch records created since the newest cached one and splice them in."""
        since = self.cache.latest_timestamp(self.query)
        if since is None:
            return 0
        records = self.cache.client.list_new_since(since, self.query)
        return self.cache.splice_new_records(self.query, records)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        if self.blackboard:
            self.blackboard.subscribe(REFRESH_REQUESTED, self._on_refresh_requested)
        self._thread = threading.Thread(target=self._run, name="activity-log-poller", daemon=True)
        self._thread.start()
        logger.info(f"Activity log poller started ({self.interval_seconds}s interval)")

    def stop(self, timeout: Optional[float] = None) -> None:
        thread = self._thread
        if thread is None:
            return
        self._stop.set()
        self._wake.set()
        if self.blackboard:
            self.blackboard.unsubscribe(REFRESH_REQUESTED, self._on_refresh_requested)
        thread.join(timeout)
        self._thread = None
        logger.info("Activity log poller stopped")

    def _on_refresh_requested(self, entry) -> None:
        self._wake.set()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Activity log poll failed: {e}")
            self._wake.wait(self.interval_seconds)
            self._wake.clear()
