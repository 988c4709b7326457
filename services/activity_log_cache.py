"""Optimistic TTL cache over the activity log endpoints."""
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Any

from loguru import logger

from configurations.config import Config
from core.blackboard import Blackboard
from models.activity_log import ActivityLogPage, ActivityLogRecord, ActivityStatus, PendingUpdate
from models.blackboard_entry import ACTIVITY_LOG_PATCHED, ACTIVITY_LOGS_FETCHED, NEW_ACTIVITY_LOGS
from services.activity_log_client import ActivityLogApiError, ActivityLogClient, ActivityLogQuery

@dataclass
class _CacheEntry:
    records: List[ActivityLogRecord]
    total_count: int
    fetched_at_ms: float

class ActivityLogCache:
    """Serve activity log pages from a short-lived cache with optimistic patches.

    Local patches are kept in a pending map and replayed over every batch read
    from the cache or the server, so a slow refresh never clobbers an edit the
    server has not confirmed yet. A patch is dropped when the server
    acknowledges the mutation, once a fetched server row already carries it,
    once it is older than one TTL window, or when hard_refresh() discards all
    local state.

    Only one network fetch per cache key runs at a time; concurrent callers for
    the same key wait for it and share its result.
    """

    def __init__(self, client: ActivityLogClient, ttl_ms: Optional[float] = None,
                 clock: Optional[Callable[[], float]] = None, blackboard: Optional[Blackboard] = None):
        self.client = client
        self.ttl_ms = Config.ACTIVITY_CACHE_TTL_MS if ttl_ms is None else ttl_ms
        self.clock = clock or (lambda: time.time() * 1000)
        self.blackboard = blackboard
        self.last_error: Optional[str] = None

        self._entries: Dict[str, _CacheEntry] = {}
        self._pending: Dict[str, PendingUpdate] = {}
        self._inflight: Dict[str, Future] = {}
        self._lock = threading.RLock()

    def fetch(self, query: ActivityLogQuery, force_refresh: bool = False) -> ActivityLogPage:
        """Return a page for the query, hitting the network only when needed."""
        key = query.cache_key
        with self._lock:
            entry = self._entries.get(key)
            if not force_refresh and entry is not None and self._is_fresh(entry):
                logger.info(f"Using cached activity logs for {key}")
                return self._page(entry, from_cache=True)

            future = self._inflight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._inflight[key] = future

        if not owner:
            logger.info(f"Joining in-flight fetch for {key}")
            return future.result()

        try:
            page = self._load(query)
        except Exception as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(page)
            return page
        finally:
            with self._lock:
                self._inflight.pop(key, None)

    def _load(self, query: ActivityLogQuery) -> ActivityLogPage:
        key = query.cache_key
        logger.info(f"Fetching activity logs from API for {key}")
        try:
            records, total_count = self.client.list_activity_logs(query)
        except ActivityLogApiError as e:
            with self._lock:
                self.last_error = e.message
                entry = self._entries.get(key)
                if entry is None:
                    raise
                logger.warning(f"Serving stale activity logs for {key}: {e.message}")
                return self._page(entry, from_cache=True, error=e.message)

        now = self.clock()
        with self._lock:
            self._expire_pending(now)
            merged = self._replay(records, drop_reflected=True)
            entry = _CacheEntry(merged, total_count, now)
            self._entries[key] = entry
            self.last_error = None
            page = self._page(entry, from_cache=False)

        self._publish(ACTIVITY_LOGS_FETCHED, {"cache_key": key, "count": len(page.records),
                                              "total_count": total_count})
        return page

    def apply_local_update(self, record_id: str, patch: Dict[str, Any]) -> None:
        """Patch the cached record now and keep the patch for replay."""
        # Reject patches that could never be replayed onto a record
        ActivityLogRecord.model_validate({**patch, "id": record_id})
        logger.info(f"Updating activity log {record_id} locally: {patch}")
        with self._lock:
            existing = self._pending.get(record_id)
            combined = {**existing.patch, **patch} if existing else dict(patch)
            self._pending[record_id] = PendingUpdate(record_id, combined, self.clock())
            for entry in self._entries.values():
                entry.records = [r.merged(patch) if r.id == record_id else r for r in entry.records]

        self._publish(ACTIVITY_LOG_PATCHED, {"record_id": record_id, "patch": patch})

    def hard_refresh(self, query: ActivityLogQuery) -> ActivityLogPage:
        """Throw away all local state and refetch."""
        with self._lock:
            logger.warning(f"Discarding {len(self._pending)} pending updates and {len(self._entries)} cached pages")
            self._pending.clear()
            self._entries.clear()
        return self.fetch(query, force_refresh=True)

    def assign_task(self, query: ActivityLogQuery, activity_id: str, janitor_id: str,
                    janitor_name: str, task_note: Optional[str] = None) -> Optional[ActivityLogRecord]:
        """Assign a task with an instant local update."""
        patch = {
            'assigned_janitor_id': janitor_id,
            'assigned_janitor_name': janitor_name,
            'status': ActivityStatus.IN_PROGRESS.value
        }
        if task_note:
            patch['task_note'] = task_note
        self.apply_local_update(activity_id, patch)
        try:
            updated = self.client.assign_task(activity_id, janitor_id, janitor_name, task_note or "")
        except ActivityLogApiError:
            self._recover(query)
            raise

        self._confirm(activity_id, updated)
        return updated

    def update_status(self, query: ActivityLogQuery, activity_id: str, status: str,
                      extra: Optional[Dict[str, Any]] = None) -> Optional[ActivityLogRecord]:
        """Change a task's status with an instant local update."""
        self.apply_local_update(activity_id, {'status': status, **(extra or {})})
        try:
            updated = self.client.update_status(activity_id, status, extra)
        except ActivityLogApiError:
            self._recover(query)
            raise

        self._confirm(activity_id, updated)
        return updated

    def _confirm(self, record_id: str, updated: Optional[ActivityLogRecord]) -> None:
        """Write the server echo into cached rows; the mutation is no longer in flight."""
        with self._lock:
            self._pending.pop(record_id, None)
            if updated is None:
                return
            echo = updated.model_dump(mode="json", exclude={'id'}, exclude_unset=True)
            for entry in self._entries.values():
                entry.records = [r.merged(echo) if r.id == record_id else r for r in entry.records]

        logger.info(f"Server confirmed update for activity log {record_id}")

    def _expire_pending(self, now: float) -> None:
        expired = [record_id for record_id, update in self._pending.items()
                   if now - update.created_at_ms >= self.ttl_ms]
        for record_id in expired:
            logger.warning(f"Dropping unconfirmed update for activity log {record_id}")
            del self._pending[record_id]

    def _recover(self, query: ActivityLogQuery) -> None:
        logger.error("Mutation failed, reverting optimistic state")
        try:
            self.hard_refresh(query)
        except ActivityLogApiError as e:
            logger.error(f"Refresh after failed mutation also failed: {e.message}")

    def splice_new_records(self, query: ActivityLogQuery, records: List[ActivityLogRecord]) -> int:
        """Prepend records not yet in the cached page; returns how many were added."""
        with self._lock:
            entry = self._entries.get(query.cache_key)
            if entry is None:
                return 0
            known = {r.id for r in entry.records}
            fresh = []
            for record in records:
                if record.id in known:
                    continue
                known.add(record.id)
                fresh.append(record)
            if not fresh:
                return 0
            entry.records = self._replay(fresh, drop_reflected=False) + entry.records
            entry.total_count += len(fresh)

        logger.info(f"Added {len(fresh)} new activity logs to {query.cache_key}")
        self._publish(NEW_ACTIVITY_LOGS, {"cache_key": query.cache_key, "ids": [r.id for r in fresh]})
        return len(fresh)

    def latest_timestamp(self, query: ActivityLogQuery) -> Optional[str]:
        """Newest creation timestamp in the cached page, if any."""
        with self._lock:
            entry = self._entries.get(query.cache_key)
            if entry is None:
                return None
            markers = [r.created_marker() for r in entry.records if r.created_marker()]
        return max(markers) if markers else None

    def get_cached(self, query: ActivityLogQuery) -> Optional[ActivityLogPage]:
        with self._lock:
            entry = self._entries.get(query.cache_key)
            return self._page(entry, from_cache=True) if entry else None

    def is_stale(self, query: ActivityLogQuery) -> bool:
        with self._lock:
            entry = self._entries.get(query.cache_key)
            return entry is None or not self._is_fresh(entry)

    def last_fetch_ms(self, query: ActivityLogQuery) -> Optional[float]:
        with self._lock:
            entry = self._entries.get(query.cache_key)
            return entry.fetched_at_ms if entry else None

    def pending_updates(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return {record_id: dict(update.patch) for record_id, update in self._pending.items()}

    def invalidate(self, query: Optional[ActivityLogQuery] = None) -> None:
        with self._lock:
            if query is None:
                self._entries.clear()
            else:
                self._entries.pop(query.cache_key, None)

    def _is_fresh(self, entry: _CacheEntry) -> bool:
        return (self.clock() - entry.fetched_at_ms) < self.ttl_ms

    def _replay(self, records: List[ActivityLogRecord], drop_reflected: bool) -> List[ActivityLogRecord]:
        if not self._pending:
            return list(records)

        replayed = []
        for record in records:
            update = self._pending.get(record.id)
            if update is None:
                replayed.append(record)
            elif drop_reflected and record.reflects(update.patch):
                logger.info(f"Server confirmed pending update for {record.id}")
                del self._pending[record.id]
                replayed.append(record)
            else:
                replayed.append(record.merged(update.patch))
        return replayed

    def _page(self, entry: _CacheEntry, from_cache: bool, error: Optional[str] = None) -> ActivityLogPage:
        return ActivityLogPage(
            records=self._replay(entry.records, drop_reflected=False),
            total_count=entry.total_count,
            fetched_at_ms=entry.fetched_at_ms,
            from_cache=from_cache,
            error=error
        )

    def _publish(self, entry_type: str, data: Dict[str, Any]) -> None:
        if self.blackboard:
            self.blackboard.publish(entry_type, data)
