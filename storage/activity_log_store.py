"""In-memory activity log storage for the API server."""
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Any, Tuple

from models.activity_log import ActivityLogRecord, ActivityStatus

logger = logging.getLogger(__name__)

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")

class ActivityLogNotFoundError(KeyError):
    pass

class ActivityLogStore:
    def __init__(self):
        self._records: Dict[str, ActivityLogRecord] = {}
        self._lock = threading.Lock()

    def create(self, data: Dict[str, Any]) -> ActivityLogRecord:
        """Store a new activity log with a server-assigned id."""
        with self._lock:
            now = _now_iso()
            record = ActivityLogRecord.model_validate({
                **{k: v for k, v in data.items() if k != "id"},
                "id": uuid.uuid4().hex,
                "created_at": data.get("created_at") or now,
                "timestamp": data.get("timestamp") or now,
                "updated_at": now
            })
            self._records[record.id] = record
            logger.info(f"Created activity log {record.id}")
            return record

    def get(self, activity_id: str) -> ActivityLogRecord:
        with self._lock:
            if activity_id not in self._records:
                raise ActivityLogNotFoundError(activity_id)
            return self._records[activity_id]

    def list(self, limit: int = 100, offset: int = 0, type: Optional[str] = None,
             user_id: Optional[str] = None, status: Optional[str] = None) -> Tuple[List[ActivityLogRecord], int]:
        """Newest-first page of matching records and the total match count."""
        with self._lock:
            matches = [r for r in self._records.values() if self._matches(r, type, user_id, status)]
        matches.sort(key=lambda r: r.created_marker() or "", reverse=True)
        return matches[offset:offset + limit], len(matches)

    def created_since(self, since: str, type: Optional[str] = None, user_id: Optional[str] = None,
                      status: Optional[str] = None) -> List[ActivityLogRecord]:
        with self._lock:
            matches = [r for r in self._records.values()
                       if (r.created_marker() or "") > since and self._matches(r, type, user_id, status)]
        matches.sort(key=lambda r: r.created_marker() or "", reverse=True)
        return matches

    def assign(self, activity_id: str, janitor_id: str, janitor_name: str, task_note: str = "") -> ActivityLogRecord:
        patch = {
            "assigned_janitor_id": janitor_id,
            "assigned_janitor_name": janitor_name,
            "status": ActivityStatus.IN_PROGRESS.value
        }
        if task_note:
            patch["task_note"] = task_note
        return self.update(activity_id, patch)

    def update_status(self, activity_id: str, status: str, extra: Optional[Dict[str, Any]] = None) -> ActivityLogRecord:
        return self.update(activity_id, {**(extra or {}), "status": status})

    def update(self, activity_id: str, patch: Dict[str, Any]) -> ActivityLogRecord:
        with self._lock:
            if activity_id not in self._records:
                raise ActivityLogNotFoundError(activity_id)
            record = self._records[activity_id].merged({**patch, "updated_at": _now_iso()})
            self._records[activity_id] = record
            logger.info(f"Updated activity log {activity_id}")
            return record

    @staticmethod
    def _matches(record: ActivityLogRecord, type: Optional[str], user_id: Optional[str],
                 status: Optional[str]) -> bool:
        if type and record.activity_type != type:
            return False
        if user_id and user_id not in (record.user_id, record.assigned_janitor_id):
            return False
        if status and record.status != ActivityStatus.parse(status):
            return False
        return True
