"""Data models for activity logs, optimistic patches and janitor records."""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Any

from pydantic import BaseModel, ConfigDict, field_validator

from models.navigation import LocationPoint

def _normalize(value: Any) -> str:
    return str(value).strip().lower().replace("-", "_").replace(" ", "_")

class ActivityStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"

    @classmethod
    def parse(cls, value: Any) -> "ActivityStatus":
        if isinstance(value, cls):
            return value
        normalized = _normalize(value)
        aliases = {
            "inprogress": cls.IN_PROGRESS,
            "completed": cls.DONE,
            "complete": cls.DONE,
            "finished": cls.DONE,
        }
        if normalized in aliases:
            return aliases[normalized]
        return cls(normalized)

class ActivityPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @classmethod
    def parse(cls, value: Any) -> "ActivityPriority":
        if isinstance(value, cls):
            return value
        return cls(_normalize(value))

class ActivityLogRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    user_id: Optional[str] = None
    bin_id: Optional[str] = None
    bin_location: Optional[str] = None
    bin_level: Optional[float] = None
    assigned_janitor_id: Optional[str] = None
    assigned_janitor_name: Optional[str] = None
    task_note: Optional[str] = None
    activity_type: Optional[str] = None
    status: ActivityStatus = ActivityStatus.PENDING
    priority: ActivityPriority = ActivityPriority.MEDIUM
    timestamp: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value):
        return ActivityStatus.PENDING if value in (None, "") else ActivityStatus.parse(value)

    @field_validator("priority", mode="before")
    @classmethod
    def _parse_priority(cls, value):
        return ActivityPriority.MEDIUM if value in (None, "") else ActivityPriority.parse(value)

    def merged(self, patch: Dict[str, Any]) -> "ActivityLogRecord":
        """Return a copy with the patch applied; the id never changes."""
        data = self.model_dump()
        data.update({k: v for k, v in patch.items() if k != "id"})
        return ActivityLogRecord.model_validate(data)

    def reflects(self, patch: Dict[str, Any]) -> bool:
        """True when every patched field already holds the patched value."""
        data = self.model_dump(mode="json")
        normalized = ActivityLogRecord.model_validate({**data, **patch, "id": self.id}).model_dump(mode="json")
        return all(data.get(key) == normalized.get(key) for key in patch if key != "id")

    def created_marker(self) -> Optional[str]:
        return self.created_at or self.timestamp

@dataclass
class PendingUpdate:
    record_id: str
    patch: Dict[str, Any]
    created_at_ms: float

class JanitorStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_LEAVE = "on_leave"

@dataclass
class JanitorRecord:
    id: str
    full_name: str
    status: JanitorStatus = JanitorStatus.ACTIVE
    location: Optional[LocationPoint] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "JanitorRecord":
        name = data.get("fullName") or data.get("full_name")
        if not name:
            name = " ".join(part for part in (data.get("firstName"), data.get("lastName")) if part)
        location = data.get("location")
        return cls(
            id=str(data["id"]),
            full_name=name or str(data["id"]),
            status=JanitorStatus(_normalize(data.get("status", "active"))),
            location=LocationPoint.from_dict(location) if location else None,
        )

@dataclass
class ActivityLogPage:
    records: List[ActivityLogRecord]
    total_count: int
    fetched_at_ms: float
    from_cache: bool = False
    error: Optional[str] = None
