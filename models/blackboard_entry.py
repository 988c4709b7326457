"""Data models for blackboard entries."""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Any

# Entry types published by the navigation and activity-log components
ARRIVAL = "arrival"
ROUTE_COMPUTED = "route_computed"
REFRESH_REQUESTED = "refresh_requested"
ACTIVITY_LOGS_FETCHED = "activity_logs_fetched"
ACTIVITY_LOG_PATCHED = "activity_log_patched"
NEW_ACTIVITY_LOGS = "new_activity_logs"

@dataclass
class BlackboardEntry:
    entry_id: str
    entry_type: str
    data: Dict[str, Any]
    timestamp: datetime
    status: str = "pending"
