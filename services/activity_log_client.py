"""HTTP client for the activity log endpoints."""
from dataclasses import dataclass
from typing import Dict, List, Optional, Any, Tuple
from urllib.parse import quote

import requests
from loguru import logger

from configurations.config import Config
from models.activity_log import ActivityLogRecord

class ActivityLogApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

def _key_part(value: Optional[str]) -> str:
    # A literal never contains "-" and never equals "all"
    if not value:
        return "all"
    return "=" + quote(value, safe="").replace("-", "%2D")

@dataclass(frozen=True)
class ActivityLogQuery:
    limit: int = 100
    offset: int = 0
    type: Optional[str] = None
    user_id: Optional[str] = None
    status: Optional[str] = None

    @property
    def cache_key(self) -> str:
        return (f"activity-logs-{self.limit}-{self.offset}-{_key_part(self.type)}-"
                f"{_key_part(self.user_id)}-{_key_part(self.status)}")

    def to_params(self) -> Dict[str, Any]:
        """Query parameters, omitting empty values."""
        params = {
            'limit': self.limit,
            'offset': self.offset,
            'type': self.type,
            'user_id': self.user_id,
            'status': self.status
        }
        return {k: v for k, v in params.items() if v}

class ActivityLogClient:
    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 timeout: Optional[float] = None, session=None):
        self.base_url = (base_url or Config.ACTIVITY_API_BASE_URL).rstrip('/')
        self.token = token if token is not None else Config.ACTIVITY_API_TOKEN
        self.timeout = timeout if timeout is not None else Config.ACTIVITY_API_TIMEOUT_SECONDS
        self.session = session or requests.Session()

        if self.token:
            self.session.headers.update({'Authorization': f'Bearer {self.token}'})

    def list_activity_logs(self, query: ActivityLogQuery) -> Tuple[List[ActivityLogRecord], int]:
        """Fetch one page of activity logs and the total count."""
        data = self._request('GET', '/api/activitylogs', params=query.to_params())
        records = self._parse_records(data.get('activities') or [])
        total_count = int(data.get('totalCount') or 0)
        logger.info(f"Fetched {len(records)} activity logs (total {total_count})")
        return records, total_count

    def list_new_since(self, since: str, query: Optional[ActivityLogQuery] = None) -> List[ActivityLogRecord]:
        """Fetch activity logs created after the given ISO timestamp."""
        params = {'since': since}
        if query is not None:
            params.update({k: v for k, v in query.to_params().items() if k in ('type', 'user_id', 'status')})
        data = self._request('GET', '/api/activitylogs/new', params=params)
        return self._parse_records(data.get('activities') or [])

    def assign_task(self, activity_id: str, janitor_id: str, janitor_name: str,
                    task_note: str = "") -> Optional[ActivityLogRecord]:
        payload = {
            'activityId': activity_id,
            'janitorId': janitor_id,
            'janitorName': janitor_name,
            'taskNote': task_note or ""
        }
        data = self._request('POST', '/api/assign-task', json=payload)
        logger.success(f"Assigned activity {activity_id} to {janitor_name}")
        activity = data.get('activity')
        return ActivityLogRecord.model_validate(activity) if activity else None

    def update_status(self, activity_id: str, status: str,
                      extra: Optional[Dict[str, Any]] = None) -> Optional[ActivityLogRecord]:
        payload = {'status': status, **(extra or {})}
        data = self._request('PATCH', f'/api/activity-logs/{activity_id}', json=payload)
        logger.success(f"Updated activity {activity_id} status to {status}")
        activity = data.get('activity')
        return ActivityLogRecord.model_validate(activity) if activity else None

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ActivityLogApiError(str(e)) from e

        if response.status_code >= 400:
            message = self._error_message(response)
            logger.error(f"{method} {path} returned {response.status_code}: {message}")
            raise ActivityLogApiError(message, response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise ActivityLogApiError(f"Invalid JSON from {path}", response.status_code) from e
        return data if isinstance(data, dict) else {}

    def _error_message(self, response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            for field in ('message', 'detail', 'error'):
                if body.get(field):
                    return str(body[field])
        return f"Request failed with status {response.status_code}"

    def _parse_records(self, items: List[Dict[str, Any]]) -> List[ActivityLogRecord]:
        records = []
        for item in items:
            try:
                records.append(ActivityLogRecord.model_validate(item))
            except ValueError as e:
                logger.warning(f"Skipping malformed activity log {item.get('id')}: {e}")
        return records
