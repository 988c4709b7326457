"""Activity log API endpoints."""
from typing import Dict, Optional, Any

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict, ValidationError

from storage.activity_log_store import ActivityLogNotFoundError, ActivityLogStore

router = APIRouter(prefix="/api", tags=["activity-logs"])
activity_log_store = ActivityLogStore()

def get_store() -> ActivityLogStore:
    return activity_log_store

class AssignTaskRequest(BaseModel):
    activityId: str
    janitorId: str
    janitorName: str
    taskNote: str = ""

class StatusUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: str

def _dump(record) -> Dict[str, Any]:
    return record.model_dump(mode="json")

@router.get("/activitylogs")
async def list_activity_logs(limit: int = Query(100, ge=1, le=1000), offset: int = Query(0, ge=0),
                             type: Optional[str] = None, user_id: Optional[str] = None,
                             status: Optional[str] = None, store: ActivityLogStore = Depends(get_store)):
    """List activity logs newest first."""
    try:
        records, total_count = store.list(limit=limit, offset=offset, type=type, user_id=user_id, status=status)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown status: {status}")
    return JSONResponse({
        "activities": [_dump(r) for r in records],
        "totalCount": total_count
    })

@router.get("/activitylogs/new")
async def list_new_activity_logs(since: str, type: Optional[str] = None, user_id: Optional[str] = None,
                                 status: Optional[str] = None, store: ActivityLogStore = Depends(get_store)):
    """Activity logs created after the given timestamp."""
    try:
        records = store.created_since(since, type=type, user_id=user_id, status=status)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown status: {status}")
    return JSONResponse({"activities": [_dump(r) for r in records], "count": len(records)})

@router.post("/activitylogs", status_code=201)
async def create_activity_log(payload: Dict[str, Any], store: ActivityLogStore = Depends(get_store)):
    try:
        record = store.create(payload)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid activity log: {e.errors()[0]['msg']}")
    return JSONResponse({"success": True, "activity": _dump(record)}, status_code=201)

@router.post("/assign-task")
async def assign_task(request: AssignTaskRequest, store: ActivityLogStore = Depends(get_store)):
    try:
        record = store.assign(request.activityId, request.janitorId, request.janitorName, request.taskNote)
    except ActivityLogNotFoundError:
        raise HTTPException(status_code=404, detail=f"Activity {request.activityId} not found")

    logger.info(f"Assigned activity {request.activityId} to {request.janitorName}")
    return JSONResponse({"success": True, "message": "Task assigned", "activity": _dump(record)})

@router.patch("/activity-logs/{activity_id}")
async def update_activity_status(activity_id: str, request: StatusUpdateRequest,
                                 store: ActivityLogStore = Depends(get_store)):
    extra = {k: v for k, v in (request.model_extra or {}).items() if k != "id"}
    try:
        record = store.update_status(activity_id, request.status, extra)
    except ActivityLogNotFoundError:
        raise HTTPException(status_code=404, detail=f"Activity {activity_id} not found")
    except (ValidationError, ValueError):
        raise HTTPException(status_code=400, detail=f"Invalid status: {request.status}")

    return JSONResponse({"success": True, "activity": _dump(record)})
