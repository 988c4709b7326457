"""Tests for the FastAPI endpoints and the client running against them."""
import pytest
from fastapi.testclient import TestClient

from api.activity_logs_api import get_store
from api.app import app
from api.navigation_api import get_directions_provider
from models.activity_log import ActivityStatus
from routing.directions import DirectionsProvider
from services.activity_log_cache import ActivityLogCache
from services.activity_log_client import ActivityLogApiError, ActivityLogClient, ActivityLogQuery
from storage.activity_log_store import ActivityLogStore

@pytest.fixture
def store():
    store = ActivityLogStore()
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_directions_provider] = lambda: DirectionsProvider(api_key="")
    yield store
    app.dependency_overrides.clear()

@pytest.fixture
def client(store):
    return TestClient(app)

def seed(store):
    first = store.create({"bin_id": "BIN-1", "activity_type": "bin_alert", "priority": "High",
                          "created_at": "2026-10-01T08:00:00"})
    second = store.create({"bin_id": "BIN-2", "activity_type": "task_assignment", "user_id": "u1",
                           "created_at": "2026-10-01T09:00:00"})
    return first, second

def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}

def test_list_activity_logs_newest_first(client, store):
    first, second = seed(store)

    body = client.get("/api/activitylogs").json()

    assert [a["id"] for a in body["activities"]] == [second.id, first.id]
    assert body["totalCount"] == 2

def test_list_filters_and_pagination(client, store):
    first, second = seed(store)

    assert client.get("/api/activitylogs", params={"user_id": "u1"}).json()["totalCount"] == 1
    assert client.get("/api/activitylogs", params={"type": "bin_alert"}).json()["activities"][0]["id"] == first.id
    page = client.get("/api/activitylogs", params={"limit": 1, "offset": 1}).json()
    assert [a["id"] for a in page["activities"]] == [first.id]
    assert page["totalCount"] == 2

def test_create_activity_log(client):
    response = client.post("/api/activitylogs", json={"bin_id": "BIN-3", "status": "Pending"})

    assert response.status_code == 201
    activity = response.json()["activity"]
    assert activity["id"]
    assert activity["status"] == "pending"

def test_assign_task(client, store):
    first, _ = seed(store)

    response = client.post("/api/assign-task", json={
        "activityId": first.id, "janitorId": "j1", "janitorName": "Ana", "taskNote": "Lid broken"
    })

    assert response.status_code == 200
    activity = response.json()["activity"]
    assert activity["status"] == "in_progress"
    assert activity["assigned_janitor_name"] == "Ana"
    assert store.get(first.id).task_note == "Lid broken"

def test_assign_unknown_task_is_404(client):
    response = client.post("/api/assign-task", json={"activityId": "nope", "janitorId": "j1", "janitorName": "Ana"})

    assert response.status_code == 404

def test_status_update(client, store):
    first, _ = seed(store)

    response = client.patch(f"/api/activity-logs/{first.id}", json={"status": "done", "status_notes": "emptied"})

    assert response.status_code == 200
    assert store.get(first.id).status == ActivityStatus.DONE
    assert store.get(first.id).model_dump()["status_notes"] == "emptied"

def test_invalid_status_update_is_400(client, store):
    first, _ = seed(store)

    assert client.patch(f"/api/activity-logs/{first.id}", json={"status": "exploded"}).status_code == 400

def test_new_since(client, store):
    seed(store)

    body = client.get("/api/activitylogs/new", params={"since": "2026-10-01T08:30:00"}).json()

    assert [a["bin_id"] for a in body["activities"]] == ["BIN-2"]

def test_route_falls_back_without_api_key(client):
    response = client.post("/api/route", json={
        "startLat": 14.5995, "startLng": 120.9842, "endLat": 14.6010, "endLng": 120.9890, "mode": "walking"
    })

    data = response.json()["data"]
    assert response.status_code == 200
    assert data["source"] == "fallback"
    assert len(data["coordinates"]) == 2
    assert data["duration"].endswith("min")

def test_route_rejects_invalid_coordinates(client):
    response = client.post("/api/route", json={"startLat": 95, "startLng": 0, "endLat": 0, "endLng": 0})

    assert response.status_code == 400

def test_route_rejects_unknown_mode(client):
    response = client.post("/api/route", json={"startLat": 1, "startLng": 1, "endLat": 2, "endLng": 2,
                                               "mode": "teleport"})

    assert response.status_code == 400

def test_cache_round_trip_against_api(client, store):
    first, _ = seed(store)
    api_client = ActivityLogClient(base_url="http://testserver", token="", session=client)
    cache = ActivityLogCache(api_client)
    query = ActivityLogQuery(limit=10)

    page = cache.fetch(query)
    cache.assign_task(query, first.id, "j1", "Ana")
    refreshed = cache.fetch(query, force_refresh=True)

    assert page.total_count == 2
    assigned = next(r for r in refreshed.records if r.id == first.id)
    assert assigned.status == ActivityStatus.IN_PROGRESS
    assert cache.pending_updates() == {}

    with pytest.raises(ActivityLogApiError) as excinfo:
        cache.assign_task(query, "missing", "j1", "Ana")
    assert excinfo.value.status_code == 404
