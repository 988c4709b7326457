"""Tests for the optimistic activity log cache."""
import threading
import time

import pytest

from core.blackboard import Blackboard
from models.activity_log import ActivityLogRecord, ActivityStatus
from models.blackboard_entry import ACTIVITY_LOG_PATCHED, ACTIVITY_LOGS_FETCHED
from services.activity_log_cache import ActivityLogCache
from services.activity_log_client import ActivityLogApiError, ActivityLogQuery

QUERY = ActivityLogQuery(limit=10)
OTHER_QUERY = ActivityLogQuery(limit=10, status="pending")

class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms

def record(record_id, **fields):
    return ActivityLogRecord(id=record_id, **fields)

class FakeClient:
    """In-memory stand-in for ActivityLogClient."""

    def __init__(self, records=None):
        self.records = list(records or [])
        self.list_calls = 0
        self.fail_list = False
        self.fail_mutations = False
        self.new_records = []

    def list_activity_logs(self, query):
        self.list_calls += 1
        if self.fail_list:
            raise ActivityLogApiError("server unavailable", 503)
        return [r.model_copy() for r in self.records], len(self.records)

    def list_new_since(self, since, query=None):
        return list(self.new_records)

    def assign_task(self, activity_id, janitor_id, janitor_name, task_note=""):
        if self.fail_mutations:
            raise ActivityLogApiError("assignment rejected", 409)
        fields = {"assigned_janitor_id": janitor_id, "assigned_janitor_name": janitor_name,
                  "status": ActivityStatus.IN_PROGRESS}
        if task_note:
            fields["task_note"] = task_note
        self._server_update(activity_id, **fields)
        return next(r for r in self.records if r.id == activity_id)

    def update_status(self, activity_id, status, extra=None):
        if self.fail_mutations:
            raise ActivityLogApiError("update rejected", 500)
        self._server_update(activity_id, status=ActivityStatus.parse(status), **(extra or {}))
        return None

    def _server_update(self, activity_id, **fields):
        self.records = [r.merged(fields) if r.id == activity_id else r for r in self.records]

class TestActivityLogCache:
    def setup_method(self):
        self.clock = FakeClock()
        self.client = FakeClient([
            record("a1", bin_id="BIN-1", created_at="2026-10-01T08:00:00"),
            record("a2", bin_id="BIN-2", created_at="2026-10-01T09:00:00"),
        ])
        self.blackboard = Blackboard()
        self.cache = ActivityLogCache(self.client, ttl_ms=120_000, clock=self.clock,
                                      blackboard=self.blackboard)

    def test_second_fetch_within_ttl_uses_cache(self):
        first = self.cache.fetch(QUERY)
        self.clock.advance(60_000)
        second = self.cache.fetch(QUERY)

        assert self.client.list_calls == 1
        assert first.records == second.records
        assert first.total_count == second.total_count
        assert first.from_cache is False
        assert second.from_cache is True

    def test_expired_entry_is_refetched(self):
        self.cache.fetch(QUERY)
        self.clock.advance(120_000)

        assert self.cache.is_stale(QUERY)
        self.cache.fetch(QUERY)

        assert self.client.list_calls == 2
        assert self.cache.last_fetch_ms(QUERY) == self.clock.now

    def test_force_refresh_bypasses_cache(self):
        self.cache.fetch(QUERY)
        self.cache.fetch(QUERY, force_refresh=True)

        assert self.client.list_calls == 2

    def test_queries_are_cached_separately(self):
        self.cache.fetch(QUERY)
        self.cache.fetch(OTHER_QUERY)
        self.cache.fetch(QUERY)

        assert self.client.list_calls == 2

    def test_local_update_is_visible_immediately(self):
        self.cache.fetch(QUERY)

        self.cache.apply_local_update("a1", {"status": "in_progress"})
        page = self.cache.get_cached(QUERY)

        assert page.records[0].status == ActivityStatus.IN_PROGRESS
        assert [r.id for r in page.records] == ["a1", "a2"]
        assert len(self.blackboard.entries(ACTIVITY_LOG_PATCHED)) == 1

    def test_pending_patch_survives_refresh_that_lacks_it(self):
        self.cache.fetch(QUERY)
        self.cache.apply_local_update("a1", {"status": "in_progress"})

        page = self.cache.fetch(QUERY, force_refresh=True)

        assert self.client.list_calls == 2
        assert page.records[0].status == ActivityStatus.IN_PROGRESS
        assert "a1" in self.cache.pending_updates()

    def test_pending_patch_dropped_once_server_reflects_it(self):
        self.cache.fetch(QUERY)
        self.cache.apply_local_update("a1", {"status": "in_progress"})
        self.client._server_update("a1", status=ActivityStatus.IN_PROGRESS)

        page = self.cache.fetch(QUERY, force_refresh=True)

        assert page.records[0].status == ActivityStatus.IN_PROGRESS
        assert self.cache.pending_updates() == {}

    def test_patches_for_same_record_are_combined(self):
        self.cache.apply_local_update("a1", {"status": "in_progress"})
        self.cache.apply_local_update("a1", {"assigned_janitor_name": "Ana"})

        assert self.cache.pending_updates() == {"a1": {"status": "in_progress", "assigned_janitor_name": "Ana"}}

    def test_patch_applied_before_first_fetch_is_replayed(self):
        self.cache.apply_local_update("a2", {"priority": "urgent"})

        page = self.cache.fetch(QUERY)

        assert page.records[1].priority.value == "urgent"

    def test_fetch_error_keeps_stale_data(self):
        self.cache.fetch(QUERY)
        self.client.fail_list = True

        page = self.cache.fetch(QUERY, force_refresh=True)

        assert [r.id for r in page.records] == ["a1", "a2"]
        assert page.from_cache is True
        assert page.error == "server unavailable"
        assert self.cache.last_error == "server unavailable"

    def test_fetch_error_without_cache_raises(self):
        self.client.fail_list = True

        with pytest.raises(ActivityLogApiError):
            self.cache.fetch(QUERY)

    def test_successful_fetch_clears_error(self):
        self.cache.fetch(QUERY)
        self.client.fail_list = True
        self.cache.fetch(QUERY, force_refresh=True)
        self.client.fail_list = False

        self.cache.fetch(QUERY, force_refresh=True)

        assert self.cache.last_error is None

    def test_assign_task_applies_locally_and_confirms(self):
        self.cache.fetch(QUERY)

        updated = self.cache.assign_task(QUERY, "a1", "j1", "Ana", "Empty before noon")

        assert updated.assigned_janitor_id == "j1"
        cached = self.cache.get_cached(QUERY).records[0]
        assert cached.status == ActivityStatus.IN_PROGRESS
        assert cached.assigned_janitor_name == "Ana"
        assert cached.task_note == "Empty before noon"

    def test_failed_assignment_reverts_by_hard_refresh(self):
        self.cache.fetch(QUERY)
        self.client.fail_mutations = True

        with pytest.raises(ActivityLogApiError):
            self.cache.assign_task(QUERY, "a1", "j1", "Ana")

        assert self.cache.pending_updates() == {}
        cached = self.cache.get_cached(QUERY).records[0]
        assert cached.status == ActivityStatus.PENDING
        assert cached.assigned_janitor_id is None
        assert self.client.list_calls == 2

    def test_failed_status_update_reverts(self):
        self.cache.fetch(QUERY)
        self.client.fail_mutations = True

        with pytest.raises(ActivityLogApiError):
            self.cache.update_status(QUERY, "a2", "done")

        assert self.cache.get_cached(QUERY).records[1].status == ActivityStatus.PENDING

    def test_confirmed_assignment_does_not_hide_later_server_changes(self):
        self.cache.fetch(QUERY)
        self.cache.assign_task(QUERY, "a1", "j1", "Ana")
        assert self.cache.pending_updates() == {}

        self.client._server_update("a1", status=ActivityStatus.DONE, task_note="Emptied")
        page = self.cache.fetch(QUERY, force_refresh=True)

        assert page.records[0].status == ActivityStatus.DONE
        assert page.records[0].task_note == "Emptied"
        assert page.records[0].assigned_janitor_name == "Ana"

    def test_confirmed_status_update_converges_after_ttl(self):
        self.cache.fetch(QUERY)
        self.cache.update_status(QUERY, "a2", "in_progress")
        assert self.cache.get_cached(QUERY).records[1].status == ActivityStatus.IN_PROGRESS

        self.client._server_update("a2", status=ActivityStatus.DONE)
        self.clock.advance(120_000)
        page = self.cache.fetch(QUERY)

        assert page.from_cache is False
        assert page.records[1].status == ActivityStatus.DONE

    def test_unconfirmed_patch_expires_after_one_ttl(self):
        self.cache.fetch(QUERY)
        self.cache.apply_local_update("a1", {"status": "done"})
        self.cache.apply_local_update("ghost", {"status": "done"})

        self.clock.advance(120_000)
        page = self.cache.fetch(QUERY)

        assert self.cache.pending_updates() == {}
        assert page.records[0].status == ActivityStatus.PENDING

    def test_hard_refresh_discards_every_cached_page(self):
        self.cache.fetch(QUERY)
        self.cache.fetch(OTHER_QUERY)
        self.cache.apply_local_update("a1", {"status": "done"})

        self.cache.hard_refresh(QUERY)

        assert self.cache.get_cached(OTHER_QUERY) is None
        assert self.cache.get_cached(QUERY).records[0].status == ActivityStatus.PENDING

    def test_splice_new_records_prepends_and_counts(self):
        self.cache.fetch(QUERY)

        added = self.cache.splice_new_records(QUERY, [
            record("a3", created_at="2026-10-01T10:00:00"),
            record("a1"),
        ])

        page = self.cache.get_cached(QUERY)
        assert added == 1
        assert [r.id for r in page.records] == ["a3", "a1", "a2"]
        assert page.total_count == 3
        assert self.cache.latest_timestamp(QUERY) == "2026-10-01T10:00:00"

    def test_splice_without_cached_page_is_noop(self):
        assert self.cache.splice_new_records(QUERY, [record("a3")]) == 0

    def test_fetch_publishes_to_blackboard(self):
        self.cache.fetch(QUERY)

        entries = self.blackboard.entries(ACTIVITY_LOGS_FETCHED)
        assert entries[0].data["count"] == 2

class BlockingClient(FakeClient):
    def __init__(self, records):
        super().__init__(records)
        self.started = threading.Event()
        self.release = threading.Event()

    def list_activity_logs(self, query):
        self.started.set()
        self.release.wait(5)
        return super().list_activity_logs(query)

def test_concurrent_fetches_share_one_request():
    client = BlockingClient([record("a1")])
    cache = ActivityLogCache(client, ttl_ms=120_000)
    results = []

    def fetch():
        results.append(cache.fetch(QUERY, force_refresh=True))

    first = threading.Thread(target=fetch)
    first.start()
    assert client.started.wait(5)
    second = threading.Thread(target=fetch)
    second.start()
    time.sleep(0.2)
    client.release.set()
    first.join(5)
    second.join(5)

    assert client.list_calls == 1
    assert len(results) == 2
    assert results[0].records == results[1].records
