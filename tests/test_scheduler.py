"""Scheduler 테스트 — 새 버킷 감지, 실패 버킷 재시도, 중복 실행 방지."""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from indexer import scheduler as scheduler_module
from indexer.scheduler import Scheduler, main

from .factories import BUCKET, TECH_ACTIVE_TAGS, make_snapshot


@pytest.fixture
def scheduler(seeded_factory):
    return Scheduler(session_factory=seeded_factory, poll_interval=0)


class TestScheduler:
    def test_latest_snapshot_bucket(self, scheduler):
        assert scheduler.latest_snapshot_bucket() == BUCKET

    def test_tick_processes_new_bucket_once(self, scheduler):
        summary = scheduler.tick()
        assert summary is not None
        assert summary.collected_at == BUCKET
        assert scheduler.last_processed == BUCKET

        assert scheduler.tick() is None

    def test_tick_picks_up_later_bucket(self, scheduler, seeded_factory):
        scheduler.tick()
        later = BUCKET + timedelta(hours=1)
        with seeded_factory() as db:
            db.add(make_snapshot("c-new", TECH_ACTIVE_TAGS, collected_at=later))

        summary = scheduler.tick()
        assert summary.collected_at == later
        assert scheduler.last_processed == later

    def test_failed_bucket_retried_on_next_tick(self, scheduler, monkeypatch):
        real_batch = scheduler_module.run_issue_index_batch
        attempts = {"n": 0}

        def flaky(collected_at, session_factory):
            attempts["n"] += 1
            if attempts["n"] == 1:
                raise RuntimeError("db down")
            return real_batch(collected_at, session_factory)

        monkeypatch.setattr(scheduler_module, "run_issue_index_batch", flaky)

        with pytest.raises(RuntimeError):
            scheduler.tick()
        assert scheduler.last_processed is None

        assert scheduler.tick().collected_at == BUCKET
        assert attempts["n"] == 2

    def test_overlapping_run_is_skipped(self, scheduler):
        scheduler._run_lock.acquire()
        try:
            assert scheduler.run_once(BUCKET) is None
        finally:
            scheduler._run_lock.release()

    def test_run_once_explicit_bucket(self, scheduler):
        summary = scheduler.run_once("2025-01-15T17:00:00+09:00")
        assert summary.collected_at == BUCKET

    def test_run_once_without_snapshots(self, session_factory):
        assert Scheduler(session_factory, poll_interval=0).run_once() is None

    def test_run_once_does_not_move_last_processed_backwards(self, scheduler, seeded_factory):
        later = BUCKET + timedelta(hours=1)
        with seeded_factory() as db:
            db.add(make_snapshot("c-new", TECH_ACTIVE_TAGS, collected_at=later))
        scheduler.run_once(later)
        scheduler.run_once(BUCKET)
        assert scheduler.last_processed == later

    def test_run_forever_stops(self, scheduler):
        calls = {"n": 0}

        def tick():
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("transient")
            scheduler.stop()

        scheduler.tick = tick
        worker = threading.Thread(target=scheduler.run_forever)
        worker.start()
        worker.join(timeout=5)

        assert not worker.is_alive()
        assert calls["n"] == 2
        assert scheduler.stopped


class TestMain:
    def test_invalid_bucket_exit_code(self, monkeypatch):
        monkeypatch.setattr("core.logger.configure_logging", lambda *a, **k: None)
        monkeypatch.setattr("core.config.validate_settings", lambda: None)
        monkeypatch.setattr("core.db.create_db_tables", lambda: None)
        monkeypatch.setattr(scheduler_module, "Scheduler", lambda: Scheduler(lambda: None, 0))

        assert main(["--collected-at", "2025-01-15T08:30:00Z"]) == 2

    def test_now_is_floored_to_current_hour(self, monkeypatch):
        monkeypatch.setattr("core.logger.configure_logging", lambda *a, **k: None)
        monkeypatch.setattr("core.config.validate_settings", lambda: None)
        monkeypatch.setattr("core.db.create_db_tables", lambda: None)

        received = []

        class _RecordingScheduler:
            def run_once(self, collected_at=None):
                received.append(collected_at)
                return None

        monkeypatch.setattr(scheduler_module, "Scheduler", _RecordingScheduler)

        assert main(["--collected-at", "now"]) == 1
        (bucket,) = received
        assert bucket.minute == bucket.second == bucket.microsecond == 0
        assert bucket.utcoffset() == timedelta(0)
        assert datetime.now(timezone.utc) - bucket < timedelta(hours=1, minutes=1)


class TestWorkerHealth:
    def test_reports_last_processed(self, scheduler):
        from fastapi.testclient import TestClient

        from web.worker_main import create_health_app

        client = TestClient(create_health_app(scheduler))
        assert client.get("/health").json()["last_processed"] is None

        scheduler.tick()
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["last_processed"] == "2025-01-15T08:00:00Z"

        scheduler.stop()
        assert client.get("/health").json()["status"] == "stopping"
