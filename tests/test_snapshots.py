"""SnapshotReader 테스트 — JSON 컬럼 해석과 마지막 활성 시각 조회."""

from datetime import timedelta

from indexer.snapshots import last_active_times, latest_snapshot_bucket, read_cluster_snapshots

from .factories import (
    BUCKET,
    TECH_ACTIVE_TAGS,
    make_history,
    make_snapshot,
)


class TestReadClusterSnapshots:
    def test_reads_bucket_ordered_by_score(self, seeded_factory):
        with seeded_factory() as db:
            records = read_cluster_snapshots(db, BUCKET)
        assert [r.cluster_id for r in records] == ["c-other", "c-active", "c-inactive"]

    def test_typed_containers(self, seeded_factory):
        with seeded_factory() as db:
            records = {r.cluster_id: r for r in read_cluster_snapshots(db, BUCKET)}
        active = records["c-active"]
        assert active.tags == tuple(TECH_ACTIVE_TAGS)
        assert active.article_indices == frozenset({1, 2, 3})
        assert active.collected_at == BUCKET

    def test_last_active_from_history(self, seeded_factory):
        with seeded_factory() as db:
            records = {r.cluster_id: r for r in read_cluster_snapshots(db, BUCKET)}
        assert records["c-inactive"].last_active_at == BUCKET - timedelta(days=2)
        assert records["c-inactive"].reference_time == BUCKET - timedelta(days=2)
        assert records["c-active"].last_active_at is None
        assert records["c-active"].reference_time == BUCKET

    def test_accepts_any_canonical_form(self, seeded_factory):
        with seeded_factory() as db:
            assert len(read_cluster_snapshots(db, "2025-01-15T17:00:00+09:00")) == 3

    def test_other_bucket_is_empty(self, seeded_factory):
        with seeded_factory() as db:
            assert read_cluster_snapshots(db, BUCKET + timedelta(hours=1)) == []


class TestLastActiveTimes:
    def test_ignores_future_and_empty_appearances(self, session_factory):
        with session_factory() as db:
            db.add_all([
                make_history("c1", BUCKET - timedelta(days=3)),
                make_history("c1", BUCKET - timedelta(days=1)),
                make_history("c1", BUCKET - timedelta(hours=1), article_indices=[]),
                make_history("c1", BUCKET + timedelta(hours=1)),
            ])
        with session_factory() as db:
            result = last_active_times(db, ["c1", "missing"], BUCKET)
        assert result == {"c1": BUCKET - timedelta(days=1)}

    def test_no_ids(self, session_factory):
        with session_factory() as db:
            assert last_active_times(db, [], BUCKET) == {}


class TestLatestSnapshotBucket:
    def test_empty(self, session_factory):
        with session_factory() as db:
            assert latest_snapshot_bucket(db) is None

    def test_latest(self, session_factory):
        later = BUCKET + timedelta(hours=2)
        with session_factory() as db:
            db.add_all([
                make_snapshot("c1", TECH_ACTIVE_TAGS),
                make_snapshot("c1", TECH_ACTIVE_TAGS, collected_at=later),
            ])
        with session_factory() as db:
            assert latest_snapshot_bucket(db) == later
