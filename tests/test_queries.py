"""
IndexQueryService 테스트.

핵심: 같은 순간을 가리키는 어떤 표기로 조회해도 정규 표기로 조회한 것과
같은 결과를 돌려줘야 합니다.
"""

from datetime import datetime, timedelta

import pytest

from core.time_bucket import InvalidTimeBucketError
from indexer.engine import run_issue_index_batch
from indexer.queries import (
    IssueIndexNotFoundError,
    get_all_indexes,
    get_index,
    get_matched_articles,
    get_matched_clusters,
    resolve_bucket,
)
from indexer.vocabulary import UnknownJobCategoryError

from .factories import BUCKET, BUCKET_TEXT, TECH_ACTIVE_TAGS, make_snapshot

EQUIVALENT_FORMS = [
    "2025-01-15T08:00:00Z",
    "2025-01-15T08:00:00.000Z",
    "2025-01-15T17:00:00+09:00",
    "2025-01-15 08:00:00",
    "2025-01-15T17:00:00 09:00",
    datetime(2025, 1, 15, 8),
]


class TestCanonicalization:
    @pytest.mark.parametrize("collected_at", EQUIVALENT_FORMS)
    def test_round_trip(self, indexed_factory, collected_at):
        with indexed_factory() as db:
            canonical = get_index(db, "기술/개발", BUCKET_TEXT)
            assert get_index(db, "기술/개발", collected_at) == canonical
            assert get_all_indexes(db, collected_at) == get_all_indexes(db, BUCKET_TEXT)
            assert get_matched_clusters(db, "기술/개발", collected_at) == get_matched_clusters(
                db, "기술/개발", BUCKET_TEXT
            )

    def test_invalid_time_is_validation_error(self, indexed_factory):
        with indexed_factory() as db:
            with pytest.raises(InvalidTimeBucketError):
                get_index(db, "기술/개발", "2025-01-15T08:30:00Z")

    def test_blank_string_means_latest(self, indexed_factory):
        with indexed_factory() as db:
            assert resolve_bucket(db, "  ", "기술/개발") == BUCKET


class TestGetIndex:
    def test_payload(self, indexed_factory):
        with indexed_factory() as db:
            data = get_index(db, "기술/개발")
        assert data == {
            "job_category":            "기술/개발",
            "collected_at":            "2025-01-15T08:00:00Z",
            "issue_index":             44.3,
            "active_clusters_count":   1,
            "inactive_clusters_count": 1,
            "total_articles_count":    5,
        }

    def test_latest_bucket_per_category(self, indexed_factory):
        later = BUCKET + timedelta(hours=1)
        with indexed_factory() as db:
            db.add(make_snapshot("c-new", ["LLM"], collected_at=later))
        run_issue_index_batch(later, indexed_factory)

        with indexed_factory() as db:
            assert get_index(db, "기술/개발")["collected_at"] == "2025-01-15T09:00:00Z"
            assert get_index(db, "기술/개발", BUCKET)["issue_index"] == 44.3

    def test_unknown_bucket_not_found(self, indexed_factory):
        with indexed_factory() as db:
            with pytest.raises(IssueIndexNotFoundError):
                get_index(db, "기술/개발", "2024-01-01T00:00:00Z")

    def test_empty_store_not_found(self, session_factory):
        with session_factory() as db:
            with pytest.raises(IssueIndexNotFoundError):
                get_index(db, "기술/개발")

    def test_unknown_category(self, indexed_factory):
        with indexed_factory() as db:
            with pytest.raises(UnknownJobCategoryError):
                get_index(db, "우주비행사")


class TestGetAllIndexes:
    def test_sorted_by_index_desc(self, indexed_factory):
        with indexed_factory() as db:
            data = get_all_indexes(db)
        assert data["collected_at"] == "2025-01-15T08:00:00Z"
        assert len(data["jobs"]) == 13
        values = [j["issue_index"] for j in data["jobs"]]
        assert values == sorted(values, reverse=True)

    def test_not_found_for_missing_bucket(self, indexed_factory):
        with indexed_factory() as db:
            with pytest.raises(IssueIndexNotFoundError):
                get_all_indexes(db, "2024-01-01T00:00:00Z")


class TestGetMatchedClusters:
    def test_clusters_ordered_by_weighted_score(self, indexed_factory):
        with indexed_factory() as db:
            data = get_matched_clusters(db, "기술/개발")
        ids = [c["cluster_id"] for c in data["clusters"]]
        assert ids == ["c-active", "c-inactive"]
        assert data["metadata"] == {"total_clusters": 2, "total_articles": 5}

        active = data["clusters"][0]
        assert active["tags"] == TECH_ACTIVE_TAGS
        assert active["matched_tags"] == ["LLM", "코드생성"]
        assert active["match_ratio"] == pytest.approx(0.4)
        assert active["weighted_score"] == pytest.approx(32.0)
        assert active["article_indices"] == [1, 2, 3]
        assert active["status"] == "active"

    @pytest.mark.parametrize(
        "status,expected_ids,total",
        [("active", ["c-active"], 3), ("inactive", ["c-inactive"], 3), ("all", ["c-active", "c-inactive"], 5)],
    )
    def test_status_filter(self, indexed_factory, status, expected_ids, total):
        with indexed_factory() as db:
            data = get_matched_clusters(db, "기술/개발", status=status)
        assert [c["cluster_id"] for c in data["clusters"]] == expected_ids
        assert data["metadata"]["total_articles"] == total

    def test_zero_match_category_is_empty_not_missing(self, indexed_factory):
        with indexed_factory() as db:
            data = get_matched_clusters(db, "교육")
        assert data["clusters"] == []
        assert data["metadata"]["total_clusters"] == 0

    def test_invalid_status(self, indexed_factory):
        with indexed_factory() as db:
            with pytest.raises(ValueError):
                get_matched_clusters(db, "기술/개발", status="stale")


class TestGetMatchedArticles:
    def test_deduplicated_and_attributed(self, indexed_factory):
        with indexed_factory() as db:
            data = get_matched_articles(db, "기술/개발")
        assert data["total_matched_articles"] == 5
        assert [a["index"] for a in data["articles"]] == [1, 2, 3, 4, 5]
        owners = {a["index"]: a["cluster_id"] for a in data["articles"]}
        # 3번 기사는 두 클러스터 모두에 있음 → weighted_score 가 높은 c-active
        assert owners[3] == "c-active"
        assert owners[4] == "c-inactive"
        assert data["articles"][0]["title"] == "AI 뉴스 1"

    def test_limit_truncates_after_dedup(self, indexed_factory):
        with indexed_factory() as db:
            data = get_matched_articles(db, "기술/개발", limit=2)
        assert data["article_count"] == 2
        assert data["total_matched_articles"] == 5

    def test_cluster_filter(self, indexed_factory):
        with indexed_factory() as db:
            data = get_matched_articles(db, "기술/개발", cluster_id="c-inactive")
        assert [a["index"] for a in data["articles"]] == [3, 4, 5]
        assert {a["cluster_id"] for a in data["articles"]} == {"c-inactive"}

    def test_no_matched_clusters_not_found(self, indexed_factory):
        with indexed_factory() as db:
            with pytest.raises(IssueIndexNotFoundError):
                get_matched_articles(db, "교육")

    @pytest.mark.parametrize("limit", [0, -1, 1001])
    def test_limit_out_of_range(self, indexed_factory, limit):
        with indexed_factory() as db:
            with pytest.raises(ValueError):
                get_matched_articles(db, "기술/개발", limit=limit)
