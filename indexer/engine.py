"""
indexer/engine.py — 직업별 이슈 지수 배치 오케스트레이션

흐름 (버킷 1개):
    1. 짧은 세션으로 스냅샷 조회          → NoSnapshotsError 면 아무것도 쓰지 않고 중단
    2. 13개 카테고리 매칭 + 집계 (순수 계산)
    3. 카테고리마다 세션/트랜잭션 1개로 저장
       → 하나라도 실패하면 남은 카테고리는 건너뛰고 예외 전파 (배치 전체 재실행으로 복구)

사용법:
    from indexer.engine import run_issue_index_batch

    summary = run_issue_index_batch("2025-01-15T08:00:00Z")
    print(summary.as_dict())
"""

from __future__ import annotations

import time
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.db import get_db
from core.logger import Phase, get_logger, log_context
from core.time_bucket import TimeLike, format_time_bucket, to_time_bucket
from indexer.aggregator import aggregate
from indexer.matcher import match_job_clusters
from indexer.models import ClusterSnapshotRecord, JobIssueIndexResult
from indexer.persister import IndexPersistenceError, persist_job_issue_index
from indexer.snapshots import NoSnapshotsError, read_cluster_snapshots
from indexer.vocabulary import JOB_CATEGORIES

logger = get_logger(__name__)

SessionFactory = Callable[[], AbstractContextManager[Session]]


@dataclass
class BatchSummary:
    """배치 1회 실행 결과."""
    collected_at:   datetime
    results:        list[JobIssueIndexResult] = field(default_factory=list)
    total_articles: dict[str, int]            = field(default_factory=dict)
    duration_ms:    int                       = 0

    def as_dict(self) -> dict:
        return {
            "collected_at": format_time_bucket(self.collected_at),
            "duration_ms":  self.duration_ms,
            "jobs": [
                {
                    "job_category":            r.job_category,
                    "issue_index":             r.issue_index,
                    "active_clusters_count":   r.active_clusters_count,
                    "inactive_clusters_count": r.inactive_clusters_count,
                    "total_articles_count":    self.total_articles.get(r.job_category, 0),
                }
                for r in self.results
            ],
        }


# ─────────────────────────────────────────────────────────────
# 순수 계산
# ─────────────────────────────────────────────────────────────

def calculate_job_issue_index(
    job_category: str,
    snapshots: Iterable[ClusterSnapshotRecord],
    collected_at: TimeLike,
) -> JobIssueIndexResult:
    """
    카테고리 1개의 지수를 계산합니다. DB 를 건드리지 않습니다.

    같은 스냅샷·버킷이면 항상 같은 결과를 돌려줍니다.
    """
    bucket  = to_time_bucket(collected_at)
    matches = match_job_clusters(job_category, snapshots)
    score   = aggregate(matches, bucket)
    return JobIssueIndexResult(
        job_category            = job_category,
        collected_at            = bucket,
        issue_index             = score.issue_index,
        active_clusters_count   = score.active_clusters_count,
        inactive_clusters_count = score.inactive_clusters_count,
        matches                 = tuple(matches),
    )


def calculate_all_job_issue_indexes(
    snapshots: Iterable[ClusterSnapshotRecord],
    collected_at: TimeLike,
) -> list[JobIssueIndexResult]:
    """13개 카테고리 전체 (사전 순서 유지)."""
    snapshots = list(snapshots)
    return [calculate_job_issue_index(c, snapshots, collected_at) for c in JOB_CATEGORIES]


# ─────────────────────────────────────────────────────────────
# 저장 포함 배치
# ─────────────────────────────────────────────────────────────

def _persist_one(result: JobIssueIndexResult, session_factory: SessionFactory) -> int:
    try:
        with session_factory() as db:
            return persist_job_issue_index(db, result)
    except IndexPersistenceError:
        raise
    except SQLAlchemyError as exc:
        # persist 이후 커밋 단계에서 난 오류
        raise IndexPersistenceError(result.job_category, result.collected_at, "commit", exc) from exc


def run_issue_index_batch(
    collected_at: TimeLike,
    session_factory: Optional[SessionFactory] = None,
) -> BatchSummary:
    """
    버킷 1개에 대해 13개 카테고리 지수를 계산하고 저장합니다.

    Raises:
        InvalidTimeBucketError: collected_at 이 정규 버킷이 아님
        NoSnapshotsError:       해당 버킷에 스냅샷이 없음 (아무것도 쓰지 않음)
        IndexPersistenceError:  카테고리 저장 실패 (이후 카테고리는 처리하지 않음)
    """
    session_factory = session_factory or get_db
    bucket  = to_time_bucket(collected_at)
    label   = format_time_bucket(bucket)
    started = time.monotonic()

    with log_context(collected_at=label):
        with session_factory() as db:
            snapshots = read_cluster_snapshots(db, bucket)
        if not snapshots:
            logger.warning("스냅샷 없음, 배치 건너뜀")
            raise NoSnapshotsError(bucket)

        with log_context(phase=Phase.MATCHING):
            results = calculate_all_job_issue_indexes(snapshots, bucket)

        summary = BatchSummary(collected_at=bucket, results=results)
        for done, result in enumerate(results):
            try:
                summary.total_articles[result.job_category] = _persist_one(result, session_factory)
            except IndexPersistenceError as exc:
                logger.error(
                    "배치 중단",
                    job_category=exc.job_category,
                    stage=exc.stage,
                    persisted=done,
                    remaining=len(results) - done,
                )
                raise

        summary.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "배치 완료",
            clusters=len(snapshots),
            categories=len(results),
            duration_ms=summary.duration_ms,
        )
    return summary
