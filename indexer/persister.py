"""
indexer/persister.py — 지수 + 근거 매칭 저장 (IndexPersister)

카테고리 1개 = 트랜잭션 1개. 호출자가 세션을 열고 커밋/롤백합니다 (core.db.get_db).

단계 (stage):
    lock              (job_category, collected_at) 단위 advisory lock (PostgreSQL)
    total_articles    매칭 클러스터들의 article_indices 합집합 크기 (중복 제거)
    upsert_index      job_issue_index UPSERT (issue_index / 카운트 / created_at 덮어쓰기)
    replace_mappings  job_cluster_mapping DELETE 후 INSERT (매칭이 없으면 DELETE 만)

DELETE + INSERT 는 동시 실행 시 서로 끼어들 수 있으므로 lock 단계에서
pg_advisory_xact_lock 으로 같은 키의 트랜잭션을 직렬화합니다 (커밋/롤백 시 자동 해제).

사용법:
    with get_db() as db:
        total = persist_job_issue_index(db, result)
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Generator, Iterable

from sqlalchemy import delete, func, insert, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.logger import Phase, get_logger, log_context
from core.time_bucket import format_time_bucket
from database.models import ClusterSnapshot, JobClusterMapping, JobIssueIndex
from indexer.models import JobIssueIndexResult

logger = get_logger(__name__)


class IndexPersistenceError(RuntimeError):
    """저장 실패. 어느 카테고리/버킷/단계에서 실패했는지 함께 보관합니다."""

    def __init__(self, job_category: str, collected_at: datetime, stage: str, cause: Exception) -> None:
        self.job_category = job_category
        self.collected_at = collected_at
        self.stage        = stage
        self.cause        = cause
        super().__init__(
            f"이슈 지수 저장 실패 | job_category={job_category} "
            f"collected_at={format_time_bucket(collected_at)} stage={stage} | {cause}"
        )


@contextmanager
def persistence_stage(job_category: str, collected_at: datetime, stage: str) -> Generator[None, None, None]:
    """SQLAlchemy 오류를 IndexPersistenceError 로 감싸고 stage 를 로그 컨텍스트에 넣습니다."""
    with log_context(stage=stage):
        try:
            yield
        except SQLAlchemyError as exc:
            logger.error("저장 단계 실패", error=str(exc))
            raise IndexPersistenceError(job_category, collected_at, stage, exc) from exc


# ─────────────────────────────────────────────────────────────
# 단계별 함수
# ─────────────────────────────────────────────────────────────

def _dialect_name(session: Session) -> str:
    return session.get_bind().dialect.name


def acquire_index_lock(session: Session, job_category: str, collected_at: datetime) -> None:
    """트랜잭션 범위 advisory lock. PostgreSQL 외 dialect 에서는 아무것도 하지 않습니다."""
    if _dialect_name(session) != "postgresql":
        return
    key = f"job_issue_index:{job_category}:{format_time_bucket(collected_at)}"
    session.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": key})


def count_total_articles(session: Session, collected_at: datetime, cluster_ids: Iterable[str]) -> int:
    """매칭된 클러스터들의 article_indices 합집합 크기 (같은 기사는 1번만)."""
    ids = list(dict.fromkeys(cluster_ids))
    if not ids:
        return 0
    rows = session.scalars(
        select(ClusterSnapshot.article_indices).where(
            ClusterSnapshot.collected_at == collected_at,
            ClusterSnapshot.cluster_id.in_(ids),
        )
    ).all()
    unique: set[int] = set()
    for indices in rows:
        unique.update(int(i) for i in indices or ())
    return len(unique)


def upsert_index_row(session: Session, result: JobIssueIndexResult, total_articles: int) -> None:
    values = {
        "job_category":            result.job_category,
        "collected_at":            result.collected_at,
        "issue_index":             result.issue_index,
        "active_clusters_count":   result.active_clusters_count,
        "inactive_clusters_count": result.inactive_clusters_count,
        "total_articles_count":    total_articles,
        "created_at":              func.now(),
    }
    dialect_insert = pg_insert if _dialect_name(session) == "postgresql" else sqlite_insert
    stmt = dialect_insert(JobIssueIndex).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["job_category", "collected_at"],
        set_={
            "issue_index":             stmt.excluded.issue_index,
            "active_clusters_count":   stmt.excluded.active_clusters_count,
            "inactive_clusters_count": stmt.excluded.inactive_clusters_count,
            "total_articles_count":    stmt.excluded.total_articles_count,
            "created_at":              func.now(),
        },
    )
    session.execute(stmt)


def replace_cluster_mappings(session: Session, result: JobIssueIndexResult) -> int:
    """기존 근거 행을 모두 지우고 이번 계산 결과로 교체합니다. 삽입 행 수 반환."""
    session.execute(
        delete(JobClusterMapping).where(
            JobClusterMapping.job_category == result.job_category,
            JobClusterMapping.collected_at == result.collected_at,
        )
    )
    if not result.matches:
        return 0

    session.execute(
        insert(JobClusterMapping),
        [
            {
                "job_category":   result.job_category,
                "collected_at":   result.collected_at,
                "cluster_id":     m.cluster_id,
                "matched_tags":   list(m.matched_tags),
                "match_ratio":    round(m.match_ratio, 4),
                "weighted_score": round(m.weighted_score, 2),
            }
            for m in result.matches
        ],
    )
    return len(result.matches)


# ─────────────────────────────────────────────────────────────
# 진입점
# ─────────────────────────────────────────────────────────────

def persist_job_issue_index(session: Session, result: JobIssueIndexResult) -> int:
    """
    카테고리 1개의 지수와 근거 매칭을 현재 트랜잭션에 기록합니다.

    커밋은 호출자 책임입니다. 실패 시 IndexPersistenceError 를 던지며,
    호출자가 롤백하면 해당 카테고리는 이전 상태 그대로 남습니다.

    Returns:
        total_articles_count (중복 제거된 기사 수)
    """
    category, bucket = result.job_category, result.collected_at

    with log_context(
        job_category=category,
        collected_at=format_time_bucket(bucket),
        phase=Phase.DB_WRITE,
    ):
        with persistence_stage(category, bucket, "lock"):
            acquire_index_lock(session, category, bucket)

        with persistence_stage(category, bucket, "total_articles"):
            total_articles = count_total_articles(session, bucket, result.matched_cluster_ids)

        with persistence_stage(category, bucket, "upsert_index"):
            upsert_index_row(session, result, total_articles)

        with persistence_stage(category, bucket, "replace_mappings"):
            inserted = replace_cluster_mappings(session, result)

        logger.info(
            "이슈 지수 저장",
            issue_index=result.issue_index,
            active=result.active_clusters_count,
            inactive=result.inactive_clusters_count,
            total_articles=total_articles,
            mappings=inserted,
        )
    return total_articles
