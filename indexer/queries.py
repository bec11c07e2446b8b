"""
indexer/queries.py — API 읽기 경로 (IndexQueryService)

모든 collected_at 입력은 core.time_bucket.to_time_bucket 으로 정규화한 뒤
조회 키로 사용합니다. 쓰기 경로와 같은 UTCDateTime 컬럼을 거치므로
"2025-01-15T17:00:00+09:00" 과 "2025-01-15 08:00:00" 은 같은 행을 찾습니다.

collected_at 생략 시:
    get_index / get_matched_clusters / get_matched_articles  → 카테고리별 최신 버킷
    get_all_indexes                                          → 전체 최신 버킷

반환값은 API 응답 그대로의 dict (collected_at 은 "YYYY-MM-DDTHH:00:00Z").
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from core.time_bucket import TimeLike, format_time_bucket, to_time_bucket
from database.models import ClusterSnapshot, JobClusterMapping, JobIssueIndex, NewsArticle
from indexer.vocabulary import require_job_category

STATUS_FILTERS = ("all", "active", "inactive")


class IssueIndexNotFoundError(LookupError):
    """조회 키에 해당하는 데이터 없음 (404)."""

    def __init__(
        self,
        message: str,
        job_category: Optional[str] = None,
        collected_at: Optional[datetime] = None,
    ) -> None:
        self.job_category = job_category
        self.collected_at = collected_at
        super().__init__(message)


# ─────────────────────────────────────────────────────────────
# 버킷 결정
# ─────────────────────────────────────────────────────────────

def resolve_bucket(
    session: Session,
    collected_at: Optional[TimeLike],
    job_category: Optional[str] = None,
) -> datetime:
    """
    조회 버킷을 결정합니다.

    값이 있으면 정규화 (InvalidTimeBucketError 가능),
    없으면 job_issue_index 의 MAX(collected_at) (카테고리 지정 시 해당 카테고리 한정).
    """
    if isinstance(collected_at, str) and not collected_at.strip():
        collected_at = None
    if collected_at is not None:
        return to_time_bucket(collected_at)

    stmt = select(func.max(JobIssueIndex.collected_at))
    if job_category is not None:
        stmt = stmt.where(JobIssueIndex.job_category == job_category)
    latest = session.scalar(stmt)
    if latest is None:
        target = f'"{job_category}"' if job_category else "전체 직업"
        raise IssueIndexNotFoundError(f"{target} 이슈 지수 데이터가 없습니다", job_category)
    return latest


def _index_row(session: Session, job_category: str, bucket: datetime) -> JobIssueIndex:
    row = session.scalars(
        select(JobIssueIndex).where(
            JobIssueIndex.job_category == job_category,
            JobIssueIndex.collected_at == bucket,
        )
    ).first()
    if row is None:
        raise IssueIndexNotFoundError(
            f'"{job_category}" 의 {format_time_bucket(bucket)} 이슈 지수 데이터가 없습니다',
            job_category,
            bucket,
        )
    return row


def _index_dict(row: JobIssueIndex) -> dict[str, Any]:
    return {
        "job_category":            row.job_category,
        "collected_at":            format_time_bucket(row.collected_at),
        "issue_index":             float(row.issue_index),
        "active_clusters_count":   row.active_clusters_count,
        "inactive_clusters_count": row.inactive_clusters_count,
        "total_articles_count":    row.total_articles_count,
    }


# ─────────────────────────────────────────────────────────────
# 조회
# ─────────────────────────────────────────────────────────────

def get_index(session: Session, job_category: str, collected_at: Optional[TimeLike] = None) -> dict[str, Any]:
    """카테고리 1개의 이슈 지수."""
    require_job_category(job_category)
    bucket = resolve_bucket(session, collected_at, job_category)
    return _index_dict(_index_row(session, job_category, bucket))


def get_all_indexes(session: Session, collected_at: Optional[TimeLike] = None) -> dict[str, Any]:
    """한 버킷의 전체 카테고리 지수 (issue_index 내림차순)."""
    bucket = resolve_bucket(session, collected_at)
    rows = session.scalars(
        select(JobIssueIndex)
        .where(JobIssueIndex.collected_at == bucket)
        .order_by(JobIssueIndex.issue_index.desc(), JobIssueIndex.job_category)
    ).all()
    if not rows:
        raise IssueIndexNotFoundError(
            f"{format_time_bucket(bucket)} 이슈 지수 데이터가 없습니다", collected_at=bucket
        )
    return {
        "collected_at": format_time_bucket(bucket),
        "jobs":         [_index_dict(r) for r in rows],
    }


def _matched_rows(
    session: Session,
    job_category: str,
    bucket: datetime,
    status: str = "all",
    cluster_id: Optional[str] = None,
) -> list[tuple[JobClusterMapping, ClusterSnapshot]]:
    stmt = (
        select(JobClusterMapping, ClusterSnapshot)
        .join(
            ClusterSnapshot,
            (ClusterSnapshot.cluster_id == JobClusterMapping.cluster_id)
            & (ClusterSnapshot.collected_at == JobClusterMapping.collected_at),
        )
        .where(
            JobClusterMapping.job_category == job_category,
            JobClusterMapping.collected_at == bucket,
        )
        .order_by(JobClusterMapping.weighted_score.desc(), JobClusterMapping.cluster_id)
    )
    if status != "all":
        stmt = stmt.where(ClusterSnapshot.status == status)
    if cluster_id is not None:
        stmt = stmt.where(JobClusterMapping.cluster_id == cluster_id)
    return [(m, s) for m, s in session.execute(stmt).all()]


def get_matched_clusters(
    session: Session,
    job_category: str,
    collected_at: Optional[TimeLike] = None,
    status: str = "all",
) -> dict[str, Any]:
    """
    지수의 근거 클러스터 목록 (weighted_score 내림차순).

    버킷에 지수 행이 없으면 IssueIndexNotFoundError.
    매칭이 0개인 카테고리는 빈 목록 (정상).
    """
    require_job_category(job_category)
    if status not in STATUS_FILTERS:
        raise ValueError(f"status 는 {'/'.join(STATUS_FILTERS)} 중 하나여야 합니다: {status!r}")

    bucket = resolve_bucket(session, collected_at, job_category)
    _index_row(session, job_category, bucket)

    clusters: list[dict[str, Any]] = []
    all_indices: set[int] = set()
    for mapping, snap in _matched_rows(session, job_category, bucket, status):
        indices = sorted(int(i) for i in snap.article_indices or ())
        all_indices.update(indices)
        clusters.append({
            "cluster_id":       snap.cluster_id,
            "topic_name":       snap.topic_name,
            "tags":             list(snap.tags or ()),
            "cluster_score":    float(snap.cluster_score),
            "status":           snap.status,
            "article_count":    snap.article_count,
            "article_indices":  indices,
            "appearance_count": snap.appearance_count,
            "matched_tags":     list(mapping.matched_tags or ()),
            "match_ratio":      float(mapping.match_ratio),
            "weighted_score":   float(mapping.weighted_score),
        })

    return {
        "job_category": job_category,
        "collected_at": format_time_bucket(bucket),
        "clusters":     clusters,
        "metadata": {
            "total_clusters": len(clusters),
            "total_articles": len(all_indices),
        },
    }


def get_matched_articles(
    session: Session,
    job_category: str,
    collected_at: Optional[TimeLike] = None,
    cluster_id: Optional[str] = None,
    limit: Optional[int] = None,
) -> dict[str, Any]:
    """
    매칭 클러스터들의 기사 (중복 제거, article_index 오름차순, limit 개).

    같은 기사가 여러 클러스터에 속하면 weighted_score 가 가장 높은 클러스터로 귀속합니다.
    total_matched_articles 는 limit 적용 전 고유 기사 수입니다.
    """
    from core.config import settings

    require_job_category(job_category)
    if limit is None:
        limit = settings.ARTICLES_DEFAULT_LIMIT
    if not 1 <= limit <= settings.ARTICLES_MAX_LIMIT:
        raise ValueError(f"limit 은 1 이상 {settings.ARTICLES_MAX_LIMIT} 이하여야 합니다: {limit}")

    bucket = resolve_bucket(session, collected_at, job_category)
    rows = _matched_rows(session, job_category, bucket, cluster_id=cluster_id)
    if not rows:
        raise IssueIndexNotFoundError("매칭된 클러스터가 없습니다", job_category, bucket)

    owner: dict[int, ClusterSnapshot] = {}
    for _, snap in rows:
        for index in snap.article_indices or ():
            owner.setdefault(int(index), snap)

    selected = sorted(owner)[:limit]
    articles: list[dict[str, Any]] = []
    if selected:
        for art in session.scalars(
            select(NewsArticle)
            .where(NewsArticle.collected_at == bucket, NewsArticle.article_index.in_(selected))
            .order_by(NewsArticle.article_index)
        ):
            snap = owner[art.article_index]
            articles.append({
                "index":       art.article_index,
                "cluster_id":  snap.cluster_id,
                "topic_name":  snap.topic_name,
                "title":       art.title,
                "link":        art.link,
                "description": art.description,
                "pub_date":    art.pub_date.isoformat() if art.pub_date else None,
            })

    return {
        "job_category":           job_category,
        "collected_at":           format_time_bucket(bucket),
        "article_count":          len(articles),
        "total_matched_articles": len(owner),
        "articles":               articles,
    }
