"""
indexer/matcher.py — 클러스터 ↔ 직업 태그 매칭 (ClusterMatcher)

부수효과 없는 순수 함수만 둡니다.
매칭 비율이 0 인 클러스터는 결과에서 완전히 제외됩니다 (0점 행을 만들지 않음).
"""

from __future__ import annotations

from typing import Iterable, Optional

from core.logger import Phase, get_logger, log_context
from indexer.models import ClusterMatch, ClusterSnapshotRecord
from indexer.vocabulary import calculate_tag_match, get_job_tags

logger = get_logger(__name__)


def match_cluster(
    job_category: str,
    snapshot: ClusterSnapshotRecord,
    job_tags: Optional[frozenset[str]] = None,
) -> Optional[ClusterMatch]:
    """
    스냅샷 1개를 직업 카테고리 1개와 매칭합니다.

    Returns:
        겹치는 태그가 하나라도 있으면 ClusterMatch, 없으면 None
    """
    if job_tags is None:
        job_tags = get_job_tags(job_category)

    matched_tags, match_ratio = calculate_tag_match(snapshot.tags, job_tags)
    if match_ratio <= 0:
        return None

    return ClusterMatch(
        job_category    = job_category,
        cluster_id      = snapshot.cluster_id,
        status          = snapshot.status,
        cluster_score   = snapshot.cluster_score,
        collected_at    = snapshot.collected_at,
        reference_time  = snapshot.reference_time,
        matched_tags    = matched_tags,
        match_ratio     = match_ratio,
        weighted_score  = snapshot.cluster_score * match_ratio,
        article_indices = snapshot.article_indices,
    )


def match_job_clusters(
    job_category: str,
    snapshots: Iterable[ClusterSnapshotRecord],
) -> list[ClusterMatch]:
    """
    직업 카테고리 1개에 대해 모든 스냅샷을 매칭합니다.

    입력 순서(cluster_score 내림차순)를 유지합니다.

    Raises:
        UnknownJobCategoryError: 등록되지 않은 카테고리
    """
    job_tags = get_job_tags(job_category)
    with log_context(job_category=job_category, phase=Phase.MATCHING):
        matches = [
            m for m in (match_cluster(job_category, s, job_tags) for s in snapshots)
            if m is not None
        ]
        logger.debug("매칭 완료", matched=len(matches))
    return matches
