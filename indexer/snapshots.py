"""
indexer/snapshots.py — 클러스터 스냅샷 읽기 (SnapshotReader)

cluster_snapshots 는 외부 분류 파이프라인이 버킷마다 기록하는 읽기 전용 데이터입니다.
JSON 컬럼은 여기서만 해석하고, 엔진 내부에는 ClusterSnapshotRecord 만 전달합니다.

사용법:
    from core.db import get_db
    from indexer.snapshots import read_cluster_snapshots

    with get_db() as db:
        snapshots = read_cluster_snapshots(db, "2025-01-15T08:00:00Z")
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from core.logger import Phase, get_logger, log_context
from core.time_bucket import TimeLike, format_time_bucket, to_time_bucket
from database.models import ClusterHistory, ClusterSnapshot
from indexer.models import ClusterSnapshotRecord

logger = get_logger(__name__)


class NoSnapshotsError(LookupError):
    """해당 버킷에 클러스터 스냅샷이 하나도 없음."""

    def __init__(self, collected_at: datetime) -> None:
        self.collected_at = collected_at
        super().__init__(
            f"클러스터 스냅샷이 없습니다: collected_at={format_time_bucket(collected_at)}"
        )


def latest_snapshot_bucket(session: Session) -> Optional[datetime]:
    """cluster_snapshots 에 존재하는 가장 최근 버킷 (없으면 None)."""
    return session.scalar(select(func.max(ClusterSnapshot.collected_at)))


def last_active_times(
    session: Session,
    cluster_ids: Iterable[str],
    collected_at: datetime,
) -> dict[str, datetime]:
    """
    클러스터별 마지막 활성 시각.

    cluster_history 에서 기사와 함께 출현한(article_count > 0) 버킷 중
    collected_at 이하의 최댓값입니다. 이력이 없는 클러스터는 결과에 없습니다.
    """
    ids = list(cluster_ids)
    if not ids:
        return {}
    rows = session.execute(
        select(ClusterHistory.cluster_id, func.max(ClusterHistory.collected_at))
        .where(
            ClusterHistory.cluster_id.in_(ids),
            ClusterHistory.collected_at <= collected_at,
            ClusterHistory.article_count > 0,
        )
        .group_by(ClusterHistory.cluster_id)
    ).all()
    return {cluster_id: last_seen for cluster_id, last_seen in rows if last_seen is not None}


def read_cluster_snapshots(session: Session, collected_at: TimeLike) -> list[ClusterSnapshotRecord]:
    """
    한 버킷의 모든 클러스터 스냅샷을 cluster_score 내림차순으로 읽습니다.

    Raises:
        InvalidTimeBucketError: collected_at 이 정규 버킷으로 변환되지 않음
    """
    bucket = to_time_bucket(collected_at)

    with log_context(collected_at=format_time_bucket(bucket), phase=Phase.SNAPSHOT_READ):
        rows = session.scalars(
            select(ClusterSnapshot)
            .where(ClusterSnapshot.collected_at == bucket)
            .order_by(ClusterSnapshot.cluster_score.desc(), ClusterSnapshot.cluster_id)
        ).all()

        last_active = last_active_times(session, (r.cluster_id for r in rows), bucket)

        records = [
            ClusterSnapshotRecord(
                collected_at     = bucket,
                cluster_id       = row.cluster_id,
                topic_name       = row.topic_name,
                tags             = row.tags or [],
                appearance_count = row.appearance_count,
                article_count    = row.article_count,
                article_indices  = row.article_indices or [],
                status           = row.status,
                cluster_score    = row.cluster_score,
                last_active_at   = last_active.get(row.cluster_id),
            )
            for row in rows
        ]

        logger.info(
            "스냅샷 조회 완료",
            clusters=len(records),
            active=sum(1 for r in records if r.status == "active"),
            with_history=len(last_active),
        )
    return records
