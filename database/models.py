"""
database/models.py — SQLAlchemy ORM 모델

테이블:
    cluster_snapshots   — 시간 버킷별 클러스터 상태 (외부 파이프라인 소유, 읽기 전용)
    cluster_history     — 클러스터 출현 이력 (외부 파이프라인 소유, 감쇠 기준 시각)
    news_articles       — 시간 버킷별 수집 기사 (외부 파이프라인 소유)
    job_issue_index     — 직업 카테고리별 이슈 지수 (이 엔진이 기록)
    job_cluster_mapping — 지수의 근거 클러스터 매칭 (이 엔진이 기록, 매번 교체)

설계 원칙:
    - 모든 collected_at 은 UTCDateTime 하나의 타입으로 통일
      → 쓰기/읽기 경로가 항상 같은 키(UTC 정각)를 주고받음
    - JSON 배열(tags, article_indices) 은 PostgreSQL 에서 JSONB
    - DECIMAL 은 float 로 주고받음 (집계 로직에 Decimal 이 새어 들지 않도록)
    - ratio 0 인 매칭은 저장하지 않음 (ck_jcm_match_ratio)

Alembic autogenerate 기준 파일. 여기서 모델 변경 → alembic revision --autogenerate
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from core.time_bucket import as_utc
from database.base import Base


# ═════════════════════════════════════════════════════════════
# 컬럼 타입
# ═════════════════════════════════════════════════════════════

class UTCDateTime(TypeDecorator):
    """
    TIMESTAMPTZ, 항상 UTC 로 저장하고 tz-aware UTC 로 돌려줍니다.

    naive datetime 은 UTC 로 간주합니다. SQLite(테스트)는 타임존을 저장하지
    않으므로 UTC 로 변환한 뒤 tzinfo 를 떼어 저장하고, 읽을 때 다시 붙입니다.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = as_utc(value)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return as_utc(value)


TIMESTAMPTZ = DateTime(timezone=True)
JSONType    = JSON().with_variant(JSONB, "postgresql")
# SQLite 는 INTEGER PRIMARY KEY 만 자동 증가
BigIntPK    = BigInteger().with_variant(Integer, "sqlite")


# ═════════════════════════════════════════════════════════════
# Python Enum 정의
# ═════════════════════════════════════════════════════════════

class ClusterStatus(str, enum.Enum):
    """클러스터 상태 (cluster_snapshots.status)"""
    ACTIVE   = "active"    # 현재 버킷에서 기사가 계속 붙는 토픽
    INACTIVE = "inactive"  # 최근에 사그라든 토픽 (감쇠 적용 대상)


# ═════════════════════════════════════════════════════════════
# ClusterSnapshot (외부 소유)
# ═════════════════════════════════════════════════════════════

class ClusterSnapshot(Base):
    """
    특정 시간 버킷의 클러스터 전체 상태.

    분류 파이프라인이 버킷마다 한 번 기록하며, 엔진은 읽기만 합니다.
    """
    __tablename__ = "cluster_snapshots"

    collected_at:     Mapped[datetime] = mapped_column(UTCDateTime,    primary_key=True)
    cluster_id:       Mapped[str]      = mapped_column(String(50),     primary_key=True)
    topic_name:       Mapped[str]      = mapped_column(String(200),    nullable=False)
    tags:             Mapped[list]     = mapped_column(JSONType,       nullable=False, default=list)
    appearance_count: Mapped[int]      = mapped_column(Integer,        nullable=False, default=1)
    article_count:    Mapped[int]      = mapped_column(Integer,        nullable=False, default=0)
    article_indices:  Mapped[list]     = mapped_column(JSONType,       nullable=False, default=list)
    status:           Mapped[str]      = mapped_column(String(10),     nullable=False)
    cluster_score:    Mapped[float]    = mapped_column(Numeric(5, 2, asdecimal=False), nullable=False)
    created_at:       Mapped[datetime] = mapped_column(TIMESTAMPTZ,    nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("status IN ('active','inactive')", name="ck_cs_status"),
        CheckConstraint("cluster_score >= 0 AND cluster_score <= 100", name="ck_cs_cluster_score"),
        Index("idx_cs_cluster_id",    "cluster_id"),
        Index("idx_cs_cluster_score", "collected_at", "cluster_score"),
    )

    def __repr__(self) -> str:
        return (
            f"<ClusterSnapshot {self.cluster_id} @ {self.collected_at} "
            f"status={self.status} score={self.cluster_score}>"
        )


# ═════════════════════════════════════════════════════════════
# ClusterHistory (외부 소유)
# ═════════════════════════════════════════════════════════════

class ClusterHistory(Base):
    """
    클러스터가 기사와 함께 출현한 버킷 이력 (append-only).

    inactive 클러스터의 마지막 활성 시각 = 해당 버킷 이하의 MAX(collected_at).
    """
    __tablename__ = "cluster_history"

    history_id:      Mapped[int]      = mapped_column(BigIntPK,    primary_key=True, autoincrement=True)
    cluster_id:      Mapped[str]      = mapped_column(String(50),  nullable=False)
    collected_at:    Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    article_indices: Mapped[list]     = mapped_column(JSONType,    nullable=False, default=list)
    article_count:   Mapped[int]      = mapped_column(Integer,     nullable=False, default=0)
    created_at:      Mapped[datetime] = mapped_column(TIMESTAMPTZ, nullable=False, server_default=func.now())

    __table_args__ = (
        Index("idx_ch_cluster_collected", "cluster_id", "collected_at"),
        Index("idx_ch_collected_at",      "collected_at"),
    )

    def __repr__(self) -> str:
        return f"<ClusterHistory {self.cluster_id} @ {self.collected_at} articles={self.article_count}>"


# ═════════════════════════════════════════════════════════════
# NewsArticle (외부 소유)
# ═════════════════════════════════════════════════════════════

class NewsArticle(Base):
    """버킷별 수집 기사. article_index 는 분류 입력 순서 (0-999)."""
    __tablename__ = "news_articles"

    article_id:    Mapped[int]                = mapped_column(BigIntPK,    primary_key=True, autoincrement=True)
    collected_at:  Mapped[datetime]           = mapped_column(UTCDateTime, nullable=False)
    article_index: Mapped[int]                = mapped_column(Integer,     nullable=False)
    source:        Mapped[str]                = mapped_column(String(50),  nullable=False, default="naver")
    title:         Mapped[str]                = mapped_column(String(500), nullable=False)
    link:          Mapped[str]                = mapped_column(Text,        nullable=False)
    description:   Mapped[Optional[str]]      = mapped_column(Text)
    pub_date:      Mapped[Optional[datetime]] = mapped_column(TIMESTAMPTZ)
    created_at:    Mapped[datetime]           = mapped_column(TIMESTAMPTZ, nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("collected_at", "article_index", name="uq_na_collected_index"),
        CheckConstraint("article_index >= 0 AND article_index <= 999", name="ck_na_article_index"),
    )

    def __repr__(self) -> str:
        return f"<NewsArticle #{self.article_index} @ {self.collected_at} title={self.title[:20]!r}>"


# ═════════════════════════════════════════════════════════════
# JobIssueIndex
# ═════════════════════════════════════════════════════════════

class JobIssueIndex(Base):
    """
    직업 카테고리별 이슈 지수. (job_category, collected_at) 당 1행.

    재계산 시 UPSERT 로 덮어씁니다 (indexer/persister.py).
    """
    __tablename__ = "job_issue_index"

    job_category:            Mapped[str]      = mapped_column(String(50),  primary_key=True)
    collected_at:            Mapped[datetime] = mapped_column(UTCDateTime, primary_key=True)
    issue_index:             Mapped[float]    = mapped_column(Numeric(5, 1, asdecimal=False), nullable=False)
    active_clusters_count:   Mapped[int]      = mapped_column(Integer,     nullable=False, default=0)
    inactive_clusters_count: Mapped[int]      = mapped_column(Integer,     nullable=False, default=0)
    total_articles_count:    Mapped[int]      = mapped_column(Integer,     nullable=False, default=0)
    created_at:              Mapped[datetime] = mapped_column(TIMESTAMPTZ, nullable=False, server_default=func.now())

    __table_args__ = (
        Index("idx_jii_collected_at", "collected_at"),
        Index("idx_jii_issue_index",  "collected_at", "issue_index"),
    )

    def __repr__(self) -> str:
        return f"<JobIssueIndex {self.job_category} @ {self.collected_at} index={self.issue_index}>"


# ═════════════════════════════════════════════════════════════
# JobClusterMapping
# ═════════════════════════════════════════════════════════════

class JobClusterMapping(Base):
    """
    지수 계산의 근거: 직업 카테고리 × 버킷 × 클러스터.

    재계산 시 해당 (job_category, collected_at) 의 행을 전부 지우고 새로 넣습니다.
    """
    __tablename__ = "job_cluster_mapping"

    job_category:   Mapped[str]      = mapped_column(String(50),  primary_key=True)
    collected_at:   Mapped[datetime] = mapped_column(UTCDateTime, primary_key=True)
    cluster_id:     Mapped[str]      = mapped_column(String(50),  primary_key=True)
    matched_tags:   Mapped[list]     = mapped_column(JSONType,    nullable=False, default=list)
    match_ratio:    Mapped[float]    = mapped_column(Numeric(5, 4, asdecimal=False), nullable=False)
    weighted_score: Mapped[float]    = mapped_column(Numeric(6, 2, asdecimal=False), nullable=False)
    created_at:     Mapped[datetime] = mapped_column(TIMESTAMPTZ, nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("match_ratio > 0 AND match_ratio <= 1", name="ck_jcm_match_ratio"),
        Index("idx_jcm_collected_at",   "collected_at"),
        Index("idx_jcm_weighted_score", "job_category", "collected_at", "weighted_score"),
    )

    def __repr__(self) -> str:
        return (
            f"<JobClusterMapping {self.job_category}/{self.cluster_id} @ {self.collected_at} "
            f"ratio={self.match_ratio}>"
        )
