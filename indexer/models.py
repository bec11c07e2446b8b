"""
indexer/models.py — Pydantic v2 도메인 모델

DB 행(JSON 컬럼) → 엔진 내부 전달 구조:

  ClusterSnapshotRecord : 한 버킷의 클러스터 상태 (tags/article_indices 는 타입 있는 컨테이너)
  ClusterMatch          : 직업 카테고리 × 클러스터 매칭 결과 (ratio > 0 만 존재)
  IndexScore            : 가중 평균 + 감쇠 결과
  JobIssueIndexResult   : 저장 직전의 카테고리별 최종 결과
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from core.time_bucket import as_utc, to_time_bucket
from database.models import ClusterStatus


# ─────────────────────────────────────────────────────────────
# 1. 스냅샷 입력
# ─────────────────────────────────────────────────────────────

class ClusterSnapshotRecord(BaseModel):
    """
    cluster_snapshots 한 행.

    유효성 규칙:
      - collected_at 은 정규 시간 버킷 (UTC 정각)
      - tags 는 앞뒤 공백 제거, 빈 값/중복 제거 (순서 유지)
      - article_indices 는 0-999 정수 집합
      - last_active_at 은 cluster_history 의 마지막 출현 시각 (없으면 None)
    """

    collected_at:     datetime
    cluster_id:       str                = Field(..., min_length=1, max_length=50)
    topic_name:       str                = ""
    tags:             tuple[str, ...]    = ()
    appearance_count: int                = Field(1, ge=1)
    article_count:    int                = Field(0, ge=0)
    article_indices:  frozenset[int]     = frozenset()
    status:           ClusterStatus
    cluster_score:    float              = Field(..., ge=0, le=100)
    last_active_at:   Optional[datetime] = None

    model_config = {"frozen": True, "str_strip_whitespace": True}

    @field_validator("collected_at", mode="before")
    @classmethod
    def canonical_bucket(cls, v: object) -> datetime:
        return to_time_bucket(v)

    @field_validator("last_active_at")
    @classmethod
    def utc_last_active(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else None

    @field_validator("tags", mode="before")
    @classmethod
    def dedupe_tags(cls, tags: object) -> tuple[str, ...]:
        if not tags:
            return ()
        cleaned = (str(tag).strip() for tag in tags)
        return tuple(dict.fromkeys(tag for tag in cleaned if tag))

    @field_validator("article_indices")
    @classmethod
    def check_article_range(cls, indices: frozenset[int]) -> frozenset[int]:
        bad = sorted(i for i in indices if not 0 <= i <= 999)
        if bad:
            raise ValueError(f"article_index 범위(0-999) 밖의 값: {bad[:5]}")
        return indices

    @property
    def reference_time(self) -> datetime:
        """감쇠 계산 기준 시각: 마지막 활성 시각, 없으면 스냅샷 버킷."""
        return self.last_active_at or self.collected_at


# ─────────────────────────────────────────────────────────────
# 2. 매칭 결과
# ─────────────────────────────────────────────────────────────

class ClusterMatch(BaseModel):
    """직업 카테고리 1개 × 클러스터 1개의 매칭. weighted_score = cluster_score × match_ratio."""

    job_category:    str
    cluster_id:      str
    status:          ClusterStatus
    cluster_score:   float           = Field(..., ge=0, le=100)
    collected_at:    datetime
    reference_time:  datetime
    matched_tags:    tuple[str, ...] = Field(..., min_length=1)
    match_ratio:     float           = Field(..., gt=0, le=1)
    weighted_score:  float           = Field(..., ge=0, le=100)
    article_indices: frozenset[int]  = frozenset()

    model_config = {"frozen": True}


# ─────────────────────────────────────────────────────────────
# 3. 집계 결과
# ─────────────────────────────────────────────────────────────

class IndexScore(BaseModel):
    issue_index:             float = Field(..., ge=0)
    active_clusters_count:   int   = Field(0, ge=0)
    inactive_clusters_count: int   = Field(0, ge=0)
    active_average:          float = 0.0
    inactive_average:        float = 0.0

    model_config = {"frozen": True}


class JobIssueIndexResult(BaseModel):
    """persister 에 넘기는 카테고리별 최종 결과 (지수 + 근거 매칭)."""

    job_category:            str
    collected_at:            datetime
    issue_index:             float
    active_clusters_count:   int
    inactive_clusters_count: int
    matches:                 tuple[ClusterMatch, ...] = ()

    model_config = {"frozen": True}

    @property
    def matched_cluster_ids(self) -> list[str]:
        return [m.cluster_id for m in self.matches]
