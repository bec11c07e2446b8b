"""
indexer/aggregator.py — 가중 평균 + 시간 감쇠 (ScoreAggregator)

공식:
    active_avg   = mean(weighted_score | status = active)              (없으면 0)
    decayed      = weighted_score × e^(−DECAY_RATE × days_elapsed)
    inactive_avg = mean(decayed | status = inactive)                   (없으면 0)
    issue_index  = active_avg × ACTIVE_WEIGHT + inactive_avg × INACTIVE_WEIGHT

    days_elapsed = max(0, (collected_at − reference_time) / 1일)
    issue_index 는 소수점 1자리 반올림 (half-up)

예시:
    active  80 × 0.4 = 32.0                     → active_avg   = 32.0
    inactive 60 × 0.5 = 30.0, 2일 경과 → 24.56   → inactive_avg = 24.56
    32.0 + 24.56 × 0.5 = 44.28                  → issue_index  = 44.3
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Iterable

from core.logger import Phase, get_logger, log_context
from core.time_bucket import as_utc
from database.models import ClusterStatus
from indexer.models import ClusterMatch, IndexScore

logger = get_logger(__name__)

ACTIVE_WEIGHT   = 1.0
INACTIVE_WEIGHT = 0.5
DECAY_RATE      = 0.1       # 하루당

_SECONDS_PER_DAY = 86_400


def round_half_up(value: float, digits: int = 1) -> float:
    """소수점 digits 자리 half-up 반올림 (44.25 → 44.3, round() 는 44.2)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def days_elapsed(collected_at: datetime, reference_time: datetime) -> float:
    """기준 시각부터 버킷까지 경과 일수 (음수면 0)."""
    seconds = (as_utc(collected_at) - as_utc(reference_time)).total_seconds()
    return max(0.0, seconds / _SECONDS_PER_DAY)


def apply_decay(weighted_score: float, elapsed_days: float) -> float:
    return weighted_score * math.exp(-DECAY_RATE * max(0.0, elapsed_days))


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def aggregate(matches: Iterable[ClusterMatch], collected_at: datetime) -> IndexScore:
    """
    매칭 목록을 하나의 지수로 합칩니다.

    매칭이 없으면 issue_index=0, 카운트 0 (오류 아님).
    """
    active:   list[float] = []
    inactive: list[float] = []

    with log_context(phase=Phase.AGGREGATION):
        for m in matches:
            if m.status == ClusterStatus.ACTIVE:
                active.append(m.weighted_score)
            else:
                elapsed = days_elapsed(collected_at, m.reference_time)
                inactive.append(apply_decay(m.weighted_score, elapsed))

        active_avg   = _mean(active)
        inactive_avg = _mean(inactive)
        issue_index  = round_half_up(active_avg * ACTIVE_WEIGHT + inactive_avg * INACTIVE_WEIGHT)

        logger.debug(
            "집계 완료",
            active=len(active),
            inactive=len(inactive),
            active_avg=round(active_avg, 4),
            inactive_avg=round(inactive_avg, 4),
            issue_index=issue_index,
        )

    return IndexScore(
        issue_index             = issue_index,
        active_clusters_count   = len(active),
        inactive_clusters_count = len(inactive),
        active_average          = active_avg,
        inactive_average        = inactive_avg,
    )
