"""
core/time_bucket.py — 시간 버킷(collected_at) 정규화

쓰기 경로(배치)와 읽기 경로(API)가 반드시 같은 키를 사용하도록
모든 collected_at 값을 여기서 하나의 형태로 맞춥니다.

정규 형태:
    내부:  tz-aware UTC datetime, 분/초/마이크로초 = 0
    외부:  "YYYY-MM-DDTHH:00:00Z"

허용 입력 (to_time_bucket):
    datetime / date 객체                    (naive → UTC 로 간주)
    "2025-01-15T08:00:00Z"                  (Z / z 접미사)
    "2025-01-15 08:00:00"                   (공백 구분자)
    "2025-01-15T17:00:00+09:00"             (숫자 오프셋)
    "2025-01-15T17:00:00 09:00"             (쿼리스트링에서 '+' 가 공백으로 디코딩된 경우)
    "2025-01-15T08:00:00.000Z"              (소수 초)
    "2025-01-15"                            (자정 UTC)
    "Wed, 15 Jan 2025 08:00:00 GMT"         (ISO 가 아닌 표기는 dateutil 로 해석)

정각이 아닌 값(08:30 등)은 InvalidTimeBucketError. 읽기 경로에서 임의로
내림하지 않습니다. 현재 시각을 버킷으로 바꿀 때(스케줄러 CLI 의 --collected-at now)만
floor_time_bucket 을 사용합니다.

사용법:
    from core.time_bucket import to_time_bucket, format_time_bucket

    bucket = to_time_bucket("2025-01-15T17:00:00+09:00")
    format_time_bucket(bucket)   # "2025-01-15T08:00:00Z"
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Optional, Union

from dateutil import parser as dateutil_parser

TimeLike = Union[str, datetime, date]

CANONICAL_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# "...T17:00:00 09:00" → "...T17:00:00+09:00"
_SPACE_DECODED_OFFSET = re.compile(
    r"(\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?) (\d{2}:?\d{2})$"
)


class InvalidTimeBucketError(ValueError):
    """시간 버킷으로 해석할 수 없는 입력 (형식 오류 또는 정각 아님)."""

    def __init__(self, value: object, reason: str) -> None:
        self.value  = value
        self.reason = reason
        super().__init__(f"잘못된 collected_at 값: {value!r} ({reason})")


def as_utc(dt: datetime) -> datetime:
    """naive 는 UTC 로 간주하고, aware 는 UTC 로 변환합니다."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _parse_text(raw: str) -> datetime:
    text = raw.strip()
    if not text:
        raise InvalidTimeBucketError(raw, "빈 문자열")

    text = _SPACE_DECODED_OFFSET.sub(r"\1+\2", text)
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"

    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass

    # RFC 2822, "15 Jan 2025 17:00 +0900", 압축 ISO 등
    try:
        return dateutil_parser.parse(text)
    except (ValueError, OverflowError) as exc:
        raise InvalidTimeBucketError(raw, "날짜/시간 형식이 아님") from exc


def to_time_bucket(value: TimeLike) -> datetime:
    """
    외부 입력을 정규 시간 버킷(UTC, 정각)으로 변환합니다.

    Raises:
        InvalidTimeBucketError: 파싱 불가 또는 UTC 변환 후 정각이 아닌 경우
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        dt = _parse_text(value)
    else:
        raise InvalidTimeBucketError(value, f"지원하지 않는 타입 {type(value).__name__}")

    dt = as_utc(dt)
    if dt.minute or dt.second or dt.microsecond:
        raise InvalidTimeBucketError(value, "정각(HH:00:00)이 아님")
    return dt


def floor_time_bucket(value: Optional[datetime] = None) -> datetime:
    """임의 시각을 해당 시간의 정각 버킷으로 내림합니다 (기본: 현재 시각)."""
    dt = as_utc(value) if value is not None else datetime.now(timezone.utc)
    return dt.replace(minute=0, second=0, microsecond=0)


def format_time_bucket(value: TimeLike) -> str:
    """정규 외부 표현 "YYYY-MM-DDTHH:00:00Z" 로 렌더링합니다."""
    return to_time_bucket(value).strftime(CANONICAL_FORMAT)
