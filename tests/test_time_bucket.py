"""
시간 버킷 정규화 테스트.

쓰기 경로와 읽기 경로가 같은 키를 쓰도록, 같은 순간을 가리키는 모든 표기가
하나의 UTC 정각 datetime 으로 모이는지 확인합니다.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from core.time_bucket import (
    InvalidTimeBucketError,
    as_utc,
    floor_time_bucket,
    format_time_bucket,
    to_time_bucket,
)

EXPECTED = datetime(2025, 1, 15, 8, 0, tzinfo=timezone.utc)


class TestToTimeBucket:
    """to_time_bucket 입력 형식."""

    @pytest.mark.parametrize(
        "value",
        [
            "2025-01-15T08:00:00Z",
            "2025-01-15T08:00:00z",
            "2025-01-15T08:00:00+00:00",
            "2025-01-15T17:00:00+09:00",
            "2025-01-15T03:00:00-05:00",
            "2025-01-15 08:00:00",
            "2025-01-15T08:00:00",
            "2025-01-15T08:00:00.000Z",
            "2025-01-15T17:00:00 09:00",
            "  2025-01-15T08:00:00Z  ",
            "2025-01-15T17:00:00+0900",
            "20250115T080000Z",
            "Wed, 15 Jan 2025 08:00:00 GMT",
            "15 Jan 2025 17:00 +0900",
            "15/01/2025 08:00",
        ],
    )
    def test_equivalent_strings_resolve_to_same_bucket(self, value):
        """같은 순간의 다른 표기는 모두 같은 버킷."""
        assert to_time_bucket(value) == EXPECTED

    def test_naive_datetime_is_utc(self):
        assert to_time_bucket(datetime(2025, 1, 15, 8)) == EXPECTED

    def test_aware_datetime_is_converted(self):
        kst = timezone(timedelta(hours=9))
        assert to_time_bucket(datetime(2025, 1, 15, 17, tzinfo=kst)) == EXPECTED

    def test_date_only_is_midnight_utc(self):
        midnight = datetime(2025, 1, 15, tzinfo=timezone.utc)
        assert to_time_bucket("2025-01-15") == midnight
        assert to_time_bucket(date(2025, 1, 15)) == midnight

    def test_result_is_utc_aware(self):
        result = to_time_bucket("2025-01-15T17:00:00+09:00")
        assert result.utcoffset() == timedelta(0)

    @pytest.mark.parametrize(
        "value",
        ["", "   ", "yesterday", "2025-02-30T00:00:00Z", "2025-01-15T25:00:00Z"],
    )
    def test_malformed_input_rejected(self, value):
        with pytest.raises(InvalidTimeBucketError):
            to_time_bucket(value)

    @pytest.mark.parametrize(
        "value",
        ["2025-01-15T08:30:00Z", "2025-01-15T08:00:01Z", "2025-01-15T08:00:00.5Z"],
    )
    def test_not_hour_aligned_rejected(self, value):
        """읽기 경로에서는 내림하지 않고 거부합니다."""
        with pytest.raises(InvalidTimeBucketError):
            to_time_bucket(value)

    def test_non_iso_text_must_still_be_on_the_hour(self):
        with pytest.raises(InvalidTimeBucketError):
            to_time_bucket("Wed, 15 Jan 2025 08:30:00 GMT")

    def test_half_hour_offset_that_lands_off_the_hour(self):
        """+05:30 의 정각은 UTC 로는 정각이 아님."""
        with pytest.raises(InvalidTimeBucketError):
            to_time_bucket("2025-01-15T13:00:00+05:30")

    def test_unsupported_type_rejected(self):
        with pytest.raises(InvalidTimeBucketError):
            to_time_bucket(1736928000)

    def test_error_is_value_error(self):
        """API 계층에서 400 으로 매핑되는 예외 계열."""
        assert issubclass(InvalidTimeBucketError, ValueError)


class TestFormatAndFloor:
    def test_canonical_text_form(self):
        assert format_time_bucket("2025-01-15T17:00:00+09:00") == "2025-01-15T08:00:00Z"

    def test_format_round_trip(self):
        text = format_time_bucket(EXPECTED)
        assert to_time_bucket(text) == EXPECTED

    def test_floor_truncates_to_hour(self):
        assert floor_time_bucket(datetime(2025, 1, 15, 8, 59, 59, 999999)) == EXPECTED

    def test_floor_converts_to_utc_first(self):
        kst = timezone(timedelta(hours=9))
        assert floor_time_bucket(datetime(2025, 1, 15, 17, 45, tzinfo=kst)) == EXPECTED

    def test_floor_default_is_now(self):
        result = floor_time_bucket()
        assert result.minute == result.second == result.microsecond == 0
        assert result.tzinfo is not None

    def test_as_utc_keeps_instant(self):
        kst = timezone(timedelta(hours=9))
        value = datetime(2025, 1, 15, 17, 20, tzinfo=kst)
        assert as_utc(value) == value
        assert as_utc(value).tzinfo == timezone.utc
