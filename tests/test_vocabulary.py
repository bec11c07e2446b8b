"""직업 태그 사전 및 태그 매칭 비율 테스트."""

import pytest

from indexer.vocabulary import (
    JOB_CATEGORIES,
    JOB_TAG_MAPPING,
    UnknownJobCategoryError,
    calculate_tag_match,
    get_job_tags,
    is_valid_job_category,
    require_job_category,
)


class TestVocabulary:
    def test_thirteen_categories_in_order(self):
        assert len(JOB_CATEGORIES) == 13
        assert JOB_CATEGORIES[0] == "기술/개발"
        assert JOB_CATEGORIES[-1] == "기타"

    def test_every_category_has_tags(self):
        for category, tags in JOB_TAG_MAPPING.items():
            assert tags, category
            assert len(set(tags)) == len(tags), category

    def test_lookup(self):
        assert get_job_tags("학생") == frozenset({"교육지원", "글쓰기지원", "코드생성", "LLM"})

    def test_validation(self):
        assert is_valid_job_category("기술/개발")
        assert not is_valid_job_category("기술")
        assert require_job_category("교육") == "교육"

    def test_unknown_category_raises(self):
        with pytest.raises(UnknownJobCategoryError) as exc_info:
            get_job_tags("우주비행사")
        assert exc_info.value.job_category == "우주비행사"
        assert isinstance(exc_info.value, ValueError)


class TestCalculateTagMatch:
    def test_ratio_uses_cluster_tag_count(self):
        """분모는 직업 태그 수(8)가 아니라 클러스터 태그 수(5)."""
        match = calculate_tag_match(
            ["LLM", "코드생성", "정책", "투자", "규제"], get_job_tags("기술/개발")
        )
        assert match.matched_tags == ("LLM", "코드생성")
        assert match.match_ratio == pytest.approx(0.4)

    def test_full_overlap(self):
        match = calculate_tag_match(["자동화", "데이터분석"], get_job_tags("기타"))
        assert match.match_ratio == 1.0

    def test_no_overlap(self):
        match = calculate_tag_match(["정책", "투자"], get_job_tags("기술/개발"))
        assert match.matched_tags == ()
        assert match.match_ratio == 0.0

    def test_empty_tags_is_zero(self):
        assert calculate_tag_match([], get_job_tags("기술/개발")).match_ratio == 0.0

    def test_duplicate_cluster_tags_counted_once(self):
        match = calculate_tag_match(["LLM", "LLM", "정책"], get_job_tags("기술/개발"))
        assert match.matched_tags == ("LLM",)
        assert match.match_ratio == pytest.approx(0.5)

    def test_matched_tags_keep_cluster_order(self):
        match = calculate_tag_match(["오픈소스", "정책", "LLM"], get_job_tags("기술/개발"))
        assert match.matched_tags == ("오픈소스", "LLM")
