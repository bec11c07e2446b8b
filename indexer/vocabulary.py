"""
indexer/vocabulary.py — 직업 카테고리별 관련 태그 사전

13개 직업 카테고리와 각 카테고리의 AI 뉴스 태그 목록.
클러스터 태그 5개 중 몇 개가 직업 태그와 겹치는지로 관련도를 계산합니다.

매칭 비율 = |클러스터 태그 ∩ 직업 태그| / |클러스터 태그|   (분모: 클러스터 태그 수)
"""

from __future__ import annotations

from typing import Iterable, NamedTuple

# 순서가 곧 배치 처리 순서이자 API 기본 정렬 순서
JOB_TAG_MAPPING: dict[str, tuple[str, ...]] = {
    "기술/개발":   ("LLM", "컴퓨터비전", "자연어처리", "머신러닝", "코드생성", "모델경량화", "에지AI", "오픈소스"),
    "창작/콘텐츠": ("콘텐츠생성", "이미지생성", "영상생성", "글쓰기지원", "마케팅자동화", "검색최적화"),
    "분석/사무":   ("데이터분석", "예측분석", "자동화", "업무효율화", "의사결정지원"),
    "의료/과학":   ("컴퓨터비전", "의료진단", "데이터분석", "머신러닝"),
    "교육":        ("채팅봇", "교육지원", "글쓰기지원", "자동화"),
    "비즈니스":    ("데이터분석", "예측분석", "의사결정지원", "자동화", "마케팅자동화", "가격결정"),
    "제조/건설":   ("컴퓨터비전", "자동화", "데이터분석", "모델경량화"),
    "서비스":      ("채팅봇", "감정분석", "자동화", "마케팅자동화"),
    "창업/자영업": ("자동화", "업무효율화", "의사결정지원", "데이터분석", "비용절감"),
    "농업/축산업": ("컴퓨터비전", "데이터분석", "자동화"),
    "어업/해상업": ("데이터분석", "자동화", "예측분석"),
    "학생":        ("교육지원", "글쓰기지원", "코드생성", "LLM"),
    "기타":        ("기술트렌드", "자동화", "데이터분석"),
}

JOB_CATEGORIES: tuple[str, ...] = tuple(JOB_TAG_MAPPING)


class UnknownJobCategoryError(ValueError):
    """등록되지 않은 직업 카테고리."""

    def __init__(self, job_category: str) -> None:
        self.job_category = job_category
        super().__init__(
            f"유효하지 않은 직업 카테고리입니다: {job_category!r} "
            f"(가능한 값: {', '.join(JOB_CATEGORIES)})"
        )


class TagMatch(NamedTuple):
    matched_tags: tuple[str, ...]
    match_ratio:  float


def is_valid_job_category(job_category: str) -> bool:
    return job_category in JOB_TAG_MAPPING


def require_job_category(job_category: str) -> str:
    """유효한 카테고리면 그대로 반환, 아니면 UnknownJobCategoryError."""
    if not is_valid_job_category(job_category):
        raise UnknownJobCategoryError(job_category)
    return job_category


def get_job_tags(job_category: str) -> frozenset[str]:
    return frozenset(JOB_TAG_MAPPING[require_job_category(job_category)])


def calculate_tag_match(cluster_tags: Iterable[str], job_tags: Iterable[str]) -> TagMatch:
    """
    클러스터 태그와 직업 태그의 교집합 비율.

    중복 태그는 한 번만 셉니다. 태그가 없으면 비율 0.
    matched_tags 는 클러스터 태그 순서를 유지합니다.
    """
    tags = tuple(dict.fromkeys(cluster_tags))
    vocabulary = set(job_tags)
    matched = tuple(tag for tag in tags if tag in vocabulary)
    ratio = len(matched) / len(tags) if tags else 0.0
    return TagMatch(matched, ratio)
