"""
web/issue_index_api.py — 직업별 AI 이슈 지수 읽기 API 라우터

엔드포인트 목록 (prefix: /api/issue-index):
  GET  /jobs/all                         한 버킷의 전체 직업 지수 (issue_index 내림차순)
  GET  /job/{category}/clusters          지수 근거 클러스터 (status=all|active|inactive)
  GET  /job/{category}/articles          매칭 기사 (cluster_id 필터, limit)
  GET  /job/{category}                   직업 1개 지수

category 는 "기술/개발" 처럼 '/' 를 포함하므로 path 컨버터를 쓰고,
/clusters · /articles 라우트를 /job/{category} 보다 먼저 등록합니다.

collected_at 쿼리 파라미터는 선택이며 ISO-8601 계열 표기를 모두 받습니다
(Z, +09:00, 공백 구분자 등). 생략 시 최신 버킷.

오류 매핑:
  400  유효하지 않은 카테고리 / collected_at 형식 오류
  404  해당 버킷 데이터 없음
  422  limit · status 범위 밖 (FastAPI Query 검증)
  500  그 외 (상세 오류는 로그에만 기록)
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from core.config import settings
from core.db import get_db_dep
from core.logger import Phase, log_context

logger = logging.getLogger(__name__)

issue_index_router = APIRouter(prefix="/api/issue-index", tags=["issue-index"])

_COLLECTED_AT_HELP = "시간 버킷 (예: 2025-01-15T08:00:00Z, 2025-01-15T17:00:00+09:00). 생략 시 최신"


def _serve(endpoint: str, fn: Callable[..., dict], *args: Any, **kwargs: Any) -> dict:
    """조회 함수를 실행하고 예외를 HTTP 상태 코드로 변환합니다."""
    with log_context(phase=Phase.API_CALL, endpoint=endpoint):
        try:
            return fn(*args, **kwargs)
        except HTTPException:
            raise
        except ValueError as exc:
            logger.info("잘못된 요청 | endpoint=%s error=%s", endpoint, exc)
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except LookupError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except Exception as exc:
            logger.exception("%s 조회 실패: %s", endpoint, exc)
            raise HTTPException(status_code=500, detail="이슈 지수 조회 중 서버 오류가 발생했습니다") from exc


# ─────────────────────────────────────────────────────────────
# 엔드포인트 (등록 순서 중요)
# ─────────────────────────────────────────────────────────────

@issue_index_router.get("/jobs/all")
def get_all_job_indexes(
    collected_at: Optional[str] = Query(None, description=_COLLECTED_AT_HELP),
    db: Session = Depends(get_db_dep),
) -> dict:
    from indexer.queries import get_all_indexes

    return _serve("jobs/all", get_all_indexes, db, collected_at)


@issue_index_router.get("/job/{category:path}/clusters")
def get_job_matched_clusters(
    category: str,
    collected_at: Optional[str] = Query(None, description=_COLLECTED_AT_HELP),
    status: Literal["all", "active", "inactive"] = Query("all"),
    db: Session = Depends(get_db_dep),
) -> dict:
    from indexer.queries import get_matched_clusters

    return _serve("job/clusters", get_matched_clusters, db, category, collected_at, status)


@issue_index_router.get("/job/{category:path}/articles")
def get_job_matched_articles(
    category: str,
    collected_at: Optional[str] = Query(None, description=_COLLECTED_AT_HELP),
    cluster_id: Optional[str] = Query(None, max_length=50),
    limit: int = Query(settings.ARTICLES_DEFAULT_LIMIT, ge=1, le=settings.ARTICLES_MAX_LIMIT),
    db: Session = Depends(get_db_dep),
) -> dict:
    from indexer.queries import get_matched_articles

    return _serve(
        "job/articles",
        get_matched_articles,
        db,
        category,
        collected_at,
        cluster_id=cluster_id,
        limit=limit,
    )


@issue_index_router.get("/job/{category:path}")
def get_job_issue_index(
    category: str,
    collected_at: Optional[str] = Query(None, description=_COLLECTED_AT_HELP),
    db: Session = Depends(get_db_dep),
) -> dict:
    from indexer.queries import get_index

    return _serve("job", get_index, db, category, collected_at)
