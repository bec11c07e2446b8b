"""
web/api.py — FastAPI 읽기 API 서버 (포트 8000)

uvicorn 으로 구동됩니다:
    uvicorn web.api:app --host 0.0.0.0 --port 8000

엔드포인트:
  GET  /health                                   헬스체크 (DB 연결·디스크 용량)
  GET  /api/issue-index/jobs/all                 전체 직업 이슈 지수
  GET  /api/issue-index/job/{category}           직업 1개 이슈 지수
  GET  /api/issue-index/job/{category}/clusters  근거 클러스터
  GET  /api/issue-index/job/{category}/articles  매칭 기사
"""

from __future__ import annotations

import logging
import os
import shutil
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from web.issue_index_api import issue_index_router

logger = logging.getLogger(__name__)

app = FastAPI(
    title="AI Issue Index Read API",
    version="1.0.0",
    docs_url="/docs",
    redoc_url=None,
)

# UI 레이어가 다른 오리진에서 호출하는 읽기 전용 API
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(issue_index_router)


# ── 헬스체크 헬퍼 ─────────────────────────────────────────────

def _check_db() -> tuple[str, bool]:
    """
    SELECT 1 로 DB 연결 상태와 응답 시간을 측정합니다.

    Returns:
        (status_str, is_ok)
        - "ok (12ms)"          연결 성공
        - "not configured"     DATABASE_URL 미설정
        - "error"              연결 실패 (상세는 로그)
    """
    from core.config import settings
    from core.db import ping_db

    if not settings.DATABASE_URL:
        return "not configured", False

    t0 = time.monotonic()
    if not ping_db():
        return "error", False
    return f"ok ({int((time.monotonic() - t0) * 1000)}ms)", True


def _check_disk() -> tuple[str, bool]:
    """로그 디렉터리 디스크 잔여 용량 (10% 미만이면 경고)."""
    try:
        check_path = "logs" if os.path.exists("logs") else "."
        usage = shutil.disk_usage(check_path)
        free_pct = usage.free / usage.total * 100
        label = f"{free_pct:.0f}% free"
        if free_pct < 10:
            logger.warning("디스크 용량 부족: %.1f%% 남음 (경로: %s)", free_pct, check_path)
            return f"warning: {label}", False
        return label, True
    except OSError as exc:
        logger.warning("디스크 용량 확인 실패: %s", exc)
        return f"error: {type(exc).__name__}", False


# ── 엔드포인트 ───────────────────────────────────────────────

@app.get("/health")
def health() -> JSONResponse:
    """
    status 값:
      - healthy   모든 체크 통과
      - degraded  디스크 부족 (200)
      - unhealthy DB 연결 불가 (503)
    """
    db_status,   db_ok   = _check_db()
    disk_status, disk_ok = _check_disk()

    if not db_ok:
        overall, http_code = "unhealthy", 503
    elif not disk_ok:
        overall, http_code = "degraded", 200
    else:
        overall, http_code = "healthy", 200

    logger.info("헬스체크 | status=%s db=%s disk=%s", overall, db_status, disk_status)
    return JSONResponse(
        status_code=http_code,
        content={
            "status": overall,
            "checks": {"db": db_status, "disk": disk_status},
        },
    )
