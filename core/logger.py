"""
core/logger.py — AI 이슈 지수 엔진 구조화 로깅

아키텍처:
    structlog ──► stdlib.LoggerFactory ──► 두 개의 핸들러
                                           ├── StreamHandler     (콘솔)
                                           │     개발: 컬러 콘솔
                                           │     프로덕션: JSON
                                           └── RotatingFileHandler (파일)
                                                 항상 JSON (ELK 호환)
                                                 10 MB 초과 시 자동 교체
                                                 백업 최대 5개 유지

    ProcessorFormatter 가 각 핸들러에서 최종 렌더링을 담당합니다.
    외부 라이브러리(sqlalchemy, uvicorn 등) 로그도 동일한 파이프라인을 통과합니다.

Context Injection:
    모든 로그에 job_category / collected_at / phase 가 자동으로 포함됩니다.
    Python contextvars 기반, 스레드·비동기 양쪽에서 안전합니다.

ELK 호환 JSON 출력 예시:
    {
        "@timestamp":   "2026-03-02T10:00:01.000000Z",
        "level":        "INFO",
        "logger":       "indexer.engine",
        "message":      "지수 계산 완료",
        "service":      "aii",
        "host":         "ip-10-0-1-5",
        "job_category": "기술/개발",
        "collected_at": "2026-03-02T10:00:00Z",
        "phase":        "Aggregation",
        "issue_index":  44.3
    }

────────────────────────────────────────────────────────────────
빠른 시작:

    # 앱 시작 시 1회 호출
    from core.logger import configure_logging
    configure_logging()

    # 로거 획득
    from core.logger import get_logger, log_context, Phase
    logger = get_logger(__name__)

    # 컨텍스트 자동 주입: with 블록 내 모든 로그에 적용
    with log_context(collected_at="2026-03-02T10:00:00Z", phase=Phase.MATCHING):
        logger.info("매칭 시작")

        with log_context(job_category="기술/개발", phase=Phase.DB_WRITE):
            logger.info("저장 완료", total_articles=5)

────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import socket
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Optional

import structlog
from structlog.stdlib import ProcessorFormatter

# ─────────────────────────────────────────────────────────────
# 처리 단계 상수
# ─────────────────────────────────────────────────────────────

class Phase:
    """
    로그 컨텍스트에 사용하는 처리 단계 식별자.

    Usage:
        with log_context(phase=Phase.MATCHING):
            logger.info("태그 매칭")
    """
    SNAPSHOT_READ = "Snapshot Read"  # cluster_snapshots 조회
    MATCHING      = "Matching"       # 직업 태그 매칭
    AGGREGATION   = "Aggregation"    # 감쇠 + 가중 평균
    DB_WRITE      = "DB Write"       # 지수/근거 저장
    API_CALL      = "API Call"       # FastAPI 요청 처리
    SCHEDULER     = "Scheduler"      # 배치 폴링 루프
    INIT          = "Initialization" # 앱 초기화


# ─────────────────────────────────────────────────────────────
# 내부 상수
# ─────────────────────────────────────────────────────────────

_LOG_DIR  = Path(os.getenv("LOG_DIR", "logs"))
_HOSTNAME = socket.gethostname()
_SERVICE  = "aii"
_LOG_FILE = "aii.log"


# ─────────────────────────────────────────────────────────────
# 커스텀 structlog 프로세서
# ─────────────────────────────────────────────────────────────

def _add_service_context(
    logger: Any, method: str, event_dict: dict
) -> dict:
    """모든 로그에 서비스·호스트 메타를 자동 삽입합니다."""
    event_dict.setdefault("service", _SERVICE)
    event_dict.setdefault("host",    _HOSTNAME)
    return event_dict


def _rename_event_to_message(
    logger: Any, method: str, event_dict: dict
) -> dict:
    """
    ELK Stack 호환: structlog 의 'event' 키를 'message' 로 변경합니다.

    파일(JSON) 핸들러 전용입니다.
    """
    event_dict["message"] = event_dict.pop("event", "")
    return event_dict


# ─────────────────────────────────────────────────────────────
# 공유 프로세서 체인
# ─────────────────────────────────────────────────────────────

def _build_shared_processors() -> list:
    """
    structlog 과 stdlib 핸들러(foreign_pre_chain) 양쪽에서 공유하는 프로세서 목록.

    실행 순서:
        1. contextvars  → job_category / collected_at / phase 자동 병합
        2. add_log_level → "level": "INFO"
        3. add_logger_name → "logger": "indexer.engine"
        4. PositionalArgFormatter → '%s' 스타일 메시지 지원
        5. TimeStamper → "@timestamp" (UTC ISO 8601)
        6. StackInfoRenderer
        7. _add_service_context → "service": "aii", "host": "..."
    """
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="@timestamp"),
        structlog.processors.StackInfoRenderer(),
        _add_service_context,
    ]


# ─────────────────────────────────────────────────────────────
# 로깅 설정
# ─────────────────────────────────────────────────────────────

def configure_logging(
    level:    str | None  = None,
    json_logs: bool | None = None,
    log_file:  bool        = True,
) -> None:
    """
    structlog + stdlib logging 을 통합 설정합니다.

    Args:
        level:     로그 레벨 (기본: LOG_LEVEL 환경변수 → "INFO")
        json_logs: 콘솔 JSON 강제 여부 (기본: production 이면 True)
        log_file:  파일 로그 활성화 (기본: True)
    """
    from core.config import settings

    log_level_str = (level or settings.LOG_LEVEL).upper()
    log_level     = getattr(logging, log_level_str, logging.INFO)
    use_json      = json_logs if json_logs is not None else settings.is_production

    shared = _build_shared_processors()

    # ── ① structlog 설정 (stdlib 브릿지) ─────────────────────
    #  wrap_for_formatter 는 항상 마지막 프로세서
    structlog.configure(
        processors=shared + [ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )

    # ── ② 콘솔 포매터 ────────────────────────────────────────
    _console_renderer = (
        structlog.processors.JSONRenderer(ensure_ascii=False)
        if use_json
        else structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty() or sys.stdout.isatty(),
            sort_keys=False,
        )
    )
    console_formatter = ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            ProcessorFormatter.remove_processors_meta,
            structlog.processors.ExceptionRenderer(),
            _console_renderer,
        ],
    )

    # ── ③ 파일 포매터 (항상 JSON) ────────────────────────────
    file_formatter = ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            ProcessorFormatter.remove_processors_meta,
            structlog.processors.ExceptionRenderer(),
            _rename_event_to_message,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
    )

    # ── ④ 핸들러 조립 ────────────────────────────────────────
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(console_formatter)
    console_handler.setLevel(log_level)

    all_handlers: list[logging.Handler] = [console_handler]

    if log_file:
        _LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename    = str(_LOG_DIR / _LOG_FILE),
            maxBytes    = 10 * 1024 * 1024,  # 10 MB
            backupCount = 5,
            encoding    = "utf-8",
            delay       = True,
        )
        file_handler.setFormatter(file_formatter)
        file_handler.setLevel(log_level)
        all_handlers.append(file_handler)

    # ── ⑤ 루트 로거에 핸들러 등록 ───────────────────────────
    root = logging.getLogger()
    root.handlers.clear()
    for h in all_handlers:
        root.addHandler(h)
    root.setLevel(log_level)

    # ── ⑥ 외부 라이브러리 로그 레벨 조정 ────────────────────
    _library_levels: dict[str, str] = {
        "uvicorn":           "INFO",
        "uvicorn.access":    "WARNING",
        "sqlalchemy.engine": "WARNING",
        "sqlalchemy.pool":   "WARNING",
        "alembic":           "INFO",
        "httpx":             "WARNING",
        "boto3":             "WARNING",
        "botocore":          "WARNING",
        "urllib3":           "WARNING",
        "asyncio":           "WARNING",
    }
    for lib_name, lib_level in _library_levels.items():
        logging.getLogger(lib_name).setLevel(
            getattr(logging, lib_level, logging.WARNING)
        )

    structlog.get_logger(__name__).info(
        "로깅 초기화 완료",
        level   = log_level_str,
        console = "json" if use_json else "color",
        file    = str(_LOG_DIR / _LOG_FILE) if log_file else "disabled",
        host    = _HOSTNAME,
    )


# ─────────────────────────────────────────────────────────────
# Context Injection API
# ─────────────────────────────────────────────────────────────

def bind_log_context(
    *,
    job_category: Optional[str] = None,
    collected_at: Optional[str] = None,
    phase:        Optional[str] = None,
    stage:        Optional[str] = None,
    **extra: Any,
) -> None:
    """
    현재 스레드/코루틴의 로그 컨텍스트를 설정합니다.

    기존 컨텍스트는 유지되고, 지정한 키만 추가/업데이트됩니다.

    Args:
        job_category: 처리 중인 직업 카테고리 (예: "기술/개발")
        collected_at: 처리 중인 시간 버킷 (정규화된 문자열 권장)
        phase:        처리 단계 (Phase 상수)
        stage:        저장 단계 세부 (lock / upsert_index / replace_mappings ...)
        **extra:      추가 컨텍스트
    """
    ctx = {k: v for k, v in {
        "job_category": job_category,
        "collected_at": collected_at,
        "phase":        phase,
        "stage":        stage,
        **extra,
    }.items() if v is not None}

    if ctx:
        structlog.contextvars.bind_contextvars(**ctx)


@contextmanager
def log_context(
    *,
    job_category: Optional[str] = None,
    collected_at: Optional[str] = None,
    phase:        Optional[str] = None,
    stage:        Optional[str] = None,
    **extra: Any,
) -> Generator[None, None, None]:
    """
    로그 컨텍스트를 자동으로 설정·복원하는 컨텍스트 매니저.

    with 블록 종료 시 (예외 발생 시에도) 진입 이전 상태로 복원됩니다.
    중첩 사용 시 내부 블록의 키만 일시적으로 덮어씁니다.

    Usage:
        with log_context(collected_at=bucket, phase=Phase.SCHEDULER):
            for category in JOB_CATEGORIES:
                with log_context(job_category=category, phase=Phase.DB_WRITE):
                    logger.info("저장")
            logger.info("배치 완료")   # job_category 없음 (복원됨)
    """
    previous = structlog.contextvars.get_contextvars().copy()

    bind_log_context(
        job_category = job_category,
        collected_at = collected_at,
        phase        = phase,
        stage        = stage,
        **extra,
    )
    try:
        yield
    finally:
        structlog.contextvars.clear_contextvars()
        if previous:
            structlog.contextvars.bind_contextvars(**previous)


# ─────────────────────────────────────────────────────────────
# 편의 함수
# ─────────────────────────────────────────────────────────────

def get_logger(name: str = __name__) -> Any:
    """
    모듈별 structlog 로거를 반환합니다.

    Usage:
        logger = get_logger(__name__)
        logger.info("처리 완료", count=5)
    """
    return structlog.get_logger(name)
