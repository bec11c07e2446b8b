"""
core/db.py — SQLAlchemy 데이터베이스 연결 관리

세션 사용법:
    # 컨텍스트 매니저 (권장): 직업 카테고리 1개 = 트랜잭션 1개
    from core.db import get_db
    with get_db() as db:
        persist_job_issue_index(db, result)

    # FastAPI Dependency Injection
    from core.db import get_db_dep
    def route(db: Session = Depends(get_db_dep)):
        ...

연결 풀 설정 (PostgreSQL):
    pool_size=5        동시 연결 수 (기본, DB_POOL_SIZE)
    max_overflow=10    풀 초과 시 추가 허용 연결 (DB_MAX_OVERFLOW)
    pool_pre_ping=True 연결 유효성 사전 확인 (Serverless DB 재연결)
    pool_recycle=1800  30분 후 연결 재생성 (RDS 유휴 타임아웃 대응)

세션은 트랜잭션 동안만 연결을 점유하고, 커밋/롤백 직후 풀에 반납합니다.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

# ─────────────────────────────────────────────────────────────
# 엔진 생성 (싱글턴, 프로세스당 1개)
# ─────────────────────────────────────────────────────────────

def _make_engine(url: Optional[str] = None) -> Engine:
    from core.config import settings

    url = url or settings.DATABASE_URL
    if not url:
        raise RuntimeError(
            "DATABASE_URL 이 설정되지 않았습니다.\n"
            ".env 파일 또는 환경변수를 확인해주세요."
        )

    if url.startswith("sqlite"):
        # 로컬 실험용: 풀/타임존 설정 없음
        return create_engine(url, connect_args={"check_same_thread": False})

    eng = create_engine(
        url,
        pool_pre_ping=True,       # SELECT 1 로 연결 유효성 확인
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_recycle=1800,        # 30분 후 연결 재생성
        echo=False,
        connect_args={
            "connect_timeout": 10,
            "application_name": "aii-indexer",
        },
    )

    # 연결 이벤트: 타임존 고정 (collected_at 은 항상 UTC 로 주고받음)
    @event.listens_for(eng, "connect")
    def _set_timezone(dbapi_conn, connection_record):
        with dbapi_conn.cursor() as cur:
            cur.execute("SET TIME ZONE 'UTC'")

    return eng


# 모듈 임포트 시점에 바로 생성하지 않고, 첫 사용 시 생성
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def get_engine() -> Engine:
    global _engine, _SessionLocal
    if _engine is None:
        _engine = _make_engine()
        _SessionLocal = sessionmaker(
            bind=_engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,   # 커밋 후 객체 재조회 방지
        )
        logger.info("SQLAlchemy 엔진 초기화 완료 | dialect=%s", _engine.dialect.name)
    return _engine


def dispose_engine() -> None:
    """엔진과 연결 풀을 정리합니다 (프로세스 종료 시)."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
        logger.info("SQLAlchemy 엔진 종료")
    _engine = None
    _SessionLocal = None


# ─────────────────────────────────────────────────────────────
# 세션 컨텍스트 매니저
# ─────────────────────────────────────────────────────────────

@contextmanager
def get_db() -> Generator[Session, None, None]:
    """
    SQLAlchemy 세션 컨텍스트 매니저.

    성공 시 커밋, 예외 시 롤백, 항상 닫음.

    Usage:
        with get_db() as db:
            db.add(SomeModel(field="value"))
        # ← 자동 커밋
    """
    get_engine()   # 엔진 초기화 보장
    session: Session = _SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db_dep() -> Generator[Session, None, None]:
    """
    FastAPI Dependency Injection 용 세션 제너레이터.

    Usage:
        from fastapi import Depends
        def endpoint(db: Session = Depends(get_db_dep)):
            ...
    """
    get_engine()
    session: Session = _SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ─────────────────────────────────────────────────────────────
# 초기화 / 헬스체크
# ─────────────────────────────────────────────────────────────

def create_db_tables() -> None:
    """
    모든 테이블이 없으면 생성합니다 (멱등).

    운영 DB 는 `alembic upgrade head` 로 관리하며, 이 함수는 로컬/워커 기동 시
    안전망으로만 호출됩니다.
    """
    from database.base import Base
    import database.models  # noqa: F401  ← 모델 등록

    Base.metadata.create_all(get_engine())
    logger.info("테이블 초기화 완료 | tables=%s", sorted(Base.metadata.tables))


def ping_db() -> bool:
    """DB 연결 가능 여부를 확인합니다. True 반환 시 정상."""
    try:
        eng = get_engine()
        with eng.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as exc:
        logger.error("DB 연결 실패: %s", exc)
        return False
