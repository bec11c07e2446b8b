"""
공유 pytest 픽스처.

- engine:           인메모리 SQLite (StaticPool, 모든 세션이 같은 연결 공유)
- session_factory:  core.db.get_db 와 같은 규약의 세션 컨텍스트 매니저 팩토리
- seeded_factory:   "기술/개발" 예시 시나리오 + 기사 8건이 들어 있는 DB
- client:           get_db_dep 를 테스트 DB 로 바꾼 FastAPI TestClient
"""

from contextlib import contextmanager
from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from database.base import Base
import database.models  # noqa: F401

from .factories import make_article, tech_scenario_rows


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    @contextmanager
    def factory() -> Generator[Session, None, None]:
        session = SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return factory


@pytest.fixture
def seeded_factory(session_factory):
    with session_factory() as db:
        db.add_all(tech_scenario_rows())
        db.add_all(make_article(i) for i in range(8))
    return session_factory


# =============================================================================
# API Fixtures
# =============================================================================


@pytest.fixture
def client(session_factory):
    from fastapi.testclient import TestClient

    from core.db import get_db_dep
    from web.api import app

    def override() -> Generator[Session, None, None]:
        with session_factory() as db:
            yield db

    app.dependency_overrides[get_db_dep] = override
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def indexed_factory(seeded_factory):
    """seeded_factory + 2025-01-15T08:00Z 배치 실행 완료."""
    from indexer.engine import run_issue_index_batch

    run_issue_index_batch("2025-01-15T08:00:00Z", seeded_factory)
    return seeded_factory
