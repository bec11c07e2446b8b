"""database/base.py — SQLAlchemy 선언적 Base (모델 ↔ core.db 순환 임포트 방지용 분리)."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """이슈 지수 엔진의 모든 ORM 모델 공통 Base."""
    pass
