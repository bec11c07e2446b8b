"""
database/migrations/env.py — Alembic 실행 환경 (이슈 지수 스키마)

DB URL:
  1. alembic.ini / Config 의 sqlalchemy.url (명시적으로 지정한 경우)
  2. core.config 의 DATABASE_URL (환경 변수, .env, Secrets Manager)

오프라인 모드 (alembic upgrade head --sql) 는 DB 연결 없이 DDL 만 출력합니다.
"""

from __future__ import annotations

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

import database.models  # noqa: F401  모델 등록
from database.base import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def _database_url() -> str:
    url = config.get_main_option("sqlalchemy.url")
    if not url:
        from core.config import get_settings

        url = get_settings().DATABASE_URL
    if not url:
        raise RuntimeError("DATABASE_URL 이 설정되지 않았습니다 (.env 또는 환경 변수 확인)")
    return url.replace("postgres://", "postgresql://", 1)


def run_migrations_offline() -> None:
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = _database_url()
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
