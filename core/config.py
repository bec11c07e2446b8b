"""
core/config.py — AI 이슈 지수 엔진 통합 설정

시크릿 로드 우선순위:
  1. AWS Secrets Manager  (ENVIRONMENT=production 일 때)
  2. 환경 변수 / .env 파일 (로컬 개발)

사용법:
    from core.config import settings

    url = settings.DATABASE_URL
    print(settings.is_production)

운영 메모:
    - 스케줄러는 INDEX_POLL_INTERVAL 초마다 cluster_snapshots 의 최신 버킷을 확인합니다.
    - 기사 조회 API 의 limit 기본값/상한은 ARTICLES_DEFAULT_LIMIT / ARTICLES_MAX_LIMIT.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# -------------------------------------------------------
# Secrets Manager 헬퍼
# -------------------------------------------------------

def _fetch_secret(secret_id: str, region: str) -> dict[str, Any]:
    """Secrets Manager 에서 JSON 시크릿을 가져옵니다. 실패 시 빈 딕셔너리 반환."""
    try:
        import boto3

        client = boto3.client("secretsmanager", region_name=region)
        raw = client.get_secret_value(SecretId=secret_id)["SecretString"]
        return json.loads(raw)
    except Exception as exc:
        logger.debug("Secrets Manager 조회 실패 [%s]: %s", secret_id, exc)
        return {}


def _int_env(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("정수가 아닌 환경 변수 무시 [%s=%r] → 기본값 %d", key, raw, default)
        return default


# -------------------------------------------------------
# 설정 데이터클래스
# -------------------------------------------------------

@dataclass(frozen=True)
class Settings:
    # ── 민감 정보 ────────────────────────────────────────
    DATABASE_URL: str

    # ── AWS ──────────────────────────────────────────────
    AWS_REGION: str = "ap-northeast-2"

    # ── 배포 환경 ─────────────────────────────────────────
    ENVIRONMENT: str = "development"

    # ── DB 연결 풀 ────────────────────────────────────────
    DB_POOL_SIZE: int    = 5
    DB_MAX_OVERFLOW: int = 10

    # ── 스케줄러 ──────────────────────────────────────────
    INDEX_POLL_INTERVAL: int = 60    # 초

    # ── 기사 조회 API ─────────────────────────────────────
    ARTICLES_DEFAULT_LIMIT: int = 100
    ARTICLES_MAX_LIMIT: int     = 1000

    # ── 로깅 ──────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"

    # ── 편의 프로퍼티 ─────────────────────────────────────
    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


# -------------------------------------------------------
# 싱글톤 팩토리
# -------------------------------------------------------

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Settings 싱글톤을 반환합니다.

    - production: 환경 변수 우선 → Secrets Manager fallback
    - 그 외: 환경 변수 / .env 만 사용
    """
    env    = os.getenv("ENVIRONMENT", "development")
    region = os.getenv("AWS_REGION", "ap-northeast-2")

    secrets: dict[str, Any] = {}
    if env == "production" and not os.getenv("DATABASE_URL"):
        logger.info("Secrets Manager에서 DATABASE_URL 로드 중...")
        secrets = _fetch_secret("aii/DATABASE_URL", region)

    database_url = os.getenv("DATABASE_URL") or secrets.get("DATABASE_URL", "")
    # SQLAlchemy 2.x: postgres:// → postgresql://
    database_url = database_url.replace("postgres://", "postgresql://", 1)

    return Settings(
        DATABASE_URL           = database_url,
        AWS_REGION             = region,
        ENVIRONMENT            = env,
        DB_POOL_SIZE           = _int_env("DB_POOL_SIZE", 5),
        DB_MAX_OVERFLOW        = _int_env("DB_MAX_OVERFLOW", 10),
        INDEX_POLL_INTERVAL    = _int_env("INDEX_POLL_INTERVAL", 60),
        ARTICLES_DEFAULT_LIMIT = _int_env("ARTICLES_DEFAULT_LIMIT", 100),
        ARTICLES_MAX_LIMIT     = _int_env("ARTICLES_MAX_LIMIT", 1000),
        LOG_LEVEL              = os.getenv("LOG_LEVEL", "INFO"),
    )


# 모듈 레벨 싱글톤
settings = get_settings()


# -------------------------------------------------------
# 시작 시 필수 값 검증
# -------------------------------------------------------

def validate_settings() -> None:
    """프로세스 시작 시 호출하여 필수 설정이 모두 있는지 확인합니다."""
    s = get_settings()
    missing = []

    if not s.DATABASE_URL:
        missing.append("DATABASE_URL")
    if s.ARTICLES_DEFAULT_LIMIT > s.ARTICLES_MAX_LIMIT:
        raise ValueError(
            f"ARTICLES_DEFAULT_LIMIT({s.ARTICLES_DEFAULT_LIMIT}) 가 "
            f"ARTICLES_MAX_LIMIT({s.ARTICLES_MAX_LIMIT}) 보다 큽니다."
        )

    if missing:
        raise ValueError(
            f"필수 설정 누락: {', '.join(missing)}\n"
            "  운영: aws secretsmanager put-secret-value --secret-id aii/DATABASE_URL ...\n"
            "  로컬: .env 파일에 KEY=value 형식으로 추가"
        )

    logger.info(
        "설정 로드 완료 | env=%s | DB=%s | poll=%ds",
        s.ENVIRONMENT,
        "OK" if s.DATABASE_URL else "MISSING",
        s.INDEX_POLL_INTERVAL,
    )
