"""
web/worker_main.py — 이슈 지수 워커 서비스 진입점

컨테이너 런타임이 HTTP 헬스체크를 요구하므로:
- 메인 스레드: Scheduler 폴링 루프 (SIGTERM 처리 포함)
- 데몬 스레드: FastAPI 헬스체크 서버 (포트 8000)

실행:
    python -m web.worker_main
"""
from __future__ import annotations

import logging
import os
import threading

import uvicorn
from fastapi import FastAPI

from core.time_bucket import format_time_bucket
from indexer.scheduler import Scheduler

logger = logging.getLogger(__name__)

HEALTH_PORT = int(os.getenv("WORKER_HEALTH_PORT", "8000"))


def create_health_app(scheduler: Scheduler) -> FastAPI:
    app = FastAPI(title="AI Issue Index Worker")

    @app.get("/health")
    def health() -> dict:
        last = scheduler.last_processed
        return {
            "status":         "stopping" if scheduler.stopped else "ok",
            "service":        "issue-index-worker",
            "last_processed": format_time_bucket(last) if last else None,
        }

    return app


def main() -> None:
    from core.config import validate_settings
    from core.db import create_db_tables, dispose_engine
    from core.logger import Phase, configure_logging, log_context

    configure_logging()
    with log_context(phase=Phase.INIT):
        validate_settings()
        create_db_tables()  # 테이블이 없으면 생성 (멱등)

    scheduler = Scheduler()
    scheduler.install_signal_handlers()

    # 메인 스레드 종료 시 함께 종료되는 데몬 스레드
    app = create_health_app(scheduler)
    health_thread = threading.Thread(
        target=lambda: uvicorn.run(app, host="0.0.0.0", port=HEALTH_PORT, log_level="warning"),
        daemon=True,
        name="health-server",
    )
    health_thread.start()
    logger.info("헬스체크 서버 시작 (포트 %d)", HEALTH_PORT)

    # signal handling 은 메인 스레드에서만 가능
    scheduler.run_forever()
    dispose_engine()
    logger.info("워커 종료")


if __name__ == "__main__":
    main()
