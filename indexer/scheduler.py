"""
indexer/scheduler.py — 최신 스냅샷 버킷 폴링 스케줄러

프로세스 진입점이 Scheduler 객체를 직접 만들어 소유합니다 (모듈 전역 인스턴스 없음).

동작:
    tick()  cluster_snapshots 의 최신 버킷이 마지막 처리 버킷보다 새로우면 배치 실행
            실패한 버킷은 last_processed 가 갱신되지 않으므로 다음 tick 에서 전체 재실행
    같은 프로세스 안에서 배치가 겹치면 (수동 트리거 + 폴링 등) 나중 호출은 건너뜁니다.

실행:
    python -m indexer.scheduler                                   # 최신 버킷 1회
    python -m indexer.scheduler --collected-at 2025-01-15T08:00:00Z
    python -m indexer.scheduler --collected-at now                # 현재 시각을 정각으로 내림
    python -m indexer.scheduler --loop                            # 폴링 루프 (SIGTERM 으로 종료)
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
import threading
from datetime import datetime
from typing import Optional

from core.logger import Phase, get_logger, log_context
from core.time_bucket import TimeLike, floor_time_bucket, format_time_bucket, to_time_bucket
from indexer.engine import BatchSummary, SessionFactory, run_issue_index_batch
from indexer.snapshots import NoSnapshotsError, latest_snapshot_bucket

logger = get_logger(__name__)


class Scheduler:
    """
    이슈 지수 배치 스케줄러.

    Args:
        session_factory: 세션 컨텍스트 매니저 팩토리 (기본: core.db.get_db)
        poll_interval:   tick 간격 초 (기본: INDEX_POLL_INTERVAL)
    """

    def __init__(
        self,
        session_factory: Optional[SessionFactory] = None,
        poll_interval: Optional[int] = None,
    ) -> None:
        if session_factory is None:
            from core.db import get_db
            session_factory = get_db
        if poll_interval is None:
            from core.config import settings
            poll_interval = settings.INDEX_POLL_INTERVAL

        self._session_factory = session_factory
        self.poll_interval    = poll_interval
        self.last_processed: Optional[datetime] = None
        self._stop     = threading.Event()
        self._run_lock = threading.Lock()

    # ── 조회 ──────────────────────────────────────────────────

    def latest_snapshot_bucket(self) -> Optional[datetime]:
        with self._session_factory() as db:
            return latest_snapshot_bucket(db)

    # ── 실행 ──────────────────────────────────────────────────

    def run_once(self, collected_at: Optional[TimeLike] = None) -> Optional[BatchSummary]:
        """
        배치 1회 실행. collected_at 이 없으면 최신 스냅샷 버킷을 사용합니다.

        다른 배치가 이미 실행 중이면 None (건너뜀).
        스냅샷이 하나도 없으면 None. 배치 오류는 그대로 전파됩니다.
        """
        if not self._run_lock.acquire(blocking=False):
            logger.warning("이전 배치가 아직 실행 중, 이번 실행은 건너뜁니다")
            return None
        try:
            if collected_at is not None:
                bucket = to_time_bucket(collected_at)
            else:
                bucket = self.latest_snapshot_bucket()
                if bucket is None:
                    logger.info("처리할 스냅샷 버킷이 없습니다")
                    return None

            summary = run_issue_index_batch(bucket, self._session_factory)
            if self.last_processed is None or bucket > self.last_processed:
                self.last_processed = bucket
            return summary
        finally:
            self._run_lock.release()

    def tick(self) -> Optional[BatchSummary]:
        """새 버킷이 있을 때만 배치를 실행합니다."""
        latest = self.latest_snapshot_bucket()
        if latest is None:
            return None
        if self.last_processed is not None and latest <= self.last_processed:
            logger.debug("새 버킷 없음", latest=format_time_bucket(latest))
            return None
        logger.info("새 스냅샷 버킷 감지", collected_at=format_time_bucket(latest))
        return self.run_once(latest)

    def run_forever(self) -> None:
        """stop() 또는 종료 신호를 받을 때까지 poll_interval 마다 tick()."""
        logger.info("스케줄러 루프 시작", poll_interval=self.poll_interval)
        with log_context(phase=Phase.SCHEDULER):
            while not self._stop.is_set():
                try:
                    self.tick()
                except Exception:
                    # 실패한 버킷은 다음 tick 에서 다시 시도
                    logger.exception("배치 실패")
                self._stop.wait(self.poll_interval)
        logger.info("스케줄러 루프 종료")

    def stop(self) -> None:
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def install_signal_handlers(self) -> None:
        """SIGTERM/SIGINT 를 받으면 현재 배치를 마친 뒤 루프를 종료합니다."""
        def _handle(signum, frame) -> None:  # noqa: ANN001
            logger.info("종료 신호 수신, 현재 배치 완료 후 종료합니다", signal=signum)
            self.stop()

        signal.signal(signal.SIGTERM, _handle)
        signal.signal(signal.SIGINT,  _handle)


# ── 진입점 ────────────────────────────────────────────────────

def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="AI 이슈 지수 배치 스케줄러")
    parser.add_argument(
        "--collected-at",
        default=None,
        help="처리할 시간 버킷 (예: 2025-01-15T08:00:00Z, now). 없으면 최신 스냅샷 버킷",
    )
    parser.add_argument(
        "--loop",
        action="store_true",
        help="INDEX_POLL_INTERVAL 마다 새 버킷을 확인하는 폴링 루프로 실행",
    )
    args = parser.parse_args(argv)

    from core.config import validate_settings
    from core.db import create_db_tables
    from core.logger import configure_logging

    configure_logging()
    with log_context(phase=Phase.INIT):
        validate_settings()
        create_db_tables()

    collected_at: Optional[TimeLike] = args.collected_at
    if args.collected_at and args.collected_at.strip().lower() == "now":
        collected_at = floor_time_bucket()

    scheduler = Scheduler()
    if args.loop:
        scheduler.install_signal_handlers()
        scheduler.run_forever()
        return 0

    try:
        summary = scheduler.run_once(collected_at)
    except (ValueError, NoSnapshotsError) as exc:
        logger.error("배치 실행 불가", error=str(exc))
        return 2
    if summary is None:
        return 1
    print(json.dumps(summary.as_dict(), ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
