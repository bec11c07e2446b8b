"""
indexer 패키지 — 직업 카테고리별 AI 이슈 지수 엔진

흐름:
    snapshots (읽기) → matcher (×13 카테고리) → aggregator → persister (커밋)
                                                              ↕
                                                   queries (API 읽기 경로)

진입점:
    indexer.engine.run_issue_index_batch   — 1개 버킷 배치 실행
    indexer.scheduler.Scheduler            — 최신 버킷 폴링 루프
"""
