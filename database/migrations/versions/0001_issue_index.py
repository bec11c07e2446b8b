"""초기 스키마 — 클러스터 스냅샷/이력/기사 + 직업별 이슈 지수/근거 매핑

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TIMESTAMPTZ = sa.TIMESTAMP(timezone=True)


def upgrade() -> None:
    # ── cluster_snapshots (외부 파이프라인 소유) ──────────────
    op.create_table(
        "cluster_snapshots",
        sa.Column("collected_at",     TIMESTAMPTZ,       primary_key=True),
        sa.Column("cluster_id",       sa.String(50),     primary_key=True),
        sa.Column("topic_name",       sa.String(200),    nullable=False),
        sa.Column("tags",             postgresql.JSONB,  nullable=False, server_default="[]"),
        sa.Column("appearance_count", sa.Integer(),      nullable=False, server_default="1"),
        sa.Column("article_count",    sa.Integer(),      nullable=False, server_default="0"),
        sa.Column("article_indices",  postgresql.JSONB,  nullable=False, server_default="[]"),
        sa.Column("status",           sa.String(10),     nullable=False),
        sa.Column("cluster_score",    sa.Numeric(5, 2),  nullable=False),
        sa.Column("created_at",       TIMESTAMPTZ,       nullable=False, server_default=sa.text("NOW()")),
        sa.CheckConstraint("status IN ('active','inactive')", name="ck_cs_status"),
        sa.CheckConstraint("cluster_score >= 0 AND cluster_score <= 100", name="ck_cs_cluster_score"),
    )
    op.create_index("idx_cs_cluster_id",    "cluster_snapshots", ["cluster_id"])
    op.create_index("idx_cs_cluster_score", "cluster_snapshots", ["collected_at", "cluster_score"])

    # ── cluster_history (외부 파이프라인 소유) ────────────────
    op.create_table(
        "cluster_history",
        sa.Column("history_id",      sa.BigInteger(),   primary_key=True, autoincrement=True),
        sa.Column("cluster_id",      sa.String(50),     nullable=False),
        sa.Column("collected_at",    TIMESTAMPTZ,       nullable=False),
        sa.Column("article_indices", postgresql.JSONB,  nullable=False, server_default="[]"),
        sa.Column("article_count",   sa.Integer(),      nullable=False, server_default="0"),
        sa.Column("created_at",      TIMESTAMPTZ,       nullable=False, server_default=sa.text("NOW()")),
    )
    op.create_index("idx_ch_cluster_collected", "cluster_history", ["cluster_id", "collected_at"])
    op.create_index("idx_ch_collected_at",      "cluster_history", ["collected_at"])

    # ── news_articles (외부 파이프라인 소유) ──────────────────
    op.create_table(
        "news_articles",
        sa.Column("article_id",    sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("collected_at",  TIMESTAMPTZ,     nullable=False),
        sa.Column("article_index", sa.Integer(),    nullable=False),
        sa.Column("source",        sa.String(50),   nullable=False, server_default="naver"),
        sa.Column("title",         sa.String(500),  nullable=False),
        sa.Column("link",          sa.Text(),       nullable=False),
        sa.Column("description",   sa.Text()),
        sa.Column("pub_date",      TIMESTAMPTZ),
        sa.Column("created_at",    TIMESTAMPTZ,     nullable=False, server_default=sa.text("NOW()")),
        sa.UniqueConstraint("collected_at", "article_index", name="uq_na_collected_index"),
        sa.CheckConstraint("article_index >= 0 AND article_index <= 999", name="ck_na_article_index"),
    )

    # ── job_issue_index ───────────────────────────────────────
    op.create_table(
        "job_issue_index",
        sa.Column("job_category",            sa.String(50),    primary_key=True),
        sa.Column("collected_at",            TIMESTAMPTZ,      primary_key=True),
        sa.Column("issue_index",             sa.Numeric(5, 1), nullable=False),
        sa.Column("active_clusters_count",   sa.Integer(),     nullable=False, server_default="0"),
        sa.Column("inactive_clusters_count", sa.Integer(),     nullable=False, server_default="0"),
        sa.Column("total_articles_count",    sa.Integer(),     nullable=False, server_default="0"),
        sa.Column("created_at",              TIMESTAMPTZ,      nullable=False, server_default=sa.text("NOW()")),
    )
    op.create_index("idx_jii_collected_at", "job_issue_index", ["collected_at"])
    op.create_index("idx_jii_issue_index",  "job_issue_index", ["collected_at", "issue_index"])

    # ── job_cluster_mapping ───────────────────────────────────
    op.create_table(
        "job_cluster_mapping",
        sa.Column("job_category",   sa.String(50),     primary_key=True),
        sa.Column("collected_at",   TIMESTAMPTZ,       primary_key=True),
        sa.Column("cluster_id",     sa.String(50),     primary_key=True),
        sa.Column("matched_tags",   postgresql.JSONB,  nullable=False, server_default="[]"),
        sa.Column("match_ratio",    sa.Numeric(5, 4),  nullable=False),
        sa.Column("weighted_score", sa.Numeric(6, 2),  nullable=False),
        sa.Column("created_at",     TIMESTAMPTZ,       nullable=False, server_default=sa.text("NOW()")),
        sa.CheckConstraint("match_ratio > 0 AND match_ratio <= 1", name="ck_jcm_match_ratio"),
    )
    op.create_index("idx_jcm_collected_at",   "job_cluster_mapping", ["collected_at"])
    op.create_index(
        "idx_jcm_weighted_score",
        "job_cluster_mapping",
        ["job_category", "collected_at", "weighted_score"],
    )


def downgrade() -> None:
    op.drop_table("job_cluster_mapping")
    op.drop_table("job_issue_index")
    op.drop_table("news_articles")
    op.drop_table("cluster_history")
    op.drop_table("cluster_snapshots")
