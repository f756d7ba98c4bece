"""Create complaint metric, ombudsman decision and ingestion run tables.

Revision ID: 001_create_fos_tables
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "001_create_fos_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Tables may already exist when the ingestion pipeline created them first
    if not table_exists("complaint_metrics"):
        op.create_table(
            "complaint_metrics",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("firm_name", sa.String(255), nullable=False),
            sa.Column("reporting_period", sa.String(64), nullable=True),
            sa.Column("product_category", sa.String(255), nullable=True),
            sa.Column("upheld_rate_pct", sa.Float(), nullable=True),
            sa.Column("closed_within_3_days_pct", sa.Float(), nullable=True),
            sa.Column("closed_after_3_days_within_8_weeks_pct", sa.Float(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_complaint_metrics_firm_period",
            "complaint_metrics",
            ["firm_name", "reporting_period"],
        )
        op.create_index(
            "ix_complaint_metrics_product_category", "complaint_metrics", ["product_category"]
        )

    if not table_exists("fos_decisions"):
        op.create_table(
            "fos_decisions",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("decision_reference", sa.String(100), nullable=True),
            sa.Column("decision_date", sa.Date(), nullable=True),
            sa.Column("business_name", sa.String(255), nullable=True),
            sa.Column("product_sector", sa.String(255), nullable=True),
            sa.Column("outcome", sa.String(50), nullable=True),
            sa.Column("ombudsman_name", sa.String(255), nullable=True),
            sa.Column("source_url", sa.Text(), nullable=True),
            sa.Column("pdf_url", sa.Text(), nullable=True),
            sa.Column("decision_summary", sa.Text(), nullable=True),
            sa.Column("decision_logic", sa.Text(), nullable=True),
            sa.Column("complaint_text", sa.Text(), nullable=True),
            sa.Column("firm_response_text", sa.Text(), nullable=True),
            sa.Column("ombudsman_reasoning_text", sa.Text(), nullable=True),
            sa.Column("final_decision_text", sa.Text(), nullable=True),
            sa.Column("full_text", sa.Text(), nullable=True),
            sa.Column("precedents", sa.JSON(), nullable=True),
            sa.Column("root_cause_tags", sa.JSON(), nullable=True),
            sa.Column("vulnerability_flags", sa.JSON(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("decision_reference"),
        )
        op.create_index("ix_fos_decisions_decision_date", "fos_decisions", ["decision_date"])
        op.create_index("ix_fos_decisions_business_name", "fos_decisions", ["business_name"])
        op.create_index("ix_fos_decisions_product_sector", "fos_decisions", ["product_sector"])
        op.create_index("ix_fos_decisions_outcome", "fos_decisions", ["outcome"])

    if not table_exists("fos_ingestion_runs"):
        op.create_table(
            "fos_ingestion_runs",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("status", sa.String(32), nullable=False, server_default="idle"),
            sa.Column("active_year", sa.Integer(), nullable=True),
            sa.Column("windows_done", sa.Integer(), nullable=True),
            sa.Column("windows_total", sa.Integer(), nullable=True),
            sa.Column("failed_windows", sa.Integer(), nullable=True, server_default="0"),
            sa.Column("records_ingested", sa.Integer(), nullable=True, server_default="0"),
            sa.Column("started_at", sa.DateTime(), nullable=True),
            sa.Column("finished_at", sa.DateTime(), nullable=True),
            sa.Column("last_success_at", sa.DateTime(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )


def downgrade() -> None:
    op.drop_table("fos_ingestion_runs")
    op.drop_index("ix_fos_decisions_outcome", table_name="fos_decisions")
    op.drop_index("ix_fos_decisions_product_sector", table_name="fos_decisions")
    op.drop_index("ix_fos_decisions_business_name", table_name="fos_decisions")
    op.drop_index("ix_fos_decisions_decision_date", table_name="fos_decisions")
    op.drop_table("fos_decisions")
    op.drop_index("ix_complaint_metrics_product_category", table_name="complaint_metrics")
    op.drop_index("ix_complaint_metrics_firm_period", table_name="complaint_metrics")
    op.drop_table("complaint_metrics")
