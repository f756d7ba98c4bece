"""Add the PDF content hash to ombudsman decisions.

Revision ID: 002_add_decision_pdf_sha256
Revises: 001_create_fos_tables
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision: str = "002_add_decision_pdf_sha256"
down_revision: Union[str, None] = "001_create_fos_tables"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def column_exists(table_name: str, column_name: str) -> bool:
    """Check if a column exists in a table."""
    bind = op.get_bind()
    inspector = inspect(bind)
    columns = [col["name"] for col in inspector.get_columns(table_name)]
    return column_name in columns


def index_exists(table_name: str, index_name: str) -> bool:
    """Check if an index exists on a table."""
    bind = op.get_bind()
    inspector = inspect(bind)
    indexes = inspector.get_indexes(table_name)
    return any(idx["name"] == index_name for idx in indexes)


def upgrade() -> None:
    # Decisions without a reference are identified by the hash of their PDF
    if not column_exists("fos_decisions", "pdf_sha256"):
        op.add_column(
            "fos_decisions",
            sa.Column("pdf_sha256", sa.String(64), nullable=True),
        )
    if not index_exists("fos_decisions", "ix_fos_decisions_pdf_sha256"):
        op.create_index("ix_fos_decisions_pdf_sha256", "fos_decisions", ["pdf_sha256"])


def downgrade() -> None:
    op.drop_index("ix_fos_decisions_pdf_sha256", table_name="fos_decisions")
    op.drop_column("fos_decisions", "pdf_sha256")
