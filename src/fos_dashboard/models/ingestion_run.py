"""Ingestion run model for tracking decision scraping progress."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from fos_dashboard.models.base import Base, TimestampMixin


class IngestionRun(TimestampMixin, Base):
    """A run of the external decision ingestion job.

    The ingester writes free-text status values ("running", "failed", ...);
    they are normalized when read.
    """

    __tablename__ = "fos_ingestion_runs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="idle")
    active_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    windows_done: Mapped[int | None] = mapped_column(Integer, nullable=True)
    windows_total: Mapped[int | None] = mapped_column(Integer, nullable=True)
    failed_windows: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    records_ingested: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_success_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
