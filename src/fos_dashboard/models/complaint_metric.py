"""Complaint metric model for firm-level complaint handling statistics."""

from sqlalchemy import Float, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from fos_dashboard.models.base import Base, TimestampMixin


class ComplaintMetric(TimestampMixin, Base):
    """One published complaints return for a firm, period and product category.

    Rates are percentages in the 0-100 range as published by the regulator.
    """

    __tablename__ = "complaint_metrics"
    __table_args__ = (Index("ix_complaint_metrics_firm_period", "firm_name", "reporting_period"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    firm_name: Mapped[str] = mapped_column(String(255), nullable=False)
    reporting_period: Mapped[str | None] = mapped_column(String(64), nullable=True)  # e.g. "2023 H1"
    product_category: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    upheld_rate_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    closed_within_3_days_pct: Mapped[float | None] = mapped_column(Float, nullable=True)
    closed_after_3_days_within_8_weeks_pct: Mapped[float | None] = mapped_column(
        Float, nullable=True
    )
