"""Ombudsman decision model for published case outcomes."""

from datetime import date
from typing import Any

from sqlalchemy import JSON, Date, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from fos_dashboard.models.base import Base, TimestampMixin


class FosDecision(TimestampMixin, Base):
    """A published ombudsman final decision."""

    __tablename__ = "fos_decisions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    decision_reference: Mapped[str | None] = mapped_column(
        String(100), nullable=True, unique=True
    )  # e.g. "DRN-1234567"
    decision_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    business_name: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    product_sector: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    outcome: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)  # free text
    ombudsman_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    source_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    pdf_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    pdf_sha256: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    decision_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    decision_logic: Mapped[str | None] = mapped_column(Text, nullable=True)
    complaint_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    firm_response_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    ombudsman_reasoning_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    final_decision_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    full_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    precedents: Mapped[list[Any] | None] = mapped_column(JSON, nullable=True)
    root_cause_tags: Mapped[list[Any] | None] = mapped_column(JSON, nullable=True)
    vulnerability_flags: Mapped[list[Any] | None] = mapped_column(JSON, nullable=True)
