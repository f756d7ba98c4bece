"""Ombudsman decision (case) schemas for listing and detail views."""

from datetime import date
from enum import Enum

from pydantic import BaseModel


class CaseOutcome(str, Enum):
    """Normalized decision outcome buckets."""

    UPHELD = "upheld"
    NOT_UPHELD = "not_upheld"
    PARTIALLY_UPHELD = "partially_upheld"
    SETTLED = "settled"
    NOT_SETTLED = "not_settled"
    UNKNOWN = "unknown"


class CaseListItem(BaseModel):
    """Decision summary for list views."""

    case_id: str
    decision_reference: str | None
    decision_date: date | None
    year: int | None
    firm_name: str | None
    product_group: str | None
    outcome: CaseOutcome
    ombudsman_name: str | None
    decision_summary: str | None
    decision_logic: str | None
    precedents: list[str]
    root_cause_tags: list[str]
    vulnerability_flags: list[str]
    pdf_url: str | None
    source_url: str | None


class CaseDetail(CaseListItem):
    """Decision including its extracted text sections."""

    complaint_text: str | None
    firm_response_text: str | None
    ombudsman_reasoning_text: str | None
    final_decision_text: str | None
    full_text: str | None


class Pagination(BaseModel):
    """Page position within a filtered result set."""

    page: int
    page_size: int
    total: int
    total_pages: int


class CaseListResponse(BaseModel):
    """Response containing a page of decisions."""

    cases: list[CaseListItem]
    pagination: Pagination
