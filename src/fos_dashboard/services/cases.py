"""Ombudsman decision listing and lookup service."""

import json
import math
import re
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy import ColumnElement, String, case, cast, extract, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fos_dashboard.models.fos_decision import FosDecision
from fos_dashboard.schemas.cases import (
    CaseDetail,
    CaseListItem,
    CaseListResponse,
    CaseOutcome,
    Pagination,
)
from fos_dashboard.services.complaint_metrics import split_list_param
from fos_dashboard.services.decision_text import enrich_case_detail

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 25
MIN_PAGE_SIZE = 5
MAX_PAGE_SIZE = 100
MIN_YEAR = 1900
MAX_YEAR = 2100

UNSPECIFIED_PRODUCT = "Unspecified"
UNKNOWN_FIRM = "Unknown firm"

# Order matters: negated and partial outcomes must win over plain "upheld"/"settled"
_OUTCOME_PATTERNS: list[tuple[tuple[str, ...], CaseOutcome]] = [
    (("not upheld", "did not uphold", "not_upheld"), CaseOutcome.NOT_UPHELD),
    (("partially upheld", "partly upheld", "partially_upheld"), CaseOutcome.PARTIALLY_UPHELD),
    (("not settled", "not_settled"), CaseOutcome.NOT_SETTLED),
    (("settled",), CaseOutcome.SETTLED),
    (("upheld",), CaseOutcome.UPHELD),
]


def normalize_outcome(raw: str | None) -> CaseOutcome:
    """Map a free-text decision outcome to its bucket."""
    if not raw or not raw.strip():
        return CaseOutcome.UNKNOWN
    normalized = re.sub(r"\s+", " ", raw.strip().lower()).replace("_", " ")
    for patterns, outcome in _OUTCOME_PATTERNS:
        if any(pattern.replace("_", " ") in normalized for pattern in patterns):
            return outcome
    return CaseOutcome.UNKNOWN


def _normalized_outcome_sql() -> ColumnElement[str]:
    text = func.lower(FosDecision.outcome)
    for separator in ("_", "\t", "\n", "\r"):
        text = func.replace(text, separator, " ")
    # Each pass halves a run of spaces, so four passes collapse runs of up to 16
    for _ in range(4):
        text = func.replace(text, "  ", " ")
    return text


def outcome_bucket_expression() -> ColumnElement[str]:
    """SQL counterpart of normalize_outcome, used for filtering and aggregates."""
    normalized = _normalized_outcome_sql()
    whens: list[tuple[ColumnElement[bool], str]] = [
        (or_(FosDecision.outcome.is_(None), func.trim(FosDecision.outcome) == ""), "unknown")
    ]
    for patterns, outcome in _OUTCOME_PATTERNS:
        phrases = dict.fromkeys(pattern.replace("_", " ") for pattern in patterns)
        matches = or_(*[normalized.like(f"%{phrase}%") for phrase in phrases])
        whens.append((matches, outcome.value))
    return case(*whens, else_=CaseOutcome.UNKNOWN.value)


def labelled_column(column: Any, fallback: str) -> ColumnElement[str]:
    """Trimmed column value, with blanks replaced by the fallback label."""
    return func.coalesce(func.nullif(func.trim(column), ""), fallback)


def _nullable_string(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _normalize_string_list(values: list[Any]) -> list[str]:
    normalized: list[str] = []
    for value in values:
        text = str(value).strip() if value is not None else ""
        if text and text not in normalized:
            normalized.append(text)
    return normalized


def parse_string_array(value: Any) -> list[str]:
    """Normalize a JSON/list/comma-separated column into distinct strings."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return _normalize_string_list(list(value))
    if isinstance(value, dict):
        return _normalize_string_list(list(value.values()))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            return _normalize_string_list(text.split(","))
        if isinstance(parsed, list):
            return _normalize_string_list(parsed)
        return [text]
    return []


def _parse_positive_int(value: Any, fallback: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return fallback
    return number if number > 0 else fallback


class CaseFilters(BaseModel):
    """Filters and paging for decision listings and dashboard aggregates."""

    query: str = ""
    years: list[int] = Field(default_factory=list)
    outcomes: list[CaseOutcome] = Field(default_factory=list)
    products: list[str] = Field(default_factory=list)
    firms: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE

    @classmethod
    def from_query(
        cls,
        query: str | None = None,
        years: str | list[str] | None = None,
        outcomes: str | list[str] | None = None,
        products: str | list[str] | None = None,
        firms: str | list[str] | None = None,
        tags: str | list[str] | None = None,
        page: Any = None,
        page_size: Any = None,
    ) -> "CaseFilters":
        """Build filters from raw query values, dropping anything invalid."""
        parsed_years = set()
        for value in split_list_param(years):
            try:
                year = int(value)
            except ValueError:
                continue
            if MIN_YEAR <= year <= MAX_YEAR:
                parsed_years.add(year)

        parsed_outcomes: list[CaseOutcome] = []
        for value in split_list_param(outcomes):
            outcome = normalize_outcome(value)
            if outcome not in parsed_outcomes:
                parsed_outcomes.append(outcome)

        size = _parse_positive_int(page_size, DEFAULT_PAGE_SIZE)
        return cls(
            query=(query or "").strip(),
            years=sorted(parsed_years),
            outcomes=parsed_outcomes,
            products=split_list_param(products),
            firms=split_list_param(firms),
            tags=list(dict.fromkeys(tag.lower() for tag in split_list_param(tags))),
            page=_parse_positive_int(page, DEFAULT_PAGE),
            page_size=min(max(size, MIN_PAGE_SIZE), MAX_PAGE_SIZE),
        )


def _tag_condition(tags: list[str]) -> ColumnElement[bool]:
    """Match decisions carrying any of the tags as a precedent or root cause.

    Tag columns hold JSON arrays, so each tag is matched as a quoted element
    of the serialized array.
    """
    conditions = []
    for tag in tags:
        element = json.dumps(tag)
        for column in (FosDecision.root_cause_tags, FosDecision.precedents):
            serialized = func.lower(cast(column, String), type_=String)
            conditions.append(serialized.contains(element, autoescape=True))
    return or_(*conditions)


def filter_conditions(filters: CaseFilters) -> list[ColumnElement[bool]]:
    """WHERE conditions on fos_decisions for the given filters."""
    conditions: list[ColumnElement[bool]] = []
    if filters.years:
        conditions.append(extract("year", FosDecision.decision_date).in_(filters.years))
    if filters.outcomes:
        conditions.append(
            outcome_bucket_expression().in_([outcome.value for outcome in filters.outcomes])
        )
    if filters.products:
        conditions.append(
            labelled_column(FosDecision.product_sector, UNSPECIFIED_PRODUCT).in_(filters.products)
        )
    if filters.firms:
        conditions.append(
            labelled_column(FosDecision.business_name, UNKNOWN_FIRM).in_(filters.firms)
        )
    if filters.tags:
        conditions.append(_tag_condition(filters.tags))
    if filters.query:
        pattern = f"%{filters.query}%"
        searchable = (
            FosDecision.decision_reference,
            FosDecision.business_name,
            FosDecision.product_sector,
            FosDecision.decision_summary,
            FosDecision.decision_logic,
            FosDecision.final_decision_text,
            FosDecision.ombudsman_reasoning_text,
        )
        conditions.append(or_(*[func.coalesce(col, "").ilike(pattern) for col in searchable]))
    return conditions


def case_id_for(decision: FosDecision) -> str:
    """Stable public ID: the reference, else the PDF hash, else the row ID."""
    return (
        _nullable_string(decision.decision_reference)
        or _nullable_string(decision.pdf_sha256)
        or str(decision.id)
    )


def _case_fields(decision: FosDecision, outcome: CaseOutcome | None = None) -> dict[str, Any]:
    return {
        "case_id": case_id_for(decision),
        "decision_reference": decision.decision_reference,
        "decision_date": decision.decision_date,
        "year": decision.decision_date.year if decision.decision_date else None,
        "firm_name": _nullable_string(decision.business_name),
        "product_group": _nullable_string(decision.product_sector),
        "outcome": outcome if outcome is not None else normalize_outcome(decision.outcome),
        "ombudsman_name": _nullable_string(decision.ombudsman_name),
        "decision_summary": _nullable_string(decision.decision_summary),
        "decision_logic": _nullable_string(decision.decision_logic),
        "precedents": parse_string_array(decision.precedents),
        "root_cause_tags": parse_string_array(decision.root_cause_tags),
        "vulnerability_flags": parse_string_array(decision.vulnerability_flags),
        "pdf_url": _nullable_string(decision.pdf_url),
        "source_url": _nullable_string(decision.source_url),
    }


def to_case_list_item(decision: FosDecision, outcome: CaseOutcome | None = None) -> CaseListItem:
    return CaseListItem(**_case_fields(decision, outcome))


def to_case_detail(decision: FosDecision, outcome: CaseOutcome | None = None) -> CaseDetail:
    return CaseDetail(
        **_case_fields(decision, outcome),
        complaint_text=_nullable_string(decision.complaint_text),
        firm_response_text=_nullable_string(decision.firm_response_text),
        ombudsman_reasoning_text=_nullable_string(decision.ombudsman_reasoning_text),
        final_decision_text=_nullable_string(decision.final_decision_text),
        full_text=_nullable_string(decision.full_text),
    )


async def list_cases(db: AsyncSession, filters: CaseFilters) -> CaseListResponse:
    """Get one page of decisions matching the filters, newest first.

    Requested pages beyond the last one are clamped to the last page. The
    outcome shown for each case is the same bucket the outcome filter uses.
    """
    conditions = filter_conditions(filters)

    count_stmt = select(func.count()).select_from(FosDecision).where(*conditions)
    total = (await db.execute(count_stmt)).scalar_one()

    total_pages = max(1, math.ceil(total / filters.page_size))
    page = min(max(filters.page, 1), total_pages)

    stmt = (
        select(FosDecision, outcome_bucket_expression().label("outcome_bucket"))
        .where(*conditions)
        .order_by(
            FosDecision.decision_date.is_(None),
            FosDecision.decision_date.desc(),
            FosDecision.decision_reference.is_(None),
            FosDecision.decision_reference,
            FosDecision.id,
        )
        .limit(filters.page_size)
        .offset((page - 1) * filters.page_size)
    )
    result = await db.execute(stmt)

    return CaseListResponse(
        cases=[
            to_case_list_item(decision, CaseOutcome(bucket))
            for decision, bucket in result.all()
        ],
        pagination=Pagination(
            page=page,
            page_size=filters.page_size,
            total=total,
            total_pages=total_pages,
        ),
    )


async def get_case(db: AsyncSession, case_id: str) -> CaseDetail | None:
    """Get a decision by its reference, PDF hash or numeric ID, in that order.

    Sections and tags missing from the row are derived from the full text.
    """
    lookups = [FosDecision.decision_reference == case_id, FosDecision.pdf_sha256 == case_id]
    if case_id.isdigit():
        lookups.append(FosDecision.id == int(case_id))

    bucket = outcome_bucket_expression().label("outcome_bucket")
    for condition in lookups:
        result = await db.execute(
            select(FosDecision, bucket).where(condition).order_by(FosDecision.id).limit(1)
        )
        row = result.first()
        if row is not None:
            decision, outcome = row
            return enrich_case_detail(to_case_detail(decision, CaseOutcome(outcome)))
    return None
