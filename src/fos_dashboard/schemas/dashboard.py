"""Dashboard snapshot schemas: KPIs, breakdowns, tag counts and filter options."""

from datetime import date

from pydantic import BaseModel

from fos_dashboard.schemas.cases import CaseListItem, CaseOutcome, Pagination
from fos_dashboard.schemas.ingestion import IngestionStatusResponse


class DashboardOverview(BaseModel):
    """Headline KPIs for the filtered decisions."""

    total_cases: int
    upheld_cases: int
    not_upheld_cases: int
    partially_upheld_cases: int
    upheld_rate: float
    not_upheld_rate: float
    top_root_cause: str | None
    top_precedent: str | None
    earliest_decision_date: date | None
    latest_decision_date: date | None


class YearOutcomeTrend(BaseModel):
    """Outcome totals for one decision year."""

    year: int
    total: int
    upheld: int
    not_upheld: int
    partially_upheld: int
    unknown: int


class OutcomeCount(BaseModel):
    """Number of decisions in one outcome bucket."""

    outcome: CaseOutcome
    count: int


class ProductBreakdown(BaseModel):
    """Decision volume and uphold rate for a product group."""

    product: str
    total: int
    upheld_rate: float


class FirmBreakdown(BaseModel):
    """Decision volume and outcome rates for a firm."""

    firm: str
    total: int
    upheld_rate: float
    not_upheld_rate: float


class TagCount(BaseModel):
    """How many decisions cite a precedent or root-cause tag."""

    label: str
    count: int


class YearInsight(BaseModel):
    """One-line summary of a decision year."""

    year: int
    headline: str
    detail: str


class FilterOptions(BaseModel):
    """Values available to the dashboard filter controls."""

    years: list[int]
    outcomes: list[CaseOutcome]
    products: list[str]
    firms: list[str]
    tags: list[str]
    trend_firms: list[str]


class DataQuality(BaseModel):
    """Counts of decisions with missing or present key fields."""

    missing_decision_date: int
    missing_outcome: int
    missing_firm: int
    missing_product: int
    with_reasoning_text: int


class DashboardSnapshot(BaseModel):
    """Everything the dashboard renders for one set of filters."""

    overview: DashboardOverview
    trends: list[YearOutcomeTrend]
    outcomes: list[OutcomeCount]
    products: list[ProductBreakdown]
    firms: list[FirmBreakdown]
    precedents: list[TagCount]
    root_causes: list[TagCount]
    insights: list[YearInsight]
    cases: list[CaseListItem]
    pagination: Pagination
    filters: FilterOptions
    ingestion: IngestionStatusResponse
    data_quality: DataQuality
