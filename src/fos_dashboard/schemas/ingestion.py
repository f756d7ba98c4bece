"""Ingestion status and progress schemas."""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel


class IngestionState(str, Enum):
    """Normalized state of the decision ingestion job."""

    RUNNING = "running"
    IDLE = "idle"
    WARNING = "warning"
    ERROR = "error"


class IngestionSource(str, Enum):
    """Where an ingestion status was read from."""

    RUNS = "fos_ingestion_runs"
    DERIVED = "derived"


class IngestionStatusResponse(BaseModel):
    """Latest known state of the decision ingestion job."""

    status: IngestionState = IngestionState.IDLE
    source: IngestionSource = IngestionSource.DERIVED
    last_run_at: datetime | date | None = None
    last_success_at: datetime | date | None = None
    active_year: int | None = None
    windows_done: int | None = None
    windows_total: int | None = None
    failed_windows: int | None = None
    records_ingested: int | None = None


class YearProgress(BaseModel):
    """Number of decisions ingested for one decision year."""

    year: int
    decisions: int
    status: str = "complete"
    progress_pct: int = 100


class ProgressResponse(BaseModel):
    """Per-year ingestion progress together with the job status."""

    ingestion: IngestionStatusResponse
    years: list[YearProgress]


class KeepaliveResponse(BaseModel):
    """Result of the database warm-up query."""

    total_cases: int
    latest_decision_date: date | None
    duration_ms: float
