"""SQLAlchemy models for the FOS complaints dashboard."""

from fos_dashboard.models.base import Base, TimestampMixin
from fos_dashboard.models.complaint_metric import ComplaintMetric
from fos_dashboard.models.fos_decision import FosDecision
from fos_dashboard.models.ingestion_run import IngestionRun

__all__ = [
    "Base",
    "TimestampMixin",
    "ComplaintMetric",
    "FosDecision",
    "IngestionRun",
]
