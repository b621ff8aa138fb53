"""Visit/report stores and the report persistence gateway."""

from hrv_report.storage.base import ReportRecord, ReportStore, StoreError, VisitStore
from hrv_report.storage.memory import InMemoryStore
from hrv_report.storage.persistence import PersistenceError, ReportPersistenceGateway

__all__ = [
    "InMemoryStore",
    "PersistenceError",
    "ReportPersistenceGateway",
    "ReportRecord",
    "ReportStore",
    "StoreError",
    "VisitStore",
]
