"""
Indicator Engine Module

Batch orchestration, record sources and snapshot persistence.
"""
from .exceptions import (
    CalculationError,
    FetchError,
    IndicatorEngineError,
    MissingDataSkip,
    PersistenceError,
)
from .orchestrator import BatchReport, Failed, IndicatorEngine, Skipped, Success
from .repository import SnapshotRepository
from .sources import RecordSource, SqlRecordSource

__all__ = [
    "CalculationError",
    "FetchError",
    "IndicatorEngineError",
    "MissingDataSkip",
    "PersistenceError",
    "BatchReport",
    "Failed",
    "IndicatorEngine",
    "Skipped",
    "Success",
    "SnapshotRepository",
    "RecordSource",
    "SqlRecordSource",
]
