"""
Indicator Engine Exceptions

None of these abort a batch: the orchestrator catches them per indicator and
records them in the batch report.
"""

from typing import Optional


class IndicatorEngineError(Exception):
    """Base class for engine errors"""

    def __init__(self, message: str, indicator_id: Optional[str] = None):
        super().__init__(message)
        self.indicator_id = indicator_id


class MissingDataSkip(IndicatorEngineError):
    """A required source has no rows for the tenant and window"""


class FetchError(IndicatorEngineError):
    """A record source could not be read"""

    def __init__(self, message: str, source: str):
        super().__init__(message)
        self.source = source


class CalculationError(IndicatorEngineError):
    """Unexpected exception inside one calculator"""


class PersistenceError(IndicatorEngineError):
    """Snapshot upsert failed for one indicator"""
