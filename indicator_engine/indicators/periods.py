"""
Period Calculator

Turns a reference end-instant and a period label into the current window and the
equal-length window immediately before it. Both windows are closed intervals of
calendar dates.
"""

from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, model_validator


class PeriodLabel(str, Enum):
    """Period length selector, stored by its label"""
    SHORT = "7d"
    MEDIUM = "30d"
    LONG = "90d"

    @property
    def days(self) -> int:
        return _PERIOD_DAYS[self]

    @classmethod
    def parse(cls, value: Union[str, "PeriodLabel"]) -> "PeriodLabel":
        """Accept either the stored label ("30d") or the selector name ("medium")."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for label in cls:
            if text in (label.value, label.name.lower()):
                return label
        raise ValueError(f"Unknown period label: {value!r}")


_PERIOD_DAYS = {
    PeriodLabel.SHORT: 7,
    PeriodLabel.MEDIUM: 30,
    PeriodLabel.LONG: 90,
}


class Period(BaseModel):
    """A closed window of calendar dates"""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date
    length_days: int
    label: PeriodLabel

    @model_validator(mode="after")
    def check_length(self) -> "Period":
        if (self.end - self.start).days + 1 != self.length_days:
            raise ValueError("Period length does not match its bounds")
        return self

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def start_datetime(self) -> datetime:
        return datetime.combine(self.start, time.min)

    @property
    def end_datetime(self) -> datetime:
        return datetime.combine(self.end, time.max)


def default_period_end(now: Optional[datetime] = None) -> datetime:
    """End of the previous calendar day (UTC), never the current partial day."""
    now = now or datetime.utcnow()
    yesterday = now.date() - timedelta(days=1)
    return datetime.combine(yesterday, time.max)


def compute_periods(
    period_end: Union[datetime, date],
    label: Union[str, PeriodLabel],
) -> Tuple[Period, Period]:
    """
    Compute the current and comparison windows.

    The current window ends on the calendar day of ``period_end``; the
    comparison window ends the day before the current one starts and has the
    same length, so the two are contiguous and disjoint.

    Returns:
        (current_period, comparison_period)
    """
    label = PeriodLabel.parse(label)
    end_day = period_end.date() if isinstance(period_end, datetime) else period_end
    days = label.days

    current_start = end_day - timedelta(days=days - 1)
    comparison_end = current_start - timedelta(days=1)
    comparison_start = comparison_end - timedelta(days=days - 1)

    current = Period(start=current_start, end=end_day, length_days=days, label=label)
    comparison = Period(start=comparison_start, end=comparison_end, length_days=days, label=label)
    return current, comparison


def fetch_window(period_end: Union[datetime, date], label: Union[str, PeriodLabel]) -> Tuple[datetime, datetime]:
    """Datetime bounds covering both windows, used to pre-filter source reads."""
    current, comparison = compute_periods(period_end, label)
    return comparison.start_datetime, current.end_datetime
