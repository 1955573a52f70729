"""Date parsing and day-level bucketing.

Two rules hold everywhere in the package:

* Parsing is total. Anything that cannot be read as a date yields None and
  is treated as an absent field by the caller.
* Day-level comparisons use the local calendar day of a timestamp, so a
  value stored as ``2024-03-01T23:30:00Z`` compares by whatever day that
  instant falls on locally.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, FrozenSet, Optional

logger = logging.getLogger(__name__)


class DatePreset(str, Enum):
    """Named day buckets offered by the filter UI."""

    TODAY = "today"
    YESTERDAY = "yesterday"
    TOMORROW = "tomorrow"
    THIS_WEEK = "this-week"
    THIS_MONTH = "this-month"


# Presets each date filter accepts
NEXT_ACTION_PRESETS: FrozenSet[DatePreset] = frozenset(
    {DatePreset.TODAY, DatePreset.TOMORROW, DatePreset.THIS_WEEK, DatePreset.THIS_MONTH}
)
LAST_INTERACTION_PRESETS: FrozenSet[DatePreset] = NEXT_ACTION_PRESETS | {DatePreset.YESTERDAY}
IMPORT_PRESETS: FrozenSet[DatePreset] = frozenset({DatePreset.TODAY, DatePreset.YESTERDAY})


def _localize(dt: datetime) -> datetime:
    """Make a datetime aware; naive values are read as local time."""
    if dt.tzinfo is None:
        return dt.astimezone()
    return dt


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a raw date value into an aware datetime.

    Accepts datetime, date, ISO-8601 strings (including a trailing ``Z``),
    plain ``YYYY-MM-DD`` strings (read as a local calendar day) and numeric
    epoch milliseconds. Never raises.

    Args:
        value: Raw value from a record

    Returns:
        Timezone-aware datetime or None
    """
    if value is None or isinstance(value, bool):
        return None

    try:
        if isinstance(value, datetime):
            return _localize(value)

        if isinstance(value, date):
            return _localize(datetime.combine(value, time.min))

        if isinstance(value, (int, float)):
            return _localize(datetime.fromtimestamp(value / 1000.0))

        if isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            if len(text) == 10:
                return _localize(datetime.combine(date.fromisoformat(text), time.min))
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            return _localize(datetime.fromisoformat(text))
    except (ValueError, OverflowError, OSError) as e:
        logger.debug(f"Unparseable date {value!r}: {e}")
        return None

    return None


def local_day(dt: Optional[datetime]) -> Optional[date]:
    """Local calendar day of an aware datetime (None passes through)."""
    if dt is None:
        return None
    return _localize(dt).astimezone().date()


def today_local(now: Optional[datetime] = None) -> date:
    """Today's local date, or the local date of `now` when given."""
    if now is None:
        return date.today()
    return local_day(now)


def week_bounds(today: date) -> tuple[date, date]:
    """Monday and Sunday of the ISO week containing `today`."""
    monday = today - timedelta(days=today.weekday())
    return monday, monday + timedelta(days=6)


def in_preset(day: Optional[date], preset: DatePreset, today: date) -> bool:
    """Check whether a day falls in a named bucket relative to `today`.

    A missing day never matches.
    """
    if day is None:
        return False

    if preset == DatePreset.TODAY:
        return day == today
    if preset == DatePreset.YESTERDAY:
        return day == today - timedelta(days=1)
    if preset == DatePreset.TOMORROW:
        return day == today + timedelta(days=1)
    if preset == DatePreset.THIS_WEEK:
        monday, sunday = week_bounds(today)
        return monday <= day <= sunday
    if preset == DatePreset.THIS_MONTH:
        return (day.year, day.month) == (today.year, today.month)
    return False


@dataclass(frozen=True)
class DateFilter:
    """Either a named preset or an inclusive custom day range.

    Either end of a custom range may be open.
    """

    preset: Optional[DatePreset] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    def __post_init__(self):
        if self.preset is None and self.date_from is None and self.date_to is None:
            raise ValueError("DateFilter needs a preset or at least one range bound")
        if self.preset is not None and (self.date_from or self.date_to):
            raise ValueError("DateFilter takes a preset or a custom range, not both")
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError(f"Empty range: {self.date_from} > {self.date_to}")

    @property
    def is_custom(self) -> bool:
        return self.preset is None

    def matches(self, day: Optional[date], today: date) -> bool:
        """Test a local day against this filter."""
        if day is None:
            return False
        if self.preset is not None:
            return in_preset(day, self.preset, today)
        if self.date_from is not None and day < self.date_from:
            return False
        if self.date_to is not None and day > self.date_to:
            return False
        return True
