from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end


def today_local(tz: Optional[str] = None) -> date:
    zone = ZoneInfo(tz or get_settings().timezone)
    return datetime.now(zone).date()


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    return d.replace(day=monthrange(d.year, d.month)[1])


def month_period(d: date) -> Period:
    return Period(f"{d.year:04d}-{d.month:02d}", month_start(d), month_end(d))


def add_months(d: date, count: int) -> date:
    """Shift ``d`` by ``count`` calendar months, clamping the day to the
    length of the target month (31 Mar - 1 month -> 29 Feb)."""
    month_index = (d.year * 12) + (d.month - 1) + count
    year = month_index // 12
    month = (month_index % 12) + 1
    day = min(d.day, monthrange(year, month)[1])
    return date(year, month, day)


def trailing_days(today: date, days: int, slug: str = "trailing") -> Period:
    return Period(slug, today - timedelta(days=days), today)


def trailing_months(today: date, months: int, slug: str = "trailing") -> Period:
    return Period(slug, add_months(today, -months), today)


def current_month(today: date) -> Period:
    return month_period(today)


def previous_month_approx(today: date) -> Period:
    # month containing today - 30 days, not strictly the prior calendar month
    return month_period(today - timedelta(days=30))
