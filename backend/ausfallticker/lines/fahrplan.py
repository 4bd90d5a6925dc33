"""
Fahrplan (timetable) years. They run from mid-December to mid-December, so
2025-12-20 already belongs to Fahrplan year 2026. Train-line definitions are
kept per Fahrplan year because train numbers are reassigned at the change.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Literal, Optional, Union

from ausfallticker.utils.time import BERLIN


@dataclass(frozen=True)
class FahrplanPeriod:
    year: int
    season: Literal["Winter", "Sommer"]
    start_date: str
    end_date: str


@dataclass(frozen=True)
class FahrplanYear:
    year: int
    start_date: str
    end_date: str
    periods: tuple[FahrplanPeriod, ...]


def _year(year: int, start: str, summer_start: str, end: str, winter_end: str) -> FahrplanYear:
    return FahrplanYear(
        year=year,
        start_date=start,
        end_date=end,
        periods=(
            FahrplanPeriod(year, "Winter", start, winter_end),
            FahrplanPeriod(year, "Sommer", summer_start, end),
        ),
    )


FAHRPLAN_YEARS: tuple[FahrplanYear, ...] = (
    _year(2024, "2023-12-10", "2024-06-15", "2024-12-14", "2024-06-14"),
    _year(2025, "2024-12-15", "2025-06-15", "2025-12-13", "2025-06-14"),
    _year(2026, "2025-12-14", "2026-06-14", "2026-12-12", "2026-06-13"),
    _year(2027, "2026-12-13", "2027-06-13", "2027-12-11", "2027-06-12"),
)


def _iso(d: Union[str, date, datetime]) -> str:
    if isinstance(d, datetime):
        return d.astimezone(BERLIN).date().isoformat() if d.tzinfo else d.date().isoformat()
    if isinstance(d, date):
        return d.isoformat()
    return d[:10]


def get_fahrplan_year(d: Union[str, date, datetime]) -> Optional[int]:
    iso = _iso(d)
    for fy in FAHRPLAN_YEARS:
        if fy.start_date <= iso <= fy.end_date:
            return fy.year
    return None


def get_current_fahrplan_year() -> Optional[int]:
    return get_fahrplan_year(datetime.now(timezone.utc))


def get_fahrplan_period(d: Union[str, date, datetime]) -> Optional[FahrplanPeriod]:
    iso = _iso(d)
    for fy in FAHRPLAN_YEARS:
        for period in fy.periods:
            if period.start_date <= iso <= period.end_date:
                return period
    return None


def get_fahrplan_year_definition(year: int) -> Optional[FahrplanYear]:
    return next((fy for fy in FAHRPLAN_YEARS if fy.year == year), None)
