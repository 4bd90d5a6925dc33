from datetime import datetime, timezone
from zoneinfo import ZoneInfo

BERLIN = ZoneInfo("Europe/Berlin")


def parse_german_datetime(date_str: str, time_str: str) -> datetime:
    """
    Convert "DD.MM.YYYY" + "HH:MM[:SS]" into a timezone-aware datetime in Europe/Berlin.
    Raises ValueError for impossible dates (e.g. 31.02.2024).
    """
    day, month, year = (int(p) for p in date_str.strip().split("."))
    parts = [int(p) for p in time_str.strip().split(":")]
    while len(parts) < 3:
        parts.append(0)
    hh, mm, ss = parts[:3]
    return datetime(year, month, day, hh, mm, ss, tzinfo=BERLIN)


def to_iso_z(dt: datetime) -> str:
    """UTC ISO timestamp with milliseconds and a Z suffix, e.g. 2024-05-15T10:00:00.000Z."""
    utc = dt.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def local_date(dt: datetime) -> str:
    """Calendar date of dt as seen in Europe/Berlin (YYYY-MM-DD)."""
    return dt.astimezone(BERLIN).date().isoformat()
