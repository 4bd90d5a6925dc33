import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone

from ausfallticker.utils.time import local_date, parse_german_datetime, to_iso_z

logger = logging.getLogger(__name__)

DEFAULT_LINE = "UNKNOWN"

# "Linie S5" / "Linien S1-S11"; the token needs a digit so "Linie Regiobus" is ignored
_LINE_RE = re.compile(r"Linien?\s+([A-Za-z]+[0-9][A-Za-z0-9-]*)", re.IGNORECASE)

_LINE_MENTION_SECTION_RE = re.compile(r"Linien?\s+([^.\n]+)", re.IGNORECASE)
_LINE_IDENTIFIER_RE = re.compile(r"\b[A-Za-z]+\d{1,3}\b")

_STAND_RE = re.compile(r"Nach aktuellem Stand\s+(\d{2}\.\d{2}\.\d{4})\s+(\d{2}:\d{2}:\d{2})")
_STAND_ALT_RE = re.compile(r"(\d{2}\.\d{2}\.\d{4}),\s*(\d{2}:\d{2})\s*Uhr")

_BR_RE = re.compile(r"<br\s*/?\s*>", re.IGNORECASE)
_P_CLOSE_RE = re.compile(r"</p>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")


def strip_html(html: str) -> str:
    """
    Drop markup and keep line structure: <br> and </p> become line breaks,
    every other tag disappears. Entities are left as they are.
    """
    text = _BR_RE.sub("\n", html or "")
    text = _P_CLOSE_RE.sub("\n", text)
    text = _TAG_RE.sub("", text)
    return text.replace("\r", "").strip()


def extract_line(text: str) -> str:
    m = _LINE_RE.search(text)
    return m.group(1).upper() if m else DEFAULT_LINE


def extract_mentioned_lines(text: str) -> list[str]:
    """Distinct line ids named after "Linie"/"Linien", uppercased, in order of appearance."""
    mentions: dict[str, None] = {}
    for section in _LINE_MENTION_SECTION_RE.finditer(text):
        for token in _LINE_IDENTIFIER_RE.findall(section.group(1)):
            mentions.setdefault(token.upper(), None)
    return list(mentions)


@dataclass(frozen=True)
class StandInfo:
    stand_iso: str
    date_for_trips: str


def extract_stand(text: str, now: datetime | None = None) -> StandInfo:
    """
    Status timestamp of the article. Tries "Nach aktuellem Stand DD.MM.YYYY HH:MM:SS",
    then "DD.MM.YYYY, HH:MM Uhr", then falls back to `now`.
    """
    for pattern in (_STAND_RE, _STAND_ALT_RE):
        m = pattern.search(text)
        if not m:
            continue
        try:
            dt = parse_german_datetime(m.group(1), m.group(2))
        except ValueError:
            logger.warning("Ignoring impossible stand timestamp %r", m.group(0))
            continue
        return StandInfo(stand_iso=to_iso_z(dt), date_for_trips=local_date(dt))

    now = now or datetime.now(timezone.utc)
    logger.debug("No stand timestamp found, using capture time")
    return StandInfo(stand_iso=to_iso_z(now), date_for_trips=local_date(now))
