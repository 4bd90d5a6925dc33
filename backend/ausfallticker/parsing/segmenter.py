import logging
import re

from ausfallticker.parsing.grammar import is_valid_trip_line

logger = logging.getLogger(__name__)

TRIPS_START_MARKERS = (
    "sind folgende Fahrten von einem (Teil-)Ausfall betroffen:",
    "sind folgende Fahrten betroffen:",
    "Betroffene Fahrten:",
)
TRIPS_END_MARKER = "Ob deine Verbindung"

# trip data observed split over at most this many extra physical lines
MAX_LINES_TO_COMBINE = 3

_NBSP_ENTITY_RE = re.compile(r"&nbsp;", re.IGNORECASE)


def _marker_regex(marker: str) -> re.Pattern:
    parts = [re.escape(p) for p in marker.split()]
    return re.compile(r"\s+".join(parts))


_START_MARKER_RES = tuple(_marker_regex(m) for m in TRIPS_START_MARKERS)
_END_MARKER_RE = _marker_regex(TRIPS_END_MARKER)


def _is_noise(line: str) -> bool:
    if not line:
        return True
    if line.startswith(TRIPS_END_MARKER):
        return True
    # "(Zug wird ab ... in Richtung ... eingesetzt)" rerouting notes
    if line.startswith("(Zug wird"):
        return True
    if "in Richtung" in line and "eingesetzt)" in line:
        return True
    return False


def build_candidate_lines(text: str) -> list[str]:
    out: list[str] = []
    for raw in text.split("\n"):
        line = _NBSP_ENTITY_RE.sub(" ", raw).replace("\u00a0", " ").strip()
        if not _is_noise(line):
            out.append(line)
    return out


def merge_trip_lines(raw_lines: list[str], lookahead: int = MAX_LINES_TO_COMBINE) -> list[str]:
    """
    Keep lines that already parse as a trip; glue the others to up to `lookahead`
    following lines until the combination parses. Fragments that never parse are dropped.
    """
    merged: list[str] = []
    i = 0
    n = len(raw_lines)

    while i < n:
        combined = raw_lines[i]
        if is_valid_trip_line(combined):
            merged.append(combined)
            i += 1
            continue

        for j in range(i + 1, min(n, i + lookahead + 1)):
            combined = f"{combined} {raw_lines[j]}".strip()
            if is_valid_trip_line(combined):
                merged.append(combined)
                i = j + 1
                break
        else:
            logger.debug("Dropping unmatched fragment %r", raw_lines[i])
            i += 1

    return merged


def _section_after(text: str, start: int) -> str:
    rest = text[start:]
    end = _END_MARKER_RE.search(rest)
    return rest[: end.start()] if end else rest


def _segment(section: str) -> list[str]:
    lines = build_candidate_lines(section)
    return merge_trip_lines(lines) if lines else []


def extract_trip_lines(text: str) -> list[str]:
    """Grammar-valid trip candidates from the affected-trips section, in text order."""
    for marker_re in _START_MARKER_RES:
        m = marker_re.search(text)
        if not m:
            continue
        trips = _segment(_section_after(text, m.end()))
        if trips:
            return trips

    # no marker (or an empty section): scan everything
    return _segment(text)
