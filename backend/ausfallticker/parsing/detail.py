"""
KVV detail page -> cancellation records.

extract_article() never raises for the expected outcomes and returns an
ArticleResult instead; parse_detail_page() is the raising variant.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from ausfallticker.errors import FallbackMatchApplied, NoTripsFound, UnresolvedMultiLineMapping
from ausfallticker.lines.definitions import TrainLineObservations
from ausfallticker.lines.knowledge_base import TrainLineKnowledgeBase
from ausfallticker.lines.resolver import LineResolver
from ausfallticker.models.cancellation import Cancellation
from ausfallticker.parsing.grammar import parse_trip_line
from ausfallticker.parsing.segmenter import extract_trip_lines
from ausfallticker.parsing.text import extract_line, extract_mentioned_lines, extract_stand, strip_html
from ausfallticker.parsing.types import (
    ArticleResult,
    FallbackApplied,
    NoTrips,
    ParsingMetadata,
    Parsed,
    UnresolvedMapping,
)
from ausfallticker.utils.time import to_iso_z

logger = logging.getLogger(__name__)


def build_metadata(text: str, url: str, now: Optional[datetime] = None) -> ParsingMetadata:
    now = now or datetime.now(timezone.utc)
    stand = extract_stand(text, now=now)
    return ParsingMetadata(
        line=extract_line(text),
        mentioned_lines=tuple(extract_mentioned_lines(text)),
        date=stand.date_for_trips,
        stand=stand.stand_iso,
        source_url=url,
        captured_at=to_iso_z(now),
    )


def _parse(html: str, url: str, resolver: LineResolver, now: Optional[datetime]) -> Parsed:
    text = strip_html(html)
    metadata = build_metadata(text, url, now=now)

    records: list[Cancellation] = []
    observations = TrainLineObservations()

    for candidate in extract_trip_lines(text):
        trip = parse_trip_line(candidate)
        if trip is None:
            continue

        resolution = resolver.resolve(trip.train_number, metadata)
        try:
            record = Cancellation(
                line=resolution.line,
                date=metadata.date,
                stand=metadata.stand,
                train_number=trip.train_number,
                from_stop=trip.from_stop.strip(),
                from_time=trip.from_time,
                to_stop=trip.to_stop.strip(),
                to_time=trip.to_time,
                source_url=metadata.source_url,
                captured_at=metadata.captured_at,
            )
        except ValidationError as e:
            logger.warning("Skipping invalid trip %r in %s: %s", candidate, url, e)
            continue

        records.append(record)
        if resolution.observation:
            observations.record(*resolution.observation)

    if not records:
        raise NoTripsFound(url)

    logger.debug("Parsed %d trips from %s (line %s)", len(records), url, metadata.line)
    return Parsed(records=records, observations=observations)


def _default_resolver() -> LineResolver:
    return LineResolver(TrainLineKnowledgeBase(persist_fallback=False))


def extract_article(
    html: str,
    url: str,
    resolver: Optional[LineResolver] = None,
    now: Optional[datetime] = None,
) -> ArticleResult:
    resolver = resolver or _default_resolver()
    try:
        return _parse(html, url, resolver, now)
    except NoTripsFound as e:
        return NoTrips(e)
    except UnresolvedMultiLineMapping as e:
        if e.url is None:
            e.url = url
        return UnresolvedMapping(e)
    except FallbackMatchApplied as e:
        return FallbackApplied(e)


def parse_detail_page(
    html: str,
    url: str,
    resolver: Optional[LineResolver] = None,
    now: Optional[datetime] = None,
) -> list[Cancellation]:
    """
    Records of the article in source order. Raises NoTripsFound,
    UnresolvedMultiLineMapping or FallbackMatchApplied.
    """
    return _parse(html, url, resolver or _default_resolver(), now).records
