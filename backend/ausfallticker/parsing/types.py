from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union

from ausfallticker.errors import (
    FallbackMatchApplied,
    NoTripsFound,
    UnresolvedMultiLineMapping,
)
from ausfallticker.lines.definitions import TrainLineObservations
from ausfallticker.models.cancellation import Cancellation


@dataclass(frozen=True)
class ParsingMetadata:
    """What one article says about itself. Read-only while its trips are parsed."""

    line: str
    mentioned_lines: tuple[str, ...]
    date: str
    stand: str
    source_url: str
    captured_at: str

    @property
    def mention_count(self) -> int:
        return len(self.mentioned_lines)


@dataclass
class Parsed:
    records: list[Cancellation]
    observations: TrainLineObservations = field(default_factory=TrainLineObservations)
    kind: Literal["parsed"] = "parsed"

    def unwrap(self) -> list[Cancellation]:
        return self.records


@dataclass
class NoTrips:
    error: NoTripsFound
    kind: Literal["no_trips"] = "no_trips"

    def unwrap(self) -> list[Cancellation]:
        raise self.error


@dataclass
class UnresolvedMapping:
    error: UnresolvedMultiLineMapping
    kind: Literal["unresolved_mapping"] = "unresolved_mapping"

    def unwrap(self) -> list[Cancellation]:
        raise self.error


@dataclass
class FallbackApplied:
    """
    A train number was mapped by the truncated-number guess. Nothing of the
    article is stored; the guessed mapping may already be on disk.
    """

    error: FallbackMatchApplied
    kind: Literal["fallback_applied"] = "fallback_applied"

    def unwrap(self) -> list[Cancellation]:
        raise self.error


ArticleResult = Union[Parsed, NoTrips, UnresolvedMapping, FallbackApplied]
