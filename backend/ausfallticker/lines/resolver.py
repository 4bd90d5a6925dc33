"""
Decides which line a cancelled trip belongs to.

Order of trust: an article that names exactly one line (and declares it
cleanly) beats the knowledge base; the knowledge base beats the
truncated-number guess; the guess is never returned silently.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, Optional

from ausfallticker.errors import FallbackMatchApplied, UnresolvedMultiLineMapping
from ausfallticker.lines.knowledge_base import TrainLineKnowledgeBase
from ausfallticker.parsing.text import DEFAULT_LINE

if TYPE_CHECKING:
    from ausfallticker.parsing.types import ParsingMetadata

logger = logging.getLogger(__name__)

_CONNECTOR_RE = re.compile(r"\bund\b|,|/|&", re.IGNORECASE)
_RANGE_RE = re.compile(r"[A-Za-z]+\d+\s*-\s*[A-Za-z]*\d+")


def is_ambiguous_line(line: Optional[str]) -> bool:
    line = (line or "").strip()
    if not line or line.upper() == DEFAULT_LINE:
        return True
    return bool(_CONNECTOR_RE.search(line) or _RANGE_RE.search(line))


@dataclass(frozen=True)
class Resolution:
    line: str
    source: Literal["article", "knowledge_base", "declared"]
    # (line, train number) to teach the definitions, only for single-line articles
    observation: Optional[tuple[str, str]] = None


class LineResolver:
    def __init__(self, knowledge_base: TrainLineKnowledgeBase):
        self.knowledge_base = knowledge_base

    def resolve(self, train_number: str, metadata: "ParsingMetadata") -> Resolution:
        """
        Raises FallbackMatchApplied when the line could only be guessed from a
        similar train number, UnresolvedMultiLineMapping when nothing matched
        in an article naming several lines.
        """
        declared = (metadata.line or "").strip()
        mentioned = metadata.mentioned_lines

        if len(mentioned) == 1 and not is_ambiguous_line(declared):
            return Resolution(declared, "article", observation=(declared, train_number))

        if not mentioned:
            return Resolution(declared, "declared")

        snapshot = self.knowledge_base.current
        line = snapshot.lookup_line(train_number, mentioned)
        if line is not None:
            return Resolution(line, "knowledge_base")

        self._try_fallback(train_number, metadata)

        if len(mentioned) > 1:
            raise UnresolvedMultiLineMapping(train_number, mentioned, metadata.source_url or None)
        return Resolution(declared, "declared")

    def _try_fallback(self, train_number: str, metadata: "ParsingMetadata") -> None:
        if len(train_number) < 2:
            return

        snapshot = self.knowledge_base.current
        matched = snapshot.find_by_prefix(train_number[:-1])
        if not matched:
            return

        candidates: list[str] = []
        for n in matched:
            for ln in snapshot.entries[n].lines:
                if ln not in candidates:
                    candidates.append(ln)
        primary = snapshot.entries[matched[0]].primary_line
        line = snapshot.select_line(candidates, primary, metadata.mentioned_lines)

        logger.warning(
            "Fallback match for train %s in %s: similar numbers %s -> %s",
            train_number,
            metadata.source_url or "<unknown article>",
            ", ".join(matched),
            line,
        )
        self.knowledge_base.record_fallback(line, train_number)
        raise FallbackMatchApplied(
            train_number,
            line,
            matched,
            definition_path=self.knowledge_base.definition_path(line),
            persisted=self.knowledge_base.persist_fallback and self.knowledge_base.store is not None,
        )
