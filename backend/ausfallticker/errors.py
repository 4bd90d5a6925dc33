from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence


class AusfalltickerError(Exception):
    """Base class for everything the extraction/resolution engine raises on purpose."""


class NoTripsFound(AusfalltickerError):
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Incorrect parse: no trips were found in article {url}")


class UnresolvedMultiLineMapping(AusfalltickerError):
    """
    A multi-line article lists a train number that neither the knowledge base
    nor the truncated-number fallback can map to a line.
    """

    def __init__(self, train_number: str, mentioned_lines: Sequence[str], url: Optional[str] = None):
        self.train_number = train_number
        self.mentioned_lines = tuple(mentioned_lines)
        self.url = url
        where = f" in {url}" if url else ""
        super().__init__(
            f"No line mapping for train {train_number}{where} "
            f"(mentioned lines: {', '.join(self.mentioned_lines) or '-'}). "
            "Add the train number to a train-line definition."
        )


class FallbackMatchApplied(AusfalltickerError):
    """
    Soft failure: the line was guessed from a train number sharing all but the
    last digit. The mapping has already been persisted (unless persistence is
    disabled) and must be checked by a human.
    """

    def __init__(
        self,
        train_number: str,
        selected_line: str,
        matched_numbers: Sequence[str],
        definition_path: Optional[Path] = None,
        persisted: bool = True,
    ):
        self.train_number = train_number
        self.selected_line = selected_line
        self.matched_numbers = tuple(matched_numbers)
        self.definition_path = definition_path
        self.persisted = persisted
        action = f"added to {definition_path}" if persisted and definition_path else "not persisted"
        super().__init__(
            f"Fallback match for train {train_number}: similar numbers "
            f"{', '.join(self.matched_numbers)}. Selected line: {selected_line} ({action}). "
            "Verify the mapping and revert the definition change if it is wrong."
        )


class KnowledgeBaseConflict(AusfalltickerError):
    def __init__(self, train_number: str, existing_line: str, new_line: str):
        self.train_number = train_number
        self.existing_line = existing_line
        self.new_line = new_line
        super().__init__(
            f"Train number {train_number} is declared by {existing_line} and {new_line}, "
            "which are not connected lines"
        )


class MalformedDefinitionFile(AusfalltickerError):
    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Malformed train-line definition {path}: {reason}")
