"""
Per-line train-number definition files and the writes that grow them.

One JSON file per canonical line lives in
<data_dir>/<fahrplan_year>/train-line-definitions/<slug>.json:

  {"line": "S5", "trainNumbers": ["85001", "85003"], "connectedLines": ["S51"]}

Writes only ever add train numbers, and never a number that a line without a
connection to the target already declares. Numbers are claimed under one
store-wide lock and each file is rewritten under its line's lock, so the
fallback path and the observation merge cannot interleave.
"""

import json
import logging
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from pydantic import ValidationError

from ausfallticker.errors import KnowledgeBaseConflict, MalformedDefinitionFile
from ausfallticker.models.train_line_definition import TrainLineDefinition
from ausfallticker.utils.jsonfile import read_json, write_json_atomic

logger = logging.getLogger(__name__)

DEFINITIONS_DIRNAME = "train-line-definitions"


def definitions_dir(data_dir: Union[str, Path], fahrplan_year: int) -> Path:
    return Path(data_dir) / str(fahrplan_year) / DEFINITIONS_DIRNAME


def slugify_line_id(line: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", line.strip().lower()).strip("-")


def sort_train_numbers(numbers: Iterable[str]) -> list[str]:
    # numeric order ("10002" < "10010"), non-numeric ids after, alphabetically
    return sorted(set(numbers), key=lambda n: (0, int(n), n) if n.isdigit() else (1, 0, n))


def connection_graph(definitions: Iterable[TrainLineDefinition]) -> dict[str, set[str]]:
    """Undirected adjacency of declared connectedLines; either side may declare the link."""
    graph: dict[str, set[str]] = {}
    for d in definitions:
        graph.setdefault(d.line, set())
        for other in d.connected_lines or ():
            other = other.strip()
            if not other or other == d.line:
                continue
            graph[d.line].add(other)
            graph.setdefault(other, set()).add(d.line)
    return graph


@dataclass(frozen=True)
class DefinitionUpdate:
    line: str
    added: list[str] = field(default_factory=list)
    # numbers left out because an unconnected line already declares them
    conflicts: list[KnowledgeBaseConflict] = field(default_factory=list)


@dataclass
class MergeReport:
    added: dict[str, list[str]] = field(default_factory=dict)
    conflicts: list[KnowledgeBaseConflict] = field(default_factory=list)


class TrainLineObservations:

    """line -> train numbers seen in single-line articles (trusted enough to persist)."""

    def __init__(self):
        self._by_line: dict[str, set[str]] = {}

    def record(self, line: str, train_number: str) -> None:
        line = (line or "").strip()
        train_number = (train_number or "").strip()
        if not line or not train_number:
            return
        self._by_line.setdefault(line, set()).add(train_number)

    def items(self) -> Iterator[tuple[str, frozenset[str]]]:
        for line, numbers in self._by_line.items():
            yield line, frozenset(numbers)

    def get(self, line: str) -> frozenset[str]:
        return frozenset(self._by_line.get(line, ()))

    def __len__(self) -> int:
        return sum(len(v) for v in self._by_line.values())

    def __bool__(self) -> bool:
        return bool(self._by_line)

    def __repr__(self) -> str:
        return f"TrainLineObservations({ {k: sorted(v) for k, v in self._by_line.items()} })"


class DefinitionStore:
    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._claims_lock = threading.Lock()

    def path_for(self, line: str) -> Path:
        slug = slugify_line_id(line)
        if not slug:
            raise ValueError(f"Cannot derive a file name for line {line!r}")
        return self.directory / f"{slug}.json"

    def lock_for(self, line: str) -> threading.Lock:
        slug = slugify_line_id(line)
        with self._locks_guard:
            return self._locks.setdefault(slug, threading.Lock())

    def _parse(self, path: Path) -> Optional[TrainLineDefinition]:
        try:
            data = read_json(path)
        except (OSError, json.JSONDecodeError) as e:
            raise MalformedDefinitionFile(path, str(e)) from e
        if data is None:
            return None
        try:
            return TrainLineDefinition.model_validate(data)
        except ValidationError as e:
            raise MalformedDefinitionFile(path, str(e)) from e

    def read_all(self) -> tuple[list[TrainLineDefinition], list[MalformedDefinitionFile]]:
        """All definitions in file-name order. Broken files are reported, not raised."""
        if not self.directory.exists():
            logger.warning("No train line definitions found in %s", self.directory)
            return [], []

        definitions: list[TrainLineDefinition] = []
        problems: list[MalformedDefinitionFile] = []
        for path in sorted(self.directory.glob("*.json")):
            try:
                definition = self._parse(path)
            except MalformedDefinitionFile as e:
                logger.error("%s", e)
                problems.append(e)
                continue
            if definition is not None:
                definitions.append(definition)
        return definitions, problems

    def read(self, line: str) -> TrainLineDefinition:
        """Current definition of `line`; a missing or unreadable file counts as empty."""
        path = self.path_for(line)
        try:
            definition = self._parse(path)
        except MalformedDefinitionFile as e:
            logger.warning("%s; treating %s as empty", e, line)
            definition = None
        return definition or TrainLineDefinition(line=line, train_numbers=[])

    def _claims_elsewhere(self, line: str, numbers: set[str]) -> dict[str, str]:
        """number -> line for numbers declared by a line not connected to `line`."""
        if not self.directory.exists():
            return {}
        definitions, _ = self.read_all()
        allowed = connection_graph(definitions).get(line, set())
        claims: dict[str, str] = {}
        for d in definitions:
            if d.line == line or d.line in allowed:
                continue
            for n in d.train_numbers:
                if n in numbers:
                    claims.setdefault(n, d.line)
        return claims

    def add_train_numbers(self, line: str, numbers: Iterable[str]) -> DefinitionUpdate:
        """
        Add `numbers` to the line's file. A file that already belongs to another
        line is left alone; numbers an unconnected line declares are skipped and
        reported as conflicts.
        """
        wanted = {n.strip() for n in numbers if n and n.strip()}
        if not wanted:
            return DefinitionUpdate(line)

        path = self.path_for(line)
        with self._claims_lock, self.lock_for(line):
            existing = self.read(line)
            if existing.line != line:
                logger.warning(
                    "Skipping train line update for %s because %s already defines %s",
                    line,
                    path,
                    existing.line,
                )
                return DefinitionUpdate(line)

            known = set(existing.train_numbers)
            new = wanted - known
            claims = self._claims_elsewhere(line, new) if new else {}
            conflicts = [KnowledgeBaseConflict(n, claims[n], line) for n in sort_train_numbers(claims)]
            for conflict in conflicts:
                logger.error("Not adding %s to %s: %s", conflict.train_number, line, conflict)

            added = sort_train_numbers(new - set(claims))
            if not added:
                return DefinitionUpdate(line, conflicts=conflicts)

            updated = TrainLineDefinition(
                line=line,
                train_numbers=sort_train_numbers(known | set(added)),
                connected_lines=existing.connected_lines,
            )
            write_json_atomic(path, updated.to_json())

        logger.info("Added %s to train-line mapping (%s -> %s)", ", ".join(added), line, path)
        return DefinitionUpdate(line, added=added, conflicts=conflicts)

    def merge_observations(self, observations: TrainLineObservations) -> MergeReport:
        """Persist observed (line, train number) pairs. Additive only."""
        report = MergeReport()
        for line, numbers in observations.items():
            try:
                update = self.add_train_numbers(line, numbers)
            except ValueError as e:
                logger.warning("Skipping observations for %r: %s", line, e)
                continue
            if update.added:
                report.added[line] = update.added
            report.conflicts.extend(update.conflicts)
        return report
