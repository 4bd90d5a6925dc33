"""
Train number -> line knowledge base.

Built from the per-line definition files of one Fahrplan year. A snapshot is
immutable; recording a fallback match writes the definition file and hands
back a new snapshot with a bumped version, so readers holding the old one are
never caught mid-update.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Sequence

from ausfallticker.errors import KnowledgeBaseConflict, MalformedDefinitionFile
from ausfallticker.lines.definitions import DefinitionStore, connection_graph
from ausfallticker.models.train_line_definition import TrainLineDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KnowledgeBaseEntry:
    primary_line: str
    lines: tuple[str, ...]


@dataclass(frozen=True)
class KnowledgeBaseSnapshot:
    entries: Mapping[str, KnowledgeBaseEntry]
    line_train_count: Mapping[str, int]
    connections: Mapping[str, frozenset[str]]
    version: int = 0
    problems: tuple[MalformedDefinitionFile, ...] = field(default=())

    @classmethod
    def empty(cls, version: int = 0) -> "KnowledgeBaseSnapshot":
        return cls(
            entries=MappingProxyType({}),
            line_train_count=MappingProxyType({}),
            connections=MappingProxyType({}),
            version=version,
        )

    def __len__(self) -> int:
        return len(self.entries)

    def lookup(self, train_number: str) -> Optional[KnowledgeBaseEntry]:
        return self.entries.get(train_number)

    def find_by_prefix(self, prefix: str) -> list[str]:
        """Known train numbers starting with `prefix`, numerically sorted."""
        hits = [n for n in self.entries if n.startswith(prefix)]
        return sorted(hits, key=lambda n: (len(n), n))

    def select_line(
        self,
        lines: Sequence[str],
        primary: str,
        preferred: Iterable[str] = (),
    ) -> str:
        """
        Among `lines`, pick one named in `preferred`; with several such, the one
        with the fewest train numbers. Without any, `primary`.
        """
        wanted = [p.strip().upper() for p in preferred if p and p.strip()]
        matches: list[str] = []
        for p in wanted:
            for candidate in lines:
                if candidate.upper() == p and candidate not in matches:
                    matches.append(candidate)

        if not matches:
            return primary
        if len(matches) == 1:
            return matches[0]
        # first wins on ties (min is stable)
        return min(matches, key=lambda ln: self.line_train_count.get(ln, float("inf")))

    def lookup_line(self, train_number: str, preferred: Iterable[str] = ()) -> Optional[str]:
        entry = self.lookup(train_number)
        if entry is None:
            return None
        return self.select_line(entry.lines, entry.primary_line, preferred)


def build_snapshot(
    definitions: Sequence[TrainLineDefinition],
    version: int = 0,
    problems: Sequence[MalformedDefinitionFile] = (),
) -> KnowledgeBaseSnapshot:
    """
    Register every (line, train number) pair. A number claimed by two lines that
    are not directly connected raises KnowledgeBaseConflict.
    """
    graph = connection_graph(definitions)
    entries: dict[str, tuple[str, list[str]]] = {}
    counts: dict[str, int] = {}

    for d in definitions:
        counts[d.line] = counts.get(d.line, 0) + len(d.train_numbers)
        for n in d.train_numbers:
            existing = entries.get(n)
            if existing is None:
                entries[n] = (d.line, [d.line])
                continue
            primary, lines = existing
            if d.line in lines:
                continue
            if not any(d.line in graph.get(known, ()) for known in lines):
                raise KnowledgeBaseConflict(n, primary, d.line)
            lines.append(d.line)

    return KnowledgeBaseSnapshot(
        entries=MappingProxyType(
            {n: KnowledgeBaseEntry(primary, tuple(lines)) for n, (primary, lines) in entries.items()}
        ),
        line_train_count=MappingProxyType(counts),
        connections=MappingProxyType({k: frozenset(v) for k, v in graph.items()}),
        version=version,
        problems=tuple(problems),
    )


class TrainLineKnowledgeBase:
    """
    Repository around the definition files. `current` is the latest snapshot;
    swapping it is the only mutation and happens under a lock.
    """

    def __init__(self, store: Optional[DefinitionStore] = None, persist_fallback: bool = True):
        self.store = store
        self.persist_fallback = persist_fallback
        self._snapshot = KnowledgeBaseSnapshot.empty()
        self._lock = threading.Lock()

    @classmethod
    def from_definitions(
        cls,
        definitions: Sequence[TrainLineDefinition],
        store: Optional[DefinitionStore] = None,
        persist_fallback: bool = True,
    ) -> "TrainLineKnowledgeBase":
        kb = cls(store=store, persist_fallback=persist_fallback)
        kb._snapshot = build_snapshot(definitions)
        return kb

    @property
    def current(self) -> KnowledgeBaseSnapshot:
        return self._snapshot

    def load(self) -> KnowledgeBaseSnapshot:
        """(Re)build from disk. Raises KnowledgeBaseConflict; malformed files are skipped."""
        if self.store is None:
            raise RuntimeError("TrainLineKnowledgeBase.load() needs a DefinitionStore")

        definitions, problems = self.store.read_all()
        with self._lock:
            snapshot = build_snapshot(definitions, version=self._snapshot.version + 1, problems=problems)
            self._snapshot = snapshot

        logger.info(
            "Loaded %d train numbers for %d lines from %s (version %d)",
            len(snapshot),
            len(snapshot.line_train_count),
            self.store.directory,
            snapshot.version,
        )
        return snapshot

    def use_empty(self) -> KnowledgeBaseSnapshot:
        with self._lock:
            self._snapshot = KnowledgeBaseSnapshot.empty(version=self._snapshot.version + 1)
            return self._snapshot

    def lookup(self, train_number: str) -> Optional[KnowledgeBaseEntry]:
        return self._snapshot.lookup(train_number)

    def record_fallback(self, line: str, train_number: str) -> KnowledgeBaseSnapshot:
        """
        Persist `train_number` under `line` (when enabled) and return a new
        snapshot that knows the mapping. The previous snapshot is left as is.
        """
        if self.persist_fallback and self.store is not None:
            self.store.add_train_numbers(line, [train_number])

        with self._lock:
            old = self._snapshot
            entries = dict(old.entries)
            counts = dict(old.line_train_count)

            existing = entries.get(train_number)
            if existing is None:
                entries[train_number] = KnowledgeBaseEntry(line, (line,))
                counts[line] = counts.get(line, 0) + 1
            elif line not in existing.lines:
                entries[train_number] = KnowledgeBaseEntry(existing.primary_line, existing.lines + (line,))
                counts[line] = counts.get(line, 0) + 1

            self._snapshot = KnowledgeBaseSnapshot(
                entries=MappingProxyType(entries),
                line_train_count=MappingProxyType(counts),
                connections=old.connections,
                version=old.version + 1,
                problems=old.problems,
            )
            return self._snapshot

    def definition_path(self, line: str):
        return self.store.path_for(line) if self.store is not None else None
