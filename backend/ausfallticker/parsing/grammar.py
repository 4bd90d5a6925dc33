"""
Trip line grammars.

A trip line is tokenized once and then handed to two structured matchers:

  new format:  <digits> <time>[Uhr] <from stop> -|– <time>[Uhr] <to stop>
               "84888 08:38 Uhr Söllingen Bahnhof - 10:07 Uhr Germersheim Bahnhof"

  old format:  <digits> <from stop> (<time>[Uhr]) -|– <to stop> (<time>[Uhr])
               "123 Karlsruhe Hbf (10:30 Uhr) - Bruchsal (11:00)"

Stop names are cut from the original line using token offsets, so their
spelling (hyphens, umlauts, inner spacing) is kept as published.

The matchers emulate a backtracking search: stop names are the shortest token
runs after which the rest of the line still fits. The optional "Uhr" after a
time is consumed when possible; when it is not, the "Uhr" ends up inside the
stop name. A new-format stop that is exactly "Uhr" means the line was split in
the wrong place, so such a match is rejected (`rejects_uhr_stop`).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Literal, Optional, Union


class TokenKind(str, Enum):
    NUMBER = "NUMBER"
    TIME = "TIME"
    UHR = "UHR"
    DASH = "DASH"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    SPACE = "SPACE"
    WORD = "WORD"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    start: int
    end: int


_TOKEN_RE = re.compile(
    r"(?P<TIME>\d{1,2}:\d{2})"
    r"|(?P<NUMBER>\d+)"
    r"|(?P<UHR>Uhr)(?![^\s()\-–\d])"
    r"|(?P<DASH>[-–]+)"
    r"|(?P<LPAREN>\()"
    r"|(?P<RPAREN>\))"
    r"|(?P<SPACE>\s+)"
    r"|(?P<WORD>[^\s()\-–\d]+)"
)

UHR = "Uhr"


def tokenize(line: str) -> list[Token]:
    tokens: list[Token] = []
    for m in _TOKEN_RE.finditer(line):
        tokens.append(Token(TokenKind(m.lastgroup), m.group(), m.start(), m.end()))
    return tokens


@dataclass(frozen=True)
class NewFormatTrip:
    train_number: str
    from_time: str
    from_stop: str
    to_time: str
    to_stop: str
    grammar: Literal["new"] = "new"


@dataclass(frozen=True)
class OldFormatTrip:
    train_number: str
    from_stop: str
    from_time: str
    to_stop: str
    to_time: str
    grammar: Literal["old"] = "old"


TripMatch = Union[NewFormatTrip, OldFormatTrip]


def _span(line: str, tokens: list[Token], i: int, j: int) -> str:
    """Original text covered by tokens[i:j], trimmed."""
    return line[tokens[i].start:tokens[j - 1].end].strip()


def _kind(tokens: list[Token], i: int) -> Optional[TokenKind]:
    return tokens[i].kind if 0 <= i < len(tokens) else None


def _after_time(tokens: list[Token], i: int) -> Iterator[int]:
    """
    Candidate indices where free text starts after `<time>(?:\\s*Uhr)?\\s+`,
    `i` being the index right after the time token. Consuming "Uhr" is tried first.
    """
    j = None
    if _kind(tokens, i) == TokenKind.UHR:
        j = i + 1
    elif _kind(tokens, i) == TokenKind.SPACE and _kind(tokens, i + 1) == TokenKind.UHR:
        j = i + 2
    if j is not None and _kind(tokens, j) == TokenKind.SPACE:
        yield j + 1
    if _kind(tokens, i) == TokenKind.SPACE:
        yield i + 1


def _paren_time(tokens: list[Token], i: int) -> Optional[tuple[str, int]]:
    """Matches `(<time>[ Uhr])` at i; returns the time and the index after `)`."""
    if _kind(tokens, i) != TokenKind.LPAREN or _kind(tokens, i + 1) != TokenKind.TIME:
        return None
    time = tokens[i + 1].text
    k = i + 2
    if _kind(tokens, k) == TokenKind.UHR:
        k += 1
    elif _kind(tokens, k) == TokenKind.SPACE and _kind(tokens, k + 1) == TokenKind.UHR:
        k += 2
    if _kind(tokens, k) != TokenKind.RPAREN:
        return None
    return time, k + 1


def _skip_space(tokens: list[Token], i: int) -> int:
    return i + 1 if _kind(tokens, i) == TokenKind.SPACE else i


def match_new_format(line: str, tokens: Optional[list[Token]] = None) -> Optional[NewFormatTrip]:
    """Structural match only; the "Uhr" stop rule is applied by `parse_trip_line`."""
    tokens = tokenize(line) if tokens is None else tokens
    n = len(tokens)
    if _kind(tokens, 0) != TokenKind.NUMBER or _kind(tokens, 1) != TokenKind.SPACE:
        return None
    if _kind(tokens, 2) != TokenKind.TIME:
        return None

    for from_start in _after_time(tokens, 3):
        for d in range(from_start + 1, n):
            if tokens[d].kind != TokenKind.DASH:
                continue
            from_end = d - 1 if tokens[d - 1].kind == TokenKind.SPACE else d
            if from_end <= from_start:
                continue
            k = _skip_space(tokens, d + 1)
            if _kind(tokens, k) != TokenKind.TIME:
                continue
            for to_start in _after_time(tokens, k + 1):
                if to_start < n:
                    return NewFormatTrip(
                        train_number=tokens[0].text,
                        from_time=tokens[2].text,
                        from_stop=_span(line, tokens, from_start, from_end),
                        to_time=tokens[k].text,
                        to_stop=_span(line, tokens, to_start, n),
                    )
    return None


def match_old_format(line: str, tokens: Optional[list[Token]] = None) -> Optional[OldFormatTrip]:
    tokens = tokenize(line) if tokens is None else tokens
    n = len(tokens)
    if _kind(tokens, 0) != TokenKind.NUMBER or _kind(tokens, 1) != TokenKind.SPACE:
        return None

    for p in range(3, n):
        if tokens[p].kind != TokenKind.SPACE:
            continue
        opened = _paren_time(tokens, p + 1)
        if opened is None:
            continue
        from_time, k = opened
        k = _skip_space(tokens, k)
        if _kind(tokens, k) != TokenKind.DASH:
            continue
        to_start = _skip_space(tokens, k + 1)
        for q in range(to_start + 1, n):
            if tokens[q].kind != TokenKind.SPACE:
                continue
            closed = _paren_time(tokens, q + 1)
            if closed is None:
                continue
            return OldFormatTrip(
                train_number=tokens[0].text,
                from_stop=_span(line, tokens, 2, p),
                from_time=from_time,
                to_stop=_span(line, tokens, to_start, q),
                to_time=closed[0],
            )
    return None


def rejects_uhr_stop(trip: TripMatch) -> bool:
    return trip.from_stop == UHR or trip.to_stop == UHR


def _complete(trip: TripMatch) -> bool:
    return all((trip.train_number, trip.from_stop, trip.from_time, trip.to_stop, trip.to_time))


def parse_trip_line(line: str) -> Optional[TripMatch]:
    """New format first, then old format. None if neither grammar accepts the line."""
    tokens = tokenize(line)

    new = match_new_format(line, tokens)
    if new is not None and _complete(new) and not rejects_uhr_stop(new):
        return new

    old = match_old_format(line, tokens)
    if old is not None and _complete(old):
        return old

    return None


def is_valid_trip_line(line: str) -> bool:
    return parse_trip_line(line) is not None
