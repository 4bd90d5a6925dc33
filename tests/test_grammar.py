import pytest

from ausfallticker.parsing.grammar import (
    NewFormatTrip,
    OldFormatTrip,
    TokenKind,
    is_valid_trip_line,
    match_new_format,
    parse_trip_line,
    tokenize,
)


def test_new_format_line():
    trip = parse_trip_line("84888 08:38 Uhr Söllingen Bahnhof - 10:07 Uhr Germersheim Bahnhof")

    assert isinstance(trip, NewFormatTrip)
    assert trip.train_number == "84888"
    assert trip.from_time == "08:38"
    assert trip.from_stop == "Söllingen Bahnhof"
    assert trip.to_time == "10:07"
    assert trip.to_stop == "Germersheim Bahnhof"


def test_old_format_line():
    trip = parse_trip_line("123 Karlsruhe Hbf (10:30 Uhr) - Bruchsal (11:00)")

    assert isinstance(trip, OldFormatTrip)
    assert trip.train_number == "123"
    assert trip.from_stop == "Karlsruhe Hbf"
    assert trip.from_time == "10:30"
    assert trip.to_stop == "Bruchsal"
    assert trip.to_time == "11:00"


def test_new_format_without_uhr_and_en_dash():
    trip = parse_trip_line("85012 7:05 Karlsruhe-Durlach – 7:40 Bruchsal")

    assert trip.grammar == "new"
    assert trip.from_time == "7:05"
    assert trip.from_stop == "Karlsruhe-Durlach"
    assert trip.to_stop == "Bruchsal"


def test_hyphenated_stop_keeps_its_spelling():
    trip = parse_trip_line("84888 08:38 Uhr Bad Schönborn-Kronau - 10:07 Uhr Germersheim Bahnhof")

    assert trip.from_stop == "Bad Schönborn-Kronau"


def test_stop_named_uhr_is_rejected():
    # the to-stop of a truncated line would be the bare "Uhr"
    line = "84888 08:38 Uhr Söllingen Bahnhof - 10:07 Uhr"

    assert match_new_format(line) is not None
    assert parse_trip_line(line) is None


@pytest.mark.parametrize(
    "line",
    [
        "",
        "Betroffene Fahrten:",
        "84888 08:38 Uhr Söllingen Bahnhof -",
        "08:38 Uhr Söllingen Bahnhof - 10:07 Uhr Germersheim Bahnhof",
        "S5 84888 08:38 Söllingen - 10:07 Germersheim",
    ],
)
def test_non_trip_lines(line):
    assert not is_valid_trip_line(line)


def test_tokenizer_keeps_offsets():
    line = "123 Bruchsal (11:00 Uhr)"
    tokens = tokenize(line)

    assert [t.kind for t in tokens] == [
        TokenKind.NUMBER,
        TokenKind.SPACE,
        TokenKind.WORD,
        TokenKind.SPACE,
        TokenKind.LPAREN,
        TokenKind.TIME,
        TokenKind.SPACE,
        TokenKind.UHR,
        TokenKind.RPAREN,
    ]
    assert all(line[t.start:t.end] == t.text for t in tokens)
