import asyncio
import json

from ausfallticker.jobs.ingest.loader import bucket_filename, save_cancellations
from ausfallticker.models.cancellation import Cancellation


def _record(train="84888", date="2024-05-15", from_time="08:38", line="S5", **kw):
    data = dict(
        line=line,
        date=date,
        stand="2024-05-15T10:00:00.000Z",
        trainNumber=train,
        fromStop="Söllingen Bahnhof",
        fromTime=from_time,
        toStop="Germersheim Bahnhof",
        toTime="10:07",
        sourceUrl="https://example.invalid/a",
        capturedAt="2024-05-15T10:05:00.000Z",
    )
    data.update(kw)
    return Cancellation.model_validate(data)


def test_second_run_with_same_record_is_a_duplicate(tmp_path):
    first = asyncio.run(save_cancellations(tmp_path, [_record()]))
    path = tmp_path / "2024" / "S5.json"
    content = path.read_bytes()

    second = asyncio.run(save_cancellations(tmp_path, [_record(stand="2024-05-15T11:00:00.000Z")]))

    assert (first["inserted"], first["skipped"]) == (1, 0)
    assert (second["inserted"], second["skipped"]) == (0, 1)
    assert path.read_bytes() == content


def test_records_are_bucketed_and_sorted(tmp_path):
    records = [
        _record(train="2", from_time="09:00"),
        _record(train="1", from_time="09:00"),
        _record(train="3", from_time="07:00", date="2024-05-14"),
        _record(train="4", line="S4"),
        _record(train="5", date="2025-01-02"),
    ]

    stats = asyncio.run(save_cancellations(tmp_path, records))

    assert stats["inserted"] == 5
    assert set(stats["buckets"]) == {"2024/S5", "2024/S4", "2025/S5"}
    stored = json.loads((tmp_path / "2024" / "S5.json").read_text(encoding="utf-8"))
    assert [r["trainNumber"] for r in stored] == ["3", "1", "2"]
    assert "Söllingen" in (tmp_path / "2024" / "S5.json").read_text(encoding="utf-8")
    assert (tmp_path / "2024" / "S4.json").exists()
    assert (tmp_path / "2025" / "S5.json").exists()


def test_duplicates_within_one_batch(tmp_path):
    stats = asyncio.run(save_cancellations(tmp_path, [_record(), _record(toStop="Bruchsal")]))

    assert stats["inserted"] == 1
    assert stats["skipped"] == 1


def test_new_records_merge_with_existing_file(tmp_path):
    asyncio.run(save_cancellations(tmp_path, [_record(train="2", from_time="10:00")]))
    asyncio.run(save_cancellations(tmp_path, [_record(train="1", from_time="06:00")]))

    stored = json.loads((tmp_path / "2024" / "S5.json").read_text(encoding="utf-8"))
    assert [r["trainNumber"] for r in stored] == ["1", "2"]


def test_bucket_filename_is_sanitized():
    assert bucket_filename("S5") == "S5.json"
    assert bucket_filename("S1-S11") == "S1-S11.json"
    assert bucket_filename("S4 / S5") == "S4_S5.json"
    assert bucket_filename("../") == "UNKNOWN.json"
