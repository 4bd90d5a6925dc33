import asyncio
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Union

from pydantic import ValidationError

from ausfallticker.models.cancellation import Cancellation
from ausfallticker.utils.jsonfile import read_json, write_json_atomic

logger = logging.getLogger(__name__)


def bucket_filename(line: str) -> str:
    # line ids end up in file names; keep them to a safe alphabet
    name = re.sub(r"[^A-Za-z0-9_-]+", "_", line.strip()).strip("_")
    return f"{name or 'UNKNOWN'}.json"


def bucket_path(base_dir: Union[str, Path], year: str, line: str) -> Path:
    return Path(base_dir) / year / bucket_filename(line)


@dataclass
class Bucket:
    year: str
    line: str
    path: Path
    incoming: list[Cancellation] = field(default_factory=list)
    added: int = 0
    duplicates: int = 0


def load_existing(path: Path) -> list[Cancellation]:
    """Stored records of one bucket. Entries that no longer validate are dropped with a warning."""
    data = read_json(path)
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError(f"{path} does not contain a JSON array")

    records: list[Cancellation] = []
    for i, item in enumerate(data):
        try:
            records.append(Cancellation.model_validate(item))
        except ValidationError as e:
            logger.warning("Dropping invalid stored record #%d in %s: %s", i, path, e)
    return records


def merge_bucket(bucket: Bucket) -> int:
    """Merge incoming records into the bucket file. Returns the number of records written."""
    existing = load_existing(bucket.path)
    seen = {r.identity_key for r in existing}

    for record in bucket.incoming:
        if record.identity_key in seen:
            bucket.duplicates += 1
            continue
        seen.add(record.identity_key)
        existing.append(record)
        bucket.added += 1

    if bucket.added == 0 and bucket.path.exists():
        return len(existing)

    existing.sort(key=lambda r: r.sort_key)
    write_json_atomic(bucket.path, [r.to_json() for r in existing])
    return len(existing)


def group_buckets(base_dir: Union[str, Path], trips: Iterable[Cancellation]) -> list[Bucket]:
    buckets: dict[tuple[str, str], Bucket] = {}
    for trip in trips:
        year = trip.date[:4]
        key = (year, trip.line)
        if key not in buckets:
            buckets[key] = Bucket(year=year, line=trip.line, path=bucket_path(base_dir, year, trip.line))
        buckets[key].incoming.append(trip)
    return list(buckets.values())


async def _flush(bucket: Bucket) -> None:
    total = await asyncio.to_thread(merge_bucket, bucket)
    logger.info(
        "Updated %s (added: %d, duplicates: %d, total: %d)",
        bucket.path,
        bucket.added,
        bucket.duplicates,
        total,
    )


async def save_cancellations(base_dir: Union[str, Path], trips: list[Cancellation]) -> dict:
    """
    Append new cancellations to <base_dir>/<year>/<line>.json idempotently.
    Identity is (date, trainNumber, fromTime); a rerun with the same input
    leaves every file untouched.
    """
    buckets = group_buckets(base_dir, trips)
    await asyncio.gather(*(_flush(b) for b in buckets))

    added = sum(b.added for b in buckets)
    duplicates = sum(b.duplicates for b in buckets)
    logger.info(
        "Stored %d cancellations in %d files (added: %d, duplicates: %d)",
        len(trips),
        len(buckets),
        added,
        duplicates,
    )
    return {
        "total": len(trips),
        "inserted": added,
        "skipped": duplicates,
        "buckets": {
            f"{b.year}/{b.line}": {"added": b.added, "duplicates": b.duplicates} for b in buckets
        },
    }
