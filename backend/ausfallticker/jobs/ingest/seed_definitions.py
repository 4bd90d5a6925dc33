"""
Seed train-line definitions from cancellations that are already stored.

Every stored record with a real line teaches (line, trainNumber). Only records
whose date falls into the chosen Fahrplan year are used, since train numbers
are reassigned at the timetable change.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Union

from ausfallticker.jobs.ingest.loader import load_existing
from ausfallticker.jobs.ingest.sources.kvv.config import load_config
from ausfallticker.jobs.ingest.sources.kvv.http import configure_logging_if_needed
from ausfallticker.lines.definitions import (
    DefinitionStore,
    MergeReport,
    TrainLineObservations,
    definitions_dir,
)
from ausfallticker.lines.fahrplan import get_fahrplan_year
from ausfallticker.lines.resolver import is_ambiguous_line

logger = logging.getLogger(__name__)


def collect_observations(data_dir: Union[str, Path], fahrplan_year: int) -> TrainLineObservations:
    observations = TrainLineObservations()
    for path in sorted(Path(data_dir).glob("[0-9][0-9][0-9][0-9]/*.json")):
        try:
            records = load_existing(path)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("Skipping unreadable %s: %s", path, e)
            continue
        for record in records:
            if is_ambiguous_line(record.line):
                continue
            if get_fahrplan_year(record.date) != fahrplan_year:
                continue
            observations.record(record.line, record.train_number)
    return observations


def seed(data_dir: Union[str, Path], fahrplan_year: int) -> MergeReport:
    observations = collect_observations(data_dir, fahrplan_year)
    logger.info("Found %d (line, train) pairs for Fahrplan %d", len(observations), fahrplan_year)
    store = DefinitionStore(definitions_dir(data_dir, fahrplan_year))
    return store.merge_observations(observations)


def main(argv=None) -> int:
    p = argparse.ArgumentParser(description="Seed train-line definitions from stored cancellations")
    p.add_argument("--data-dir", type=Path)
    p.add_argument("--fahrplan-year", type=int)
    args = p.parse_args(argv)

    cfg = load_config()
    configure_logging_if_needed(cfg.log_level)

    report = seed(args.data_dir or cfg.data_dir, args.fahrplan_year or cfg.fahrplan_year)
    total = sum(len(v) for v in report.added.values())
    logger.info("Added %d train numbers across %d lines", total, len(report.added))
    if report.conflicts:
        logger.error("%d train numbers were left out because of conflicts", len(report.conflicts))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
