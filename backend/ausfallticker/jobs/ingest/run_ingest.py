import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path

from ausfallticker.jobs.ingest.registry import SOURCES
from ausfallticker.jobs.ingest.sources.kvv.config import load_config

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Ingest KVV train cancellations into the JSON store")
    p.add_argument("--source", default="kvv", choices=SOURCES.keys())
    p.add_argument("--data-dir", type=Path, help="Store root (default: KVV_DATA_DIR)")
    p.add_argument("--fahrplan-year", type=int, help="Definitions year (default: KVV_FAHRPLAN_YEAR or current)")
    p.add_argument(
        "--url",
        action="append",
        help="Parse this detail page instead of the feed; repeatable",
    )
    p.add_argument("--dry-run", action="store_true", help="Parse and resolve, but write nothing")
    return p


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    cfg = load_config()
    overrides = {}
    if args.data_dir is not None:
        overrides["data_dir"] = args.data_dir
    if args.fahrplan_year is not None:
        overrides["fahrplan_year"] = args.fahrplan_year
    if overrides:
        cfg = dataclasses.replace(cfg, **overrides)

    source = SOURCES[args.source](cfg)
    result = asyncio.run(source.ingest(urls=args.url, dry_run=args.dry_run))

    print(json.dumps(result, ensure_ascii=False, indent=2))

    if result["errors"]:
        logger.error("%d error(s) collected:", len(result["errors"]))
        for err in result["errors"]:
            logger.error("  %s", err)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
