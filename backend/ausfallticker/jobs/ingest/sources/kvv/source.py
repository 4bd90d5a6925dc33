import asyncio
import logging
from typing import Optional, Sequence

import httpx

from ausfallticker.errors import AusfalltickerError, KnowledgeBaseConflict
from ausfallticker.jobs.ingest.loader import save_cancellations
from ausfallticker.jobs.ingest.sources.base import BaseSource
from ausfallticker.lines.definitions import DefinitionStore, definitions_dir
from ausfallticker.lines.knowledge_base import TrainLineKnowledgeBase
from ausfallticker.lines.resolver import LineResolver
from ausfallticker.models.cancellation import Cancellation
from ausfallticker.parsing.detail import extract_article
from ausfallticker.parsing.types import ArticleResult, NoTrips, Parsed

from .config import KvvConfig, load_config
from .feed import parse_feed, relevant_items
from .http import FetchError, configure_logging_if_needed, get_with_retry, make_client

logger = logging.getLogger(__name__)


class KvvSource(BaseSource):
    """
    KVV Verkehrsmeldungen:
      - GET the RSS ticker, keep cancellation announcements
      - GET each detail page, extract trips, resolve lines
      - merge single-line observations into the train-line definitions
      - append new cancellations to the per-year/per-line JSON files
    """

    def __init__(self, cfg: Optional[KvvConfig] = None):
        self.cfg = cfg or load_config()
        configure_logging_if_needed(self.cfg.log_level)

        logger.info(
            "KVV configured rss_url=%s data_dir=%s fahrplan_year=%d timeouts(connect=%.1f read=%.1f) "
            "retries=%d backoff_base=%.2f max_concurrency=%d fallback_persist=%s",
            self.cfg.rss_url,
            self.cfg.data_dir,
            self.cfg.fahrplan_year,
            self.cfg.connect_timeout,
            self.cfg.read_timeout,
            self.cfg.retries,
            self.cfg.backoff_base,
            self.cfg.max_concurrency,
            self.cfg.fallback_persist,
        )

        self.store = DefinitionStore(definitions_dir(self.cfg.data_dir, self.cfg.fahrplan_year))
        self.knowledge_base = TrainLineKnowledgeBase(self.store, persist_fallback=self.cfg.fallback_persist)

    def _load_knowledge_base(self, errors: list[str]) -> None:
        try:
            snapshot = self.knowledge_base.load()
        except KnowledgeBaseConflict as e:
            logger.error("%s; continuing without a knowledge base", e)
            errors.append(str(e))
            self.knowledge_base.use_empty()
            return
        errors.extend(str(p) for p in snapshot.problems)

    async def _discover(self, client: httpx.AsyncClient) -> list[str]:
        xml = await get_with_retry(self.cfg, client, self.cfg.rss_url)
        items = parse_feed(xml)
        relevant = relevant_items(items)
        logger.info("Feed has %d items, %d cancellation announcements", len(items), len(relevant))
        return [item.link for item in relevant]

    async def _process(
        self,
        client: httpx.AsyncClient,
        sem: asyncio.Semaphore,
        resolver: LineResolver,
        url: str,
        dry_run: bool,
        errors: list[str],
    ) -> ArticleResult:
        async with sem:
            html = await get_with_retry(self.cfg, client, url)

        result = await asyncio.to_thread(extract_article, html, url, resolver)
        if isinstance(result, Parsed) and result.observations and not dry_run:
            report = await asyncio.to_thread(self.store.merge_observations, result.observations)
            if report.added:
                logger.info("Learned train numbers from %s: %s", url, report.added)
            errors.extend(str(c) for c in report.conflicts)
        return result

    async def ingest(
        self,
        urls: Optional[Sequence[str]] = None,
        dry_run: bool = False,
        client: Optional[httpx.AsyncClient] = None,
    ) -> dict:
        errors: list[str] = []
        self._load_knowledge_base(errors)
        if dry_run:
            self.knowledge_base.persist_fallback = False
        resolver = LineResolver(self.knowledge_base)

        own_client = client is None
        client = client or make_client(self.cfg)
        try:
            if urls is None:
                urls = await self._discover(client)

            sem = asyncio.Semaphore(self.cfg.max_concurrency)
            outcomes = await asyncio.gather(
                *(self._process(client, sem, resolver, url, dry_run, errors) for url in urls),
                return_exceptions=True,
            )
        finally:
            if own_client:
                await client.aclose()

        records: list[Cancellation] = []
        parsed = no_trips = failed = 0
        for url, outcome in zip(urls, outcomes):
            if isinstance(outcome, (FetchError, AusfalltickerError)):
                failed += 1
                logger.error("Article %s failed: %s", url, outcome)
                errors.append(str(outcome))
            elif isinstance(outcome, Exception):
                failed += 1
                logger.error("Article %s failed: %r", url, outcome)
                errors.append(f"{url}: {outcome!r}")
            elif isinstance(outcome, BaseException):
                raise outcome
            elif isinstance(outcome, Parsed):
                parsed += 1
                records.extend(outcome.records)
            elif isinstance(outcome, NoTrips):
                no_trips += 1
                logger.warning("%s", outcome.error)
            else:
                failed += 1
                logger.error("Article %s failed: %s", url, outcome.error)
                errors.append(str(outcome.error))

        if dry_run:
            store_stats = {"total": len(records), "inserted": 0, "skipped": 0, "buckets": {}}
            logger.info("Dry run: not storing %d cancellations", len(records))
        else:
            store_stats = await save_cancellations(self.cfg.data_dir, records)

        result = {
            "source": "kvv",
            "fahrplan_year": self.cfg.fahrplan_year,
            "articles_total": len(urls),
            "articles_parsed": parsed,
            "articles_without_trips": no_trips,
            "articles_failed": failed,
            "knowledge_base_version": self.knowledge_base.current.version,
            **store_stats,
            "errors": errors,
        }
        logger.info(
            "KVV ingest done articles=%d parsed=%d failed=%d inserted=%d skipped=%d errors=%d",
            len(urls),
            parsed,
            failed,
            store_stats["inserted"],
            store_stats["skipped"],
            len(errors),
        )
        return result
