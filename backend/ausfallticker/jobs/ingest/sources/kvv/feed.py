import logging
from dataclasses import dataclass
from typing import Iterable

import feedparser

logger = logging.getLogger(__name__)

RELEVANT_TITLE_PHRASES = (
    "betriebsbedingte fahrtausfälle",
    "betriebsbedingter ausfall",
)


@dataclass(frozen=True)
class FeedItem:
    title: str
    link: str
    published: str = ""


def parse_feed(xml: str) -> list[FeedItem]:
    parsed = feedparser.parse(xml)
    if parsed.bozo and not parsed.entries:
        logger.warning("Feed could not be parsed: %r", parsed.get("bozo_exception"))
        return []

    items: list[FeedItem] = []
    for entry in parsed.entries:
        link = (entry.get("link") or "").strip()
        if not link:
            continue
        items.append(
            FeedItem(
                title=(entry.get("title") or "").strip(),
                link=link,
                published=entry.get("published", ""),
            )
        )
    return items


def is_relevant(item: FeedItem) -> bool:
    title = item.title.casefold()
    return any(phrase in title for phrase in RELEVANT_TITLE_PHRASES)


def relevant_items(items: Iterable[FeedItem]) -> list[FeedItem]:
    """Cancellation announcements only, without repeated links."""
    seen: set[str] = set()
    out: list[FeedItem] = []
    for item in items:
        if item.link in seen or not is_relevant(item):
            continue
        seen.add(item.link)
        out.append(item)
    return out
