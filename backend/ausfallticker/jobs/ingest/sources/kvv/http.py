import asyncio
import logging
import random
import time

import httpx

from .config import KvvConfig

logger = logging.getLogger(__name__)

RETRY_STATUSES = {429, 502, 503, 504, 520, 522, 524}

USER_AGENT = "ausfallticker/0.1 (+https://www.kvv.de)"


class FetchError(Exception):
    def __init__(self, message: str, url: str, status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


def configure_logging_if_needed(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


async def log_request(request: httpx.Request) -> None:
    logger.debug("HTTP %s %s", request.method, request.url)


def make_client(cfg: KvvConfig) -> httpx.AsyncClient:
    timeout = httpx.Timeout(
        connect=cfg.connect_timeout,
        read=cfg.read_timeout,
        write=cfg.read_timeout,
        pool=cfg.read_timeout,
    )
    return httpx.AsyncClient(
        timeout=timeout,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
        event_hooks={"request": [log_request]},
    )


async def sleep_backoff(cfg: KvvConfig, *, attempt: int, url: str) -> None:
    sleep_s = cfg.backoff_base * (2 ** (attempt - 1))
    sleep_s += random.uniform(0, 0.5)
    logger.info("Sleeping %.2fs before retrying %s", sleep_s, url)
    await asyncio.sleep(sleep_s)


async def get_with_retry(cfg: KvvConfig, client: httpx.AsyncClient, url: str) -> str:
    """Body of `url` as text. Retries timeouts and RETRY_STATUSES, raises FetchError otherwise."""
    last_err: Exception | None = None

    for attempt in range(1, cfg.retries + 1):
        t0 = time.perf_counter()
        try:
            r = await client.get(url)
            elapsed = time.perf_counter() - t0

            if r.status_code in RETRY_STATUSES:
                logger.warning(
                    "Retryable HTTP %d (attempt %d/%d) GET %s after %.2fs",
                    r.status_code,
                    attempt,
                    cfg.retries,
                    url,
                    elapsed,
                )
                last_err = FetchError(f"Failed to fetch {url}: HTTP {r.status_code}", url, r.status_code)
            elif r.is_error:
                logger.error("Non-retryable HTTP %d GET %s after %.2fs", r.status_code, url, elapsed)
                raise FetchError(
                    f"Failed to fetch {url}: {r.status_code} {r.reason_phrase}", url, r.status_code
                )
            else:
                logger.debug("GET %s completed in %.2fs status=%d", url, elapsed, r.status_code)
                return r.text

        except httpx.TimeoutException as e:
            last_err = e
            logger.warning(
                "%s (attempt %d/%d) GET %s after %.2fs",
                e.__class__.__name__,
                attempt,
                cfg.retries,
                url,
                time.perf_counter() - t0,
            )

        except httpx.TransportError as e:
            last_err = e
            logger.warning("Request failed (attempt %d/%d) GET %s error=%r", attempt, cfg.retries, url, e)

        if attempt < cfg.retries:
            await sleep_backoff(cfg, attempt=attempt, url=url)

    if isinstance(last_err, FetchError):
        raise last_err
    raise FetchError(f"Network error fetching {url}: {last_err!r}", url) from last_err
