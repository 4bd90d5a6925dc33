import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from ausfallticker.lines.fahrplan import get_current_fahrplan_year

ENV_FILE = Path(__file__).resolve().parents[5] / ".env"


@dataclass(frozen=True)
class KvvConfig:
    rss_url: str
    data_dir: Path

    connect_timeout: float
    read_timeout: float

    retries: int
    backoff_base: float
    max_concurrency: int

    fahrplan_year: int
    fallback_persist: bool
    log_level: str


def _env_number(name: str, default: str, cast):
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a {cast.__name__}, got {raw!r}") from None


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() not in {"0", "false", "no", "off"}


def load_config(env_file: Optional[Path] = ENV_FILE) -> KvvConfig:
    if env_file is not None:
        load_dotenv(env_file)

    fahrplan_year: Optional[int] = _env_number("KVV_FAHRPLAN_YEAR", "0", int) or get_current_fahrplan_year()
    if not fahrplan_year:
        raise RuntimeError("KVV_FAHRPLAN_YEAR not set and today is outside every known Fahrplan year")

    retries = _env_number("KVV_RETRIES", "4", int)
    max_concurrency = _env_number("KVV_MAX_CONCURRENCY", "4", int)
    if retries < 1 or max_concurrency < 1:
        raise RuntimeError("KVV_RETRIES and KVV_MAX_CONCURRENCY must be at least 1")

    return KvvConfig(
        rss_url=os.getenv("KVV_RSS_URL", "https://www.kvv.de/ticker_rss.xml"),
        data_dir=Path(os.getenv("KVV_DATA_DIR", "data")),
        connect_timeout=_env_number("KVV_CONNECT_TIMEOUT_SECONDS", "10", float),
        read_timeout=_env_number("KVV_READ_TIMEOUT_SECONDS", "15", float),
        retries=retries,
        backoff_base=_env_number("KVV_BACKOFF_BASE_SECONDS", "1.5", float),
        max_concurrency=max_concurrency,
        fahrplan_year=fahrplan_year,
        fallback_persist=_env_flag("KVV_FALLBACK_PERSIST", "1"),
        log_level=os.getenv("KVV_LOG_LEVEL", "INFO").upper(),
    )
