# info_compiler/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv


def _getenv_int(name: str, default: int) -> int:
    v = os.getenv(name, str(default)).strip()
    try:
        return int(v)
    except ValueError as err:
        raise ValueError(f"Environment variable {name} must be an integer; got {v!r}") from err


def _getenv_float(name: str, default: float) -> float:
    v = os.getenv(name, str(default)).strip()
    try:
        return float(v)
    except ValueError as err:
        raise ValueError(f"Environment variable {name} must be a number; got {v!r}") from err


def _getenv_str(name: str, default: str) -> str:
    return os.getenv(name, default).strip()


# Load .env from project root if present
ROOT = Path(__file__).resolve().parents[1]
load_dotenv(ROOT / ".env", override=False)

# ---- Bot identity (used to enforce USER_AGENT naming) ----
BOT_NAME = "InfoCompilerBot"
CONTACT_URL = "https://github.com/info-compiler/info-compiler"


def _getenv_user_agent(env_var: str, default: str) -> str:
    """
    Read a user-agent from the environment, but ensure our bot name is present.
    """
    ua = os.getenv(env_var, default).strip()
    if BOT_NAME not in ua:
        ua = f"{BOT_NAME} {ua}"
    return ua


DEFAULT_DB_URL = f"sqlite:///{(ROOT / 'dev.db').as_posix()}"
DEFAULT_ADDRESS_CORPUS_PATH = ROOT / "config" / "addresses.yaml"

# Used when no address corpus file is present
DEFAULT_ADDRESSES: tuple[str, ...] = (
    "1600 Pennsylvania Avenue NW, Washington, DC 20500",
    "350 Fifth Avenue, New York, NY 10118",
    "1 Dr Carlton B Goodlett Pl, San Francisco, CA 94102",
)

# -------------------------------
# Fetch / robots config (constants, env-overridable)
# -------------------------------
FETCH_USER_AGENT: str = _getenv_user_agent(
    "FETCH_USER_AGENT",
    f"{BOT_NAME}/1.0 (+{CONTACT_URL})",
)
FETCH_TIMEOUT_SEC: float = _getenv_float("FETCH_TIMEOUT_SEC", 10.0)
FETCH_CONNECT_TIMEOUT_SEC: float = _getenv_float("FETCH_CONNECT_TIMEOUT_SEC", 5.0)
FETCH_MAX_RETRIES: int = _getenv_int("FETCH_MAX_RETRIES", 2)
FETCH_RETRY_BASE_SEC: float = _getenv_float("FETCH_RETRY_BASE_SEC", 0.5)
FETCH_MAX_BODY_BYTES: int = _getenv_int("FETCH_MAX_BODY_BYTES", 2_000_000)  # ≈2MB cap
ROBOTS_TIMEOUT_SECONDS: float = _getenv_float("ROBOTS_TIMEOUT_SECONDS", 10.0)
ROBOTS_TTL_SECONDS: float = _getenv_float("ROBOTS_TTL_SECONDS", 86400.0)  # 24h

# -------------------------------
# Content processing / crawl config
# -------------------------------
MAX_WORD_COUNT: int = _getenv_int("MAX_WORD_COUNT", 100)
CRAWL_MAX_WORKERS: int = _getenv_int("CRAWL_MAX_WORKERS", 1)
CUSTOM_SEARCH_URL: str = _getenv_str(
    "CUSTOM_SEARCH_URL", "https://www.googleapis.com/customsearch/v1"
)
CUSTOM_SEARCH_KEY: str = _getenv_str("CUSTOM_SEARCH_KEY", "")
CUSTOM_SEARCH_ENGINE_ID: str = _getenv_str("CUSTOM_SEARCH_ENGINE_ID", "")

# -------------------------------
# Civic information config
# -------------------------------
CIVIC_INFO_BASE_URL: str = _getenv_str(
    "CIVIC_INFO_BASE_URL", "https://www.googleapis.com/civicinfo/v2"
)
CIVIC_INFO_API_KEY: str = _getenv_str("CIVIC_INFO_API_KEY", "")

# The civic API serves sample data under this election id; never persisted.
TEST_ELECTION_ID = "2000"
PARTY_SUFFIX = " Party"
PLACEHOLDER_INCUMBENCY = False
# Election dates carry no time of day; store them at this UTC hour.
ELECTION_REFERENCE_HOUR = 4


@dataclass(frozen=True)
class FetchConfig:
    user_agent: str
    timeout_sec: float
    connect_timeout_sec: float
    max_retries: int
    retry_base_sec: float
    max_body_bytes: int


@dataclass(frozen=True)
class CrawlConfig:
    max_word_count: int
    max_workers: int
    search_url: str
    search_key: str
    search_engine_id: str


@dataclass(frozen=True)
class CivicInfoConfig:
    base_url: str
    api_key: str
    test_election_id: str
    addresses: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AppConfig:
    db_url: str
    fetch: FetchConfig
    crawl: CrawlConfig
    civic: CivicInfoConfig


def load_address_corpus(path: Path | str | None = None) -> list[str]:
    """
    Load the address corpus used to fan out contest queries.

    The file is YAML shaped as:

      addresses:
        - "350 Fifth Avenue, New York, NY 10118"
        - ...

    A missing file falls back to DEFAULT_ADDRESSES. A file that exists but
    does not match that shape raises ValueError.
    """
    if path is None:
        path = Path(_getenv_str("ADDRESS_CORPUS_PATH", str(DEFAULT_ADDRESS_CORPUS_PATH)))
    path = Path(path)
    if not path.exists():
        return list(DEFAULT_ADDRESSES)

    cfg = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(cfg, dict) or not isinstance(cfg.get("addresses"), list):
        raise ValueError(f"{path} must contain an 'addresses' list")
    out = [str(a).strip() for a in cfg["addresses"] if str(a).strip()]
    return out


def load_settings() -> AppConfig:
    fetch = FetchConfig(
        user_agent=FETCH_USER_AGENT,
        timeout_sec=FETCH_TIMEOUT_SEC,
        connect_timeout_sec=FETCH_CONNECT_TIMEOUT_SEC,
        max_retries=FETCH_MAX_RETRIES,
        retry_base_sec=FETCH_RETRY_BASE_SEC,
        max_body_bytes=FETCH_MAX_BODY_BYTES,
    )
    crawl = CrawlConfig(
        max_word_count=MAX_WORD_COUNT,
        max_workers=max(1, CRAWL_MAX_WORKERS),
        search_url=CUSTOM_SEARCH_URL,
        search_key=CUSTOM_SEARCH_KEY,
        search_engine_id=CUSTOM_SEARCH_ENGINE_ID,
    )
    civic = CivicInfoConfig(
        base_url=CIVIC_INFO_BASE_URL,
        api_key=CIVIC_INFO_API_KEY,
        test_election_id=TEST_ELECTION_ID,
        addresses=load_address_corpus(),
    )
    return AppConfig(
        db_url=_getenv_str("DATABASE_URL", DEFAULT_DB_URL),
        fetch=fetch,
        crawl=crawl,
        civic=civic,
    )


__all__ = [
    "FetchConfig",
    "CrawlConfig",
    "CivicInfoConfig",
    "AppConfig",
    "load_settings",
    "load_address_corpus",
    # fetch/robots constants
    "FETCH_USER_AGENT",
    "FETCH_TIMEOUT_SEC",
    "FETCH_CONNECT_TIMEOUT_SEC",
    "FETCH_MAX_RETRIES",
    "FETCH_RETRY_BASE_SEC",
    "FETCH_MAX_BODY_BYTES",
    "ROBOTS_TIMEOUT_SECONDS",
    "ROBOTS_TTL_SECONDS",
    # crawl constants
    "MAX_WORD_COUNT",
    "CRAWL_MAX_WORKERS",
    "CUSTOM_SEARCH_URL",
    "CUSTOM_SEARCH_KEY",
    "CUSTOM_SEARCH_ENGINE_ID",
    # civic constants
    "CIVIC_INFO_BASE_URL",
    "CIVIC_INFO_API_KEY",
    "TEST_ELECTION_ID",
    "PARTY_SUFFIX",
    "PLACEHOLDER_INCUMBENCY",
    "ELECTION_REFERENCE_HOUR",
]
