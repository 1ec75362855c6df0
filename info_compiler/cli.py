# info_compiler/cli.py
from __future__ import annotations

import argparse
import io
import json
import logging
import os
from typing import Any

from . import config
from .civic import CivicInfoClient, InfoCompiler
from .crawl import CustomSearchClient, WebCrawler
from .exceptions import StoreUnavailable
from .extract import ContentExtractor, process
from .fetch import FetcherClient, robots, robots_url_for
from .store import SQLiteEntityStore

log = logging.getLogger(__name__)


def _section(title: str) -> None:
    print(f"=== {title} ===")


def _emit(payload: dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, indent=2, sort_keys=True))
        return
    for k, v in payload.items():
        print(f"  {k:14}: {v}")


def _open_store(args: argparse.Namespace, settings: config.AppConfig) -> SQLiteEntityStore:
    return SQLiteEntityStore.from_url(args.db or settings.db_url)


# --- commands --------------------------------------------------------------------


def _crawler(
    store: SQLiteEntityStore, settings: config.AppConfig, fetcher: FetcherClient
) -> WebCrawler:
    crawl = settings.crawl
    search = CustomSearchClient(
        url=crawl.search_url,
        key=crawl.search_key,
        engine_id=crawl.search_engine_id,
        timeout=settings.fetch.timeout_sec,
    )
    return WebCrawler(
        store,
        fetcher=fetcher,
        search=search,
        max_words=crawl.max_word_count,
        max_workers=crawl.max_workers,
    )


def _cmd_compile(args: argparse.Namespace) -> int:
    settings = config.load_settings()
    civic = settings.civic
    store = _open_store(args, settings)
    try:
        with CivicInfoClient(
            base_url=civic.base_url,
            api_key=civic.api_key,
            timeout=settings.fetch.timeout_sec,
        ) as client:
            compiler = InfoCompiler(
                store, client, civic.addresses, test_election_id=civic.test_election_id
            )
            if args.with_news:
                with FetcherClient(settings=settings.fetch) as fetcher:
                    summary = compiler.compile_info(_crawler(store, settings, fetcher))
            else:
                summary = compiler.compile_info()
    finally:
        store.close()

    if not args.json:
        _section("Compile")
    _emit(
        {
            "elections": len(summary.elections),
            "candidates": len(summary.candidates),
            "articles": summary.articles,
        },
        args.json,
    )
    return 0


def _cmd_crawl(args: argparse.Namespace) -> int:
    settings = config.load_settings()
    store = _open_store(args, settings)
    try:
        with FetcherClient(settings=settings.fetch) as fetcher:
            crawler = _crawler(store, settings, fetcher)
            summary = crawler.compile_news_articles(args.name, args.candidate_id)
    finally:
        store.close()

    if not args.json:
        _section(f"Crawl: {args.name}")
    _emit(
        {"urls": summary.urls, "stored": len(summary.stored), "skipped": summary.skipped},
        args.json,
    )
    return 0


def _cmd_robots(args: argparse.Namespace) -> int:
    grant = robots.resolve(args.url)
    if not args.json:
        _section(f"Robots: {robots_url_for(args.url)}")
    _emit({"allowed": grant.allowed, "crawl_delay": grant.crawl_delay}, args.json)
    return 0 if grant.allowed else 3


def _cmd_extract(args: argparse.Namespace) -> int:
    with FetcherClient(settings=config.load_settings().fetch) as client:
        res = client.fetch(args.url)
    if not res.ok:
        print(f"Fetch failed: status={res.status} reason={res.reason}")
        return 2

    extracted = ContentExtractor().extract(io.BytesIO(res.body or b""), args.url)
    if extracted.article is None:
        print(f"No article extracted ({extracted.reason})")
        return 2

    article = process(extracted.article)
    if not args.json:
        _section(f"Article: {article.url}")
    _emit(
        {
            "title": article.title,
            "words": len(article.content.split()),
            "abbreviated": article.abbreviated_content,
        },
        args.json,
    )
    return 0


# --- parser ----------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="info-compiler",
        description="Compile election, candidate and news data into the entity store.",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: $LOG_LEVEL or INFO).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit JSON instead of human-readable output.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    compile_parser = subparsers.add_parser(
        "compile",
        help="Ingest elections and contests from the civic API.",
    )
    compile_parser.add_argument("--db", help="Database URL (default: $DATABASE_URL).")
    compile_parser.add_argument(
        "--with-news",
        action="store_true",
        help="Also crawl news articles for every candidate seen.",
    )
    compile_parser.set_defaults(func=_cmd_compile)

    crawl_parser = subparsers.add_parser(
        "crawl",
        help="Crawl news articles for a single candidate.",
    )
    crawl_parser.add_argument("name", help="Candidate name used as the search query.")
    crawl_parser.add_argument("candidate_id", help="Candidate id the articles are filed under.")
    crawl_parser.add_argument("--db", help="Database URL (default: $DATABASE_URL).")
    crawl_parser.set_defaults(func=_cmd_crawl)

    robots_parser = subparsers.add_parser(
        "robots",
        help="Show the robots.txt grant for a URL.",
    )
    robots_parser.add_argument("url")
    robots_parser.set_defaults(func=_cmd_robots)

    extract_parser = subparsers.add_parser(
        "extract",
        help="Fetch a URL and print the extracted article.",
    )
    extract_parser.add_argument("url")
    extract_parser.set_defaults(func=_cmd_extract)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=str(args.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return int(args.func(args))
    except StoreUnavailable as exc:
        log.error("Entity store unavailable: %s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
