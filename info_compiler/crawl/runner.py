# info_compiler/crawl/runner.py
from __future__ import annotations

import io
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from ..config import CRAWL_MAX_WORKERS, MAX_WORD_COUNT
from ..exceptions import PermissionDenied, StoreUnavailable
from ..extract import ContentExtractor, process
from ..fetch import FetcherClient
from ..models import NEWS_ARTICLE_KIND, NewsArticle, article_key
from ..store import SQLiteEntityStore
from .relevancy import RelevancyChecker, mentions_candidate
from .search import CustomSearchClient, UrlSearch

log = logging.getLogger(__name__)

# Large text fields stay out of the property index
ARTICLE_UNINDEXED_FIELDS: tuple[str, ...] = ("content", "abbreviatedContent")


@dataclass
class CrawlSummary:
    candidate_id: str
    urls: int = 0
    stored: list[str] = field(default_factory=list)  # article keys, in search order
    skipped: int = 0


class WebCrawler:
    """
    News crawl for one candidate at a time.

    Per URL: fetch (robots + crawl-delay enforced by the fetcher) -> extract ->
    relevancy check -> abbreviate -> persist. A failure at any step skips that
    URL only. StoreUnavailable is the exception: it ends the crawl.

    With max_workers > 1 the fetch/extract/filter/process steps run in a thread
    pool; persistence always happens on the calling thread in search order.
    """

    def __init__(
        self,
        store: SQLiteEntityStore,
        *,
        fetcher: FetcherClient | None = None,
        extractor: ContentExtractor | None = None,
        relevancy: RelevancyChecker | None = None,
        search: UrlSearch | None = None,
        max_words: int = MAX_WORD_COUNT,
        max_workers: int = CRAWL_MAX_WORKERS,
    ) -> None:
        self.store = store
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or FetcherClient()
        self.extractor = extractor or ContentExtractor()
        self.relevancy: RelevancyChecker = relevancy or mentions_candidate
        self.search: UrlSearch = search or CustomSearchClient()
        self.max_words = max_words
        self.max_workers = max(1, int(max_workers))

    # ---- public API ------------------------------------------------------------------

    def compile_news_articles(self, candidate_name: str, candidate_id: str) -> CrawlSummary:
        urls = self.search.search_urls(candidate_name)
        summary = CrawlSummary(candidate_id=candidate_id, urls=len(urls))
        if not urls:
            log.info("No URLs found for candidate %r", candidate_name)
            return summary

        log.info("Crawling %d URLs for candidate %r", len(urls), candidate_name)
        for article in self._harvest_all(urls, candidate_name):
            if article is None:
                summary.skipped += 1
                continue
            summary.stored.append(self.store_article(candidate_id, article))

        log.info(
            "Candidate %r: stored %d articles, skipped %d",
            candidate_name,
            len(summary.stored),
            summary.skipped,
        )
        return summary

    def store_article(self, candidate_id: str, article: NewsArticle) -> str:
        key = article_key(candidate_id, article.url)
        self.store.upsert(
            NEWS_ARTICLE_KIND,
            key,
            {
                "candidateId": candidate_id,
                "title": article.title,
                "url": article.url,
                "content": article.content,
                "abbreviatedContent": article.abbreviated_content or "",
            },
            unindexed=ARTICLE_UNINDEXED_FIELDS,
        )
        return key

    # ---- internals -------------------------------------------------------------------

    def _harvest_all(self, urls: list[str], candidate_name: str):
        if self.max_workers == 1 or len(urls) == 1:
            for url in urls:
                yield self._harvest(url, candidate_name)
            return

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            # map() yields in submission order
            yield from pool.map(lambda u: self._harvest(u, candidate_name), urls)

    def _harvest(self, url: str, candidate_name: str) -> NewsArticle | None:
        """Fetch, extract, filter and abbreviate one URL. None means skip."""
        try:
            res = self.fetcher.fetch(url)
            if not res.ok:
                if res.reason == "blocked-by-robots":
                    log.info("Skipping %s: disallowed by robots.txt", url)
                else:
                    log.warning("Skipping %s: fetch %s (status %s)", url, res.reason, res.status)
                return None

            extracted = self.extractor.extract(io.BytesIO(res.body or b""), url)
            if extracted.article is None:
                log.warning("Skipping %s: no article extracted (%s)", url, extracted.reason)
                return None

            if not self.relevancy(extracted.article, candidate_name):
                log.debug("Skipping %s: not relevant to %r", url, candidate_name)
                return None

            return process(extracted.article, self.max_words)
        except PermissionDenied as exc:
            log.info("Skipping %s: disallowed by robots.txt", exc.url)
            return None
        except StoreUnavailable:
            raise
        except Exception:
            log.exception("Unexpected failure crawling %s", url)
            return None

    # ---- lifecycle -------------------------------------------------------------------

    def close(self) -> None:
        if self._owns_fetcher:
            self.fetcher.close()

    def __enter__(self) -> WebCrawler:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["ARTICLE_UNINDEXED_FIELDS", "CrawlSummary", "WebCrawler"]
