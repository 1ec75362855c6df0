# tests/test_crawl_runner.py
from __future__ import annotations

import pytest
import respx
from httpx import Response

from info_compiler.crawl import WebCrawler, mentions_candidate
from info_compiler.exceptions import StoreUnavailable
from info_compiler.fetch import FetcherClient, FetchResult, PolitenessController
from info_compiler.models import NEWS_ARTICLE_KIND, NewsArticle, article_key

CANDIDATE = "Jane Doe"
CID = "cand-1"


def _page(title: str, body: str) -> bytes:
    return f"<html><head><title>{title}</title></head><body><p>{body}</p></body></html>".encode()


RELEVANT = _page("Jane Doe wins debate", "Jane Doe answered every question from the panel tonight.")
OFF_TOPIC = _page("Weather", "Expect rain across the county through the whole weekend.")


class StubSearch:
    def __init__(self, urls):
        self.urls = list(urls)
        self.queries: list[str] = []

    def search_urls(self, query):
        self.queries.append(query)
        return list(self.urls)


class StubFetcher:
    """Maps url -> bytes body, or an exception instance to raise, or a FetchResult."""

    def __init__(self, pages):
        self.pages = pages
        self.fetched: list[str] = []

    def fetch(self, url):
        self.fetched.append(url)
        page = self.pages[url]
        if isinstance(page, Exception):
            raise page
        if isinstance(page, FetchResult):
            return page
        return FetchResult(200, url, url, "text/html", page, "network")

    def close(self):
        pass


def _crawler(store, pages, **kw):
    return WebCrawler(
        store,
        fetcher=StubFetcher(pages),
        search=StubSearch(list(pages)),
        max_words=kw.pop("max_words", 5),
        **kw,
    )


def test_relevant_articles_are_stored(store):
    crawler = _crawler(store, {"https://a.test/1": RELEVANT})

    summary = crawler.compile_news_articles(CANDIDATE, CID)

    key = article_key(CID, "https://a.test/1")
    assert summary.stored == [key]
    entity = store.get(NEWS_ARTICLE_KIND, key)
    assert entity.fields == {
        "candidateId": CID,
        "title": "Jane Doe wins debate",
        "url": "https://a.test/1",
        "content": "Jane Doe answered every question from the panel tonight.",
        "abbreviatedContent": "Jane Doe answered every question",
    }


def test_large_text_fields_are_not_indexed(store):
    _crawler(store, {"https://a.test/1": RELEVANT}).compile_news_articles(CANDIDATE, CID)

    assert store.query_by_property(NEWS_ARTICLE_KIND, "candidateId", CID)
    abbreviated = "Jane Doe answered every question"
    assert store.query_by_property(NEWS_ARTICLE_KIND, "abbreviatedContent", abbreviated) == []


def test_failures_are_isolated_per_url(store):
    pages = {
        "https://a.test/boom": RuntimeError("socket exploded"),
        "https://a.test/blocked": FetchResult(451, "x", "x", None, None, "blocked-by-robots"),
        "https://a.test/500": FetchResult(500, "x", "x", None, None, "error:server"),
        "https://a.test/off-topic": OFF_TOPIC,
        "https://a.test/good": RELEVANT,
    }
    crawler = _crawler(store, pages)

    summary = crawler.compile_news_articles(CANDIDATE, CID)

    assert crawler.fetcher.fetched == list(pages)
    assert summary.urls == 5
    assert summary.skipped == 4
    assert summary.stored == [article_key(CID, "https://a.test/good")]
    assert store.count(NEWS_ARTICLE_KIND) == 1


def test_shared_url_is_stored_once_per_candidate(store):
    url = "https://a.test/debate"
    crawler = _crawler(store, {url: RELEVANT}, relevancy=lambda art, name: True)

    crawler.compile_news_articles("Jane Doe", "cand-jane")
    crawler.compile_news_articles("John Roe", "cand-john")

    owners = sorted(e.fields["candidateId"] for e in store.query_by_kind(NEWS_ARTICLE_KIND))
    assert owners == ["cand-jane", "cand-john"]
    assert store.get(NEWS_ARTICLE_KIND, article_key("cand-jane", url)).fields["url"] == url


def test_empty_search_stores_nothing(store):
    crawler = WebCrawler(store, fetcher=StubFetcher({}), search=StubSearch([]))

    summary = crawler.compile_news_articles(CANDIDATE, CID)

    assert summary.urls == 0
    assert store.count(NEWS_ARTICLE_KIND) == 0


def test_search_is_queried_with_candidate_name(store):
    crawler = _crawler(store, {})

    crawler.compile_news_articles(CANDIDATE, CID)

    assert crawler.search.queries == [CANDIDATE]


def test_store_failure_propagates(store):
    crawler = _crawler(store, {"https://a.test/1": RELEVANT})

    def broken(*args, **kwargs):
        raise StoreUnavailable("disk gone")

    store.upsert = broken
    with pytest.raises(StoreUnavailable):
        crawler.compile_news_articles(CANDIDATE, CID)


def test_thread_pool_keeps_search_order(store):
    urls = [f"https://a.test/{i}" for i in range(6)]
    crawler = _crawler(store, {u: RELEVANT for u in urls}, max_workers=3)

    summary = crawler.compile_news_articles(CANDIDATE, CID)

    assert summary.stored == [article_key(CID, u) for u in urls]
    assert [e.fields["url"] for e in store.query_by_kind(NEWS_ARTICLE_KIND)] == urls


def test_custom_relevancy_checker(store):
    crawler = _crawler(store, {"https://a.test/w": OFF_TOPIC}, relevancy=lambda art, name: True)

    assert len(crawler.compile_news_articles(CANDIDATE, CID).stored) == 1


def test_mentions_candidate_needs_every_name_token():
    art = NewsArticle(title="Doe leads", url="u", content="Jane spoke.")

    assert mentions_candidate(art, "Jane Doe")
    assert not mentions_candidate(art, "Jane Q. Public")
    assert not mentions_candidate(art, "")
    # whole words only
    assert not mentions_candidate(NewsArticle("Janet Doer", "u", ""), "Jane Doe")


@respx.mock
def test_end_to_end_with_robots(store, fake_clock):
    respx.get("https://ok.test/robots.txt").mock(return_value=Response(404))
    respx.get("https://ok.test/story").mock(return_value=Response(200, content=RELEVANT))
    respx.get("https://closed.test/robots.txt").mock(
        return_value=Response(200, text="User-agent: *\nDisallow: /\n")
    )
    closed = respx.get("https://closed.test/story").mock(
        return_value=Response(200, content=RELEVANT)
    )

    fetcher = FetcherClient(controller=PolitenessController(clock=fake_clock))
    search = StubSearch(["https://closed.test/story", "https://ok.test/story"])
    with WebCrawler(store, fetcher=fetcher, search=search) as crawler:
        summary = crawler.compile_news_articles(CANDIDATE, CID)
    fetcher.close()

    assert closed.call_count == 0
    assert summary.stored == [article_key(CID, "https://ok.test/story")]
