# info_compiler/crawl/__init__.py
"""
Candidate news crawl: URL discovery, relevancy filtering and the orchestrator.
"""

from .relevancy import RelevancyChecker, mentions_candidate
from .runner import CrawlSummary, WebCrawler
from .search import CustomSearchClient, UrlSearch

__all__ = [
    "CrawlSummary",
    "WebCrawler",
    "CustomSearchClient",
    "UrlSearch",
    "RelevancyChecker",
    "mentions_candidate",
]
