"""
News article extraction from raw HTML.

Given a document stream, return the article title and main text as a
NewsArticle wrapped in an ExtractionResult. Boilerplate removal is done by
trafilatura; a plain BeautifulSoup text dump is the fallback when
trafilatura finds no main content.

Extraction never raises: a missing stream, a read error or markup the parser
rejects all come back as an absent result. A document that parses but has
no title or no body text is still a present article, with empty fields.
"""

# info_compiler/extract/content.py
from __future__ import annotations

import logging
from collections.abc import Callable
from typing import BinaryIO

import trafilatura
from bs4 import BeautifulSoup
from trafilatura.metadata import extract_metadata

from ..models import ExtractionResult, NewsArticle

log = logging.getLogger(__name__)

# Stripped before the BeautifulSoup fallback dumps text
FALLBACK_STRIP_TAGS: tuple[str, ...] = ("script", "style", "noscript", "nav", "header", "footer")

ArticleParser = Callable[[bytes | str], tuple[str, str]]


# --- Parsing helpers -------------------------------------------------------------


def _as_text(markup: bytes | str) -> str:
    if isinstance(markup, bytes):
        return markup.decode("utf-8", errors="replace")
    return markup or ""


def _extract_title(html: str) -> str:
    metadata = extract_metadata(html)
    title = metadata.title if metadata else None
    return " ".join((title or "").split())


def _fallback_body(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(FALLBACK_STRIP_TAGS):
        tag.decompose()
    root = soup.body or soup
    lines = (" ".join(line.split()) for line in root.get_text(separator="\n").splitlines())
    return "\n".join(line for line in lines if line)


def parse_article(markup: bytes | str) -> tuple[str, str]:
    """
    Return (title, body) for an HTML document.

    Either value may be empty. Raises whatever the underlying parsers raise on
    markup they cannot handle.
    """
    html = _as_text(markup)
    if not html.strip():
        return "", ""

    title = _extract_title(html)
    body = trafilatura.extract(html, include_comments=False, include_tables=False)
    if not body or not body.strip():
        log.debug("trafilatura found no main content; using plain-text fallback")
        body = _fallback_body(html)
    return title, body.strip()


# --- Public API ------------------------------------------------------------------


class ContentExtractor:
    """Turns document streams into NewsArticles. `parser` is swappable for tests."""

    def __init__(self, parser: ArticleParser | None = None) -> None:
        self.parser: ArticleParser = parser or parse_article

    def extract(self, stream: BinaryIO | None, url: str) -> ExtractionResult:
        if stream is None:
            return ExtractionResult.absent("no-stream")

        try:
            raw = stream.read()
        except Exception as exc:  # any read failure degrades to "absent"
            log.warning("Could not read document for %s: %s", url, exc)
            return ExtractionResult.absent("read-error")

        try:
            title, body = self.parser(raw)
        except Exception as exc:  # any parser failure degrades to "absent"
            log.warning("Could not parse document for %s: %s", url, exc)
            return ExtractionResult.absent("parse-error")

        return ExtractionResult.present(
            NewsArticle(title=title or "", url=url, content=body or "")
        )


_DEFAULT = ContentExtractor()


def extract_content(stream: BinaryIO | None, url: str) -> ExtractionResult:
    return _DEFAULT.extract(stream, url)


__all__ = [
    "ContentExtractor",
    "extract_content",
    "parse_article",
]
