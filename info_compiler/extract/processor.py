# info_compiler/extract/processor.py
from __future__ import annotations

from ..config import MAX_WORD_COUNT
from ..models import NewsArticle


def abbreviate(text: str, max_words: int = MAX_WORD_COUNT) -> str:
    """
    First `max_words` whitespace tokens of `text`, joined by single spaces.

    Text that already fits is returned untouched, original spacing included.
    """
    tokens = (text or "").split()
    if len(tokens) <= max_words:
        return text or ""
    return " ".join(tokens[:max_words])


def process(article: NewsArticle, max_words: int = MAX_WORD_COUNT) -> NewsArticle:
    """Return `article` with abbreviated_content filled in; other fields are unchanged."""
    return article.with_abbreviated_content(abbreviate(article.content, max_words))


__all__ = ["abbreviate", "process"]
