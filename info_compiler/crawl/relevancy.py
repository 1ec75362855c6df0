# info_compiler/crawl/relevancy.py
from __future__ import annotations

import re
from collections.abc import Callable

from ..models import NewsArticle

# (article, candidate name) -> keep?
RelevancyChecker = Callable[[NewsArticle, str], bool]

_WORD_RE = re.compile(r"\w+", re.UNICODE)


def _tokens(text: str) -> list[str]:
    return [t.casefold() for t in _WORD_RE.findall(text or "")]


def mentions_candidate(article: NewsArticle, candidate_name: str) -> bool:
    """
    True when every token of the candidate's name appears as a word in the
    article title or body, ignoring case.

    An empty name never matches.
    """
    wanted = _tokens(candidate_name)
    if not wanted:
        return False
    have = set(_tokens(article.title)) | set(_tokens(article.content))
    return all(t in have for t in wanted)


__all__ = ["RelevancyChecker", "mentions_candidate"]
