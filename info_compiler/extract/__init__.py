# info_compiler/extract/__init__.py
"""
Article extraction and post-processing.

  - extract_content / ContentExtractor: document stream -> ExtractionResult
  - process: fill in abbreviated content on a NewsArticle
"""

from .content import ContentExtractor, extract_content, parse_article
from .processor import abbreviate, process

__all__ = [
    "ContentExtractor",
    "extract_content",
    "parse_article",
    "abbreviate",
    "process",
]
