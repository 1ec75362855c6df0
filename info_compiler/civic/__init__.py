# info_compiler/civic/__init__.py
"""Election and candidate compilation from the civic information API."""

from .client import CivicInfoClient
from .compiler import CompileSummary, InfoCompiler, derive_state, parse_election_date

__all__ = [
    "CivicInfoClient",
    "CompileSummary",
    "InfoCompiler",
    "derive_state",
    "parse_election_date",
]
