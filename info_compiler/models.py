# info_compiler/models.py
"""
Entity records produced by the crawl and civic pipelines.

Ids are content-addressed: a candidate id is a SHA-256 over the normalized
(name, party) pair and an article key is a SHA-256 over the (candidate id,
canonical URL) pair, so the same input always maps to the same record
across runs.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field, replace
from datetime import datetime

# --- Entity kinds ------------------------------------------------------------

ELECTION_KIND = "Election"
CANDIDATE_KIND = "Candidate"
NEWS_ARTICLE_KIND = "NewsArticle"


# --- Id helpers --------------------------------------------------------------


def _normalize(value: str | None) -> str:
    return " ".join((value or "").split()).casefold()


def _sha256_hex(*parts: str) -> str:
    h = hashlib.sha256()
    for p in parts:
        h.update(p.encode("utf-8"))
        # unit separator keeps ("ab", "c") distinct from ("a", "bc")
        h.update(b"\x1f")
    return h.hexdigest()


def candidate_id(name: str, party: str | None) -> str:
    """
    Deterministic candidate id for a (name, party) pair.

    Whitespace runs and letter case are normalized first, so
    ("Andrew  Cuomo", "Democratic") and ("andrew cuomo", "democratic") agree.
    """
    return _sha256_hex(_normalize(name), _normalize(party))


def article_key(cand_id: str, url: str) -> str:
    """
    Deterministic NewsArticle key for a (candidate, canonical URL) pair.

    One URL relevant to two candidates yields two records.
    """
    return _sha256_hex(cand_id, url.strip())


# --- Records -----------------------------------------------------------------


@dataclass(frozen=True)
class NewsArticle:
    title: str
    url: str
    content: str
    abbreviated_content: str | None = None

    def with_abbreviated_content(self, abbreviated: str) -> NewsArticle:
        return replace(self, abbreviated_content=abbreviated)


@dataclass(frozen=True)
class ExtractionResult:
    """
    Outcome of content extraction.

    `article` is None when nothing could be produced (no stream, read error,
    unparseable markup). A present article with empty title/content is a valid,
    distinct result.

    reason: "ok" | "no-stream" | "read-error" | "parse-error"
    """

    article: NewsArticle | None
    reason: str

    @property
    def is_present(self) -> bool:
        return self.article is not None

    @classmethod
    def present(cls, article: NewsArticle) -> ExtractionResult:
        return cls(article=article, reason="ok")

    @classmethod
    def absent(cls, reason: str) -> ExtractionResult:
        return cls(article=None, reason=reason)


@dataclass
class Candidate:
    name: str
    party_affiliation: str
    is_incumbent: bool = False

    def to_fields(self) -> dict[str, object]:
        return {
            "name": self.name,
            "partyAffiliation": self.party_affiliation,
            "isIncumbent": self.is_incumbent,
        }


@dataclass
class Election:
    """
    An election and its contest entries.

    positions, candidate_ids and incumbency are index-aligned: entry i of each
    describes one (office, candidate) pair. Only add_contest_entry() appends,
    which keeps the three lists the same length.
    """

    name: str
    query_id: str
    date: datetime
    state: str = ""
    positions: list[str] = field(default_factory=list)
    candidate_ids: list[str] = field(default_factory=list)
    incumbency: list[bool] = field(default_factory=list)

    def has_entry(self, office: str, cand_id: str) -> bool:
        return any(
            p == office and c == cand_id
            for p, c in zip(self.positions, self.candidate_ids, strict=True)
        )

    def add_contest_entry(self, office: str, cand_id: str, incumbent: bool) -> bool:
        """
        Append one aligned (office, candidate, incumbency) entry.

        Returns False (and appends nothing) if the pair is already recorded, so
        re-ingesting a contest is idempotent.
        """
        if self.has_entry(office, cand_id):
            return False
        self.positions.append(office)
        self.candidate_ids.append(cand_id)
        self.incumbency.append(bool(incumbent))
        return True

    def to_fields(self) -> dict[str, object]:
        return {
            "queryId": self.query_id,
            "date": self.date.isoformat(),
            "state": self.state,
            "candidatePositions": list(self.positions),
            "candidateIds": list(self.candidate_ids),
            "candidateIncumbency": list(self.incumbency),
        }

    @classmethod
    def from_fields(cls, name: str, fields: dict) -> Election:
        positions = list(fields.get("candidatePositions") or [])
        ids = list(fields.get("candidateIds") or [])
        incumbency = [bool(x) for x in (fields.get("candidateIncumbency") or [])]
        if not (len(positions) == len(ids) == len(incumbency)):
            raise ValueError(f"Election {name!r} has misaligned contest sequences")
        return cls(
            name=name,
            query_id=str(fields.get("queryId") or ""),
            date=datetime.fromisoformat(str(fields["date"])),
            state=str(fields.get("state") or ""),
            positions=positions,
            candidate_ids=ids,
            incumbency=incumbency,
        )


__all__ = [
    "ELECTION_KIND",
    "CANDIDATE_KIND",
    "NEWS_ARTICLE_KIND",
    "candidate_id",
    "article_key",
    "NewsArticle",
    "ExtractionResult",
    "Candidate",
    "Election",
]
