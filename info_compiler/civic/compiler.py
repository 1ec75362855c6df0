# info_compiler/civic/compiler.py
"""
Civic info compilation.

Stage 1 (base elections): list elections from the civic API and upsert one
Election per name with empty contest sequences. The API's sample election
is never written.

Stage 2 (contests): for every stored election and every address in the
corpus, fetch contests and record one aligned (office, candidate,
incumbency) entry per candidate, upserting the Candidate on the way.
Entries already recorded for an election are not appended again, so
re-running a compile is idempotent.

Per-item failures (one election, one (election, address) query, one
contest) are logged and skipped. StoreUnavailable ends the run.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .. import config
from ..exceptions import ParseError, StoreUnavailable, TransientFetchError
from ..models import (
    CANDIDATE_KIND,
    ELECTION_KIND,
    Candidate,
    Election,
    candidate_id,
)
from ..store import SQLiteEntityStore
from .client import CivicInfoClient

log = logging.getLogger(__name__)

_STATE_RE = re.compile(r"(?:^|/)state:([a-z]{2})(?:/|$)", re.IGNORECASE)


# --- Field helpers ---------------------------------------------------------------


def derive_state(division_id: str | None) -> str:
    """'ocd-division/country:us/state:ny' -> 'NY'; anything else -> ''."""
    if not division_id:
        return ""
    m = _STATE_RE.search(division_id)
    return m.group(1).upper() if m else ""


def parse_election_date(day: str | None) -> datetime:
    """'2026-11-03' -> 2026-11-03T04:00:00+00:00. Raises ParseError otherwise."""
    try:
        parsed = datetime.strptime((day or "").strip(), "%Y-%m-%d")
    except ValueError as exc:
        raise ParseError(f"bad electionDay {day!r}") from exc
    return parsed.replace(hour=config.ELECTION_REFERENCE_HOUR, tzinfo=timezone.utc)


def party_label(party: str | None) -> str:
    return f"{(party or '').strip()}{config.PARTY_SUFFIX}"


@dataclass
class CompileSummary:
    elections: list[str] = field(default_factory=list)
    # candidate id -> name, first-seen order
    candidates: dict[str, str] = field(default_factory=dict)
    articles: int = 0


# --- Compiler --------------------------------------------------------------------


class InfoCompiler:
    def __init__(
        self,
        store: SQLiteEntityStore,
        client: CivicInfoClient,
        addresses: Iterable[str] | None = None,
        *,
        test_election_id: str = config.TEST_ELECTION_ID,
    ) -> None:
        self.store = store
        self.client = client
        self.addresses = list(addresses) if addresses is not None else config.load_address_corpus()
        self.test_election_id = str(test_election_id)

    # ---- stage 1 ---------------------------------------------------------------------

    def store_base_election(self, election_json: dict[str, Any]) -> Election | None:
        """
        Upsert one election from the elections listing.

        Returns None for the sample election. Raises ParseError on a missing
        name or an unparseable electionDay.
        """
        query_id = str(election_json.get("id") or "").strip()
        if query_id == self.test_election_id:
            log.debug("Ignoring sample election %s", query_id)
            return None

        name = str(election_json.get("name") or "").strip()
        if not name:
            raise ParseError(f"election {query_id!r} has no name")

        election = Election(
            name=name,
            query_id=query_id,
            date=parse_election_date(election_json.get("electionDay")),
            state=derive_state(election_json.get("ocdDivisionId")),
        )

        existing = self.store.get(ELECTION_KIND, name)
        if existing is None:
            self.store.upsert(ELECTION_KIND, name, election.to_fields())
        else:
            # Re-sighting: refresh scalars, keep recorded contest entries
            self.store.upsert(
                ELECTION_KIND,
                name,
                {
                    "queryId": election.query_id,
                    "date": election.date.isoformat(),
                    "state": election.state,
                },
            )
        return election

    def query_and_store_base_election_info(self) -> list[Election]:
        try:
            listing = self.client.query_elections()
        except (TransientFetchError, ParseError) as exc:
            log.warning("Could not list elections: %s", exc)
            return []

        stored: list[Election] = []
        for election_json in listing:
            try:
                election = self.store_base_election(election_json)
            except ParseError as exc:
                log.warning("Skipping election %r: %s", election_json.get("name"), exc)
                continue
            if election is not None:
                stored.append(election)

        log.info("Stored %d base elections", len(stored))
        return stored

    # ---- stage 2 ---------------------------------------------------------------------

    def known_elections(self) -> list[Election]:
        out: list[Election] = []
        for entity in self.store.query_by_kind(ELECTION_KIND):
            try:
                election = Election.from_fields(entity.key, entity.fields)
            except (KeyError, ValueError) as exc:
                log.warning("Skipping stored election %r: %s", entity.key, exc)
                continue
            if election.query_id and election.query_id != self.test_election_id:
                out.append(election)
        return out

    def store_election_contest(
        self, election: Election, contest_json: dict[str, Any]
    ) -> list[tuple[str, str]]:
        """
        Record one contest against `election` and persist it.

        Returns (candidate id, name) for every candidate in the contest,
        including ones already recorded.
        """
        office = str(contest_json.get("office") or "").strip()
        candidates = contest_json.get("candidates") or []
        seen: list[tuple[str, str]] = []

        for cand in candidates:
            if not isinstance(cand, dict):
                continue
            name = str(cand.get("name") or "").strip()
            if not name:
                continue
            party = str(cand.get("party") or "").strip()
            cid = candidate_id(name, party)
            record = Candidate(
                name=name,
                party_affiliation=party_label(party),
                is_incumbent=config.PLACEHOLDER_INCUMBENCY,
            )
            self.store.upsert(CANDIDATE_KIND, cid, record.to_fields())
            election.add_contest_entry(office, cid, config.PLACEHOLDER_INCUMBENCY)
            seen.append((cid, name))

        self.store.upsert(ELECTION_KIND, election.name, election.to_fields())
        return seen

    def query_and_store_election_contest_info(self) -> dict[str, str]:
        """Returns candidate id -> name for every candidate seen, in first-seen order."""
        candidates: dict[str, str] = {}
        for election in self.known_elections():
            for address in self.addresses:
                try:
                    contests = self.client.query_contests(election.query_id, address)
                except (TransientFetchError, ParseError) as exc:
                    log.warning(
                        "Skipping contests for %s at %r: %s", election.query_id, address, exc
                    )
                    continue

                for contest in contests:
                    try:
                        for cid, name in self.store_election_contest(election, contest):
                            candidates.setdefault(cid, name)
                    except StoreUnavailable:
                        raise
                    except Exception:
                        log.exception(
                            "Failed to store contest %r for %s",
                            contest.get("office"),
                            election.name,
                        )

            log.info(
                "Election %r: %d contest entries", election.name, len(election.candidate_ids)
            )
        return candidates

    # ---- wiring ----------------------------------------------------------------------

    def compile_info(self, crawler=None) -> CompileSummary:
        """
        Stage 1, then stage 2. With a crawler (anything with
        compile_news_articles(name, candidate_id)) each candidate seen in
        this run is crawled once.
        """
        summary = CompileSummary()
        summary.elections = [e.name for e in self.query_and_store_base_election_info()]
        summary.candidates = self.query_and_store_election_contest_info()

        if crawler is not None:
            for cid, name in summary.candidates.items():
                result = crawler.compile_news_articles(name, cid)
                summary.articles += len(result.stored)

        log.info(
            "Compile finished: %d elections, %d candidates, %d articles",
            len(summary.elections),
            len(summary.candidates),
            summary.articles,
        )
        return summary


__all__ = [
    "CompileSummary",
    "InfoCompiler",
    "derive_state",
    "parse_election_date",
    "party_label",
]
