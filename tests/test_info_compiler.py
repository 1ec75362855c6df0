# tests/test_info_compiler.py
from __future__ import annotations

from datetime import datetime, timezone

import pytest
import respx
from httpx import Response

from info_compiler.civic import CivicInfoClient, InfoCompiler, derive_state, parse_election_date
from info_compiler.crawl import CrawlSummary
from info_compiler.exceptions import ParseError, StoreUnavailable, TransientFetchError
from info_compiler.models import CANDIDATE_KIND, ELECTION_KIND, candidate_id

ADDRESSES = ["addr-1", "addr-2"]

GENERAL = {
    "id": "4100",
    "name": "New York General Election",
    "electionDay": "2026-11-03",
    "ocdDivisionId": "ocd-division/country:us/state:ny",
}
SAMPLE = {"id": "2000", "name": "VIP Test Election", "electionDay": "2031-06-06"}
NATIONAL = {"id": "4200", "name": "Federal Special", "electionDay": "2026-12-01"}

MAYOR = {
    "office": "Mayor",
    "candidates": [
        {"name": "Jane Doe", "party": "Democratic"},
        {"name": "John Roe", "party": "Republican"},
    ],
}


class StubCivicClient:
    def __init__(self, elections, contests=None, fail=()):
        self.elections = elections
        self.contests = contests or {}
        self.fail = set(fail)
        self.contest_calls: list[tuple[str, str]] = []

    def query_elections(self):
        if "elections" in self.fail:
            raise TransientFetchError("down")
        return list(self.elections)

    def query_contests(self, election_id, address):
        self.contest_calls.append((election_id, address))
        if (election_id, address) in self.fail:
            raise TransientFetchError("timeout")
        return list(self.contests.get((election_id, address), []))


class RecordingCrawler:
    def __init__(self):
        self.calls: list[tuple[str, str]] = []

    def compile_news_articles(self, name, cid):
        self.calls.append((name, cid))
        return CrawlSummary(candidate_id=cid, urls=1, stored=["k"])


def _compiler(store, client):
    return InfoCompiler(store, client, ADDRESSES)


# ------------------------------- field helpers ----------------------------------------


@pytest.mark.parametrize(
    "division,expected",
    [
        ("ocd-division/country:us/state:ny", "NY"),
        ("ocd-division/country:us/state:ca/cd:12", "CA"),
        ("ocd-division/country:us", ""),
        (None, ""),
        ("", ""),
    ],
)
def test_derive_state(division, expected):
    assert derive_state(division) == expected


def test_election_date_uses_reference_hour():
    assert parse_election_date("2026-11-03") == datetime(2026, 11, 3, 4, tzinfo=timezone.utc)


def test_bad_election_date_is_parse_error():
    with pytest.raises(ParseError):
        parse_election_date("Nov 3")


# ---------------------------------- stage 1 -------------------------------------------


def test_base_elections_skip_sample_election(store):
    compiler = _compiler(store, StubCivicClient([SAMPLE, GENERAL, NATIONAL]))

    stored = compiler.query_and_store_base_election_info()

    assert [e.name for e in stored] == [GENERAL["name"], NATIONAL["name"]]
    assert store.get(ELECTION_KIND, SAMPLE["name"]) is None
    fields = store.get(ELECTION_KIND, GENERAL["name"]).fields
    assert fields == {
        "queryId": "4100",
        "date": "2026-11-03T04:00:00+00:00",
        "state": "NY",
        "candidatePositions": [],
        "candidateIds": [],
        "candidateIncumbency": [],
    }
    assert store.get(ELECTION_KIND, NATIONAL["name"]).fields["state"] == ""


def test_bad_election_is_skipped_not_fatal(store):
    broken = {"id": "9", "name": "Broken", "electionDay": "soon"}
    compiler = _compiler(store, StubCivicClient([broken, GENERAL]))

    stored = compiler.query_and_store_base_election_info()

    assert [e.name for e in stored] == [GENERAL["name"]]


def test_election_listing_failure_is_not_fatal(store):
    compiler = _compiler(store, StubCivicClient([GENERAL], fail={"elections"}))

    assert compiler.query_and_store_base_election_info() == []


# ---------------------------------- stage 2 -------------------------------------------


def test_contests_record_aligned_entries_and_candidates(store):
    client = StubCivicClient([GENERAL], {("4100", "addr-1"): [MAYOR]})
    compiler = _compiler(store, client)

    compiler.query_and_store_base_election_info()
    seen = compiler.query_and_store_election_contest_info()

    jane = candidate_id("Jane Doe", "Democratic")
    john = candidate_id("John Roe", "Republican")
    assert list(seen) == [jane, john]

    fields = store.get(ELECTION_KIND, GENERAL["name"]).fields
    assert fields["candidatePositions"] == ["Mayor", "Mayor"]
    assert fields["candidateIds"] == [jane, john]
    assert fields["candidateIncumbency"] == [False, False]

    assert store.get(CANDIDATE_KIND, jane).fields == {
        "name": "Jane Doe",
        "partyAffiliation": "Democratic Party",
        "isIncumbent": False,
    }
    assert client.contest_calls == [("4100", "addr-1"), ("4100", "addr-2")]


def test_repeated_ingestion_does_not_duplicate_entries(store):
    contests = {("4100", "addr-1"): [MAYOR], ("4100", "addr-2"): [MAYOR]}
    compiler = _compiler(store, StubCivicClient([GENERAL], contests))

    compiler.compile_info()
    compiler.compile_info()

    fields = store.get(ELECTION_KIND, GENERAL["name"]).fields
    assert len(fields["candidateIds"]) == 2
    assert len(fields["candidatePositions"]) == len(fields["candidateIncumbency"]) == 2
    assert store.count(CANDIDATE_KIND) == 2


def test_same_candidate_in_two_offices_gets_two_entries(store):
    council = {"office": "Council", "candidates": [{"name": "Jane Doe", "party": "Democratic"}]}
    contests = {("4100", "addr-1"): [MAYOR, council]}
    compiler = _compiler(store, StubCivicClient([GENERAL], contests))

    compiler.compile_info()

    fields = store.get(ELECTION_KIND, GENERAL["name"]).fields
    assert fields["candidatePositions"] == ["Mayor", "Mayor", "Council"]
    assert store.count(CANDIDATE_KIND) == 2


def test_candidate_ids_depend_on_name_and_party():
    assert candidate_id("Jane Doe", "Democratic") == candidate_id("Jane Doe", "Democratic")
    assert candidate_id("Jane Doe", "Democratic") != candidate_id("Jane Doe", "Green")


def test_candidate_without_party_gets_bare_suffix(store):
    contests = {("4100", "addr-1"): [{"office": "Sheriff", "candidates": [{"name": "Pat Lee"}]}]}
    compiler = _compiler(store, StubCivicClient([GENERAL], contests))

    compiler.compile_info()

    cand = store.get(CANDIDATE_KIND, candidate_id("Pat Lee", ""))
    assert cand.fields["partyAffiliation"] == " Party"


def test_failed_contest_query_skips_only_that_address(store):
    contests = {("4100", "addr-2"): [MAYOR]}
    client = StubCivicClient([GENERAL], contests, fail={("4100", "addr-1")})
    compiler = _compiler(store, client)

    compiler.compile_info()

    assert len(store.get(ELECTION_KIND, GENERAL["name"]).fields["candidateIds"]) == 2


def test_sample_election_produces_nothing(store):
    contests = {("2000", "addr-1"): [MAYOR]}
    client = StubCivicClient([SAMPLE], contests)

    _compiler(store, client).compile_info()

    assert store.count(ELECTION_KIND) == 0
    assert store.count(CANDIDATE_KIND) == 0
    assert client.contest_calls == []


def test_store_failure_is_fatal(store):
    compiler = _compiler(store, StubCivicClient([GENERAL], {("4100", "addr-1"): [MAYOR]}))

    def broken(*args, **kwargs):
        raise StoreUnavailable("locked")

    store.upsert = broken
    with pytest.raises(StoreUnavailable):
        compiler.compile_info()


def test_compile_info_crawls_each_candidate_once(store):
    contests = {("4100", "addr-1"): [MAYOR], ("4100", "addr-2"): [MAYOR]}
    compiler = _compiler(store, StubCivicClient([GENERAL], contests))
    crawler = RecordingCrawler()

    summary = compiler.compile_info(crawler)

    assert crawler.calls == [
        ("Jane Doe", candidate_id("Jane Doe", "Democratic")),
        ("John Roe", candidate_id("John Roe", "Republican")),
    ]
    assert summary.articles == 2
    assert summary.elections == [GENERAL["name"]]


@respx.mock
def test_compile_against_http_api(store):
    base = "https://civic.test/v2"
    respx.get(f"{base}/elections").mock(
        return_value=Response(200, json={"kind": "k", "elections": [SAMPLE, GENERAL]})
    )
    respx.get(f"{base}/voterinfo").mock(return_value=Response(200, json={"contests": [MAYOR]}))

    with CivicInfoClient(base_url=base, api_key="k") as client:
        summary = InfoCompiler(store, client, ["addr-1"]).compile_info()

    assert summary.elections == [GENERAL["name"]]
    assert len(summary.candidates) == 2
