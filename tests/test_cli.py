# tests/test_cli.py
from __future__ import annotations

import json

import pytest
import respx
from httpx import Response

from info_compiler import cli


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_crawl_takes_name_and_id():
    args = cli.build_parser().parse_args(["crawl", "Jane Doe", "cand-1"])

    assert args.name == "Jane Doe"
    assert args.candidate_id == "cand-1"


@respx.mock
def test_robots_command_reports_grant(capsys):
    respx.get("https://site.test/robots.txt").mock(
        return_value=Response(200, text="User-agent: *\nCrawl-delay: 2\n")
    )

    rc = cli.main(["--json", "robots", "https://site.test/page"])

    assert rc == 0
    assert json.loads(capsys.readouterr().out) == {"allowed": True, "crawl_delay": 2.0}


@respx.mock
def test_robots_command_exit_code_when_blocked(capsys):
    respx.get("https://site.test/robots.txt").mock(
        return_value=Response(200, text="User-agent: *\nDisallow: /\n")
    )

    assert cli.main(["robots", "https://site.test/page"]) == 3
    assert "allowed" in capsys.readouterr().out


@respx.mock
def test_compile_command_writes_to_database(tmp_path, monkeypatch, capsys):
    base = "https://civic.test/v2"
    monkeypatch.setattr(cli.config, "CIVIC_INFO_BASE_URL", base)
    monkeypatch.setenv("ADDRESS_CORPUS_PATH", str(tmp_path / "none.yaml"))
    respx.get(f"{base}/elections").mock(
        return_value=Response(
            200,
            json={"elections": [{"id": "7", "name": "Primary", "electionDay": "2026-06-23"}]},
        )
    )
    respx.get(f"{base}/voterinfo").mock(return_value=Response(200, json={"contests": []}))

    db = tmp_path / "cli.db"
    rc = cli.main(["--json", "compile", "--db", f"sqlite:///{db}"])

    assert rc == 0
    assert json.loads(capsys.readouterr().out) == {"elections": 1, "candidates": 0, "articles": 0}
    assert db.exists()


@respx.mock
def test_crawl_command_uses_configured_search(tmp_path, monkeypatch, capsys):
    search_url = "https://search.test/v1"
    monkeypatch.setattr(cli.config, "CUSTOM_SEARCH_URL", search_url)
    monkeypatch.setattr(cli.config, "CUSTOM_SEARCH_KEY", "k-123")
    monkeypatch.setattr(cli.config, "CUSTOM_SEARCH_ENGINE_ID", "cx-9")
    monkeypatch.setenv("ADDRESS_CORPUS_PATH", str(tmp_path / "none.yaml"))
    search = respx.get(search_url).mock(return_value=Response(200, json={"items": []}))

    db = tmp_path / "crawl.db"
    rc = cli.main(["--json", "crawl", "Jane Doe", "cand-1", "--db", f"sqlite:///{db}"])

    assert rc == 0
    assert json.loads(capsys.readouterr().out) == {"urls": 0, "stored": 0, "skipped": 0}
    params = search.calls.last.request.url.params
    assert params["key"] == "k-123"
    assert params["cx"] == "cx-9"
    assert params["q"] == "Jane Doe"
