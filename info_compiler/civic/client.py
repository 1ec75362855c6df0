# info_compiler/civic/client.py
from __future__ import annotations

import logging
from typing import Any

import httpx

from .. import config
from ..exceptions import ParseError, TransientFetchError

log = logging.getLogger(__name__)


class CivicInfoClient:
    """
    Thin client for the civic information API.

    Two endpoints are consumed:
      GET {base}/elections
          -> {"kind", "elections": [{id, name, electionDay, ...}]}
      GET {base}/voterinfo?address&electionId
          -> {"contests": [{office, candidates: [{name, party}]}]}

    Network failures and non-2xx responses raise TransientFetchError;
    bodies that are not a JSON object raise ParseError.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = (base_url or config.CIVIC_INFO_BASE_URL).rstrip("/")
        self.api_key = config.CIVIC_INFO_API_KEY if api_key is None else api_key
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=timeout or config.FETCH_TIMEOUT_SEC,
            headers={"User-Agent": config.FETCH_USER_AGENT, "Accept": "application/json"},
        )

    # ---- endpoints -------------------------------------------------------------------

    def query_elections(self) -> list[dict[str, Any]]:
        data = self._get_json("elections", {})
        elections = data.get("elections") or []
        if not isinstance(elections, list):
            raise ParseError("'elections' is not a list")
        return [e for e in elections if isinstance(e, dict)]

    def query_contests(self, election_id: str, address: str) -> list[dict[str, Any]]:
        data = self._get_json("voterinfo", {"address": address, "electionId": election_id})
        contests = data.get("contests") or []
        if not isinstance(contests, list):
            raise ParseError("'contests' is not a list")
        return [c for c in contests if isinstance(c, dict)]

    # ---- internals -------------------------------------------------------------------

    def _get_json(self, endpoint: str, params: dict[str, str]) -> dict[str, Any]:
        url = f"{self.base_url}/{endpoint}"
        query = {"key": self.api_key, **params}
        try:
            resp = self._client.get(url, params=query)
        except httpx.HTTPError as exc:
            raise TransientFetchError(f"{endpoint}: {type(exc).__name__}: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            raise TransientFetchError(f"{endpoint}: HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise ParseError(f"{endpoint}: invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ParseError(f"{endpoint}: expected a JSON object, got {type(data).__name__}")
        return data

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> CivicInfoClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["CivicInfoClient"]
