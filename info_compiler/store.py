# info_compiler/store.py
"""
Entity store backed by SQLite.

Entities are (kind, key) → JSON field map. Scalar fields are additionally
copied into `entity_properties` so they can be looked up by value; fields
passed as `unindexed` (article bodies) are kept out of that table.

Any sqlite3 failure surfaces as StoreUnavailable: the pipelines cannot do
useful work without persistence, so callers let it propagate.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from .exceptions import StoreUnavailable

_SCHEMA = """
CREATE TABLE IF NOT EXISTS entities (
  kind TEXT NOT NULL,
  key TEXT NOT NULL,
  data TEXT NOT NULL,
  unindexed TEXT NOT NULL DEFAULT '[]',
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  PRIMARY KEY (kind, key)
);

CREATE TABLE IF NOT EXISTS entity_properties (
  kind TEXT NOT NULL,
  key TEXT NOT NULL,
  name TEXT NOT NULL,
  value TEXT,
  FOREIGN KEY (kind, key) REFERENCES entities(kind, key) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS ix_entity_properties_lookup
  ON entity_properties(kind, name, value);
"""


@dataclass(frozen=True)
class Entity:
    kind: str
    key: str
    fields: dict[str, Any]


def db_path_from_url(url: str) -> str:
    """
    'sqlite:////abs/dev.db' -> '/abs/dev.db'; 'sqlite:///:memory:' -> ':memory:'.
    """
    u = (url or "").strip()
    if not u.startswith("sqlite:///"):
        raise ValueError(f"Only sqlite:/// database URLs are supported; got {url!r}")
    return u.removeprefix("sqlite:///")


def _now_iso() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def _index_value(value: Any) -> str | None:
    if value is None or isinstance(value, (list, dict)):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class SQLiteEntityStore:
    """
    Key/kind store with upsert-merge semantics.

    upsert() merges the given fields over any existing fields for the same
    (kind, key); fields not mentioned are preserved.
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.executescript(_SCHEMA)
            self._conn.commit()
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"cannot open entity store at {db_path}: {exc}") from exc

    @classmethod
    def from_url(cls, url: str) -> SQLiteEntityStore:
        return cls(db_path_from_url(url))

    # ---- writes ----------------------------------------------------------------------

    def upsert(
        self,
        kind: str,
        key: str,
        fields: dict[str, Any],
        *,
        unindexed: Iterable[str] = (),
    ) -> dict[str, Any]:
        """Create or merge an entity. Returns the merged field map."""
        now = _now_iso()
        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT data, unindexed FROM entities WHERE kind = ? AND key = ?", (kind, key)
                ).fetchone()
                merged: dict[str, Any] = json.loads(row["data"]) if row else {}
                merged.update(fields)
                # once a field is flagged unindexed it stays that way across merges
                skip = set(json.loads(row["unindexed"])) if row else set()
                skip.update(unindexed)
                self._conn.execute(
                    """
                    INSERT INTO entities (kind, key, data, unindexed, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(kind, key) DO UPDATE SET
                      data = excluded.data,
                      unindexed = excluded.unindexed,
                      updated_at = excluded.updated_at
                    """,
                    (
                        kind,
                        key,
                        json.dumps(merged, sort_keys=True),
                        json.dumps(sorted(skip)),
                        now,
                        now,
                    ),
                )
                self._conn.execute(
                    "DELETE FROM entity_properties WHERE kind = ? AND key = ?", (kind, key)
                )
                self._conn.executemany(
                    "INSERT INTO entity_properties (kind, key, name, value) VALUES (?, ?, ?, ?)",
                    [
                        (kind, key, name, _index_value(value))
                        for name, value in merged.items()
                        if name not in skip and _index_value(value) is not None
                    ],
                )
                self._conn.commit()
            except sqlite3.Error as exc:
                self._rollback()
                raise StoreUnavailable(f"upsert {kind}/{key} failed: {exc}") from exc
        return merged

    # ---- reads -----------------------------------------------------------------------

    def get(self, kind: str, key: str) -> Entity | None:
        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT key, data FROM entities WHERE kind = ? AND key = ?", (kind, key)
                ).fetchone()
            except sqlite3.Error as exc:
                raise StoreUnavailable(f"get {kind}/{key} failed: {exc}") from exc
        if row is None:
            return None
        return Entity(kind=kind, key=row["key"], fields=json.loads(row["data"]))

    def query_by_kind(self, kind: str) -> list[Entity]:
        """All entities of a kind, in insertion order."""
        with self._lock:
            try:
                rows = self._conn.execute(
                    "SELECT key, data FROM entities WHERE kind = ? ORDER BY rowid", (kind,)
                ).fetchall()
            except sqlite3.Error as exc:
                raise StoreUnavailable(f"query {kind} failed: {exc}") from exc
        return [Entity(kind=kind, key=r["key"], fields=json.loads(r["data"])) for r in rows]

    def query_by_property(self, kind: str, name: str, value: Any) -> list[Entity]:
        """Entities of `kind` whose indexed field `name` equals `value`."""
        with self._lock:
            try:
                rows = self._conn.execute(
                    """
                    SELECT e.key, e.data
                    FROM entities e
                    JOIN entity_properties p ON p.kind = e.kind AND p.key = e.key
                    WHERE e.kind = ? AND p.name = ? AND p.value = ?
                    ORDER BY e.rowid
                    """,
                    (kind, name, _index_value(value)),
                ).fetchall()
            except sqlite3.Error as exc:
                raise StoreUnavailable(f"query {kind}.{name} failed: {exc}") from exc
        return [Entity(kind=kind, key=r["key"], fields=json.loads(r["data"])) for r in rows]

    def count(self, kind: str) -> int:
        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT COUNT(*) FROM entities WHERE kind = ?", (kind,)
                ).fetchone()
            except sqlite3.Error as exc:
                raise StoreUnavailable(f"count {kind} failed: {exc}") from exc
        return int(row[0])

    # ---- lifecycle -------------------------------------------------------------------

    def _rollback(self) -> None:
        try:
            self._conn.rollback()
        except sqlite3.Error:
            pass

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> SQLiteEntityStore:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["Entity", "SQLiteEntityStore", "db_path_from_url"]
