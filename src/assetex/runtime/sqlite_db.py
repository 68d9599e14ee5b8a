# src/assetex/runtime/sqlite_db.py
from __future__ import annotations

import json
import os
import random
import sqlite3
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Sequence

from assetex.runtime.events import MarketEvent

Json = Dict[str, Any]

SCHEMA_VERSION = 1

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS meta (
      key TEXT PRIMARY KEY,
      value TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS ledger_state (
      id INTEGER PRIMARY KEY CHECK (id = 1),
      height INTEGER NOT NULL,
      state_json TEXT NOT NULL,
      updated_ts_ms INTEGER NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS events (
      seq INTEGER PRIMARY KEY,
      kind TEXT NOT NULL,
      data_json TEXT NOT NULL,
      ts_ms INTEGER NOT NULL
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_events_kind ON events(kind);",
)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _canon_json(obj: Any) -> str:
    # No default=str: a value that is not plain JSON must fail the commit.
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _env_int(name: str, default: int) -> int:
    raw = str(os.environ.get(name, "")).strip()
    try:
        return int(raw) if raw else int(default)
    except ValueError:
        return int(default)


def _env_flag(name: str) -> bool:
    return (os.environ.get(name) or "").strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class SqliteTuning:
    """Per-connection settings, read from ASSETEX_SQLITE_* once per SqliteDB."""

    synchronous: str
    connect_timeout_ms: int
    busy_timeout_ms: int
    write_deadline_ms: int
    backoff_base_ms: int
    backoff_max_ms: int
    allow_non_wal: bool

    @staticmethod
    def from_env() -> "SqliteTuning":
        # prod defaults to FULL durability; dev/testnet trade some for speed.
        mode = (os.environ.get("ASSETEX_MODE") or "prod").strip().lower()
        default_sync = "FULL" if mode == "prod" else "NORMAL"
        sync = (os.environ.get("ASSETEX_SQLITE_SYNCHRONOUS") or default_sync).strip().upper()
        if sync not in {"OFF", "NORMAL", "FULL", "EXTRA"}:
            sync = default_sync

        connect_ms = max(0, _env_int("ASSETEX_SQLITE_CONNECT_TIMEOUT_MS", 30_000))
        base_ms = max(1, _env_int("ASSETEX_SQLITE_WRITE_BACKOFF_BASE_MS", 5))
        return SqliteTuning(
            synchronous=sync,
            connect_timeout_ms=connect_ms,
            busy_timeout_ms=max(0, _env_int("ASSETEX_SQLITE_BUSY_TIMEOUT_MS", connect_ms)),
            write_deadline_ms=max(250, _env_int("ASSETEX_SQLITE_WRITE_DEADLINE_MS", 30_000)),
            backoff_base_ms=base_ms,
            backoff_max_ms=max(base_ms, _env_int("ASSETEX_SQLITE_WRITE_BACKOFF_MAX_MS", 250)),
            allow_non_wal=_env_flag("ASSETEX_SQLITE_ALLOW_NON_WAL"),
        )


def _is_lock_contention(e: sqlite3.OperationalError) -> bool:
    msg = str(e).lower()
    return "locked" in msg or "busy" in msg


class SqliteDB:
    """One SQLite file holding the market snapshot and its event log.

    Connections are opened per operation and never shared between threads.
    Writers serialize on BEGIN IMMEDIATE; contention is retried with jittered
    exponential backoff until ASSETEX_SQLITE_WRITE_DEADLINE_MS, then raised.
    """

    def __init__(self, *, path: str) -> None:
        self.path = str(path)
        self.tuning = SqliteTuning.from_env()

    def _connect(self) -> sqlite3.Connection:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        t = self.tuning
        con = sqlite3.connect(
            self.path,
            timeout=t.connect_timeout_ms / 1000.0,
            isolation_level=None,  # explicit BEGIN/COMMIT
            check_same_thread=False,
        )
        con.row_factory = sqlite3.Row
        try:
            row = con.execute("PRAGMA journal_mode=WAL;").fetchone()
            journal = str(row[0]).strip().lower() if row is not None else ""
            if journal != "wal" and not t.allow_non_wal:
                raise RuntimeError(f"sqlite journal_mode is {journal!r}, expected 'wal'")
            con.execute(f"PRAGMA synchronous={t.synchronous};")
            con.execute("PRAGMA foreign_keys=ON;")
            con.execute("PRAGMA temp_store=MEMORY;")
            con.execute(f"PRAGMA busy_timeout={t.busy_timeout_ms};")
        except Exception:
            con.close()
            raise
        return con

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    def _begin_immediate(self, con: sqlite3.Connection) -> None:
        t = self.tuning
        deadline = _now_ms() + t.write_deadline_ms
        attempt = 0
        while True:
            try:
                con.execute("BEGIN IMMEDIATE;")
                return
            except sqlite3.OperationalError as e:
                if not _is_lock_contention(e) or _now_ms() >= deadline:
                    raise
            delay_ms = min(t.backoff_max_ms, t.backoff_base_ms * (2 ** min(attempt, 8)))
            time.sleep(delay_ms * (0.5 + random.random()) / 1000.0)
            attempt += 1

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """Run the body in one write transaction; rollback on any exception."""
        with self.connection() as con:
            self._begin_immediate(con)
            try:
                yield con
            except BaseException:
                con.execute("ROLLBACK;")
                raise
            con.execute("COMMIT;")

    def init_schema(self) -> None:
        with self.write_tx() as con:
            for stmt in _SCHEMA:
                con.execute(stmt)
            row = con.execute("SELECT value FROM meta WHERE key='schema_version';").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(SCHEMA_VERSION),))
                return
            have = str(row["value"])
            if have != str(SCHEMA_VERSION):
                raise RuntimeError(f"sqlite schema_version is {have}, this build expects {SCHEMA_VERSION}")


class SqliteLedgerStore:
    """Snapshot + event log on top of SqliteDB.

    The snapshot is a single row. commit() replaces it and appends the
    operation's events in the same transaction, so a reader never sees a
    state without the events that produced it.
    """

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db
        self._db.init_schema()

    def exists(self) -> bool:
        with self._db.connection() as con:
            return con.execute("SELECT 1 FROM ledger_state WHERE id=1;").fetchone() is not None

    def read(self) -> Json:
        with self._db.connection() as con:
            row = con.execute("SELECT state_json FROM ledger_state WHERE id=1;").fetchone()
        if row is None:
            raise FileNotFoundError(f"no market snapshot in {self._db.path}")
        st = json.loads(str(row["state_json"]))
        if not isinstance(st, dict):
            raise ValueError("market snapshot is not a JSON object")
        return st

    def write(self, st: Json) -> None:
        """Replace the snapshot without appending events (genesis)."""
        self.commit(st)

    def commit(self, st: Json, events: Sequence[MarketEvent] = ()) -> None:
        if not isinstance(st, dict):
            raise ValueError("market snapshot must be a dict")
        snapshot = (int(st.get("height", 0)), _canon_json(st), _now_ms())
        rows = [(ev.seq, ev.kind, _canon_json(ev.data), ev.ts_ms) for ev in events]
        with self._db.write_tx() as con:
            con.execute(
                """
                INSERT INTO ledger_state(id, height, state_json, updated_ts_ms)
                VALUES(1, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                  height=excluded.height,
                  state_json=excluded.state_json,
                  updated_ts_ms=excluded.updated_ts_ms;
                """,
                snapshot,
            )
            if rows:
                con.executemany("INSERT INTO events(seq, kind, data_json, ts_ms) VALUES(?, ?, ?, ?);", rows)

    def read_events(self, *, since: int = 0, limit: int = 100) -> List[MarketEvent]:
        with self._db.connection() as con:
            rows = con.execute(
                "SELECT seq, kind, data_json, ts_ms FROM events WHERE seq > ? ORDER BY seq LIMIT ?;",
                (int(since), max(0, int(limit))),
            ).fetchall()
        return [
            MarketEvent(seq=int(r["seq"]), kind=str(r["kind"]), data=json.loads(str(r["data_json"])), ts_ms=int(r["ts_ms"]))
            for r in rows
        ]
