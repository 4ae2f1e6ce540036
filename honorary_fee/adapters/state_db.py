from __future__ import annotations

"""
Honorary fee SQLite vault store
===============================

Purpose
-------
Durable persistence for each vault's Policy, Progress and HonoraryPosition.
Records are stored as their fixed-width binary layouts in a single table keyed
by (vault, kind), so what is on disk is exactly what `to_bytes()` produced.

Design notes
------------
- Single-writer, many-reader friendly via WAL.
- Schema versioned in a `meta` table and created on open.
- `save()` writes all records of a call in one transaction.

Example
-------
    store = SQLiteVaultStore("honorary_fee.db")
    engine = DistributionEngine(store=store, custody=custody, claimer=amm)
    ...
    store.load_progress("vault-1")
"""

import contextlib
import sqlite3
import threading
import time
from typing import Iterator, List, Optional

from ..state.policy import Policy
from ..state.position import HonoraryPosition
from ..state.progress import Progress
from ..store import KIND_POLICY, KIND_POSITION, KIND_PROGRESS, encode_records

# ---- Errors -----------------------------------------------------------------


class StateDBError(RuntimeError):
    """Base error for the vault state DB."""


class SchemaMismatch(StateDBError):
    """The database was written by an incompatible schema version."""


def _now_s() -> int:
    return int(time.time())


# ---- Main adapter ------------------------------------------------------------


class SQLiteVaultStore:
    """
    SQLite implementation of the VaultStore protocol.

    Thread-safe for simple concurrent access via an internal RLock.
    """

    SCHEMA_VERSION = 1

    def __init__(self, path: str) -> None:
        """
        Open or create the SQLite database.

        `path` may be a filesystem path, ":memory:", or a URI
        (e.g. "file:honorary.db?mode=rwc").
        """
        uri = path.startswith("file:")
        self._db = sqlite3.connect(
            path,
            uri=uri,
            check_same_thread=False,
            isolation_level=None,  # autocommit; we'll manage transactions
        )
        self._db.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._apply_pragmas()
        with self.tx():
            self._migrate()

    # -- lifecycle -------------------------------------------------------------

    def close(self) -> None:
        with self._lock:
            self._db.close()

    def __enter__(self) -> "SQLiteVaultStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @contextlib.contextmanager
    def tx(self) -> Iterator[None]:
        """
        Transaction context manager.

        Usage:
            with store.tx():
                store._put(...)
        """
        with self._lock:
            try:
                self._db.execute("BEGIN IMMEDIATE")
                yield
                self._db.execute("COMMIT")
            except Exception:
                try:
                    self._db.execute("ROLLBACK")
                finally:
                    raise

    def _apply_pragmas(self) -> None:
        cur = self._db.cursor()
        cur.execute("PRAGMA journal_mode=WAL")
        cur.execute("PRAGMA synchronous=NORMAL")
        cur.execute("PRAGMA temp_store=MEMORY")
        cur.close()

    # -- schema ----------------------------------------------------------------

    def _migrate(self) -> None:
        cur = self._db.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """
        )
        cur.execute("SELECT value FROM meta WHERE key='schema_version'")
        row = cur.fetchone()
        if not row:
            cur.execute(
                "INSERT INTO meta(key, value) VALUES('schema_version', ?)",
                (str(self.SCHEMA_VERSION),),
            )
        elif int(row["value"]) != self.SCHEMA_VERSION:
            raise SchemaMismatch(
                f"schema version {row['value']} != expected {self.SCHEMA_VERSION}"
            )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS vault_records (
                vault       TEXT NOT NULL,
                kind        TEXT NOT NULL,   -- 'policy' | 'progress' | 'position'
                data        BLOB NOT NULL,
                updated_at  INTEGER NOT NULL,
                PRIMARY KEY (vault, kind)
            )
            """
        )
        cur.close()

    def schema_version(self) -> int:
        row = self._db.execute("SELECT value FROM meta WHERE key='schema_version'").fetchone()
        return int(row["value"])

    # ---- records -------------------------------------------------------------

    def _get(self, vault: str, kind: str) -> Optional[bytes]:
        with self._lock:
            row = self._db.execute(
                "SELECT data FROM vault_records WHERE vault=? AND kind=?", (vault, kind)
            ).fetchone()
        return None if row is None else bytes(row["data"])

    def _put(self, vault: str, kind: str, data: bytes) -> None:
        self._db.execute(
            """
            INSERT INTO vault_records(vault, kind, data, updated_at)
            VALUES(?,?,?,?)
            ON CONFLICT(vault, kind) DO UPDATE SET
                data=excluded.data,
                updated_at=excluded.updated_at
            """,
            (vault, kind, sqlite3.Binary(data), _now_s()),
        )

    def load_policy(self, vault: str) -> Optional[Policy]:
        raw = self._get(vault, KIND_POLICY)
        return None if raw is None else Policy.from_bytes(raw)

    def load_progress(self, vault: str) -> Optional[Progress]:
        raw = self._get(vault, KIND_PROGRESS)
        return None if raw is None else Progress.from_bytes(raw)

    def load_position(self, vault: str) -> Optional[HonoraryPosition]:
        raw = self._get(vault, KIND_POSITION)
        return None if raw is None else HonoraryPosition.from_bytes(raw)

    def save(
        self,
        vault: str,
        *,
        policy: Optional[Policy] = None,
        progress: Optional[Progress] = None,
        position: Optional[HonoraryPosition] = None,
    ) -> None:
        blobs = encode_records(policy=policy, progress=progress, position=position)
        with self.tx():
            for kind, blob in blobs.items():
                self._put(vault, kind, blob)

    def vaults(self) -> List[str]:
        with self._lock:
            rows = self._db.execute(
                "SELECT vault FROM vault_records WHERE kind=? ORDER BY vault", (KIND_POLICY,)
            ).fetchall()
        return [str(r["vault"]) for r in rows]


__all__ = ["StateDBError", "SchemaMismatch", "SQLiteVaultStore"]
