# services/api/adapters/sqlite/__init__.py
from __future__ import annotations

import json
import os
import re
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, List, Tuple
from uuid import uuid4

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    select,
    insert,
    update,
    event,
)
from sqlalchemy.engine import Engine

from models.drafts import AttachedFile
from models.row import SerialCounters

from ..base import StoreError

# ---- Engine (SQLite) with WAL & pragmas -------------------------------------

def _ensure_dir(path: str):
    d = os.path.dirname(path)
    if d and not os.path.isdir(d):
        os.makedirs(d, exist_ok=True)

def make_engine(db_url: str) -> Engine:
    # Create data dir if sqlite file
    if db_url.startswith("sqlite:///"):
        file_path = db_url.replace("sqlite:///", "", 1)
        _ensure_dir(file_path)

    engine = create_engine(db_url, future=True, pool_pre_ping=True)

    # Apply pragmas per-connection
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):  # type: ignore
        if isinstance(dbapi_connection, sqlite3.Connection):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA synchronous=NORMAL;")
            cursor.close()

    return engine

# ---- Schema via SQLAlchemy Core ---------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


metadata = MetaData()

master_entries = Table(
    "master_entries",
    metadata,
    Column("entry_id", Integer, primary_key=True, autoincrement=True),
    Column("document_type", String, nullable=False, default=""),
    Column("category", String, nullable=False, default=""),
)

document_rows = Table(
    "document_rows",
    metadata,
    Column("row_id", Integer, primary_key=True, autoincrement=True),
    Column("serial", String, nullable=False),
    Column("row_json", Text, nullable=False),
    Column("created_at", DateTime, nullable=False, default=_utcnow),
)

serial_counters = Table(
    "serial_counters",
    metadata,
    Column("category", String, primary_key=True),  # personal / company / director
    Column("next_value", Integer, nullable=False, default=1),
)

uploaded_files = Table(
    "uploaded_files",
    metadata,
    Column("file_id", String, primary_key=True),
    Column("folder_id", String, nullable=False, default=""),
    Column("name", String, nullable=False),
    Column("mime_type", String, nullable=False),
    Column("size", Integer, nullable=False),
    Column("path", Text, nullable=False),
    Column("created_at", DateTime, nullable=False, default=_utcnow),
)

_COUNTER_SLOTS = ("personal", "company", "director")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_segment(value: str, fallback: str) -> str:
    v = _UNSAFE_CHARS.sub("_", (value or "").strip())[:120]
    return v or fallback


# ---- Adapter implementation --------------------------------------------------

@dataclass(frozen=True)
class SqliteAdapter:
    """
    Local development backend.

    Rows, counters and master entries live in SQLite; uploaded files are
    written under `<data_dir>/uploads/<folder_id>/` and addressed by file URI.
    """
    engine: Engine
    data_dir: Path

    backend_name = "sqlite"

    @classmethod
    def from_url(cls, db_url: str = "sqlite:///data/register.db", data_dir: str = "data") -> "SqliteAdapter":
        eng = make_engine(db_url)
        metadata.create_all(eng)
        return cls(engine=eng, data_dir=Path(data_dir))

    async def _run(self, what: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return await run_in_threadpool(fn, *args)
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"{what} failed: {e}") from e

    # ---- sync helpers ----

    def seed_master(self, entries: Iterable[Tuple[str, str]]) -> None:
        """Add (document_type, category) pairs to the master vocabulary."""
        rows = [dict(document_type=t or "", category=c or "") for t, c in entries]
        if rows:
            with self.engine.begin() as conn:
                conn.execute(master_entries.insert(), rows)

    def list_rows(self) -> List[List[str]]:
        with self.engine.begin() as conn:
            res = conn.execute(
                select(document_rows.c.row_json).order_by(document_rows.c.row_id.asc())
            ).all()
        return [json.loads(r.row_json) for r in res]

    def _read_master(self) -> List[List[str]]:
        with self.engine.begin() as conn:
            res = conn.execute(
                select(master_entries.c.document_type, master_entries.c.category)
                .order_by(master_entries.c.entry_id.asc())
            ).all()
        return [["Document Type", "Category"]] + [[r.document_type, r.category] for r in res]

    def _read_serials(self) -> SerialCounters:
        with self.engine.begin() as conn:
            res = conn.execute(select(serial_counters.c.category, serial_counters.c.next_value)).all()
        found = {r.category: int(r.next_value) for r in res}
        return SerialCounters(**{slot: found.get(slot, 1) for slot in _COUNTER_SLOTS})

    def _write_serials(self, counters: SerialCounters) -> None:
        values = counters.to_dict()
        with self.engine.begin() as conn:
            existing = {
                r.category
                for r in conn.execute(select(serial_counters.c.category)).all()
            }
            for slot, value in values.items():
                if slot in existing:
                    conn.execute(
                        update(serial_counters)
                        .where(serial_counters.c.category == slot)
                        .values(next_value=value)
                    )
                else:
                    conn.execute(insert(serial_counters).values(category=slot, next_value=value))

    def _upload(self, file: AttachedFile, folder_id: str) -> str:
        file_id = uuid4().hex
        folder = self.data_dir / "uploads" / _safe_segment(folder_id, "default")
        folder.mkdir(parents=True, exist_ok=True)
        path = (folder / f"{file_id}_{_safe_segment(file.name, 'file')}").resolve()
        path.write_bytes(file.content)

        with self.engine.begin() as conn:
            conn.execute(
                insert(uploaded_files).values(
                    file_id=file_id,
                    folder_id=folder_id or "",
                    name=file.name,
                    mime_type=file.mime_type,
                    size=file.size,
                    path=str(path),
                    created_at=_utcnow(),
                )
            )
        return path.as_uri()

    def _insert(self, row: List[str]) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                insert(document_rows).values(
                    serial=row[1] if len(row) > 1 else "",
                    row_json=json.dumps(row),
                    created_at=_utcnow(),
                )
            )

    def _ping(self) -> None:
        with self.engine.begin() as conn:
            conn.execute(select(1)).first()

    # ---- DocumentStore API ----

    async def fetch_master(self) -> List[List[str]]:
        return await self._run("Fetch master data", self._read_master)

    async def get_next_serials(self) -> SerialCounters:
        return await self._run("Fetch serial numbers", self._read_serials)

    async def update_serials(self, counters: SerialCounters) -> None:
        await self._run("Update serial numbers", self._write_serials, counters)

    async def upload_file(self, file: AttachedFile, folder_id: str) -> str:
        return await self._run(f"Upload of {file.name}", self._upload, file, folder_id)

    async def insert_row(self, row: List[str]) -> None:
        await self._run("Insert document", self._insert, row)

    async def ping(self) -> None:
        await self._run("Ping", self._ping)


__all__ = ["SqliteAdapter", "make_engine", "metadata"]
