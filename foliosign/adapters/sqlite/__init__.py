# foliosign/adapters/sqlite/__init__.py
from __future__ import annotations

import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import (
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    event,
    insert,
    or_,
    select,
    text,
    update,
)
from sqlalchemy.engine import Engine

from foliosign.core.errors import ConcurrentModificationError, DocumentNotFoundError

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

    connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}
    engine = create_engine(db_url, future=True, pool_pre_ping=True, connect_args=connect_args)

    # Apply pragmas per-connection
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):  # type: ignore
        if isinstance(dbapi_connection, sqlite3.Connection):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA synchronous=NORMAL;")
            cursor.execute("PRAGMA temp_store=MEMORY;")
            cursor.close()

    return engine

# ---- Schema via SQLAlchemy Core ---------------------------------------------

metadata = MetaData()

documents = Table(
    "documents",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", Text, nullable=False),
    Column("storage_key", Text, nullable=False),
    Column("owner_id", String, nullable=True),    # NULL = guest document
    Column("visitor_id", String, nullable=True),  # last signer (analytics only)
    Column("version", Integer, nullable=False, default=0),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
    # Held by one signer between claim and commit/release
    Column("lease_token", String, nullable=True),
    Column("lease_expires_at", DateTime, nullable=True),
)

LEASE_COLUMNS = ("lease_token", "lease_expires_at")

Index("idx_documents_owner", documents.c.owner_id)


def _utcnow() -> datetime:
    # naive UTC; SQLite DateTime columns do not keep tzinfo
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _row(mapping) -> Dict[str, Any]:
    row = dict(mapping)
    for k in LEASE_COLUMNS:
        row.pop(k, None)
    for k in ("created_at", "updated_at"):
        if isinstance(row.get(k), datetime):
            row[k] = row[k].isoformat()
    return row


def _raise_missing_or_conflict(conn, doc_id: str, expected_version: int) -> None:
    exists = conn.execute(
        select(documents.c.id).where(documents.c.id == doc_id)
    ).first()
    if not exists:
        raise DocumentNotFoundError(f"Document {doc_id} not found", doc_id=doc_id)
    raise ConcurrentModificationError(doc_id, expected_version)

# ---- Adapter implementation --------------------------------------------------

@dataclass(frozen=True)
class SqliteAdapter:
    engine: Engine

    @classmethod
    def from_url(cls, db_url: str = "sqlite:///data/foliosign.db") -> "SqliteAdapter":
        eng = make_engine(db_url)
        metadata.create_all(eng)
        return cls(engine=eng)

    def create_document(self, name: str, storage_key: str, owner_id: Optional[str] = None) -> Dict[str, Any]:
        doc_id = str(uuid4())
        now = _utcnow()
        with self.engine.begin() as conn:
            conn.execute(
                insert(documents).values(
                    id=doc_id,
                    name=name,
                    storage_key=storage_key,
                    owner_id=owner_id or None,
                    visitor_id=None,
                    version=0,
                    created_at=now,
                    updated_at=now,
                )
            )
        return self.get_document(doc_id)  # type: ignore[return-value]

    def get_document(self, doc_id: str) -> Optional[Dict[str, Any]]:
        with self.engine.begin() as conn:
            row = conn.execute(
                select(documents).where(documents.c.id == doc_id)
            ).mappings().first()
            return _row(row) if row else None

    def list_documents(self, owner_id: str) -> List[Dict[str, Any]]:
        with self.engine.begin() as conn:
            rows = conn.execute(
                select(documents)
                .where(documents.c.owner_id == owner_id)
                .order_by(documents.c.created_at.desc())
            ).mappings().all()
            return [_row(r) for r in rows]

    # ---- Signing lease: claim -> (commit | release), each one UPDATE ----

    def claim_signature(
        self, doc_id: str, expected_version: int, lease_token: str, lease_seconds: int
    ) -> Dict[str, Any]:
        now = _utcnow()
        with self.engine.begin() as conn:
            res = conn.execute(
                update(documents)
                .where(documents.c.id == doc_id)
                .where(documents.c.version == expected_version)
                .where(or_(documents.c.lease_token.is_(None), documents.c.lease_expires_at < now))
                .values(
                    version=documents.c.version + 1,
                    lease_token=lease_token,
                    lease_expires_at=now + timedelta(seconds=lease_seconds),
                )
            )
            if res.rowcount == 0:
                _raise_missing_or_conflict(conn, doc_id, expected_version)
        return self.get_document(doc_id)  # type: ignore[return-value]

    def commit_signature(
        self, doc_id: str, lease_token: str, claimed_version: int, visitor_id: Optional[str]
    ) -> Dict[str, Any]:
        with self.engine.begin() as conn:
            res = conn.execute(
                update(documents)
                .where(documents.c.id == doc_id)
                .where(documents.c.lease_token == lease_token)
                .values(
                    visitor_id=visitor_id,
                    updated_at=_utcnow(),
                    lease_token=None,
                    lease_expires_at=None,
                )
            )
            if res.rowcount == 0:
                _raise_missing_or_conflict(conn, doc_id, claimed_version)
        return self.get_document(doc_id)  # type: ignore[return-value]

    def release_signature(self, doc_id: str, lease_token: str) -> bool:
        with self.engine.begin() as conn:
            res = conn.execute(
                update(documents)
                .where(documents.c.id == doc_id)
                .where(documents.c.lease_token == lease_token)
                .values(
                    version=documents.c.version - 1,
                    lease_token=None,
                    lease_expires_at=None,
                )
            )
            return res.rowcount > 0

    def delete_document(self, doc_id: str) -> bool:
        with self.engine.begin() as conn:
            res = conn.execute(delete(documents).where(documents.c.id == doc_id))
            return res.rowcount > 0

    def ping(self) -> None:
        with self.engine.begin() as conn:
            conn.execute(text("SELECT 1"))
