"""
Tenant-scoped document store on top of ``databases`` + SQLAlchemy Core.

Every document lives at ``tenant/collection/doc_id`` as a JSON blob with a
version counter. ``DocumentStore.transactionally`` gives optimistic
transactions: reads record the version they saw, writes are buffered and
applied at commit with a version check, and a conflict re-runs the whole
callback.
"""
from __future__ import annotations

import asyncio
import copy
import json
import random
import re
import sqlite3
from contextlib import nullcontext
from typing import Any, Awaitable, Callable, NamedTuple, Optional, TypeVar

import structlog
from databases import Database
from sqlalchemy import and_, select
from sqlalchemy.dialects import postgresql, sqlite

from jobdesk import config, models
from jobdesk.errors import (
    InvalidTenantError,
    NotFoundError,
    TransactionFailedError,
    TransientConflictError,
)
from jobdesk.ids import now_ms

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_TENANT_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


class _DeleteField:
    def __repr__(self) -> str:
        return "DELETE_FIELD"


# sentinel for Transaction.update(): drop the key from the stored document
DELETE_FIELD = _DeleteField()


def validate_tenant_id(tenant_id: str) -> str:
    if not isinstance(tenant_id, str) or not _TENANT_RE.match(tenant_id):
        raise InvalidTenantError(f"invalid tenant id: {tenant_id!r}")
    return tenant_id


def remove_none(obj: Any) -> Any:
    """Recursively drop dict keys and list entries whose value is None."""
    if isinstance(obj, dict):
        return {k: remove_none(v) for k, v in obj.items() if v is not None}
    if isinstance(obj, (list, tuple)):
        return [remove_none(v) for v in obj if v is not None]
    return obj


class DocRef(NamedTuple):
    tenant_id: str
    collection: str
    doc_id: str

    @property
    def path(self) -> str:
        return f"{self.tenant_id}/{self.collection}/{self.doc_id}"


# serialization_failure, deadlock_detected
_RETRYABLE_SQLSTATES = {"40001", "40P01"}


def _is_lock_error(exc: BaseException) -> bool:
    if isinstance(exc, sqlite3.OperationalError):
        msg = str(exc).lower()
        return "database is locked" in msg or "database is busy" in msg
    return getattr(exc, "sqlstate", None) in _RETRYABLE_SQLSTATES


def _backoff(attempt: int) -> float:
    delay = min(config.TXN_RETRY_BASE * (2 ** attempt), config.TXN_RETRY_CAP)
    return delay + random.uniform(0, delay * 0.25)


class Transaction:
    """Handle passed to the callback of ``DocumentStore.transactionally``."""

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self._seen: dict[DocRef, Optional[int]] = {}
        self._cache: dict[DocRef, Optional[dict]] = {}
        # None marks a buffered delete
        self._writes: dict[DocRef, Optional[dict]] = {}

    async def read(self, ref: DocRef) -> Optional[dict]:
        if ref in self._writes:
            return copy.deepcopy(self._writes[ref])
        if ref in self._cache:
            return copy.deepcopy(self._cache[ref])
        row = await self._store._fetch(ref)
        if row is None:
            self._seen[ref] = None
            self._cache[ref] = None
            return None
        data = json.loads(row["data"])
        self._seen[ref] = int(row["version"])
        self._cache[ref] = data
        return copy.deepcopy(data)

    def write(self, ref: DocRef, data: dict) -> None:
        self._writes[ref] = remove_none(dict(data))

    def update(self, ref: DocRef, partial: dict) -> None:
        if ref in self._writes:
            base = self._writes[ref]
        elif ref in self._cache:
            base = self._cache[ref]
        else:
            raise RuntimeError(f"update() of {ref.path} without a prior read() in this transaction")
        if base is None:
            raise NotFoundError(ref.doc_id)
        merged = dict(base)
        for key, value in remove_none(dict(partial)).items():
            if value is DELETE_FIELD:
                merged.pop(key, None)
            else:
                merged[key] = value
        self._writes[ref] = merged

    def delete(self, ref: DocRef) -> None:
        if ref not in self._seen:
            raise RuntimeError(f"delete() of {ref.path} without a prior read() in this transaction")
        self._writes[ref] = None

    async def _commit(self) -> None:
        ts = now_ms()
        for ref, data in self._writes.items():
            if data is None:
                if self._seen[ref] is None:
                    ok = await self._store._fetch(ref) is None
                else:
                    ok = await self._store._delete_row(ref, self._seen[ref])
            elif ref not in self._seen:
                ok = await self._store._upsert_row(ref, json.dumps(data), ts)
            elif self._seen[ref] is None:
                ok = await self._store._insert_row(ref, json.dumps(data), ts)
            else:
                ok = await self._store._update_row(ref, json.dumps(data), self._seen[ref], ts)
            if not ok:
                raise TransientConflictError(f"{ref.path} changed during transaction")
        # read-only documents must still be at the version we based decisions on
        for ref, version in self._seen.items():
            if ref in self._writes:
                continue
            row = await self._store._fetch(ref)
            current = int(row["version"]) if row is not None else None
            if current != version:
                raise TransientConflictError(f"{ref.path} changed during transaction")


class DocumentStore:
    def __init__(self, database: Database):
        dialect = database.url.dialect
        if dialect.startswith("postgres"):
            self._insert = postgresql.insert
        elif dialect == "sqlite":
            self._insert = sqlite.insert
        else:
            raise ValueError(f"unsupported database dialect: {dialect}")
        self.database = database
        # SQLite allows one writer; two open transactions upgrading their
        # shared locks deadlock, so transactions run one at a time there
        self._write_lock = asyncio.Lock() if dialect == "sqlite" else None

    @staticmethod
    def doc(tenant_id: str, collection: str, doc_id: str) -> DocRef:
        validate_tenant_id(tenant_id)
        if not doc_id:
            raise ValueError("empty document id")
        return DocRef(tenant_id, collection, str(doc_id))

    # --- plain reads ---

    async def get(self, ref: DocRef) -> Optional[dict]:
        row = await self._fetch(ref)
        return json.loads(row["data"]) if row is not None else None

    async def list_docs(self, tenant_id: str, collection: str) -> list[dict]:
        validate_tenant_id(tenant_id)
        tbl = models.Document.__table__
        rows = await self.database.fetch_all(
            select(tbl.c.data)
            .where(and_(tbl.c.tenant_id == tenant_id, tbl.c.collection == collection))
            .order_by(tbl.c.id.asc())
        )
        return [json.loads(r["data"]) for r in rows]

    # --- transactions ---

    async def transactionally(
        self,
        fn: Callable[[Transaction], Awaitable[T]],
        *,
        max_attempts: Optional[int] = None,
    ) -> T:
        attempts = max_attempts or config.TXN_MAX_ATTEMPTS
        last_exc: Optional[TransientConflictError] = None
        for attempt in range(attempts):
            tx = Transaction(self)
            try:
                async with self._write_lock or nullcontext():
                    async with self.database.transaction():
                        result = await fn(tx)
                        await tx._commit()
                return result
            except TransientConflictError as e:
                last_exc = e
            except Exception as e:
                # busy/locked from another process, or a PostgreSQL serialization failure
                if not _is_lock_error(e):
                    raise
                last_exc = TransientConflictError(f"database busy: {e}")
                last_exc.__cause__ = e
            if attempt == attempts - 1:
                break
            delay = _backoff(attempt)
            logger.warning(
                "transaction_conflict_retry",
                attempt=attempt + 1,
                delay=round(delay, 3),
                error=str(last_exc),
            )
            await asyncio.sleep(delay)
        raise TransactionFailedError(f"transaction failed after {attempts} attempts") from last_exc

    # --- row level ---

    @staticmethod
    def _where(ref: DocRef):
        tbl = models.Document.__table__
        return and_(
            tbl.c.tenant_id == ref.tenant_id,
            tbl.c.collection == ref.collection,
            tbl.c.doc_id == ref.doc_id,
        )

    async def _fetch(self, ref: DocRef):
        tbl = models.Document.__table__
        return await self.database.fetch_one(
            select(tbl.c.data, tbl.c.version).where(self._where(ref))
        )

    async def _update_row(self, ref: DocRef, payload: str, expected: int, ts: int) -> bool:
        tbl = models.Document.__table__
        version = await self.database.fetch_val(
            tbl.update()
            .where(and_(self._where(ref), tbl.c.version == expected))
            .values(data=payload, version=expected + 1, updated_at=ts)
            .returning(tbl.c.version)
        )
        return version is not None

    async def _insert_row(self, ref: DocRef, payload: str, ts: int) -> bool:
        tbl = models.Document.__table__
        stmt = (
            self._insert(tbl)
            .values(
                tenant_id=ref.tenant_id,
                collection=ref.collection,
                doc_id=ref.doc_id,
                data=payload,
                version=1,
                created_at=ts,
                updated_at=ts,
            )
            .on_conflict_do_nothing(index_elements=["tenant_id", "collection", "doc_id"])
            .returning(tbl.c.version)
        )
        return await self.database.fetch_val(stmt) is not None

    async def _upsert_row(self, ref: DocRef, payload: str, ts: int) -> bool:
        # blind write: create, or overwrite whatever is there
        if await self._insert_row(ref, payload, ts):
            return True
        tbl = models.Document.__table__
        await self.database.execute(
            tbl.update()
            .where(self._where(ref))
            .values(data=payload, version=tbl.c.version + 1, updated_at=ts)
        )
        return True

    async def _delete_row(self, ref: DocRef, expected: int) -> bool:
        tbl = models.Document.__table__
        deleted = await self.database.fetch_val(
            tbl.delete()
            .where(and_(self._where(ref), tbl.c.version == expected))
            .returning(tbl.c.id)
        )
        return deleted is not None
