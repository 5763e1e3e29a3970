"""
Document database abstraction for the social features.

The interface follows the document-database calls the friends and schedule
features need: add/set/get/update/delete documents in named collections,
filtered queries, and ``watch`` subscriptions that receive the full matching
snapshot immediately and again whenever it changes.

Implementations: Firestore (production), SQLAlchemy (self-hosted) and an
in-memory store for development and tests.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Protocol, Sequence

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter
from sqlalchemy import JSON, Column, Float, String, create_engine, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from portal.errors import DocumentNotFound, ValidationError

logger = logging.getLogger(__name__)

SUPPORTED_OPS = ("==", "array-contains")


@dataclass(frozen=True)
class Filter:
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in SUPPORTED_OPS:
            raise ValidationError(f"Unsupported filter operator: {self.op}")

    def matches(self, data: dict) -> bool:
        current = data.get(self.field)
        if self.op == "==":
            return current == self.value
        return isinstance(current, list) and self.value in current


def where(field_path: str, op: str, value: Any) -> Filter:
    return Filter(field_path, op, value)


@dataclass
class Document:
    id: str
    data: dict


SnapshotCallback = Callable[[list[Document]], None]
Unsubscribe = Callable[[], None]


class DocumentStore(Protocol):
    """Interface for document database access."""

    def add(self, collection: str, data: dict) -> str:
        ...

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        ...

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        ...

    def delete(self, collection: str, doc_id: str) -> None:
        ...

    def query(self, collection: str, *filters: Filter) -> list[Document]:
        ...

    def watch(
        self,
        collection: str,
        filters: Sequence[Filter],
        callback: SnapshotCallback,
    ) -> Unsubscribe:
        ...


@dataclass
class _Watch:
    collection: str
    filters: tuple[Filter, ...]
    callback: SnapshotCallback
    last: Optional[list[Document]] = None
    active: bool = True
    lock: threading.RLock = field(default_factory=threading.RLock)


class _WatchRegistry:
    """
    In-process snapshot fan-out used by the in-memory and SQL stores.

    Listeners are re-evaluated after every write to their collection and only
    called when their result set actually changed.
    """

    def __init__(self, run_query: Callable[..., list[Document]]):
        self._run_query = run_query
        self._watches: Dict[str, _Watch] = {}
        self._lock = threading.Lock()

    def add(
        self,
        collection: str,
        filters: Sequence[Filter],
        callback: SnapshotCallback,
    ) -> Unsubscribe:
        watch_id = uuid.uuid4().hex
        entry = _Watch(collection=collection, filters=tuple(filters), callback=callback)
        with self._lock:
            self._watches[watch_id] = entry
        self._deliver(entry)

        def unsubscribe() -> None:
            with self._lock:
                removed = self._watches.pop(watch_id, None)
            if removed:
                removed.active = False

        return unsubscribe

    def notify(self, collection: str) -> None:
        with self._lock:
            targets = [w for w in self._watches.values() if w.collection == collection]
        for entry in targets:
            self._deliver(entry)

    def _deliver(self, entry: _Watch) -> None:
        with entry.lock:
            if not entry.active:
                return
            snapshot = self._run_query(entry.collection, *entry.filters)
            if snapshot == entry.last:
                return
            entry.last = snapshot
            try:
                entry.callback(copy.deepcopy(snapshot))
            except Exception:
                logger.exception("Snapshot listener on %s failed", entry.collection)

    def __len__(self) -> int:
        with self._lock:
            return len(self._watches)


class InMemoryDocumentStore:
    """Simple in-memory document store for development and tests."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = {}
        self._lock = threading.RLock()
        self.watches = _WatchRegistry(self.query)

    def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex
        self.set(collection, doc_id, data)
        return doc_id

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        with self._lock:
            self.collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)
        self.watches.notify(collection)

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with self._lock:
            data = self.collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(data) if data is not None else None

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        with self._lock:
            docs = self.collections.get(collection, {})
            if doc_id not in docs:
                raise DocumentNotFound(f"{collection}/{doc_id} does not exist")
            docs[doc_id].update(copy.deepcopy(fields))
        self.watches.notify(collection)

    def delete(self, collection: str, doc_id: str) -> None:
        with self._lock:
            removed = self.collections.get(collection, {}).pop(doc_id, None)
        if removed is not None:
            self.watches.notify(collection)

    def query(self, collection: str, *filters: Filter) -> list[Document]:
        with self._lock:
            docs = list(self.collections.get(collection, {}).items())
        return [
            Document(id=doc_id, data=copy.deepcopy(data))
            for doc_id, data in docs
            if all(f.matches(data) for f in filters)
        ]

    def watch(
        self,
        collection: str,
        filters: Sequence[Filter],
        callback: SnapshotCallback,
    ) -> Unsubscribe:
        return self.watches.add(collection, filters, callback)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.collections.clear()


_DATETIME_TAG = "$datetime"


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return {_DATETIME_TAG: value.isoformat()}
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    return value


def _decode(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value) == {_DATETIME_TAG}:
            return datetime.fromisoformat(value[_DATETIME_TAG])
        return {k: _decode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_decode(v) for v in value]
    return value


Base = declarative_base()


class DocumentRow(Base):
    __tablename__ = "documents"

    collection = Column(String, primary_key=True)
    doc_id = Column(String, primary_key=True)
    data = Column(JSON, nullable=False)
    created_at = Column(Float, nullable=False, index=True)
    updated_at = Column(Float, nullable=False)


class SqlDocumentStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).

    Queries are evaluated in Python over the collection's rows; watches only
    see writes made through this process.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("SOCIAL_DATABASE_URL is required for SqlDocumentStore")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)
        self.watches = _WatchRegistry(self.query)

    def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex
        self.set(collection, doc_id, data)
        return doc_id

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        now = time.time()
        with self.Session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            if row:
                row.data = _encode(data)
                row.updated_at = now
            else:
                session.add(
                    DocumentRow(
                        collection=collection,
                        doc_id=doc_id,
                        data=_encode(data),
                        created_at=now,
                        updated_at=now,
                    )
                )
            session.commit()
        self.watches.notify(collection)

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with self.Session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            return _decode(row.data) if row else None

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        with self.Session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            if not row:
                raise DocumentNotFound(f"{collection}/{doc_id} does not exist")
            merged = dict(row.data)
            merged.update(_encode(fields))
            row.data = merged
            row.updated_at = time.time()
            session.commit()
        self.watches.notify(collection)

    def delete(self, collection: str, doc_id: str) -> None:
        with self.Session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            if not row:
                return
            session.delete(row)
            session.commit()
        self.watches.notify(collection)

    def query(self, collection: str, *filters: Filter) -> list[Document]:
        with self.Session() as session:
            stmt = (
                select(DocumentRow)
                .where(DocumentRow.collection == collection)
                .order_by(DocumentRow.created_at.asc())
            )
            rows = session.execute(stmt).scalars().all()
            docs = [Document(id=row.doc_id, data=_decode(row.data)) for row in rows]
        return [doc for doc in docs if all(f.matches(doc.data) for f in filters)]

    def watch(
        self,
        collection: str,
        filters: Sequence[Filter],
        callback: SnapshotCallback,
    ) -> Unsubscribe:
        return self.watches.add(collection, filters, callback)


class FirestoreDocumentStore:
    """Firestore-backed implementation using firebase-admin."""

    def __init__(self, client=None):
        if client is None:
            client = firestore.client()
        self._client = client

    def _doc(self, collection: str, doc_id: str):
        return self._client.collection(collection).document(doc_id)

    def _query(self, collection: str, filters: Sequence[Filter]):
        query = self._client.collection(collection)
        for f in filters:
            query = query.where(filter=FieldFilter(f.field, f.op, f.value))
        return query

    def add(self, collection: str, data: dict) -> str:
        _, ref = self._client.collection(collection).add(data)
        return ref.id

    def set(self, collection: str, doc_id: str, data: dict) -> None:
        self._doc(collection, doc_id).set(data)

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        snapshot = self._doc(collection, doc_id).get()
        return snapshot.to_dict() if snapshot.exists else None

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        try:
            self._doc(collection, doc_id).update(fields)
        except google_exceptions.NotFound as exc:
            raise DocumentNotFound(f"{collection}/{doc_id} does not exist") from exc

    def delete(self, collection: str, doc_id: str) -> None:
        self._doc(collection, doc_id).delete()

    def query(self, collection: str, *filters: Filter) -> list[Document]:
        return [
            Document(id=snapshot.id, data=snapshot.to_dict() or {})
            for snapshot in self._query(collection, filters).stream()
        ]

    def watch(
        self,
        collection: str,
        filters: Sequence[Filter],
        callback: SnapshotCallback,
    ) -> Unsubscribe:
        def on_snapshot(snapshots, changes, read_time):
            docs = [Document(id=s.id, data=s.to_dict() or {}) for s in snapshots]
            try:
                callback(docs)
            except Exception:
                logger.exception("Snapshot listener on %s failed", collection)

        handle = self._query(collection, filters).on_snapshot(on_snapshot)
        return handle.unsubscribe
