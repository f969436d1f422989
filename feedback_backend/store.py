"""
Record store abstraction with in-memory, SQLAlchemy and MongoDB backends.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Protocol

from bson import ObjectId
from pydantic import ValidationError as PydanticValidationError
from pymongo import DESCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import PyMongoError
from sqlalchemy import JSON, Column, Float, String, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from feedback_backend.errors import NotFound, PersistenceError
from feedback_backend.records import RecordKind, StoredRecord, new_record_id, utcnow
from feedback_backend.validation import validate_fields

logger = logging.getLogger(__name__)


class RecordStore(Protocol):
    """Operations the API and the maintenance scripts need for one record type."""

    kind: RecordKind

    def create(self, payload: Any) -> StoredRecord:
        ...

    def create_many(self, payloads: Iterable[Any]) -> list[StoredRecord]:
        ...

    def list_all(self) -> list[StoredRecord]:
        ...

    def update_by_id(self, record_id: str, payload: Any) -> StoredRecord:
        ...

    def delete_by_id(self, record_id: str) -> StoredRecord:
        ...


def _newest_first(records: Iterable[StoredRecord]) -> list[StoredRecord]:
    return sorted(records, key=lambda r: (r.timestamp, r.id), reverse=True)


def _prepare(kind: RecordKind, payloads: Iterable[Any]) -> list[StoredRecord]:
    # Validate everything before anything is written.
    fields = [validate_fields(kind, payload) for payload in payloads]
    return [kind.build(new_record_id(), utcnow(), f) for f in fields]


class InMemoryRecordStore:
    """Dict-backed store for development and tests."""

    def __init__(self, kind: RecordKind):
        self.kind = kind
        self.records: Dict[str, StoredRecord] = {}
        self._lock = threading.Lock()

    def create(self, payload: Any) -> StoredRecord:
        return self.create_many([payload])[0]

    def create_many(self, payloads: Iterable[Any]) -> list[StoredRecord]:
        records = _prepare(self.kind, payloads)
        with self._lock:
            for record in records:
                self.records[record.id] = record
        return [record.model_copy() for record in records]

    def list_all(self) -> list[StoredRecord]:
        with self._lock:
            snapshot = list(self.records.values())
        return [record.model_copy() for record in _newest_first(snapshot)]

    def update_by_id(self, record_id: str, payload: Any) -> StoredRecord:
        record_id = self.kind.parse_id(record_id)
        fields = validate_fields(self.kind, payload)
        with self._lock:
            existing = self.records.get(record_id)
            if existing is None:
                raise NotFound(f"{self.kind.label} not found")
            updated = self.kind.build(record_id, existing.timestamp, fields)
            self.records[record_id] = updated
        return updated.model_copy()

    def delete_by_id(self, record_id: str) -> StoredRecord:
        record_id = self.kind.parse_id(record_id)
        with self._lock:
            removed = self.records.pop(record_id, None)
        if removed is None:
            raise NotFound(f"{self.kind.label} not found")
        return removed.model_copy()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.records.clear()


Base = declarative_base()


class RecordRow(Base):
    __tablename__ = "records"

    id = Column(String(24), primary_key=True)
    kind = Column(String, nullable=False, index=True)
    timestamp = Column(Float, nullable=False, index=True)
    data = Column("document", JSON, nullable=False)


def create_sql_engine(database_url: str) -> Engine:
    """
    Build an engine for any SQLAlchemy URL and make sure the table exists.

    In-memory SQLite gets a single shared connection so every thread sees
    the same database.
    """
    if not database_url:
        raise ValueError("DATABASE_URL is required for SqlRecordStore")
    options: dict[str, Any] = {"future": True, "pool_pre_ping": True}
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        options.update(
            poolclass=StaticPool, connect_args={"check_same_thread": False}
        )
    else:
        options["pool_recycle"] = 1800
    engine = create_engine(database_url, **options)
    Base.metadata.create_all(engine)
    return engine


class SqlRecordStore:
    """
    SQLAlchemy-backed implementation. Each record is kept as a JSON document
    next to its id, kind and timestamp.
    """

    def __init__(self, kind: RecordKind, engine: Engine):
        self.kind = kind
        self.engine = engine
        self.Session = sessionmaker(
            bind=engine, class_=Session, expire_on_commit=False, future=True
        )

    def _to_record(self, row: RecordRow) -> StoredRecord:
        timestamp = datetime.fromtimestamp(row.timestamp, tz=timezone.utc)
        return self.kind.build(row.id, timestamp, row.data)

    def _get_row(self, session: Session, record_id: str) -> RecordRow:
        row = session.get(RecordRow, record_id)
        if row is None or row.kind != self.kind.name:
            raise NotFound(f"{self.kind.label} not found")
        return row

    def create(self, payload: Any) -> StoredRecord:
        return self.create_many([payload])[0]

    def create_many(self, payloads: Iterable[Any]) -> list[StoredRecord]:
        records = _prepare(self.kind, payloads)
        try:
            with self.Session() as session:
                session.add_all(
                    RecordRow(
                        id=record.id,
                        kind=self.kind.name,
                        timestamp=record.timestamp.timestamp(),
                        data=record.document(),
                    )
                    for record in records
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to save {self.kind.name}") from exc
        return records

    def list_all(self) -> list[StoredRecord]:
        stmt = (
            select(RecordRow)
            .where(RecordRow.kind == self.kind.name)
            .order_by(RecordRow.timestamp.desc(), RecordRow.id.desc())
        )
        try:
            with self.Session() as session:
                rows = session.execute(stmt).scalars().all()
                return [self._to_record(row) for row in rows]
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load {self.kind.name}") from exc

    def update_by_id(self, record_id: str, payload: Any) -> StoredRecord:
        record_id = self.kind.parse_id(record_id)
        fields = validate_fields(self.kind, payload)
        try:
            with self.Session() as session:
                row = self._get_row(session, record_id)
                row.data = fields.model_dump()
                session.commit()
                return self._to_record(row)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to update {self.kind.name}") from exc

    def delete_by_id(self, record_id: str) -> StoredRecord:
        record_id = self.kind.parse_id(record_id)
        try:
            with self.Session() as session:
                row = self._get_row(session, record_id)
                removed = self._to_record(row)
                session.delete(row)
                session.commit()
                return removed
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to delete {self.kind.name}") from exc


def mongo_client(database_url: str) -> MongoClient:
    return MongoClient(database_url, tz_aware=True)


class MongoRecordStore:
    """Document store backed by one MongoDB collection per record type."""

    def __init__(self, kind: RecordKind, collection: Collection):
        self.kind = kind
        self.collection = collection

    def _to_record(self, document: dict) -> StoredRecord:
        timestamp = document.get("timestamp")
        if timestamp is None and isinstance(document.get("_id"), ObjectId):
            timestamp = document["_id"].generation_time
        if not isinstance(timestamp, datetime):
            raise ValueError("document has no usable timestamp")
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        values = {
            name: document.get(name) for name in self.kind.fields_model.model_fields
        }
        return self.kind.build(str(document["_id"]), timestamp, values)

    def _to_document(self, record: StoredRecord) -> dict:
        return {
            "_id": ObjectId(record.id),
            **record.document(),
            "timestamp": record.timestamp,
        }

    def create(self, payload: Any) -> StoredRecord:
        return self.create_many([payload])[0]

    def create_many(self, payloads: Iterable[Any]) -> list[StoredRecord]:
        records = _prepare(self.kind, payloads)
        if not records:
            return []
        try:
            self.collection.insert_many(
                [self._to_document(record) for record in records]
            )
        except PyMongoError as exc:
            raise PersistenceError(f"Failed to save {self.kind.name}") from exc
        return records

    def list_all(self) -> list[StoredRecord]:
        """
        Newest first. Documents that do not fit the record model (written by
        older tools, for example without a house) are logged and skipped.
        """
        records = []
        try:
            cursor = self.collection.find().sort(
                [("timestamp", DESCENDING), ("_id", DESCENDING)]
            )
            for document in cursor:
                try:
                    records.append(self._to_record(document))
                except (PydanticValidationError, ValueError) as exc:
                    logger.warning(
                        "Skipping unreadable %s document %s: %s",
                        self.kind.name,
                        document.get("_id"),
                        exc,
                    )
        except PyMongoError as exc:
            raise PersistenceError(f"Failed to load {self.kind.name}") from exc
        return records

    def update_by_id(self, record_id: str, payload: Any) -> StoredRecord:
        record_id = self.kind.parse_id(record_id)
        fields = validate_fields(self.kind, payload)
        try:
            document = self.collection.find_one_and_update(
                {"_id": ObjectId(record_id)},
                {"$set": fields.model_dump()},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as exc:
            raise PersistenceError(f"Failed to update {self.kind.name}") from exc
        if document is None:
            raise NotFound(f"{self.kind.label} not found")
        return self._to_record(document)

    def delete_by_id(self, record_id: str) -> StoredRecord:
        record_id = self.kind.parse_id(record_id)
        try:
            document = self.collection.find_one_and_delete(
                {"_id": ObjectId(record_id)}
            )
        except PyMongoError as exc:
            raise PersistenceError(f"Failed to delete {self.kind.name}") from exc
        if document is None:
            raise NotFound(f"{self.kind.label} not found")
        return self._to_record(document)
