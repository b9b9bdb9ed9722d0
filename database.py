"""
Document store over MongoDB.

Each collection is addressed by a string key stored as ``_id``; callers only
ever see plain dicts without ``_id``. Queries accept a single predicate (one
equality clause or a range on one field), one sort field and a limit.
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, NamedTuple, Optional, Sequence, Tuple

from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import Settings
from errors import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

Clause = Tuple[str, str, Any]

BATCH_KINDS = ("set", "update", "delete")
_OPERATORS = {">=": "$gte", "<=": "$lte", ">": "$gt", "<": "$lt"}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def connect(settings: Settings) -> Database:
    client = MongoClient(settings.database_url, tz_aware=True)
    return client[settings.database_name]


class BatchOperation(NamedTuple):
    kind: str  # set | update | delete
    collection: str
    key: str
    data: Optional[Dict[str, Any]] = None


def _strip(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    doc = dict(doc)
    doc.pop("_id", None)
    return doc


def build_filter(where: Sequence[Clause]) -> Dict[str, Any]:
    if not where:
        return {}
    fields = {field for field, _, _ in where}
    if len(fields) > 1:
        raise ValueError("A query may only constrain a single field")
    field = fields.pop()
    condition: Dict[str, Any] = {}
    for _, op, value in where:
        if op == "==":
            return {field: value}
        if op not in _OPERATORS:
            raise ValueError(f"Unsupported operator: {op}")
        condition[_OPERATORS[op]] = value
    return {field: condition}


class DocumentStore:
    def __init__(self, db: Database):
        self.db = db

    @contextmanager
    def _upstream(self, operation: str, collection: str) -> Iterator[None]:
        try:
            yield
        except PyMongoError as exc:
            logger.error("Database %s on %s failed: %s", operation, collection, exc)
            raise UpstreamError(f"Database {operation} failed") from exc

    def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        with self._upstream("get", collection):
            return _strip(self.db[collection].find_one({"_id": key}))

    def set(self, collection: str, key: str, data: Dict[str, Any]) -> Dict[str, Any]:
        with self._upstream("set", collection):
            self.db[collection].replace_one({"_id": key}, {**data, "_id": key}, upsert=True)
        return dict(data)

    def update(self, collection: str, key: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._upstream("update", collection):
            doc = self.db[collection].find_one_and_update(
                {"_id": key},
                {"$set": fields},
                return_document=ReturnDocument.AFTER,
            )
        return _strip(doc)

    def delete(self, collection: str, key: str) -> bool:
        with self._upstream("delete", collection):
            res = self.db[collection].delete_one({"_id": key})
        return res.deleted_count > 0

    def query(
        self,
        collection: str,
        where: Sequence[Clause] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        with self._upstream("query", collection):
            cursor = self.db[collection].find(build_filter(where))
            if order_by:
                cursor = cursor.sort(order_by, DESCENDING if descending else ASCENDING)
            if limit:
                cursor = cursor.limit(int(limit))
            return [_strip(doc) for doc in cursor]

    def exists(self, collection: str, where: Sequence[Clause]) -> bool:
        return bool(self.query(collection, where, limit=1))

    def batch_write(self, operations: Iterable[BatchOperation]) -> int:
        """Apply set/update/delete operations as one unit.

        Every operation is validated before anything is written. The prior
        state of each target is captured first; if a write fails, the writes
        already applied are reverted before the error is raised.
        """
        operations = list(operations)
        for op in operations:
            if op.kind not in BATCH_KINDS:
                raise ValidationError(f"Invalid batch operation type: {op.kind}")

        with self._upstream("batch read", "batch"):
            previous = {
                (op.collection, op.key): self.db[op.collection].find_one({"_id": op.key})
                for op in operations
            }

        now = utcnow()
        applied: List[BatchOperation] = []
        try:
            for op in operations:
                self._apply(op, now)
                applied.append(op)
        except PyMongoError as exc:
            logger.error("Batch write failed after %d of %d operations: %s", len(applied), len(operations), exc)
            self._revert(applied, previous)
            raise UpstreamError("Database batch write failed") from exc
        logger.debug("Batch write applied %d operations", len(operations))
        return len(operations)

    def _apply(self, op: BatchOperation, now: datetime) -> None:
        collection = self.db[op.collection]
        if op.kind == "set":
            collection.replace_one({"_id": op.key}, {**(op.data or {}), "updatedAt": now, "_id": op.key}, upsert=True)
        elif op.kind == "update":
            collection.update_one({"_id": op.key}, {"$set": {**(op.data or {}), "updatedAt": now}})
        else:
            collection.delete_one({"_id": op.key})

    def _revert(self, applied: List[BatchOperation], previous: Dict[Tuple[str, str], Any]) -> None:
        for op in reversed(applied):
            original = previous[(op.collection, op.key)]
            with self._upstream("batch rollback", op.collection):
                if original is None:
                    self.db[op.collection].delete_one({"_id": op.key})
                else:
                    self.db[op.collection].replace_one({"_id": op.key}, original, upsert=True)

    def collection_names(self) -> List[str]:
        with self._upstream("list collections", self.db.name):
            return self.db.list_collection_names()
