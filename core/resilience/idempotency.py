"""
Storefront Idempotency Store — commit an order's discounts at most once.

A checkout request can be retried after a timeout or a double click. The
first commit of an order reserves its key; a retry then either replays the
stored result or, while the first commit is still running, is refused. A
commit that fails releases its key so the order can be committed again
once the customer accepts the new total.

Keys are derived from the operation and the order, so every process
computes the same key; the store itself lives in one process.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Generic, TypeVar
import hashlib
import json

ResultT = TypeVar("ResultT")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IdempotencyStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass
class IdempotencyRecord(Generic[ResultT]):
    """A reserved key and, once the commit finished, its result."""
    key: str
    expires_at: datetime
    status: IdempotencyStatus = IdempotencyStatus.IN_PROGRESS
    result: ResultT | None = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


def generate_idempotency_key(operation: str, **params: Any) -> str:
    """Same operation and params always give the same key."""
    data = json.dumps({"op": operation, **params}, sort_keys=True, default=str)
    return hashlib.sha256(data.encode()).hexdigest()[:32]


class IdempotencyStore(Generic[ResultT]):
    """In-memory store of commit keys, typed by the result it replays."""

    def __init__(self, ttl_seconds: int = 3600):
        self._records: dict[str, IdempotencyRecord[ResultT]] = {}
        self.ttl = timedelta(seconds=ttl_seconds)

    def check(self, key: str) -> IdempotencyRecord[ResultT] | None:
        """The live record for ``key``, or None. Expired records are dropped."""
        record = self._records.get(key)
        if record is not None and record.is_expired(_utcnow()):
            del self._records[key]
            return None
        return record

    def reserve(self, key: str) -> IdempotencyRecord[ResultT] | None:
        """Mark ``key`` in progress. Returns None if it is already taken."""
        now = _utcnow()
        self._purge(now)
        if key in self._records:
            return None
        record: IdempotencyRecord[ResultT] = IdempotencyRecord(key=key, expires_at=now + self.ttl)
        self._records[key] = record
        return record

    def complete(self, key: str, result: ResultT) -> None:
        """Store the result a retry of ``key`` will replay."""
        record = self._records[key]
        record.status = IdempotencyStatus.COMPLETED
        record.result = result

    def release(self, key: str) -> None:
        """Forget ``key`` after a failed commit so it can be retried."""
        self._records.pop(key, None)

    def _purge(self, now: datetime) -> None:
        expired = [k for k, record in self._records.items() if record.is_expired(now)]
        for k in expired:
            del self._records[k]
