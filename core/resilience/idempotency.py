"""
Idempotency store for domain-event handling.

Guarantees an automation runs at most once per triggering event: the
executor reserves a deterministic key built from (automation, event id)
before running and marks it completed afterwards. Redelivering the same
event id hits the reserved key; a new event always gets a new id. Keys
expire after a TTL so the in-process store does not grow without bound.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any
import hashlib
import json


def _now() -> datetime:
    return datetime.now(timezone.utc)


class IdempotencyStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class IdempotencyRecord:
    """Record of an idempotent operation."""
    key: str
    organization_id: str
    operation: str
    result: Any = None
    status: IdempotencyStatus = IdempotencyStatus.IN_PROGRESS
    created_at: datetime = field(default_factory=_now)
    completed_at: datetime | None = None
    expires_at: datetime | None = None
    error: str | None = None

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return _now() >= self.expires_at


def generate_idempotency_key(operation: str, **kwargs: Any) -> str:
    """
    Generate a deterministic idempotency key from operation + params.
    Same inputs always produce the same key; dict ordering does not matter.
    """
    data = json.dumps({"op": operation, **kwargs}, sort_keys=True, default=str)
    return hashlib.sha256(data.encode()).hexdigest()[:32]


class IdempotencyStore:
    """In-process idempotency store keyed by operation hash."""

    def __init__(self, default_ttl_seconds: int = 3600):
        self._records: dict[str, IdempotencyRecord] = {}
        self.default_ttl = default_ttl_seconds

    def check(self, key: str) -> IdempotencyRecord | None:
        """Return the live record for a key, dropping it if expired."""
        record = self._records.get(key)
        if record is None:
            return None
        if record.is_expired:
            del self._records[key]
            return None
        return record

    def reserve(
        self,
        key: str,
        organization_id: str,
        operation: str,
        ttl_seconds: int | None = None,
    ) -> IdempotencyRecord | None:
        """
        Reserve a key (mark as in-progress).
        Returns None if the key is already reserved or completed.
        """
        if self.check(key) is not None:
            return None

        ttl = ttl_seconds or self.default_ttl
        record = IdempotencyRecord(
            key=key,
            organization_id=organization_id,
            operation=operation,
            expires_at=_now() + timedelta(seconds=ttl),
        )
        self._records[key] = record
        return record

    def complete(self, key: str, result: Any = None) -> bool:
        record = self._records.get(key)
        if not record:
            return False
        record.status = IdempotencyStatus.COMPLETED
        record.result = result
        record.completed_at = _now()
        return True

    def fail(self, key: str, error: str) -> bool:
        """
        Mark an operation as failed. The key stays reserved until it expires,
        so the same event is not processed a second time.
        """
        record = self._records.get(key)
        if not record:
            return False
        record.status = IdempotencyStatus.FAILED
        record.error = error
        record.completed_at = _now()
        return True

    def cleanup_expired(self) -> int:
        """Remove all expired records. Returns count removed."""
        expired = [k for k, v in self._records.items() if v.is_expired]
        for k in expired:
            del self._records[k]
        return len(expired)

    def clear(self) -> None:
        self._records.clear()
