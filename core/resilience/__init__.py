"""
Reliability primitives for event handling.

- IdempotencyStore: run each automation at most once per domain event
"""
from core.resilience.idempotency import (
    IdempotencyRecord,
    IdempotencyStatus,
    IdempotencyStore,
    generate_idempotency_key,
)

__all__ = [
    "IdempotencyRecord",
    "IdempotencyStatus",
    "IdempotencyStore",
    "generate_idempotency_key",
]
