"""
Time/expiry evaluation for postings.

Pure functions of (created time, time-to-live, current time). Negative TTLs
are not rejected; they simply produce an already-expired result.
"""

from typing import Iterable

from .constants import MS_PER_MINUTE, TTL_BUCKETS, TTL_BUCKET_EXPIRED, TTL_BUCKET_OPEN_ENDED
from .models import Expiry, Posting


def evaluate(created_at: int, ttl_seconds: int, now: int) -> Expiry:
    """
    Compute remaining lifetime.

    Args:
        created_at: Creation time in epoch milliseconds
        ttl_seconds: Time-to-live in seconds
        now: Current time in epoch milliseconds

    Returns:
        Expiry with remaining_ms = created_at + ttl_seconds*1000 - now
        and expired = remaining_ms <= 0
    """
    remaining_ms = int(created_at + ttl_seconds * 1000 - now)
    return Expiry(remaining_ms=remaining_ms, expired=remaining_ms <= 0)


def evaluate_posting(posting: Posting, now: int) -> Expiry:
    return evaluate(posting.created_at, posting.ttl_seconds, now)


def remaining_minutes(posting: Posting, now: int) -> float:
    """Remaining lifetime in minutes, clamped at zero."""
    return max(0, evaluate_posting(posting, now).remaining_ms) / MS_PER_MINUTE


def expiry_map(postings: Iterable[Posting], now: int) -> dict[str, Expiry]:
    """Per-posting expiry state keyed by posting key."""
    return {p.key: evaluate_posting(p, now) for p in postings}


def ttl_bucket(posting: Posting, now: int) -> str:
    """Classify a posting by how much lifetime it has left."""
    expiry = evaluate_posting(posting, now)
    if expiry.expired:
        return TTL_BUCKET_EXPIRED
    minutes = expiry.remaining_ms / MS_PER_MINUTE
    for name, upper in TTL_BUCKETS:
        if minutes < upper:
            return name
    return TTL_BUCKET_OPEN_ENDED
