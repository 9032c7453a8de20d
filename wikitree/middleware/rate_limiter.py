"""
In-memory rate limiting helpers for wikitree.
Used to throttle failed logins and search requests.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from time import monotonic
from typing import Callable, Dict, Optional, Tuple

from fastapi import Request

from ..config import TRUST_PROXY_HEADERS


@dataclass
class _Bucket:
    tokens: float
    updated: float
    last_seen: float


class TokenBucketLimiter:
    """
    Per-key token buckets with a burst size and a steady refill rate.

    allow() only peeks; on_failure() and consume() take a token. Buckets
    idle for longer than ttl_seconds are dropped.
    """

    def __init__(
        self,
        burst: int,
        refill_per_second: float,
        ttl_seconds: float,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self._burst = burst
        self._rate = refill_per_second
        self._ttl = ttl_seconds
        self._clock = clock
        self._buckets: Dict[str, _Bucket] = {}
        self._lock = threading.Lock()
        self._last_cleanup = clock()

    def _cleanup_if_needed(self, now: float) -> None:
        """
        Remove buckets that have been idle longer than the TTL.

        This runs at most once per TTL to keep the check path cheap.
        """
        if now - self._last_cleanup < self._ttl:
            return
        stale_keys = [
            key for key, bucket in self._buckets.items() if now - bucket.last_seen >= self._ttl
        ]
        for key in stale_keys:
            self._buckets.pop(key, None)
        self._last_cleanup = now

    def _bucket(self, key: str, now: float) -> _Bucket:
        """Return the refilled bucket for key; caller holds the lock."""
        self._cleanup_if_needed(now)
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = _Bucket(tokens=float(self._burst), updated=now, last_seen=now)
            self._buckets[key] = bucket
            return bucket
        elapsed = max(0.0, now - bucket.updated)
        bucket.tokens = min(float(self._burst), bucket.tokens + elapsed * self._rate)
        bucket.updated = now
        bucket.last_seen = now
        return bucket

    def _retry_after(self, bucket: _Bucket) -> int:
        missing = 1.0 - bucket.tokens
        return max(1, math.ceil(missing / self._rate))

    def allow(self, key: str) -> Tuple[bool, int]:
        """Return (allowed, retry_after_seconds) without taking a token."""
        now = self._clock()
        with self._lock:
            bucket = self._bucket(key, now)
            if bucket.tokens >= 1.0:
                return True, 0
            return False, self._retry_after(bucket)

    def on_failure(self, key: str) -> None:
        """Take one token, e.g. after a failed login."""
        now = self._clock()
        with self._lock:
            bucket = self._bucket(key, now)
            bucket.tokens = max(0.0, bucket.tokens - 1.0)

    def consume(self, key: str) -> Tuple[bool, int]:
        """Take one token if available."""
        now = self._clock()
        with self._lock:
            bucket = self._bucket(key, now)
            if bucket.tokens >= 1.0:
                bucket.tokens -= 1.0
                return True, 0
            return False, self._retry_after(bucket)

    def __len__(self) -> int:
        return len(self._buckets)


def client_identifier(request: Request) -> str:
    """
    Return the key the limiters bucket a caller under.

    This is the peer address. X-Forwarded-For and X-Real-IP are only read
    when TRUST_PROXY_HEADERS is set, i.e. behind a reverse proxy that
    overwrites them.
    """
    if TRUST_PROXY_HEADERS:
        forwarded = _forwarded_client(request)
        if forwarded:
            return forwarded
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _forwarded_client(request: Request) -> Optional[str]:
    xff = request.headers.get("x-forwarded-for")
    if xff:
        candidate = xff.split(",")[0].strip()
        if candidate:
            return candidate
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return None


__all__ = ["TokenBucketLimiter", "client_identifier"]
