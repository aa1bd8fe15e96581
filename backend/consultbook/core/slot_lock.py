"""Per-(booking type, date) Redis mutex held across slot re-validation and persist.

Storage-level slot claims remain the final guard; this lock only narrows
the window in which two writers race for the same date. When Redis is
unreachable the lock reports "acquired" so bookings keep flowing.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
import logging
import threading
import time
from typing import Iterator, Optional

from redis import Redis

from consultbook.core.config import settings
from consultbook.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()


def _lock_key(booking_type: str, booking_date: date | str) -> str:
    return f"consultbook:lock:slots:{booking_type}:{booking_date}"


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=2,
            )
            client.ping()
        except Exception as exc:
            logger.warning("slot_lock_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def acquire_slot_lock(booking_type: str, booking_date: date | str, ttl_s: int) -> bool:
    if not settings.slot_lock_enabled:
        return True
    client = _get_sync_redis()
    if client is None:
        prometheus_metrics.record_slot_lock("acquire", "redis_unavailable")
        logger.warning(
            "slot_lock_redis_unavailable",
            extra={"booking_type": booking_type, "booking_date": str(booking_date)},
        )
        return True
    try:
        acquired = bool(
            client.set(_lock_key(booking_type, booking_date), str(time.time()), nx=True, ex=ttl_s)
        )
        prometheus_metrics.record_slot_lock("acquire", "success" if acquired else "blocked")
        return acquired
    except Exception as exc:
        prometheus_metrics.record_slot_lock("acquire", "error")
        logger.warning(
            "slot_lock_acquire_failed",
            extra={
                "booking_type": booking_type,
                "booking_date": str(booking_date),
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        return True


def release_slot_lock(booking_type: str, booking_date: date | str) -> None:
    if not settings.slot_lock_enabled:
        return
    client = _get_sync_redis()
    if client is None:
        return
    try:
        deleted = client.delete(_lock_key(booking_type, booking_date))
        prometheus_metrics.record_slot_lock("release", "success" if deleted else "not_found")
    except Exception as exc:
        prometheus_metrics.record_slot_lock("release", "error")
        logger.warning(
            "slot_lock_release_failed",
            extra={
                "booking_type": booking_type,
                "booking_date": str(booking_date),
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )


@contextmanager
def slot_lock_sync(
    booking_type: str, booking_date: date | str, ttl_s: Optional[int] = None
) -> Iterator[bool]:
    ttl = ttl_s or settings.slot_lock_ttl_seconds
    acquired = acquire_slot_lock(booking_type, booking_date, ttl)
    try:
        yield acquired
    finally:
        if acquired:
            release_slot_lock(booking_type, booking_date)
