"""
Checkout Session Store
======================

This module keeps CheckoutSession aggregates with a two-tier storage strategy:
1. **In-Memory Cache**: Fast access for active checkouts
2. **Database Persistence**: Durable storage for session recovery

Architecture Overview:
----------------------
The session store uses a write-through cache pattern:
- Reads check the cache first, then fall back to the database
- Writes update both the cache and database simultaneously
- Cache entries have TTL and LRU eviction to bound memory usage

The whole aggregate is stored as one JSON document (CheckoutSessionRecord.state);
the step is duplicated into its own column for querying.

Cache Eviction Strategy:
------------------------
1. **TTL-based**: Sessions not accessed within SESSION_TTL_SECONDS are eligible
   for eviction. Checked probabilistically (~1% of requests) to avoid overhead.

2. **LRU-based**: When cache reaches SESSION_MAX_CACHE_SIZE, the oldest 10% of
   sessions (by last access time) are evicted to make room.

Thread Safety:
--------------
All cache operations are protected by a threading.Lock to ensure safe concurrent
access. This is important because FastAPI handles requests in multiple threads.

Usage:
------
    from flower_checkout.services.session import get_session, save_session

    session = get_session(db, session_id)
    if session is None:
        raise HTTPException(404, "Checkout session not found")

    session.step = CheckoutStep.RECIPIENT
    save_session(db, session)
"""

import logging
import random
import threading
import time
from typing import Any, Dict, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from ..checkout.models import CheckoutSession
from ..config import SESSION_TTL_SECONDS, SESSION_MAX_CACHE_SIZE
from ..models import CheckoutSessionRecord


logger = logging.getLogger(__name__)


# =============================================================================
# Session Cache
# =============================================================================
# In-memory cache for active sessions. Structure:
# {session_id: {"data": CheckoutSession, "last_access": timestamp}}

SESSION_CACHE: Dict[str, Dict[str, Any]] = {}
_cache_lock = threading.Lock()


# =============================================================================
# Cache Maintenance Functions
# =============================================================================

def _cleanup_expired_sessions() -> int:
    """
    Remove expired sessions from the cache.

    Sessions remain in the database and are restored on next access.

    Returns:
        int: Number of sessions removed from cache
    """
    now = time.time()
    expired = []

    with _cache_lock:
        for sid, entry in SESSION_CACHE.items():
            if now - entry.get("last_access", 0) > SESSION_TTL_SECONDS:
                expired.append(sid)

        for sid in expired:
            del SESSION_CACHE[sid]

    if expired:
        logger.debug("Cleaned up %d expired sessions from cache", len(expired))

    return len(expired)


def _evict_oldest_sessions(count: int) -> None:
    """
    Evict the least recently used sessions. Caller must hold _cache_lock.
    """
    if len(SESSION_CACHE) < SESSION_MAX_CACHE_SIZE:
        return

    sorted_sessions = sorted(
        SESSION_CACHE.items(),
        key=lambda x: x[1].get("last_access", 0)
    )

    to_remove = sorted_sessions[:max(count, 1)]
    for sid, _ in to_remove:
        del SESSION_CACHE[sid]

    logger.debug("Evicted %d oldest sessions from cache", len(to_remove))


def _cache_put(session: CheckoutSession) -> None:
    with _cache_lock:
        if session.session_id not in SESSION_CACHE:
            _evict_oldest_sessions(SESSION_MAX_CACHE_SIZE // 10)
        SESSION_CACHE[session.session_id] = {
            "data": session,
            "last_access": time.time(),
        }


# =============================================================================
# Public Session Functions
# =============================================================================

def get_session(db: Session, session_id: str) -> Optional[CheckoutSession]:
    """
    Get a checkout session from cache or database.

    Args:
        db: SQLAlchemy database session for queries
        session_id: UUID string identifying the checkout session

    Returns:
        The CheckoutSession if found, None otherwise. A stored document
        that no longer validates is treated as missing.
    """
    if random.randint(1, 100) == 1:
        _cleanup_expired_sessions()

    with _cache_lock:
        if session_id in SESSION_CACHE:
            entry = SESSION_CACHE[session_id]
            entry["last_access"] = time.time()
            return entry["data"]

    record = db.query(CheckoutSessionRecord).filter(
        CheckoutSessionRecord.session_id == session_id
    ).first()
    if record is None:
        return None

    try:
        session = CheckoutSession.model_validate(record.state or {})
    except ValidationError as e:
        logger.warning("Stored checkout session %s is unreadable: %s", session_id, e)
        return None

    _cache_put(session)
    return session


def save_session(db: Session, session: CheckoutSession) -> None:
    """
    Save a checkout session to both cache and database.

    Uses flag_modified() so SQLAlchemy always writes the JSON column,
    even when the dict compares equal to what was loaded.
    """
    _cache_put(session)

    state = session.model_dump(mode="json")
    record = db.query(CheckoutSessionRecord).filter(
        CheckoutSessionRecord.session_id == session.session_id
    ).first()

    if record:
        record.state = state
        record.step = session.step.value
        record.client_id = session.client_id or None
        flag_modified(record, "state")
    else:
        record = CheckoutSessionRecord(
            session_id=session.session_id,
            client_id=session.client_id or None,
            step=session.step.value,
            state=state,
        )
        db.add(record)

    db.commit()


def clear_cache() -> int:
    """
    Clear all sessions from the in-memory cache.

    Useful for testing and maintenance. Does NOT affect database storage.
    """
    with _cache_lock:
        count = len(SESSION_CACHE)
        SESSION_CACHE.clear()
        logger.info("Cleared %d sessions from cache", count)
        return count


def get_cache_stats() -> Dict[str, Any]:
    """Size and access-time statistics of the session cache."""
    with _cache_lock:
        access_times = [entry["last_access"] for entry in SESSION_CACHE.values()]
        return {
            "size": len(SESSION_CACHE),
            "max_size": SESSION_MAX_CACHE_SIZE,
            "ttl_seconds": SESSION_TTL_SECONDS,
            "oldest_access": min(access_times) if access_times else None,
            "newest_access": max(access_times) if access_times else None,
        }
