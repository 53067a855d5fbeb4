"""
Client Storage Backends
=======================

Key/value storage behind SessionPersistence. Keys are always namespaced per
browsing session (the client id), so two browsers never see each other's
draft or pending payment.

Backends:
---------
- **MemoryStorage**: A dict guarded by a lock. Used in tests and for
  single-process development.
- **DatabaseStorage**: One ClientStorageEntry row per (namespace, key),
  upserted on write. Survives server restarts.

Values are opaque strings (JSON produced by SessionPersistence); the
backends never parse them.
"""

import logging
import threading
from typing import Callable, Dict, Optional, Protocol, Tuple

from sqlalchemy.orm import Session

from ..models import ClientStorageEntry


logger = logging.getLogger(__name__)


class ClientStorage(Protocol):
    def get(self, namespace: str, key: str) -> Optional[str]: ...

    def set(self, namespace: str, key: str, value: str) -> None: ...

    def delete(self, namespace: str, key: str) -> None: ...


class MemoryStorage:
    """In-process storage. Contents are lost on restart."""

    def __init__(self):
        self._data: Dict[Tuple[str, str], str] = {}
        self._lock = threading.Lock()

    def get(self, namespace: str, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get((namespace, key))

    def set(self, namespace: str, key: str, value: str) -> None:
        with self._lock:
            self._data[(namespace, key)] = value

    def delete(self, namespace: str, key: str) -> None:
        with self._lock:
            self._data.pop((namespace, key), None)

    def clear(self) -> int:
        with self._lock:
            count = len(self._data)
            self._data.clear()
            return count


def _default_session_factory() -> Session:
    # Resolved at call time so tests can swap db.SessionLocal
    from .. import db

    return db.SessionLocal()


class DatabaseStorage:
    """
    SQLAlchemy-backed storage.

    Each operation opens and closes its own database session, so one
    instance can be shared across request threads.
    """

    def __init__(self, session_factory: Callable[[], Session] = _default_session_factory):
        self._session_factory = session_factory

    def get(self, namespace: str, key: str) -> Optional[str]:
        db = self._session_factory()
        try:
            entry = db.query(ClientStorageEntry).filter(
                ClientStorageEntry.namespace == namespace,
                ClientStorageEntry.key == key,
            ).first()
            return entry.value if entry else None
        finally:
            db.close()

    def set(self, namespace: str, key: str, value: str) -> None:
        db = self._session_factory()
        try:
            entry = db.query(ClientStorageEntry).filter(
                ClientStorageEntry.namespace == namespace,
                ClientStorageEntry.key == key,
            ).first()
            if entry:
                entry.value = value
            else:
                db.add(ClientStorageEntry(namespace=namespace, key=key, value=value))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def delete(self, namespace: str, key: str) -> None:
        db = self._session_factory()
        try:
            deleted = db.query(ClientStorageEntry).filter(
                ClientStorageEntry.namespace == namespace,
                ClientStorageEntry.key == key,
            ).delete()
            db.commit()
            if deleted:
                logger.debug("Deleted %s/%s from client storage", namespace, key)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
