# app/core/store.py
"""
Document store providers.

Both providers expose the same four calls the students page needs:

- ``subscribe(path, on_snapshot, on_error)`` delivers the full current list of
  ``(doc_id, fields)`` pairs for a collection path, once immediately and then
  again after every change, until the returned subscription is unsubscribed.
- ``insert(path, fields) -> doc_id``
- ``replace(path, doc_id, fields)``
- ``delete(path, doc_id)``

``SqlDocumentStore`` keeps documents in a SQL table and notifies in-process
listeners after each write. ``FirestoreDocumentStore`` is a thin wrapper over
the Firebase Admin SDK's collection listener.
"""
from __future__ import annotations

import itertools
import json
import logging
import threading
import uuid
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from sqlalchemy import text as sa_text
from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

Document = Tuple[str, Dict[str, Any]]
SnapshotCallback = Callable[[List[Document]], None]
ErrorCallback = Callable[[Exception], None]


class DocumentNotFound(LookupError):
    pass


class Subscription:
    """
    Handle for a live listener. ``unsubscribe()`` may be called more than once.

    ``is_alive`` reports whether the underlying stream is still running; a
    subscription that is ``active`` but no longer ``alive`` has stopped on its
    own without an unsubscribe.
    """

    def __init__(self, path: str, cancel: Callable[[], None],
                 is_alive: Optional[Callable[[], bool]] = None):
        self.path = path
        self._cancel = cancel
        self._is_alive = is_alive
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    @property
    def alive(self) -> bool:
        if not self._active:
            return False
        return self._is_alive is None or bool(self._is_alive())

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._cancel()
        log.info("Unsubscribed from %s", self.path)


class DocumentStore(Protocol):
    def subscribe(self, path: str, on_snapshot: SnapshotCallback,
                  on_error: Optional[ErrorCallback] = None) -> Subscription: ...

    def insert(self, path: str, fields: Dict[str, Any]) -> str: ...

    def replace(self, path: str, doc_id: str, fields: Dict[str, Any]) -> None: ...

    def delete(self, path: str, doc_id: str) -> None: ...


# ────────────────────────────────────────────────────────────────────────────────
# SQL-backed store (local / dev)
# ────────────────────────────────────────────────────────────────────────────────

class SqlDocumentStore:
    def __init__(self, engine: Engine):
        self.engine = engine
        self._lock = threading.RLock()
        # Reads and deliveries for one path happen in order under its lock.
        self._path_locks: Dict[str, threading.RLock] = {}
        self._listeners: Dict[str, Dict[int, Tuple[SnapshotCallback, Optional[ErrorCallback]]]] = {}
        self._tokens = itertools.count(1)

    def snapshot(self, path: str) -> List[Document]:
        with self.engine.connect() as conn:
            rows = conn.execute(sa_text("""
                SELECT doc_id, fields_json
                FROM documents
                WHERE partition_path = :p
                ORDER BY seq
            """), {"p": path}).fetchall()
        return [(r[0], json.loads(r[1]) or {}) for r in rows]

    def subscribe(self, path: str, on_snapshot: SnapshotCallback,
                  on_error: Optional[ErrorCallback] = None) -> Subscription:
        token = next(self._tokens)
        with self._lock:
            self._listeners.setdefault(path, {})[token] = (on_snapshot, on_error)
        log.info("Subscribed to %s (listener %s)", path, token)
        self._deliver(path, [(on_snapshot, on_error)])
        return Subscription(path, lambda: self._remove_listener(path, token))

    def insert(self, path: str, fields: Dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        with self.engine.begin() as conn:
            conn.execute(sa_text("""
                INSERT INTO documents (partition_path, doc_id, fields_json)
                VALUES (:p, :id, :f)
            """), {"p": path, "id": doc_id, "f": json.dumps(fields, ensure_ascii=False)})
        log.debug("Inserted %s/%s", path, doc_id)
        self._notify(path)
        return doc_id

    def replace(self, path: str, doc_id: str, fields: Dict[str, Any]) -> None:
        with self.engine.begin() as conn:
            res = conn.execute(sa_text("""
                UPDATE documents
                SET fields_json = :f, updated_at = CURRENT_TIMESTAMP
                WHERE partition_path = :p AND doc_id = :id
            """), {"p": path, "id": doc_id, "f": json.dumps(fields, ensure_ascii=False)})
            if res.rowcount == 0:
                raise DocumentNotFound(f"No document {doc_id!r} in {path}")
        log.debug("Replaced %s/%s", path, doc_id)
        self._notify(path)

    def delete(self, path: str, doc_id: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(sa_text(
                "DELETE FROM documents WHERE partition_path = :p AND doc_id = :id"
            ), {"p": path, "id": doc_id})
        log.debug("Deleted %s/%s", path, doc_id)
        self._notify(path)

    def listener_count(self, path: str) -> int:
        with self._lock:
            return len(self._listeners.get(path, {}))

    def _remove_listener(self, path: str, token: int) -> None:
        with self._lock:
            listeners = self._listeners.get(path, {})
            listeners.pop(token, None)
            if not listeners:
                self._listeners.pop(path, None)

    def _path_lock(self, path: str) -> threading.RLock:
        with self._lock:
            return self._path_locks.setdefault(path, threading.RLock())

    def _notify(self, path: str) -> None:
        with self._lock:
            targets = list(self._listeners.get(path, {}).values())
        if targets:
            self._deliver(path, targets)

    def _deliver(self, path: str, targets) -> None:
        with self._path_lock(path):
            try:
                docs = self.snapshot(path)
            except Exception as e:
                log.exception("Snapshot of %s failed", path)
                for _, on_error in targets:
                    if on_error:
                        on_error(e)
                return
            for on_snapshot, _ in targets:
                try:
                    on_snapshot(list(docs))
                except Exception:
                    # A failing listener never fails the write.
                    log.exception("Snapshot listener for %s raised", path)


# ────────────────────────────────────────────────────────────────────────────────
# Firestore-backed store
# ────────────────────────────────────────────────────────────────────────────────

class FirestoreDocumentStore:
    def __init__(self, client):
        self.client = client

    def subscribe(self, path: str, on_snapshot: SnapshotCallback,
                  on_error: Optional[ErrorCallback] = None) -> Subscription:
        def _callback(col_snapshot, changes, read_time):
            # Runs on the SDK's watch thread.
            try:
                docs = [(d.id, d.to_dict() or {}) for d in col_snapshot]
            except Exception as e:
                log.exception("Could not materialize snapshot of %s", path)
                if on_error:
                    on_error(e)
                return
            log.debug("Snapshot of %s: %d docs (%d changes)", path, len(docs), len(changes or []))
            try:
                on_snapshot(docs)
            except Exception:
                log.exception("Snapshot listener for %s raised", path)

        # The watch never calls back on stream errors; it just stops.
        watch = self.client.collection(path).on_snapshot(_callback)
        log.info("Subscribed to %s", path)
        return Subscription(path, watch.unsubscribe, lambda: watch.is_active)

    def insert(self, path: str, fields: Dict[str, Any]) -> str:
        _, ref = self.client.collection(path).add(fields)
        return ref.id

    def replace(self, path: str, doc_id: str, fields: Dict[str, Any]) -> None:
        # update() fails on a missing document, like the other providers.
        self.client.collection(path).document(doc_id).update(fields)

    def delete(self, path: str, doc_id: str) -> None:
        self.client.collection(path).document(doc_id).delete()
