# app/screens/students/db.py
# Live student list for one user partition + the three mutations.
#
# The record list is written ONLY by the subscription callbacks below. The
# mutations never touch it; their effect shows up with the next snapshot.

from __future__ import annotations

import logging
import threading
import weakref
from typing import Callable, List, NamedTuple, Optional

from core.errors import MutationFailure, SubscriptionFailure
from core.store import Document, DocumentStore, Subscription
from screens.students.models import StudentRecord
from screens.students.utils import validate_student

log = logging.getLogger(__name__)

ADD_FAILED = "Failed to add student. Please try again."
UPDATE_FAILED = "Failed to update student. Please try again."
DELETE_FAILED = "Failed to delete student. Please try again."


class StudentsView(NamedTuple):
    records: List[StudentRecord]
    loading: bool
    error: Optional[str]
    version: int


class StudentsState:
    """
    Per-session container for the mirrored student list.

    Listener threads write, the Streamlit script thread reads; `view()` gives
    a consistent copy of everything at once.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._records: List[StudentRecord] = []
        self._loading = True
        self._error: Optional[str] = None
        self._version = 0

    def view(self) -> StudentsView:
        with self._lock:
            return StudentsView(list(self._records), self._loading, self._error, self._version)

    @property
    def records(self) -> List[StudentRecord]:
        return self.view().records

    @property
    def loading(self) -> bool:
        return self.view().loading

    @property
    def error(self) -> Optional[str]:
        return self.view().error

    @property
    def version(self) -> int:
        return self.view().version

    def begin_loading(self) -> None:
        with self._lock:
            self._records = []
            self._loading = True
            self._error = None
            self._version += 1

    def apply_snapshot(self, records: List[StudentRecord]) -> None:
        with self._lock:
            self._records = list(records)
            self._loading = False
            self._error = None
            self._version += 1

    def fail(self, message: str) -> None:
        # Records stay at the last snapshot.
        with self._lock:
            self._loading = False
            self._error = message
            self._version += 1


class StudentStoreAdapter:
    def __init__(
        self,
        store: DocumentStore,
        path_for: Callable[[str], str],
        state: Optional[StudentsState] = None,
    ):
        self.store = store
        self.path_for = path_for
        self.state = state or StudentsState()
        self._lock = threading.Lock()
        self._user_id: Optional[str] = None
        self._path: Optional[str] = None
        self._subscription: Optional[Subscription] = None
        self._finalizer: Optional[weakref.finalize] = None

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def partition_path(self) -> Optional[str]:
        return self._path

    @property
    def subscribed(self) -> bool:
        return bool(self._subscription and self._subscription.active)

    # ── subscription ───────────────────────────────────────────────────────────

    def bind(self, user_id: str) -> None:
        """
        Subscribe to `user_id`'s partition, dropping any previous listener.
        Binding the same user again is a no-op, even after a subscription
        error: there is no automatic retry.
        """
        if user_id == self._user_id:
            return

        self.close()
        path = self.path_for(user_id)
        with self._lock:
            self._user_id = user_id
            self._path = path
        self.state.begin_loading()

        on_snapshot, on_error = self._callbacks_for(path)
        try:
            sub = self.store.subscribe(path, on_snapshot, on_error)
        except Exception as e:
            on_error(e)
            return
        self._subscription = sub
        # Streamlit has no session-end hook: when the session state holding
        # this adapter is dropped, the listener goes with it.
        self._finalizer = weakref.finalize(self, sub.unsubscribe)

    def check_subscription(self) -> None:
        """
        Report a listener whose stream stopped without an unsubscribe.
        Reported once; the dead listener is released and not retried.
        """
        sub = self._subscription
        if sub is None or not sub.active or sub.alive:
            return
        log.error("Subscription to %s stopped unexpectedly", sub.path)
        sub.unsubscribe()
        self.state.fail(SubscriptionFailure().user_message)

    def close(self) -> None:
        sub, self._subscription = self._subscription, None
        finalizer, self._finalizer = self._finalizer, None
        with self._lock:
            self._path = None
            self._user_id = None
        if finalizer is not None:
            finalizer.detach()
        if sub is not None:
            sub.unsubscribe()

    def _callbacks_for(self, path: str):
        # Callbacks live in the store's listener table; only a weak reference
        # back to the adapter is kept there.
        adapter_ref = weakref.ref(self)
        state = self.state

        def _current() -> bool:
            adapter = adapter_ref()
            if adapter is None:
                return False
            with adapter._lock:
                return adapter._path == path

        def on_snapshot(docs: List[Document]) -> None:
            if not _current():
                log.debug("Dropping late snapshot for stale partition %s", path)
                return
            records = [StudentRecord.from_document(doc_id, fields) for doc_id, fields in docs]
            state.apply_snapshot(records)
            log.debug("Snapshot applied: %d students", len(records))

        def on_error(e: Exception) -> None:
            if not _current():
                return
            log.error("Error fetching students from %s: %s", path, e)
            state.fail(SubscriptionFailure().user_message)

        return on_snapshot, on_error

    # ── mutations ──────────────────────────────────────────────────────────────

    def _require_path(self) -> str:
        if not self._path:
            raise RuntimeError("StudentStoreAdapter.bind() must be called before mutations")
        return self._path

    def create(self, record: StudentRecord) -> None:
        validate_student(record)
        path = self._require_path()
        try:
            doc_id = self.store.insert(path, record.to_fields())
        except Exception as e:
            log.exception("Error adding document")
            raise MutationFailure(ADD_FAILED) from e
        log.info("Student document created: %s", doc_id)

    def update(self, record_id: str, record: StudentRecord) -> None:
        validate_student(record)
        path = self._require_path()
        try:
            self.store.replace(path, record_id, record.to_fields())
        except Exception as e:
            log.exception("Error updating document %s", record_id)
            raise MutationFailure(UPDATE_FAILED) from e
        log.info("Student document updated: %s", record_id)

    def remove(self, record_id: str) -> None:
        path = self._require_path()
        try:
            self.store.delete(path, record_id)
        except Exception as e:
            log.exception("Error deleting document %s", record_id)
            raise MutationFailure(DELETE_FAILED) from e
        log.info("Student document deleted: %s", record_id)
