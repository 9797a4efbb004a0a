# app/screens/students/form.py
from __future__ import annotations

import logging
from typing import Mapping, Optional

from core.errors import MutationFailure, ValidationFailure
from screens.students.models import StudentRecord

log = logging.getLogger(__name__)

MODE_CLOSED = "closed"
MODE_CREATE = "create"
MODE_EDIT = "edit"

FORM_FIELDS = ("name", "email", "student_id", "phone")


class FormController:
    """
    Add/Edit modal state plus the delete confirmation step.

    closed -> create (Add Student) -> closed
    closed -> edit(record)         -> closed
    Closing always resets to an empty template and clears the error.
    """

    def __init__(self):
        self.mode = MODE_CLOSED
        self.current = StudentRecord()
        self.error: Optional[str] = None
        self.pending_delete: Optional[StudentRecord] = None
        # Bumped on every open so each modal instance gets fresh widget keys.
        self.nonce = 0
        self._open_requested = False
        self._confirm_requested = False

    @property
    def is_open(self) -> bool:
        return self.mode != MODE_CLOSED

    @property
    def is_edit(self) -> bool:
        return self.mode == MODE_EDIT

    # ── modal transitions ──────────────────────────────────────────────────────

    def open_create(self) -> None:
        self.mode = MODE_CREATE
        self.current = StudentRecord()
        self.error = None
        self.nonce += 1
        self._open_requested = True

    def open_edit(self, record: StudentRecord) -> None:
        self.mode = MODE_EDIT
        self.current = record.copy()
        self.error = None
        self.nonce += 1
        self._open_requested = True

    def close(self) -> None:
        self.mode = MODE_CLOSED
        self.current = StudentRecord()
        self.error = None
        self._open_requested = False

    def consume_open_request(self) -> bool:
        """True once after open_create/open_edit; the page opens the dialog then."""
        requested, self._open_requested = self._open_requested, False
        return requested and self.is_open

    # ── submit ─────────────────────────────────────────────────────────────────

    def apply_values(self, values: Mapping[str, str]) -> None:
        changes = {k: values[k] for k in FORM_FIELDS if k in values}
        self.current = self.current.copy(**changes)

    def submit(self, adapter, values: Optional[Mapping[str, str]] = None) -> bool:
        """
        Validate and dispatch create or update. Returns True when the request
        was accepted (modal closed); False leaves the modal open with `error`.
        """
        if not self.is_open:
            return False
        if values:
            self.apply_values(values)
        record = self.current
        try:
            if self.is_edit:
                adapter.update(record.id, record)
            else:
                adapter.create(record)
        except (ValidationFailure, MutationFailure) as e:
            self.error = e.user_message
            return False
        self.close()
        return True

    # ── delete with confirmation ───────────────────────────────────────────────

    def request_delete(self, record: StudentRecord) -> None:
        self.pending_delete = record
        self._confirm_requested = True

    def consume_confirm_request(self) -> bool:
        requested, self._confirm_requested = self._confirm_requested, False
        return requested and self.pending_delete is not None

    def cancel_delete(self) -> None:
        if self.pending_delete is not None:
            log.debug("Delete cancelled for student document %s", self.pending_delete.id)
        self.pending_delete = None
        self._confirm_requested = False

    def confirm_delete(self, adapter) -> Optional[str]:
        """Dispatch the pending removal. Returns an error message on failure."""
        record, self.pending_delete = self.pending_delete, None
        self._confirm_requested = False
        if record is None or not record.id:
            return None
        log.info("Delete confirmed for student document %s", record.id)
        try:
            adapter.remove(record.id)
        except MutationFailure as e:
            return e.user_message
        return None
