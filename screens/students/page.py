# screens/students/page.py
# -------------------------------------------------------------------
# Student Management page
# - Anonymous session -> per-user live student list
# - Search, Add/Edit modal, Delete with confirmation
# -------------------------------------------------------------------
from __future__ import annotations

import logging
from typing import Optional

import streamlit as st

from core.errors import AuthenticationFailure, InitializationFailure
from core.providers import Providers, get_providers
from core.session import SessionManager
from core.settings import Settings, load_settings
from screens.students.db import StudentStoreAdapter
from screens.students.form import FormController
from screens.students.models import StudentRecord
from screens.students.utils import filter_students, students_frame

log = logging.getLogger(__name__)

# ────────────────────────────────────────────────────────────────────────────────
# Small helpers
# ────────────────────────────────────────────────────────────────────────────────

def _k(s: str) -> str:
    """Per-page key namespace to avoid collisions if rendered twice."""
    return f"students__{s}"


def _get_form() -> FormController:
    form = st.session_state.get(_k("form"))
    if form is None:
        form = FormController()
        st.session_state[_k("form")] = form
    return form


def _get_adapter(providers: Providers, settings: Settings) -> StudentStoreAdapter:
    """One adapter (and so one live listener) per browser session."""
    adapter = st.session_state.get(_k("adapter"))
    if adapter is not None and adapter.store is providers.store:
        return adapter
    if adapter is not None:
        adapter.close()
    adapter = StudentStoreAdapter(providers.store, settings.partition_path)
    log.debug("New student store adapter for this session (%s)", providers.backend)
    st.session_state[_k("adapter")] = adapter
    return adapter


def _identity_hint(settings: Settings) -> Optional[str]:
    if not settings.PERSIST_IDENTITY_IN_URL:
        return None
    return st.query_params.get("uid") or None


def _set_page_error(message: Optional[str]) -> None:
    if message:
        st.session_state[_k("page_error")] = message


# ────────────────────────────────────────────────────────────────────────────────
# Dialogs
# ────────────────────────────────────────────────────────────────────────────────

def _student_form_body(form: FormController, adapter: StudentStoreAdapter) -> None:
    banner = st.empty()
    if form.error:
        banner.error(form.error)

    n = form.nonce
    cur = form.current
    with st.form(_k(f"student_form_{n}"), border=False):
        name = st.text_input("Full Name", value=cur.name, key=_k(f"name_{n}"))
        email = st.text_input("Email Address", value=cur.email, key=_k(f"email_{n}"))
        student_id = st.text_input("Student ID", value=cur.student_id, placeholder="#", key=_k(f"sid_{n}"))
        phone = st.text_input("Phone Number (Optional)", value=cur.phone, key=_k(f"phone_{n}"))

        col_cancel, col_submit = st.columns(2)
        cancelled = col_cancel.form_submit_button("Cancel", use_container_width=True)
        submitted = col_submit.form_submit_button(
            "Save Changes" if form.is_edit else "Add Student",
            type="primary",
            use_container_width=True,
        )

    if cancelled:
        form.close()
        st.rerun()

    if submitted:
        values = {"name": name, "email": email, "student_id": student_id, "phone": phone}
        if form.submit(adapter, values):
            st.rerun()
        banner.error(form.error)


@st.dialog("Add New Student")
def _add_student_dialog(form: FormController, adapter: StudentStoreAdapter) -> None:
    _student_form_body(form, adapter)


@st.dialog("Edit Student")
def _edit_student_dialog(form: FormController, adapter: StudentStoreAdapter) -> None:
    _student_form_body(form, adapter)


@st.dialog("Delete Student")
def _confirm_delete_dialog(form: FormController, adapter: StudentStoreAdapter) -> None:
    record = form.pending_delete
    st.write("Are you sure you want to delete this student?")
    if record is not None:
        st.caption(f"**{record.name}** ({record.student_id})")

    col_cancel, col_delete = st.columns(2)
    if col_cancel.button("Cancel", key=_k("confirm_cancel"), use_container_width=True):
        form.cancel_delete()
        st.rerun()
    if col_delete.button("🗑️ Delete", type="primary", key=_k("confirm_delete"), use_container_width=True):
        _set_page_error(form.confirm_delete(adapter))
        st.rerun()


# ────────────────────────────────────────────────────────────────────────────────
# Body (re-run on an interval so listener snapshots show up)
# ────────────────────────────────────────────────────────────────────────────────

def _render_table(records: list[StudentRecord], form: FormController) -> None:
    event = st.dataframe(
        students_frame(records),
        hide_index=True,
        use_container_width=True,
        on_select="rerun",
        selection_mode="single-row",
        key=_k("table"),
    )
    rows = event.selection.rows if event is not None else []
    selected = records[rows[0]] if rows and rows[0] < len(records) else None

    col_edit, col_delete, _ = st.columns([1, 1, 4])
    if col_edit.button("✏️ Edit", disabled=selected is None, key=_k("edit_btn"), use_container_width=True):
        form.open_edit(selected)
        st.rerun()
    if col_delete.button("🗑️ Delete", disabled=selected is None, key=_k("delete_btn"), use_container_width=True):
        form.request_delete(selected)
        st.rerun()
    if selected is None:
        st.caption("Select a row to edit or delete it.")


@st.fragment(run_every=load_settings().STUDENTS_REFRESH_SECONDS or None)
def _students_body() -> None:
    adapter: Optional[StudentStoreAdapter] = st.session_state.get(_k("adapter"))
    form = _get_form()
    if adapter is None:
        return
    adapter.check_subscription()
    view = adapter.state.view()

    col_search, col_count = st.columns([3, 1])
    with col_search:
        term = st.text_input(
            "Search",
            placeholder="Search by name, email, or ID...",
            key=_k("search"),
            label_visibility="collapsed",
        )
    col_count.markdown(f"Total Students: **{len(view.records)}**")

    if view.error:
        st.error(view.error)

    if view.loading:
        st.info("Loading student data...")
        return

    if not view.records:
        st.markdown("### 👤 No Students Found")
        st.caption('Click "Add Student" to get started.')
        return

    filtered = filter_students(view.records, term)
    if not filtered:
        st.markdown("### No Matching Students")
        st.caption("Try a different search term.")
        return

    _render_table(filtered, form)


# ────────────────────────────────────────────────────────────────────────────────
# Main
# ────────────────────────────────────────────────────────────────────────────────
def render() -> None:
    settings = load_settings()

    col_title, col_add = st.columns([4, 1], vertical_alignment="center")
    with col_title:
        st.title("🎓 Student Management System")
        st.caption("Add, edit and search student records.")

    try:
        providers = get_providers(settings)
    except InitializationFailure as e:
        st.error(e.user_message)
        st.stop()

    session = SessionManager(providers.auth, st.session_state)
    try:
        user_id = session.resolve(_identity_hint(settings))
    except AuthenticationFailure as e:
        st.error(e.user_message)
        st.stop()
    if settings.PERSIST_IDENTITY_IN_URL and st.query_params.get("uid") != user_id:
        st.query_params["uid"] = user_id

    adapter = _get_adapter(providers, settings)
    adapter.bind(user_id)
    form = _get_form()

    if col_add.button("➕ Add Student", type="primary", key=_k("add_btn"), use_container_width=True):
        form.open_create()

    page_error = st.session_state.pop(_k("page_error"), None)
    if page_error:
        st.error(page_error)

    _students_body()

    if form.consume_open_request():
        if form.is_edit:
            _edit_student_dialog(form, adapter)
        else:
            _add_student_dialog(form, adapter)
    elif form.consume_confirm_request():
        _confirm_delete_dialog(form, adapter)

    st.caption(f"Session `{user_id}` · backend: {providers.backend}")


# Always render on import so navigating away/back re-renders reliably.
render()
