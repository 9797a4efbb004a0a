import gc
import threading
import time

import pytest
from unittest.mock import Mock

from core.errors import MutationFailure, ValidationFailure
from core.store import SqlDocumentStore, Subscription
from screens.students.db import (
    ADD_FAILED,
    DELETE_FAILED,
    UPDATE_FAILED,
    StudentsState,
    StudentStoreAdapter,
)
from screens.students.models import StudentRecord


def _student(**overrides) -> StudentRecord:
    base = dict(name="Ana Li", email="ana@x.com", student_id="S100", phone="")
    base.update(overrides)
    return StudentRecord(**base)


class TestSubscription:

    def test_state_is_loading_until_first_snapshot(self, mock_store, settings):
        adapter = StudentStoreAdapter(mock_store, settings.partition_path)
        assert adapter.state.loading

        adapter.bind("alice")
        assert adapter.state.loading

        on_snapshot = mock_store.subscribe.call_args[0][1]
        on_snapshot([("1", {"name": "Ana Li", "email": "ana@x.com", "studentId": "S100"})])

        view = adapter.state.view()
        assert not view.loading
        assert [r.id for r in view.records] == ["1"]

    def test_subscribes_to_user_partition(self, mock_store, settings):
        adapter = StudentStoreAdapter(mock_store, settings.partition_path)
        adapter.bind("alice")
        assert mock_store.subscribe.call_args[0][0] == "artifacts/test-app/users/alice/students"
        assert adapter.partition_path == "artifacts/test-app/users/alice/students"

    def test_binding_same_user_twice_subscribes_once(self, mock_store, settings):
        adapter = StudentStoreAdapter(mock_store, settings.partition_path)
        adapter.bind("alice")
        adapter.bind("alice")
        assert mock_store.subscribe.call_count == 1

    def test_rebinding_tears_down_previous_listener(self, store, adapter):
        adapter.bind("alice")
        alice_path = adapter.partition_path
        assert store.listener_count(alice_path) == 1

        adapter.bind("bob")

        assert store.listener_count(alice_path) == 0
        assert store.listener_count(adapter.partition_path) == 1

    def test_late_snapshot_from_old_partition_is_ignored(self, mock_store, settings):
        adapter = StudentStoreAdapter(mock_store, settings.partition_path)
        adapter.bind("alice")
        old_on_snapshot = mock_store.subscribe.call_args[0][1]
        adapter.bind("bob")
        new_on_snapshot = mock_store.subscribe.call_args[0][1]
        new_on_snapshot([])

        old_on_snapshot([("a1", {"name": "Alice's student"})])

        assert adapter.state.records == []

    def test_subscribe_failure_sets_error(self, settings):
        store = Mock()
        store.subscribe.side_effect = RuntimeError("permission denied")
        adapter = StudentStoreAdapter(store, settings.partition_path)

        adapter.bind("alice")

        assert adapter.state.error == "Failed to fetch student data."
        assert not adapter.state.loading
        assert not adapter.subscribed

    def test_subscribe_failure_is_not_retried(self, settings):
        store = Mock()
        store.subscribe.side_effect = RuntimeError("offline")
        adapter = StudentStoreAdapter(store, settings.partition_path)

        adapter.bind("alice")
        adapter.bind("alice")

        assert store.subscribe.call_count == 1

    def test_stream_error_freezes_last_known_records(self, mock_store, settings):
        adapter = StudentStoreAdapter(mock_store, settings.partition_path)
        adapter.bind("alice")
        on_snapshot, on_error = mock_store.subscribe.call_args[0][1:3]
        on_snapshot([("1", {"name": "Ana Li"})])

        on_error(RuntimeError("stream closed"))

        view = adapter.state.view()
        assert view.error == "Failed to fetch student data."
        assert [r.id for r in view.records] == ["1"]

    def test_dropped_adapter_releases_listener(self, store, settings):
        adapter = StudentStoreAdapter(store, settings.partition_path)
        adapter.bind("alice")
        path = adapter.partition_path
        assert store.listener_count(path) == 1

        del adapter
        gc.collect()

        assert store.listener_count(path) == 0

    def test_write_during_first_snapshot_is_not_lost(self, engine, settings):
        reading = threading.Event()

        class SlowFirstRead(SqlDocumentStore):
            def snapshot(self, path):
                docs = super().snapshot(path)
                if not reading.is_set():
                    reading.set()
                    time.sleep(0.3)
                return docs

        store = SlowFirstRead(engine)
        adapter = StudentStoreAdapter(store, settings.partition_path)
        binder = threading.Thread(target=adapter.bind, args=("alice",))
        binder.start()
        assert reading.wait(5)

        store.insert(settings.partition_path("alice"), _student().to_fields())
        binder.join(5)

        assert len(store.snapshot(settings.partition_path("alice"))) == 1
        assert len(adapter.state.records) == 1
        adapter.close()

    def test_stopped_stream_is_reported_once(self, settings):
        alive = {"ok": True}
        cancel = Mock()
        store = Mock()
        store.subscribe.side_effect = lambda path, on_snapshot, on_error=None: Subscription(
            path, cancel, lambda: alive["ok"])
        adapter = StudentStoreAdapter(store, settings.partition_path)
        adapter.bind("alice")

        adapter.check_subscription()
        assert adapter.state.error is None

        alive["ok"] = False
        adapter.check_subscription()
        adapter.check_subscription()

        view = adapter.state.view()
        assert view.error == "Failed to fetch student data."
        assert not view.loading
        assert not adapter.subscribed
        cancel.assert_called_once_with()
        assert store.subscribe.call_count == 1


class TestMutations:

    def test_create_shows_up_once_with_store_id(self, adapter):
        adapter.bind("alice")

        adapter.create(_student())

        records = adapter.state.records
        assert len(records) == 1
        assert records[0].id
        assert records[0].name == "Ana Li"

    def test_update_replaces_record_in_place(self, adapter):
        adapter.bind("alice")
        adapter.create(_student())
        adapter.create(_student(name="Bo", email="bo@x.io", student_id="S2"))
        first = adapter.state.records[0]

        adapter.update(first.id, first.copy(name="Ana Maria", phone="555"))

        records = adapter.state.records
        assert [r.id for r in records][0] == first.id
        assert records[0].name == "Ana Maria"
        assert records[0].phone == "555"
        assert len(records) == 2

    def test_remove_deletes_exactly_that_id(self, adapter):
        adapter.bind("alice")
        for i in range(3):
            adapter.create(_student(student_id=f"S{i}"))
        ids = [r.id for r in adapter.state.records]

        adapter.remove(ids[1])

        assert [r.id for r in adapter.state.records] == [ids[0], ids[2]]

    def test_users_never_see_each_others_records(self, store, settings):
        alice = StudentStoreAdapter(store, settings.partition_path)
        bob = StudentStoreAdapter(store, settings.partition_path)
        alice.bind("alice")
        bob.bind("bob")

        alice.create(_student())

        assert len(alice.state.records) == 1
        assert bob.state.records == []

    @pytest.mark.parametrize("record", [
        _student(name=""),
        _student(email=""),
        _student(student_id=""),
        _student(email="not-an-email"),
    ])
    def test_invalid_records_never_reach_store(self, mock_store, settings, record):
        adapter = StudentStoreAdapter(mock_store, settings.partition_path)
        adapter.bind("alice")

        with pytest.raises(ValidationFailure):
            adapter.create(record)
        with pytest.raises(ValidationFailure):
            adapter.update("1", record)

        mock_store.insert.assert_not_called()
        mock_store.replace.assert_not_called()

    @pytest.mark.parametrize("method, args, message", [
        ("create", (_student(),), ADD_FAILED),
        ("update", ("1", _student()), UPDATE_FAILED),
        ("remove", ("1",), DELETE_FAILED),
    ])
    def test_store_errors_become_mutation_failures(self, mock_store, settings, method, args, message):
        mock_store.insert.side_effect = RuntimeError("unavailable")
        mock_store.replace.side_effect = RuntimeError("unavailable")
        mock_store.delete.side_effect = RuntimeError("unavailable")
        adapter = StudentStoreAdapter(mock_store, settings.partition_path)
        adapter.bind("alice")

        with pytest.raises(MutationFailure) as exc:
            getattr(adapter, method)(*args)

        assert exc.value.user_message == message

    def test_update_of_missing_document_fails(self, adapter):
        adapter.bind("alice")
        with pytest.raises(MutationFailure) as exc:
            adapter.update("missing", _student())
        assert exc.value.user_message == UPDATE_FAILED

    def test_mutation_does_not_touch_state_directly(self, mock_store, settings):
        adapter = StudentStoreAdapter(mock_store, settings.partition_path)
        adapter.bind("alice")
        before = adapter.state.version

        adapter.create(_student())

        assert adapter.state.version == before
        assert adapter.state.records == []

    def test_mutations_require_a_bound_user(self, store, settings):
        adapter = StudentStoreAdapter(store, settings.partition_path)
        with pytest.raises(RuntimeError):
            adapter.remove("1")


class TestStudentsState:

    def test_version_moves_on_every_write(self):
        state = StudentsState()
        v0 = state.version
        state.apply_snapshot([])
        state.fail("x")
        state.begin_loading()
        assert state.version == v0 + 3

    def test_snapshot_clears_previous_error(self):
        state = StudentsState()
        state.fail("Failed to fetch student data.")
        state.apply_snapshot([StudentRecord(id="1")])
        assert state.error is None
