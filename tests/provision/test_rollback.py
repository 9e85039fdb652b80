"""Tests for concurrent rollback."""

import threading

from stratus.provision.rollback import RollbackAction, delete_object_action, rollback_all
from tests._support.fakes import FakeStorage


class TestRollbackAll:
    def test_nothing_to_do(self):
        assert rollback_all([]) == 0

    def test_runs_every_action(self):
        storage = FakeStorage()
        actions = [delete_object_action(storage, "b", f"k{i}") for i in range(3)]
        assert rollback_all(actions) == 0
        assert sorted(storage.deleted) == ["k0", "k1", "k2"]

    def test_failures_counted_not_raised(self):
        storage = FakeStorage()

        def broken():
            raise RuntimeError("gone")

        actions = [RollbackAction("broken", broken), delete_object_action(storage, "b", "k")]
        assert rollback_all(actions) == 1
        assert storage.deleted == ["k"]

    def test_actions_run_concurrently(self):
        barrier = threading.Barrier(2, timeout=5)
        actions = [RollbackAction(f"wait {i}", barrier.wait) for i in range(2)]
        assert rollback_all(actions) == 0

    def test_hooks_receive_arguments(self):
        seen = []
        rollback_all(
            [],
            [lambda *args: seen.append(args)],
            hook_context={"k": "v"},
            service_name="svc",
            session="session",
            dry_run=True,
        )
        context, service_name, session, dry_run, log = seen[0]
        assert (context, service_name, session, dry_run) == ({"k": "v"}, "svc", "session", True)
        assert log is not None

    def test_failing_hook_does_not_stop_actions(self):
        storage = FakeStorage()

        def broken_hook(*args):
            raise ValueError("hook failed")

        failures = rollback_all([delete_object_action(storage, "b", "k")], [broken_hook])
        assert failures == 1
        assert storage.deleted == ["k"]
