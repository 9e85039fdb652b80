"""Tests for workflow hook lists and invocation."""

import pytest

from stratus.core.errors import BuildError, HookError
from stratus.provision.hooks import WorkflowHooks, hook_name, run_hooks


def first(*args):
    pass


def second(*args):
    pass


class TestFromLegacy:
    def test_single_handler_prepended(self):
        with pytest.warns(DeprecationWarning, match="pre_build"):
            hooks = WorkflowHooks.from_legacy(pre_build=first, pre_builds=[second])
        assert hooks.pre_builds == [first, second]

    def test_every_legacy_field(self):
        fields = ["pre_build", "post_build", "archive", "pre_marshal", "service_decorator", "post_marshal", "rollback"]
        with pytest.warns(DeprecationWarning):
            hooks = WorkflowHooks.from_legacy(**{name: first for name in fields})
        for name in fields:
            assert getattr(hooks, f"{name}s") == [first]

    def test_none_is_ignored(self, recwarn):
        hooks = WorkflowHooks.from_legacy(rollback=None, context={"a": 1})
        assert hooks.rollbacks == []
        assert hooks.context == {"a": 1}
        assert not [w for w in recwarn if issubclass(w.category, DeprecationWarning)]

    def test_list_form_is_default(self):
        hooks = WorkflowHooks(archives=[first, second])
        assert hooks.archives == [first, second]
        assert hooks.pre_builds == []


class TestRunHooks:
    def test_in_order_with_arguments(self):
        calls = []
        run_hooks(
            "pre_build",
            [lambda *a: calls.append(("one", a)), lambda *a: calls.append(("two", a))],
            "ctx",
            "svc",
        )
        assert calls == [("one", ("ctx", "svc")), ("two", ("ctx", "svc"))]

    def test_first_failure_stops_chain(self):
        calls = []

        def broken(*args):
            raise RuntimeError("bad")

        with pytest.raises(HookError) as exc_info:
            run_hooks("post_build", [broken, lambda *a: calls.append("after")])
        assert calls == []
        assert exc_info.value.phase == "post_build"
        assert exc_info.value.hook.endswith("broken")
        assert isinstance(exc_info.value.cause, RuntimeError)

    def test_stratus_errors_pass_through(self):
        def broken(*args):
            raise BuildError("lint failed")

        with pytest.raises(BuildError):
            run_hooks("pre_build", [broken])

    def test_hook_name(self):
        assert hook_name(first) == "first"
