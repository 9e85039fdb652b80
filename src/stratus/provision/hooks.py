"""
Workflow hooks: user callbacks injected into the provisioning steps.

Every hook type is an ordered list of handlers invoked in registration
order. The single-handler fields older callers used are accepted only by
``WorkflowHooks.from_legacy``, which turns each into the first entry of the
matching list.

Callback shapes:
    build hook:     (hook_context, service_name, bucket, build_id, session, dry_run, logger)
    archive hook:   (hook_context, service_name, archive, session, dry_run, logger)
    decorator hook: (hook_context, service_name, scratch_graph, bucket, build_id, session, dry_run, logger)
    rollback hook:  (hook_context, service_name, session, dry_run, logger)

A hook signals failure by raising. Build, archive and decorator hook
failures are wrapped in HookError; rollback hook failures are logged.
"""

from __future__ import annotations

import warnings
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from stratus.core.errors import HookError, StratusError
from stratus.core.logging import get_logger

logger = get_logger(__name__)

BuildHook = Callable[..., None]
ArchiveHook = Callable[..., None]
ServiceDecoratorHook = Callable[..., None]
RollbackHook = Callable[..., None]

_LEGACY_FIELDS = {
    "pre_build": "pre_builds",
    "post_build": "post_builds",
    "archive": "archives",
    "pre_marshal": "pre_marshals",
    "service_decorator": "service_decorators",
    "post_marshal": "post_marshals",
    "rollback": "rollbacks",
}


@dataclass
class WorkflowHooks:
    """Ordered hook lists plus the mutable map shared by every hook."""

    context: dict[str, Any] = field(default_factory=dict)
    pre_builds: list[BuildHook] = field(default_factory=list)
    post_builds: list[BuildHook] = field(default_factory=list)
    archives: list[ArchiveHook] = field(default_factory=list)
    pre_marshals: list[BuildHook] = field(default_factory=list)
    service_decorators: list[ServiceDecoratorHook] = field(default_factory=list)
    post_marshals: list[BuildHook] = field(default_factory=list)
    rollbacks: list[RollbackHook] = field(default_factory=list)

    @classmethod
    def from_legacy(cls, **kwargs: Any) -> WorkflowHooks:
        """Build hooks from a mix of list fields and deprecated single handlers.

        Example:
            WorkflowHooks.from_legacy(pre_build=check, pre_builds=[lint])
            # pre_builds == [check, lint]
        """
        singles = {name: kwargs.pop(name) for name in list(kwargs) if name in _LEGACY_FIELDS}
        hooks = cls(**kwargs)
        for name, handler in singles.items():
            if handler is None:
                continue
            list_name = _LEGACY_FIELDS[name]
            warnings.warn(
                f"WorkflowHooks.{name} is deprecated; use {list_name}=[...]",
                DeprecationWarning,
                stacklevel=2,
            )
            logger.warning("hooks.deprecated_field", field=name, replacement=list_name)
            getattr(hooks, list_name).insert(0, handler)
        return hooks


def hook_name(handler: Callable[..., Any]) -> str:
    return getattr(handler, "__qualname__", None) or getattr(handler, "__name__", None) or repr(handler)


def run_hooks(phase: str, handlers: list[Callable[..., None]], *args: Any) -> None:
    """Invoke ``handlers`` in order; the first failure stops the chain."""
    for handler in handlers:
        name = hook_name(handler)
        logger.debug("hook.invoke", phase=phase, hook=name)
        try:
            handler(*args)
        except StratusError:
            raise
        except Exception as exc:
            raise HookError(name, phase, exc) from exc
