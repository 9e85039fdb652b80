"""Compensating actions and the concurrent rollback that runs them.

An action is registered only after its forward operation succeeded, and is
invoked only when the run as a whole fails. Actions run concurrently with
each other and with the user rollback hooks; rollback blocks until all of
them finish. A failing action is logged as a warning and never replaces the
error that triggered the rollback.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any

from stratus.core.logging import get_logger
from stratus.provision.clients import ObjectStorage
from stratus.provision.hooks import RollbackHook, hook_name

logger = get_logger(__name__)


@dataclass(frozen=True)
class RollbackAction:
    """An idempotent compensation bound to the resource it undoes."""

    description: str
    undo: Callable[[], None]

    def __call__(self) -> None:
        self.undo()


def delete_object_action(storage: ObjectStorage, bucket: str, key: str) -> RollbackAction:
    def undo() -> None:
        storage.delete(bucket, key)

    return RollbackAction(f"delete s3://{bucket}/{key}", undo)


def rollback_all(
    actions: list[RollbackAction],
    hooks: list[RollbackHook] | None = None,
    *,
    hook_context: dict[str, Any] | None = None,
    service_name: str = "",
    session: Any = None,
    dry_run: bool = False,
    log: Any = None,
) -> int:
    """Run every action and rollback hook concurrently.

    Returns:
        Number of actions or hooks that failed
    """
    log = log or logger
    shared = hook_context if hook_context is not None else {}
    tasks: list[tuple[str, Callable[[], None]]] = [(a.description, a) for a in actions]
    for hook in hooks or []:
        tasks.append(
            (
                f"hook {hook_name(hook)}",
                lambda h=hook: h(shared, service_name, session, dry_run, log),
            )
        )
    if not tasks:
        log.info("rollback.nothing_to_do")
        return 0

    log.warning("rollback.start", actions=len(actions), hooks=len(tasks) - len(actions))
    failures = 0
    with ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix="rollback") as pool:
        futures = {pool.submit(task): label for label, task in tasks}
        for future in as_completed(futures):
            label = futures[future]
            try:
                future.result()
                log.info("rollback.action_complete", action=label)
            except Exception as exc:
                failures += 1
                log.warning("rollback.action_failed", action=label, error=str(exc))
    log.warning("rollback.complete", failures=failures)
    return failures
