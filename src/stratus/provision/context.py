"""
Provision context - the mutable state threaded through every step.

Manifesto:
    One context per run, owned by the control thread. Steps read and
    mutate it in sequence. The only writes from other threads are rollback
    registrations made by concurrent uploads, and those go through
    ``register_rollback`` under a lock.

Tags:
    context, workflow, state, stratus
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TextIO

from stratus.graph.registry import ResourceTypeRegistry
from stratus.graph.template import ResourceGraph
from stratus.model.declarations import ServiceDefinition
from stratus.provision.clients import ProvisionClients, StackInfo
from stratus.provision.hooks import WorkflowHooks
from stratus.provision.rollback import RollbackAction


@dataclass
class StepRecord:
    """Outcome of one workflow step."""

    step_name: str
    status: str  # "completed", "failed"
    started_at: datetime
    completed_at: datetime | None = None
    error: str | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "step_name": self.step_name,
            "status": self.status,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
            "error": self.error,
        }


@dataclass
class ProvisionContext:
    """Shared state of one provisioning run."""

    service: ServiceDefinition
    bucket: str
    build_id: str
    clients: ProvisionClients
    logger: Any
    dry_run: bool = False
    build_tags: str = ""
    linker_flags: str = ""
    runtime: str = "nodejs18.x"
    log_level: str = "INFO"
    work_dir: Path = field(default_factory=lambda: Path(".stratus"))
    template_writer: TextIO | None = None
    hooks: WorkflowHooks = field(default_factory=WorkflowHooks)
    registry: ResourceTypeRegistry = field(default_factory=ResourceTypeRegistry.default)
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    graph: ResourceGraph = field(init=False)
    role_refs: dict[str, Any] = field(default_factory=dict)
    archive_key: str | None = None
    site_key: str | None = None
    template_key: str | None = None
    template: str | None = None
    stack: StackInfo | None = None
    rollback_actions: list[RollbackAction] = field(default_factory=list)
    steps: list[StepRecord] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        self.graph = ResourceGraph(self.service.description, self.registry)

    @property
    def service_name(self) -> str:
        return self.service.name

    @property
    def hook_context(self) -> dict[str, Any]:
        return self.hooks.context

    @property
    def session(self) -> Any:
        return self.clients.session

    def register_rollback(self, action: RollbackAction) -> None:
        """Append a compensation; safe to call from upload threads."""
        with self._lock:
            self.rollback_actions.append(action)
