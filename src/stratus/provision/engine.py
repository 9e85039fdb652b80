"""
Provisioning workflow engine.

Manifesto:
    A provisioning run is all-or-nothing. Preconditions are checked before
    the step chain starts, so invalid declarations never cause side
    effects. Once the chain starts, any step failure stops it, runs every
    registered compensation (plus user rollback hooks) concurrently, and
    re-raises the original error unchanged.

Architecture:
    ::

        provision(service, ...)
              │
              ├── validate_service()        PreconditionError, no rollback
              │
              └── run_workflow(ctx)
                    step = verify_roles
                    while step:             single control thread
                        step = step(ctx)
                    ─ on error ─► rollback_all(ctx.rollback_actions, hooks.rollbacks)
                                  raise original

Examples:
    >>> result = provision(service, bucket="artifacts", build_id="1", clients=clients)
    >>> result.archive_key
    'hello/hello-code.zip'

Tags:
    workflow, engine, rollback, state-machine, stratus

Doc-Types:
    - API Reference
    - Architecture Documentation
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TextIO

from stratus.core.errors import ConfigError, OrchestrationError, categorize_error, is_retryable
from stratus.core.logging import LogContext, get_logger
from stratus.graph.registry import ResourceTypeRegistry
from stratus.model.declarations import ServiceDefinition
from stratus.provision.clients import ProvisionClients, StackInfo
from stratus.provision.context import ProvisionContext, StepRecord
from stratus.provision.hooks import WorkflowHooks
from stratus.provision.rollback import rollback_all
from stratus.provision.steps import Step, verify_roles
from stratus.provision.validation import validate_service

logger = get_logger(__name__)


@dataclass
class ProvisionResult:
    """What a successful run produced."""

    service_name: str
    build_id: str
    dry_run: bool
    archive_key: str | None
    site_key: str | None
    template_key: str | None
    template: str | None
    stack: StackInfo | None
    steps: list[StepRecord] = field(default_factory=list)
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "service_name": self.service_name,
            "build_id": self.build_id,
            "dry_run": self.dry_run,
            "archive_key": self.archive_key,
            "site_key": self.site_key,
            "template_key": self.template_key,
            "stack": self.stack.to_dict() if self.stack else None,
            "steps": [s.to_dict() for s in self.steps],
            "duration_seconds": self.duration_seconds,
        }


def default_build_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")


def _step_name(step: Step) -> str:
    return getattr(step, "__name__", None) or repr(step)


def run_workflow(ctx: ProvisionContext, first: Step = verify_roles) -> None:
    """Drive the step chain; on failure roll back and re-raise."""
    log = ctx.logger
    step: Step | None = first
    started = time.monotonic()
    try:
        while step is not None:
            record = StepRecord(_step_name(step), "running", datetime.now(timezone.utc))
            ctx.steps.append(record)
            log.info("step.start", step=record.step_name)
            try:
                step = step(ctx)
                if step is not None and not callable(step):
                    raise OrchestrationError(
                        f"Step {record.step_name} returned {step!r}, expected the next step or None"
                    )
            except Exception as exc:
                record.status = "failed"
                record.error = str(exc)
                record.completed_at = datetime.now(timezone.utc)
                raise
            record.status = "completed"
            record.completed_at = datetime.now(timezone.utc)
            log.info("step.complete", step=record.step_name, duration_seconds=record.duration_seconds)
    except Exception as exc:
        log.error(
            "workflow.failed",
            step=ctx.steps[-1].step_name if ctx.steps else None,
            error=str(exc),
            error_type=type(exc).__name__,
            error_category=categorize_error(exc).value,
            retryable=is_retryable(exc),
        )
        rollback_all(
            list(ctx.rollback_actions),
            ctx.hooks.rollbacks,
            hook_context=ctx.hook_context,
            service_name=ctx.service_name,
            session=ctx.session,
            dry_run=ctx.dry_run,
            log=log,
        )
        raise
    finally:
        log.info("workflow.elapsed", seconds=round(time.monotonic() - started, 3))


def provision(
    service: ServiceDefinition,
    *,
    bucket: str,
    clients: ProvisionClients,
    build_id: str | None = None,
    dry_run: bool = False,
    build_tags: str = "",
    linker_flags: str = "",
    runtime: str = "nodejs18.x",
    log_level: str = "INFO",
    work_dir: Path | str = ".stratus",
    template_writer: TextIO | None = None,
    hooks: WorkflowHooks | None = None,
    registry: ResourceTypeRegistry | None = None,
    log: Any = None,
) -> ProvisionResult:
    """Provision ``service`` as one stack.

    Hooks come from ``hooks`` or ``service.hooks``; passing a different
    hooks object through both is an error.

    Raises:
        ConfigError: hooks given twice
        PreconditionError: declarations are invalid (nothing was done)
        StratusError: a step failed (rollback already ran)
    """
    if hooks is not None and service.hooks is not None and hooks is not service.hooks:
        raise ConfigError(f"Hooks for {service.name} given both on the service and to provision()")
    validate_service(service)

    ctx = ProvisionContext(
        service=service,
        bucket=bucket,
        build_id=build_id or default_build_id(),
        clients=clients,
        logger=log or logger,
        dry_run=dry_run,
        build_tags=build_tags,
        linker_flags=linker_flags,
        runtime=runtime,
        log_level=log_level,
        work_dir=Path(work_dir),
        template_writer=template_writer,
        hooks=hooks or service.hooks or WorkflowHooks(),
        registry=registry or ResourceTypeRegistry.default(),
    )
    started = time.monotonic()
    with LogContext(service=ctx.service_name, build_id=ctx.build_id):
        ctx.logger.info("workflow.start", bucket=bucket, dry_run=dry_run, functions=len(service.functions))
        run_workflow(ctx)
        result = ProvisionResult(
            service_name=ctx.service_name,
            build_id=ctx.build_id,
            dry_run=dry_run,
            archive_key=ctx.archive_key,
            site_key=ctx.site_key,
            template_key=ctx.template_key,
            template=ctx.template,
            stack=ctx.stack,
            steps=list(ctx.steps),
            duration_seconds=round(time.monotonic() - started, 3),
        )
        ctx.logger.info("workflow.complete", duration_seconds=result.duration_seconds)
    return result
