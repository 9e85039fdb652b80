"""Interfaces of the external services a provisioning run talks to.

The boto3-backed implementations live in ``stratus.aws``; tests use
in-memory fakes with the same shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from stratus.provision.build import Toolchain


@runtime_checkable
class IdentityService(Protocol):
    def get_role_arn(self, role_name: str) -> str:
        """Return the ARN of an existing role.

        Raises:
            RoleNotFoundError: the role does not exist
            IdentityServiceError: the lookup itself failed
        """
        ...


@runtime_checkable
class ObjectStorage(Protocol):
    def put(self, bucket: str, key: str, body: bytes) -> None: ...

    def upload_file(self, path: Path, bucket: str, key: str) -> None: ...

    def delete(self, bucket: str, key: str) -> None: ...

    def get_lifecycle_rules(self, bucket: str) -> list[dict[str, Any]] | None:
        """Lifecycle rules of ``bucket``, or None when none are configured."""
        ...


@dataclass
class StackInfo:
    stack_name: str
    stack_id: str | None = None
    status: str | None = None
    outputs: dict[str, str] = field(default_factory=dict)
    changed: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "stack_name": self.stack_name,
            "stack_id": self.stack_id,
            "status": self.status,
            "outputs": dict(self.outputs),
            "changed": self.changed,
        }


@runtime_checkable
class ConvergenceTarget(Protocol):
    def converge(
        self,
        stack_name: str,
        template: str,
        tags: dict[str, str],
        start_time: datetime,
        template_key: str,
    ) -> StackInfo:
        """Create or update ``stack_name`` from ``template``.

        The template is passed by reference through object storage under
        ``template_key``. Implementations clean up that object themselves
        when convergence fails.
        """
        ...


@dataclass
class ProvisionClients:
    """The collaborators one run needs."""

    identity: IdentityService
    storage: ObjectStorage
    target: ConvergenceTarget
    toolchain: Toolchain
    session: Any = None
