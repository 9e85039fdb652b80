"""
CloudFormation convergence target.

Manifesto:
    Convergence is create-or-update by stack name. The template is too
    large to pass inline, so it is uploaded to the artifact bucket and
    passed by URL. An update with nothing to change is a success. When a
    stack operation fails, the stack events recorded since the run began
    explain why.

Tags:
    cloudformation, converge, stack, boto3, stratus
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError, WaiterError

from stratus.core.errors import ConvergeError, StratusError
from stratus.core.logging import get_logger
from stratus.provision.clients import ObjectStorage, StackInfo

logger = get_logger(__name__)

CAPABILITIES = ["CAPABILITY_IAM", "CAPABILITY_NAMED_IAM"]
NO_UPDATES = "No updates are to be performed"


def template_url(bucket: str, key: str, region: str | None) -> str:
    if region and region != "us-east-1":
        return f"https://{bucket}.s3.{region}.amazonaws.com/{key}"
    return f"https://{bucket}.s3.amazonaws.com/{key}"


class CloudFormationTarget:
    """Converges one stack per call."""

    def __init__(
        self,
        client: Any,
        storage: ObjectStorage,
        bucket: str,
        *,
        poll_delay: int = 5,
        max_attempts: int = 720,
    ):
        self._client = client
        self._storage = storage
        self.bucket = bucket
        self.poll_delay = poll_delay
        self.max_attempts = max_attempts

    @classmethod
    def from_session(cls, session: Any, storage: ObjectStorage, bucket: str) -> CloudFormationTarget:
        return cls(session.client("cloudformation"), storage, bucket)

    @property
    def region(self) -> str | None:
        return getattr(getattr(self._client, "meta", None), "region_name", None)

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def describe(self, stack_name: str) -> dict[str, Any] | None:
        try:
            response = self._client.describe_stacks(StackName=stack_name)
        except ClientError as exc:
            if "does not exist" in str(exc):
                return None
            raise ConvergeError(f"Failed to describe stack {stack_name}", stack_name=stack_name, cause=exc) from exc
        stacks = response.get("Stacks", [])
        return stacks[0] if stacks else None

    def stack_info(self, stack_name: str, changed: bool = True) -> StackInfo:
        stack = self.describe(stack_name) or {}
        return StackInfo(
            stack_name=stack_name,
            stack_id=stack.get("StackId"),
            status=stack.get("StackStatus"),
            outputs={o["OutputKey"]: o["OutputValue"] for o in stack.get("Outputs", [])},
            changed=changed,
        )

    def failure_reasons(self, stack_name: str, since: datetime) -> list[str]:
        """Failed resource events recorded at or after ``since``."""
        reasons: list[str] = []
        try:
            paginator = self._client.get_paginator("describe_stack_events")
            for page in paginator.paginate(StackName=stack_name):
                for event in page.get("StackEvents", []):
                    timestamp = event.get("Timestamp")
                    if timestamp is not None and timestamp < since:
                        return reasons
                    if str(event.get("ResourceStatus", "")).endswith("_FAILED"):
                        reasons.append(
                            f"{event.get('LogicalResourceId')}: {event.get('ResourceStatusReason', 'unknown')}"
                        )
        except (BotoCoreError, ClientError) as exc:
            logger.warning("cloudformation.events_unavailable", stack=stack_name, error=str(exc))
        return reasons

    # ------------------------------------------------------------------ #
    # Convergence
    # ------------------------------------------------------------------ #

    def _wait(self, waiter_name: str, stack_name: str) -> None:
        waiter = self._client.get_waiter(waiter_name)
        waiter.wait(
            StackName=stack_name,
            WaiterConfig={"Delay": self.poll_delay, "MaxAttempts": self.max_attempts},
        )

    def _apply(self, stack_name: str, params: dict[str, Any]) -> bool:
        """Create or update; returns False when there was nothing to update."""
        existing = self.describe(stack_name)
        if existing is not None and existing.get("StackStatus") == "ROLLBACK_COMPLETE":
            logger.warning("cloudformation.replacing_failed_stack", stack=stack_name)
            self._client.delete_stack(StackName=stack_name)
            self._wait("stack_delete_complete", stack_name)
            existing = None

        if existing is None:
            logger.info("cloudformation.create", stack=stack_name)
            self._client.create_stack(**params)
            self._wait("stack_create_complete", stack_name)
            return True

        logger.info("cloudformation.update", stack=stack_name)
        try:
            self._client.update_stack(**params)
        except ClientError as exc:
            if NO_UPDATES in str(exc):
                logger.info("cloudformation.no_changes", stack=stack_name)
                return False
            raise
        self._wait("stack_update_complete", stack_name)
        return True

    def converge(
        self,
        stack_name: str,
        template: str,
        tags: dict[str, str],
        start_time: datetime,
        template_key: str,
    ) -> StackInfo:
        self._storage.put(self.bucket, template_key, template.encode("utf-8"))
        params = {
            "StackName": stack_name,
            "TemplateURL": template_url(self.bucket, template_key, self.region),
            "Capabilities": CAPABILITIES,
            "Tags": [{"Key": k, "Value": v} for k, v in sorted(tags.items())],
        }
        try:
            changed = self._apply(stack_name, params)
            return self.stack_info(stack_name, changed=changed)
        except WaiterError as exc:
            self._discard_template(template_key)
            reasons = self.failure_reasons(stack_name, start_time)
            raise ConvergeError(
                f"Stack {stack_name} did not converge: {exc}",
                stack_name=stack_name,
                reasons=reasons,
                cause=exc,
            ) from exc
        except StratusError:
            self._discard_template(template_key)
            raise
        except (BotoCoreError, ClientError) as exc:
            self._discard_template(template_key)
            raise ConvergeError(
                f"Stack {stack_name} was rejected: {exc}",
                stack_name=stack_name,
                cause=exc,
            ) from exc

    def _discard_template(self, template_key: str) -> None:
        try:
            self._storage.delete(self.bucket, template_key)
        except StratusError as exc:
            logger.warning("cloudformation.template_cleanup_failed", key=template_key, error=str(exc))
