"""boto3 session and the client bundle a provisioning run uses."""

from __future__ import annotations

from typing import Any

import boto3

from stratus.aws.cloudformation import CloudFormationTarget
from stratus.aws.identity import IAMIdentityService
from stratus.aws.storage import S3ObjectStorage
from stratus.provision.build import GoToolchain, Toolchain
from stratus.provision.clients import ProvisionClients


def create_session(region: str | None = None, profile: str | None = None) -> boto3.session.Session:
    kwargs: dict[str, Any] = {}
    if region:
        kwargs["region_name"] = region
    if profile:
        kwargs["profile_name"] = profile
    return boto3.session.Session(**kwargs)


def aws_clients(
    session: boto3.session.Session,
    bucket: str,
    toolchain: Toolchain | None = None,
) -> ProvisionClients:
    """Wire IAM, S3 and CloudFormation implementations from one session."""
    storage = S3ObjectStorage.from_session(session)
    return ProvisionClients(
        identity=IAMIdentityService.from_session(session),
        storage=storage,
        target=CloudFormationTarget.from_session(session, storage, bucket),
        toolchain=toolchain or GoToolchain(),
        session=session,
    )
