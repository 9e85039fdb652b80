"""IAM-backed identity service."""

from __future__ import annotations

from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from stratus.core.errors import IdentityServiceError, RoleNotFoundError
from stratus.core.logging import get_logger

logger = get_logger(__name__)


class IAMIdentityService:
    """Looks up existing roles by name."""

    def __init__(self, client: Any):
        self._client = client

    @classmethod
    def from_session(cls, session: Any) -> IAMIdentityService:
        return cls(session.client("iam"))

    def get_role_arn(self, role_name: str) -> str:
        try:
            response = self._client.get_role(RoleName=role_name)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code == "NoSuchEntity":
                raise RoleNotFoundError(role_name, cause=exc) from exc
            raise IdentityServiceError(role_name, f"IAM GetRole failed for {role_name}: {code}", cause=exc) from exc
        except BotoCoreError as exc:
            raise IdentityServiceError(role_name, cause=exc) from exc
        arn = response["Role"]["Arn"]
        logger.debug("iam.role_found", role=role_name, arn=arn)
        return arn
