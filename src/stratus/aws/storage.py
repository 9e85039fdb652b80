"""S3-backed object storage."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from stratus.core.errors import StorageError
from stratus.core.logging import get_logger

logger = get_logger(__name__)


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


class S3ObjectStorage:
    """put/delete/lifecycle operations against one S3 client."""

    def __init__(self, client: Any):
        self._client = client

    @classmethod
    def from_session(cls, session: Any) -> S3ObjectStorage:
        return cls(session.client("s3"))

    @property
    def region(self) -> str | None:
        return getattr(getattr(self._client, "meta", None), "region_name", None)

    def put(self, bucket: str, key: str, body: bytes) -> None:
        try:
            self._client.put_object(Bucket=bucket, Key=key, Body=body)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to put s3://{bucket}/{key}", cause=exc).with_context(
                bucket=bucket, key=key
            ) from exc

    def upload_file(self, path: Path, bucket: str, key: str) -> None:
        try:
            self._client.upload_file(str(path), bucket, key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to upload {path} to s3://{bucket}/{key}", cause=exc).with_context(
                bucket=bucket, key=key
            ) from exc
        logger.debug("s3.uploaded", bucket=bucket, key=key, bytes=path.stat().st_size)

    def delete(self, bucket: str, key: str) -> None:
        try:
            self._client.delete_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to delete s3://{bucket}/{key}", cause=exc).with_context(
                bucket=bucket, key=key
            ) from exc

    def get_lifecycle_rules(self, bucket: str) -> list[dict[str, Any]] | None:
        try:
            response = self._client.get_bucket_lifecycle_configuration(Bucket=bucket)
        except ClientError as exc:
            if _error_code(exc) == "NoSuchLifecycleConfiguration":
                return None
            raise StorageError(f"Failed to read lifecycle configuration of {bucket}", cause=exc).with_context(
                bucket=bucket
            ) from exc
        except BotoCoreError as exc:
            raise StorageError(f"Failed to read lifecycle configuration of {bucket}", cause=exc).with_context(
                bucket=bucket
            ) from exc
        return response.get("Rules", [])
