"""
Artifact uploads with per-upload rollback registration.

Manifesto:
    Each successful upload registers its own delete action the moment it
    succeeds, independent of any sibling upload. When the archive and the
    site bundle upload concurrently and one fails, the other's object is
    still cleaned up by rollback.

    - **Dry-run:** no I/O, the same deterministic key is returned
    - **Local cleanup:** the local artifact is deleted after the attempt
    - **Aggregate errors:** every failed upload is reported

Tags:
    upload, s3, rollback, concurrency, stratus
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any

from stratus.core.errors import StorageError, StratusError, UploadError
from stratus.core.logging import get_logger
from stratus.provision.clients import ObjectStorage
from stratus.provision.rollback import RollbackAction, delete_object_action

logger = get_logger(__name__)


def object_key(prefix: str, local_path: Path) -> str:
    return f"{prefix.strip('/')}/{local_path.name}"


def has_expiration_rule(rules: list[dict[str, Any]] | None) -> bool:
    for rule in rules or []:
        if rule.get("Status") == "Enabled" and (
            "Expiration" in rule or "NoncurrentVersionExpiration" in rule
        ):
            return True
    return False


class UploadManager:
    """Uploads local artifacts to one bucket."""

    def __init__(
        self,
        storage: ObjectStorage,
        bucket: str,
        *,
        register_rollback: Callable[[RollbackAction], None],
        dry_run: bool = False,
        log: Any = None,
    ):
        self._storage = storage
        self.bucket = bucket
        self._register_rollback = register_rollback
        self.dry_run = dry_run
        self._log = log or logger

    def ensure_expiration_policy(self) -> bool:
        """Warn when the bucket has no enabled expiration rule.

        Returns:
            True when a rule exists (always True in dry-run)
        """
        if self.dry_run:
            self._log.info("upload.lifecycle_check_skipped", bucket=self.bucket, reason="dry_run")
            return True
        rules = self._storage.get_lifecycle_rules(self.bucket)
        if has_expiration_rule(rules):
            return True
        self._log.warning(
            "upload.no_expiration_policy",
            bucket=self.bucket,
            hint="artifacts accumulate without a lifecycle expiration rule",
        )
        return False

    def upload(self, local_path: Path, prefix: str, *, check_policy: bool = True) -> str:
        """Upload one file and register its delete action.

        Returns:
            The object key, also in dry-run
        """
        key = object_key(prefix, local_path)
        try:
            if self.dry_run:
                self._log.info("upload.skipped", bucket=self.bucket, key=key, reason="dry_run")
                return key
            if check_policy:
                self.ensure_expiration_policy()
            try:
                self._storage.upload_file(local_path, self.bucket, key)
            except StratusError:
                raise
            except Exception as exc:
                raise StorageError(f"Failed to upload {local_path.name}", cause=exc).with_context(
                    bucket=self.bucket, key=key
                ) from exc
            self._register_rollback(delete_object_action(self._storage, self.bucket, key))
            self._log.info("upload.complete", bucket=self.bucket, key=key)
            return key
        finally:
            self._remove_local(local_path)

    def upload_all(self, artifacts: dict[str, Path], prefix: str) -> dict[str, str]:
        """Upload several artifacts concurrently, joining before returning.

        Raises:
            UploadError: listing every failed upload
        """
        if not artifacts:
            return {}
        try:
            self.ensure_expiration_policy()
        except Exception:
            for path in artifacts.values():
                self._remove_local(path)
            raise
        keys: dict[str, str] = {}
        errors: list[BaseException] = []
        with ThreadPoolExecutor(max_workers=len(artifacts), thread_name_prefix="upload") as pool:
            futures = {
                pool.submit(self.upload, path, prefix, check_policy=False): label
                for label, path in artifacts.items()
            }
            for future in as_completed(futures):
                label = futures[future]
                try:
                    keys[label] = future.result()
                except Exception as exc:
                    self._log.error("upload.failed", artifact=label, error=str(exc))
                    errors.append(exc)
        if errors:
            raise UploadError(errors).with_context(bucket=self.bucket)
        return keys

    def _remove_local(self, local_path: Path) -> None:
        try:
            local_path.unlink(missing_ok=True)
        except OSError as exc:
            self._log.warning("upload.local_cleanup_failed", path=str(local_path), error=str(exc))
