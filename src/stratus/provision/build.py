"""
Build and package pipeline.

Manifesto:
    The archive is assembled in a fixed order and each stage depends on the
    previous one succeeding:

    1. pre-build hooks
    2. code generation (toolchain)
    3. compilation for linux/amd64 with the fixed build tags first
    4. post-build hooks
    5. archive: binary, dispatch shim, support scripts, archive hooks

    The compiled binary is scratch output. It is deleted whether the
    pipeline succeeds or fails; a failed delete is logged, never raised.

Tags:
    build, package, archive, subprocess, stratus
"""

from __future__ import annotations

import os
import subprocess
import zipfile
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from stratus.core.errors import BuildError, StratusError
from stratus.core.hashing import sanitized_name
from stratus.core.logging import get_logger
from stratus.provision import shim
from stratus.provision.context import ProvisionContext
from stratus.provision.hooks import run_hooks

logger = get_logger(__name__)

FIXED_BUILD_TAGS = ("lambdabinary",)
TARGET_ENV = {"GOOS": "linux", "GOARCH": "amd64"}


def binary_name(service_name: str) -> str:
    return f"{sanitized_name(service_name)}.lambda.amd64"


def archive_name(service_name: str) -> str:
    return f"{sanitized_name(service_name)}-code.zip"


def build_tags(extra: str) -> list[str]:
    """Fixed tags first, then caller tags, without duplicates."""
    tags = list(FIXED_BUILD_TAGS)
    for tag in extra.split():
        if tag not in tags:
            tags.append(tag)
    return tags


@runtime_checkable
class Toolchain(Protocol):
    def generate(self) -> None: ...

    def compile(self, output: Path, tags: list[str], linker_flags: str) -> None: ...


class GoToolchain:
    """Runs ``go generate`` and ``go build`` as external processes."""

    def __init__(self, source_dir: Path | str = ".", go: str = "go", verbose: bool = False):
        self.source_dir = Path(source_dir)
        self.go = go
        self.verbose = verbose

    def _run(self, command: list[str], env: dict[str, str] | None = None) -> None:
        logger.info("build.command", command=" ".join(command), cwd=str(self.source_dir))
        try:
            completed = subprocess.run(
                command,
                cwd=self.source_dir,
                env={**os.environ, **(env or {})},
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise BuildError(f"Failed to run {command[0]}: {exc}", command=command, cause=exc) from exc
        if completed.stdout:
            logger.debug("build.stdout", output=completed.stdout.strip())
        if completed.returncode != 0:
            raise BuildError(
                f"{' '.join(command[:2])} failed: {completed.stderr.strip()}",
                command=command,
                returncode=completed.returncode,
            )

    def generate(self) -> None:
        command = [self.go, "generate"]
        if self.verbose:
            command += ["-v", "-x"]
        self._run(command)

    def compile(self, output: Path, tags: list[str], linker_flags: str) -> None:
        command = [self.go, "build", "-o", str(output.resolve()), "-tags", " ".join(tags)]
        if linker_flags:
            command += ["-ldflags", linker_flags]
        command.append(".")
        self._run(command, env=TARGET_ENV)


class BuildPipeline:
    """Produces the function archive for one run."""

    def __init__(self, ctx: ProvisionContext):
        self.ctx = ctx
        self.log = ctx.logger

    def _build_hook_args(self) -> tuple[Any, ...]:
        ctx = self.ctx
        return (
            ctx.hook_context,
            ctx.service_name,
            ctx.bucket,
            ctx.build_id,
            ctx.session,
            ctx.dry_run,
            ctx.logger,
        )

    def compile(self, binary: Path) -> None:
        ctx = self.ctx
        toolchain = ctx.clients.toolchain
        run_hooks("pre_build", ctx.hooks.pre_builds, *self._build_hook_args())
        toolchain.generate()
        self.log.info("build.compile", binary=binary.name, tags=build_tags(ctx.build_tags))
        toolchain.compile(binary, build_tags(ctx.build_tags), ctx.linker_flags)
        if not binary.exists():
            raise BuildError(f"Toolchain reported success but produced no binary: {binary}")
        self.log.info("build.binary_size", binary=binary.name, bytes=binary.stat().st_size)
        run_hooks("post_build", ctx.hooks.post_builds, *self._build_hook_args())

    def write_archive(self, binary: Path, archive_path: Path) -> None:
        ctx = self.ctx
        names = shim.export_names(ctx.service.functions, ctx.registry)
        with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            archive.write(binary, arcname=binary.name)
            archive.writestr(shim.SHIM_ENTRY, shim.render_shim(ctx.service_name, binary.name, names))
            for name, content in shim.aux_scripts().items():
                archive.writestr(name, content)
            run_hooks(
                "archive",
                ctx.hooks.archives,
                ctx.hook_context,
                ctx.service_name,
                archive,
                ctx.session,
                ctx.dry_run,
                ctx.logger,
            )
        self.log.info(
            "build.archive_created",
            archive=str(archive_path),
            entries=len(names),
            bytes=archive_path.stat().st_size,
        )

    def build_and_package(self) -> Path:
        """Compile and package; returns the local archive path."""
        ctx = self.ctx
        ctx.work_dir.mkdir(parents=True, exist_ok=True)
        binary = ctx.work_dir / binary_name(ctx.service_name)
        archive_path = ctx.work_dir / archive_name(ctx.service_name)
        try:
            self.compile(binary)
            try:
                self.write_archive(binary, archive_path)
            except StratusError:
                archive_path.unlink(missing_ok=True)
                raise
            except Exception as exc:
                archive_path.unlink(missing_ok=True)
                raise BuildError(f"Failed to create archive: {exc}", cause=exc) from exc
        finally:
            self._remove_binary(binary)
        return archive_path

    def _remove_binary(self, binary: Path) -> None:
        try:
            binary.unlink(missing_ok=True)
        except OSError as exc:
            self.log.warning("build.binary_cleanup_failed", binary=str(binary), error=str(exc))
