"""
Root Typer application for the stratus CLI.

Usage::

    stratus provision --service myapp.service:SERVICE --s3-bucket artifacts
    stratus provision --service myapp.service:build_service -s artifacts --noop
    stratus validate --service myapp.service:SERVICE
    stratus --version
"""

from __future__ import annotations

import importlib
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from stratus import __version__
from stratus.core.errors import ConfigError, StratusError
from stratus.core.logging import configure_logging, get_logger
from stratus.core.settings import get_settings
from stratus.model.declarations import ServiceDefinition

app = typer.Typer(
    name="stratus",
    help="stratus: provision serverless services from Python declarations.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()
err_console = Console(stderr=True)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"stratus {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """stratus CLI: build, upload and converge a service stack."""


# ── Helpers ──────────────────────────────────────────────────────────────


def load_service(spec: str) -> ServiceDefinition:
    """Resolve ``module:attr`` to a ServiceDefinition (or a factory returning one)."""
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise ConfigError(f"Expected MODULE:ATTR, got {spec!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"Cannot import {module_name}: {exc}", cause=exc) from exc
    try:
        target = getattr(module, attr)
    except AttributeError as exc:
        raise ConfigError(f"{module_name} has no attribute {attr}", cause=exc) from exc
    if callable(target) and not isinstance(target, ServiceDefinition):
        target = target()
    if not isinstance(target, ServiceDefinition):
        raise ConfigError(f"{spec} is not a ServiceDefinition: {type(target).__name__}")
    return target


def _fail(exc: StratusError) -> None:
    err_console.print(f"[red]✗ {type(exc).__name__}[/] {escape(exc.message)}")
    for problem in getattr(exc, "reasons", None) or []:
        err_console.print(f"  [dim]- {escape(problem)}[/]")
    raise typer.Exit(code=1)


# ── Commands ─────────────────────────────────────────────────────────────


@app.command()
def provision(
    service: str = typer.Option(..., "--service", help="Service declaration as MODULE:ATTR."),
    s3_bucket: str | None = typer.Option(None, "--s3-bucket", "-s", help="Artifact bucket."),
    build_id: str | None = typer.Option(None, "--build-id", "-i", help="Build identifier."),
    tags: str | None = typer.Option(None, "--tags", "-t", help="Extra build tags."),
    linker_flags: str | None = typer.Option(None, "--linker-flags", help="Extra linker flags."),
    noop: bool = typer.Option(False, "--noop", "-n", help="Dry run: no uploads, no stack changes."),
    template_out: Path | None = typer.Option(None, "--template-out", help="Write the template here."),
    level: str | None = typer.Option(None, "--level", "-l", help="Log level."),
    log_format: str | None = typer.Option(None, "--format", "-f", help="Log format: text, json, auto."),
    json_out: bool = typer.Option(False, "--json", help="Print the result as JSON."),
) -> None:
    """Build, upload and converge a service."""
    from stratus.aws.session import aws_clients, create_session
    from stratus.provision.engine import provision as run_provision

    overrides = {
        key: value
        for key, value in {
            "s3_bucket": s3_bucket,
            "build_tags": tags,
            "linker_flags": linker_flags,
            "template_out": template_out,
            "log_level": level,
            "log_format": log_format.lower() if log_format else None,
        }.items()
        if value is not None
    }
    settings = get_settings().model_copy(update=overrides)
    configure_logging(level=settings.log_level, json_format=settings.json_logs, service="stratus")
    log = get_logger("stratus.cli")

    try:
        if not settings.s3_bucket:
            raise ConfigError("An artifact bucket is required (--s3-bucket or STRATUS_S3_BUCKET)")
        definition = load_service(service)
        session = create_session(settings.aws_region, settings.aws_profile)
        clients = aws_clients(session, settings.s3_bucket)
        writer = settings.template_out.open("w", encoding="utf-8") if settings.template_out else None
        try:
            result = run_provision(
                definition,
                bucket=settings.s3_bucket,
                clients=clients,
                build_id=build_id,
                dry_run=noop,
                build_tags=settings.build_tags,
                linker_flags=settings.linker_flags,
                runtime=settings.runtime,
                log_level=settings.log_level,
                work_dir=settings.work_dir,
                template_writer=writer,
                log=log,
            )
        finally:
            if writer is not None:
                writer.close()
    except StratusError as exc:
        _fail(exc)
        return

    if json_out:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return

    table = Table(title=f"stratus provision: {result.service_name}")
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("Seconds", justify="right")
    for step in result.steps:
        table.add_row(step.step_name, step.status, f"{step.duration_seconds or 0:.2f}")
    console.print(table)
    console.print(f"  archive:  {result.archive_key}")
    if result.site_key:
        console.print(f"  site:     {result.site_key}")
    console.print(f"  template: {result.template_key}")
    if result.stack is not None:
        console.print(f"  stack:    {result.stack.status}")
        for key, value in sorted(result.stack.outputs.items()):
            console.print(f"    {key} = {value}")
    console.print(f"[green]✓[/] done in {result.duration_seconds:.1f}s" + (" (dry run)" if result.dry_run else ""))


@app.command()
def validate(
    service: str = typer.Option(..., "--service", help="Service declaration as MODULE:ATTR."),
) -> None:
    """Check a service declaration without building anything."""
    from stratus.provision.validation import validate_service

    try:
        definition = load_service(service)
        validate_service(definition)
    except StratusError as exc:
        _fail(exc)
        return
    console.print(f"[green]✓[/] {definition.name}: {len(definition.functions)} function(s) valid")
