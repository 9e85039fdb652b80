"""
Workflow steps.

Each step takes the shared ProvisionContext and returns the next step, or
None when the chain is complete. A step signals failure by raising.

    verify_roles → package → upload → assemble_graph → converge → (done)

Hooks run inside steps: pre/post-build and archive hooks inside
``package``; pre-marshal, service decorators and post-marshal inside
``assemble_graph``.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

from stratus import __version__
from stratus.core.hashing import template_key
from stratus.graph.annotate import annotate_discovery, annotate_event_source_policies
from stratus.graph.export import ExportContext, export_function
from stratus.graph.template import ResourceGraph
from stratus.provision.build import BuildPipeline
from stratus.provision.context import ProvisionContext
from stratus.provision.hooks import run_hooks
from stratus.provision.roles import RoleResolver
from stratus.provision.upload import UploadManager

Step = Callable[[ProvisionContext], "Step | None"]

TAG_PREFIX = "stratus"
HOME_URL = "https://github.com/stratus-dev/stratus"


def stack_tags(ctx: ProvisionContext) -> dict[str, str]:
    tags = {
        f"{TAG_PREFIX}:home": HOME_URL,
        f"{TAG_PREFIX}:version": __version__,
        f"{TAG_PREFIX}:buildId": ctx.build_id,
    }
    if ctx.build_tags:
        tags[f"{TAG_PREFIX}:buildTags"] = ctx.build_tags
    return tags


def _marshal_hook_args(ctx: ProvisionContext) -> tuple[Any, ...]:
    return (ctx.hook_context, ctx.service_name, ctx.bucket, ctx.build_id, ctx.session, ctx.dry_run, ctx.logger)


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


def verify_roles(ctx: ProvisionContext) -> Step:
    """Resolve every execution identity; inline roles land in the graph."""
    resolver = RoleResolver(ctx.clients.identity, ctx.logger)
    ctx.role_refs = resolver.resolve(ctx.service_name, ctx.service.functions, ctx.graph)
    return package


def package(ctx: ProvisionContext) -> Step:
    """Build the archive and hand its path to the upload step."""
    archive_path = BuildPipeline(ctx).build_and_package()

    def upload(ctx: ProvisionContext) -> Step:
        return upload_artifacts(ctx, archive_path)

    return upload


def upload_artifacts(ctx: ProvisionContext, archive_path: Path) -> Step:
    """Upload the archive and the optional site bundle concurrently."""
    artifacts = {"archive": archive_path}
    if ctx.service.site is not None:
        artifacts["site"] = ctx.service.site.archive(ctx.work_dir, ctx.service_name)
    manager = UploadManager(
        ctx.clients.storage,
        ctx.bucket,
        register_rollback=ctx.register_rollback,
        dry_run=ctx.dry_run,
        log=ctx.logger,
    )
    keys = manager.upload_all(artifacts, ctx.service_name)
    ctx.archive_key = keys["archive"]
    ctx.site_key = keys.get("site")
    return assemble_graph


def assemble_graph(ctx: ProvisionContext) -> Step:
    """Export every declaration into the graph and annotate it."""
    run_hooks("pre_marshal", ctx.hooks.pre_marshals, *_marshal_hook_args(ctx))

    export_ctx = ExportContext(
        service_name=ctx.service_name,
        bucket=ctx.bucket,
        archive_key=ctx.archive_key or "",
        build_id=ctx.build_id,
        runtime=ctx.runtime,
        role_refs=ctx.role_refs,
        log_level=ctx.log_level,
        hook_context=ctx.hook_context,
        logger=ctx.logger,
    )
    for fn in ctx.service.functions:
        export_function(fn, ctx.graph, export_ctx)

    # Gateway exports into a scratch graph first so the site can read its outputs
    scratch = ResourceGraph(registry=ctx.registry)
    if ctx.service.gateway is not None:
        ctx.service.gateway.export(
            ctx.service_name,
            scratch,
            ctx.bucket,
            export_ctx.archive_key,
            ctx.build_id,
            ctx.role_refs,
            ctx.logger,
        )
    if ctx.service.site is not None:
        ctx.service.site.export(
            ctx.service_name,
            ctx.graph,
            bucket=ctx.bucket,
            archive_key=export_ctx.archive_key,
            site_key=ctx.site_key or "",
            runtime=ctx.runtime,
            gateway_outputs=dict(scratch.outputs),
            logger=ctx.logger,
        )
    ctx.graph.merge(scratch)

    for decorator in ctx.hooks.service_decorators:
        decorated = ResourceGraph(registry=ctx.registry)
        run_hooks(
            "service_decorator",
            [decorator],
            ctx.hook_context,
            ctx.service_name,
            decorated,
            ctx.bucket,
            ctx.build_id,
            ctx.session,
            ctx.dry_run,
            ctx.logger,
        )
        ctx.graph.merge(decorated)

    annotate_event_source_policies(ctx.graph, ctx.service_name, ctx.service.functions)
    annotated = annotate_discovery(ctx.graph)
    run_hooks("post_marshal", ctx.hooks.post_marshals, *_marshal_hook_args(ctx))

    ctx.template = ctx.graph.serialize()
    if ctx.template_writer is not None:
        ctx.template_writer.write(ctx.graph.serialize(indent=2))
    ctx.logger.info(
        "graph.assembled",
        resources=len(ctx.graph),
        outputs=len(ctx.graph.outputs),
        functions=annotated,
    )
    return converge


def converge(ctx: ProvisionContext) -> Step | None:
    """Create or update the stack from the serialized graph."""
    ctx.template_key = template_key(ctx.service_name, ctx.build_id)
    if ctx.dry_run:
        ctx.logger.info(
            "converge.skipped",
            stack=ctx.service_name,
            template_key=ctx.template_key,
            reason="dry_run",
        )
        return None
    ctx.stack = ctx.clients.target.converge(
        ctx.service_name,
        ctx.template or ctx.graph.serialize(),
        stack_tags(ctx),
        ctx.start_time,
        ctx.template_key,
    )
    ctx.logger.info("converge.complete", stack=ctx.service_name, status=ctx.stack.status)
    return None
