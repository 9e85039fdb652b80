"""
Per-function export into the resource graph.

Each FunctionDeclaration becomes a function resource plus its permissions,
event source mappings, custom resources and whatever its template
decorators add. Role references come from the role resolver; this module
never performs lookups.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from stratus.core.errors import ExportError, ResourceCollisionError
from stratus.core.hashing import digest, sanitized_name
from stratus.graph.registry import LAMBDA_CUSTOM_RESOURCE
from stratus.graph.template import Resource, ResourceGraph, get_att
from stratus.model.declarations import (
    CustomResourceDeclaration,
    FunctionDeclaration,
    FunctionOptions,
    InlineRole,
)

LOG_LEVEL_ENV = "STRATUS_LOG_LEVEL"
MAX_FUNCTION_NAME = 64


@dataclass
class ExportContext:
    """Values shared by every function export in one run."""

    service_name: str
    bucket: str
    archive_key: str
    build_id: str
    runtime: str
    role_refs: dict[str, Any]
    log_level: str = "INFO"
    hook_context: dict[str, Any] = field(default_factory=dict)
    logger: Any = None


def physical_function_name(service_name: str, function_name: str) -> str:
    """Deployed function name, limited to the target's 64 characters."""
    name = f"{sanitized_name(service_name)}_{function_name}"
    if len(name) <= MAX_FUNCTION_NAME:
        return name
    return f"{name[: MAX_FUNCTION_NAME - 9]}_{digest(name, length=8)}"


def _role_ref(ctx: ExportContext, key: str) -> Any:
    try:
        return ctx.role_refs[key]
    except KeyError:
        raise ExportError(f"No resolved role for {key}").with_context(service=ctx.service_name) from None


def _function_properties(
    ctx: ExportContext,
    *,
    function_name: str,
    export_name: str,
    description: str,
    role: Any,
    options: FunctionOptions,
) -> dict[str, Any]:
    environment = dict(options.environment)
    environment[LOG_LEVEL_ENV] = ctx.log_level.lower()
    properties: dict[str, Any] = {
        "Code": {"S3Bucket": ctx.bucket, "S3Key": ctx.archive_key},
        "Description": description,
        "Environment": {"Variables": environment},
        "FunctionName": physical_function_name(ctx.service_name, function_name),
        "Handler": f"index.{export_name}",
        "MemorySize": options.memory_size,
        "Role": role,
        "Runtime": ctx.runtime,
        "Timeout": options.timeout,
    }
    if options.vpc_config is not None:
        properties["VpcConfig"] = options.vpc_config
    if options.reserved_concurrent_executions:
        properties["ReservedConcurrentExecutions"] = options.reserved_concurrent_executions
    if options.dead_letter_target_arn is not None:
        properties["DeadLetterConfig"] = {"TargetArn": options.dead_letter_target_arn}
    if options.tracing_mode:
        properties["TracingConfig"] = {"Mode": options.tracing_mode}
    if options.kms_key_arn:
        properties["KmsKeyArn"] = options.kms_key_arn
    if options.tags:
        properties["Tags"] = [{"Key": k, "Value": v} for k, v in sorted(options.tags.items())]
    return properties


def export_custom_resource(
    declaration: CustomResourceDeclaration,
    owner: FunctionDeclaration,
    graph: ResourceGraph,
    ctx: ExportContext,
) -> str:
    """Declare the handler function and the invocation resource that calls it."""
    role_key = declaration.identity.key(ctx.service_name, declaration.user_function_name)
    description = declaration.options.description or (
        f"{ctx.service_name} CustomResource: {declaration.user_function_name}"
    )
    lambda_name = declaration.lambda_logical_name()
    handler = Resource(
        type="AWS::Lambda::Function",
        properties=_function_properties(
            ctx,
            function_name=declaration.export_name,
            export_name=declaration.export_name,
            description=description,
            role=_role_ref(ctx, role_key),
            options=declaration.options,
        ),
        metadata={"stratusFunction": declaration.user_function_name},
    )
    if isinstance(declaration.identity, InlineRole):
        handler.add_dependency(role_key)
    graph.add_resource(lambda_name, handler)

    invocation_name = declaration.logical_name()
    invocation = graph.custom_resource(
        invocation_name,
        LAMBDA_CUSTOM_RESOURCE,
        {
            "ServiceToken": get_att(lambda_name, "Arn"),
            "UserProperties": declaration.properties,
        },
    )
    invocation.add_dependency(lambda_name, owner.logical_name)
    return invocation_name


def apply_decorators(
    fn: FunctionDeclaration,
    function_resource: Resource,
    graph: ResourceGraph,
    ctx: ExportContext,
) -> None:
    """Run template decorators, each against a fresh scratch graph."""
    for decorator in fn.decorators:
        metadata: dict[str, Any] = {}
        scratch = ResourceGraph(registry=graph.registry)
        decorator(
            ctx.service_name,
            fn.logical_name,
            function_resource,
            metadata,
            ctx.bucket,
            ctx.archive_key,
            ctx.build_id,
            scratch,
            ctx.hook_context,
            ctx.logger,
        )
        if metadata:
            function_resource.metadata.setdefault(fn.logical_name, {}).update(metadata)
        conflicts = graph.collisions(scratch)
        if conflicts:
            raise ResourceCollisionError(
                conflicts,
                f"Function ({fn.function_name}) decorator created conflicting resources: "
                f"{', '.join(sorted(conflicts))}",
            )
        graph.merge(scratch)


def export_function(fn: FunctionDeclaration, graph: ResourceGraph, ctx: ExportContext) -> Resource:
    """Export one function and everything attached to it."""
    role_key = fn.identity.key(ctx.service_name, fn.function_name)
    resource = Resource(
        type="AWS::Lambda::Function",
        properties=_function_properties(
            ctx,
            function_name=fn.function_name,
            export_name=fn.function_name,
            description=fn.options.description or f"{ctx.service_name}: {fn.function_name}",
            role=_role_ref(ctx, role_key),
            options=fn.options,
        ),
        depends_on=list(fn.depends_on),
        metadata={"stratusFunction": fn.function_name},
    )
    if isinstance(fn.identity, InlineRole):
        resource.add_dependency(role_key)
    resource = graph.add_resource(fn.logical_name, resource)
    function_arn = get_att(fn.logical_name, "Arn")

    for permission in fn.permissions:
        permission.export(fn.logical_name, graph)

    for mapping in fn.event_source_mappings:
        graph.add_resource(
            mapping.logical_name(fn.function_name, function_arn),
            Resource(
                type="AWS::Lambda::EventSourceMapping",
                properties={
                    "BatchSize": mapping.batch_size,
                    "Enabled": not mapping.disabled,
                    "EventSourceArn": mapping.event_source_arn,
                    "FunctionName": function_arn,
                    "StartingPosition": mapping.starting_position,
                },
                depends_on=[fn.logical_name],
            ),
        )

    for declaration in fn.custom_resources:
        export_custom_resource(declaration, fn, graph, ctx)

    apply_decorators(fn, resource, graph, ctx)
    if ctx.logger is not None:
        ctx.logger.debug(
            "export.function",
            function=fn.function_name,
            logical_name=fn.logical_name,
            permissions=len(fn.permissions),
            event_sources=len(fn.event_source_mappings),
            custom_resources=len(fn.custom_resources),
        )
    return resource
