"""
Declarations: what a service provisions.

A ServiceDefinition holds FunctionDeclarations. Each function has exactly
one execution identity, either a NamedRole (an existing role looked up by
name) or an InlineRole (a RoleDefinition the template creates). The
identity is validated when the declaration is built, so invalid values
never reach the exporters.

Examples:
    >>> def hello(event, context):
    ...     return {"ok": True}
    >>> fn = handle_function(hello, RoleDefinition(), name="hello")
    >>> fn.function_name
    'hello'
    >>> fn.logical_name.startswith("helloLambda")
    True

Tags:
    declarations, functions, identity, permissions, stratus
"""

from __future__ import annotations

import warnings
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Union

from stratus.core.errors import InvalidIdentityError
from stratus.core.hashing import derive, sanitized_name
from stratus.core.logging import get_logger
from stratus.graph.template import Resource, ResourceGraph, get_att, literal
from stratus.model.iam import RoleDefinition
from stratus.model.naming import ExplicitNaming, HandlerNaming, NamingStrategy, qualified_name

if TYPE_CHECKING:
    from stratus.graph.gateway import GatewayExporter
    from stratus.graph.site import Site
    from stratus.provision.hooks import WorkflowHooks

logger = get_logger(__name__)

DEFAULT_MEMORY_SIZE = 128
DEFAULT_TIMEOUT = 3


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


@dataclass
class FunctionOptions:
    """Execution parameters for one function."""

    description: str = ""
    memory_size: int = DEFAULT_MEMORY_SIZE
    timeout: int = DEFAULT_TIMEOUT
    vpc_config: dict[str, Any] | None = None
    environment: dict[str, Any] = field(default_factory=dict)
    kms_key_arn: str = ""
    reserved_concurrent_executions: int = 0
    dead_letter_target_arn: Any = None
    tags: dict[str, str] = field(default_factory=dict)
    tracing_mode: str | None = None
    name: str | None = None


# ---------------------------------------------------------------------------
# Execution identity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NamedRole:
    """An existing role, verified against the identity service before use."""

    name: str

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidIdentityError(self.name)

    def key(self, service_name: str, owner: str) -> str:
        return self.name


@dataclass(frozen=True, eq=False)
class InlineRole:
    """A role created by the template from ``definition``."""

    definition: RoleDefinition

    def key(self, service_name: str, owner: str) -> str:
        return self.definition.logical_name(service_name, owner)


Identity = Union[NamedRole, InlineRole]


def coerce_identity(value: Any) -> Identity:
    """Accept a role name, a RoleDefinition or an existing identity.

    Raises:
        InvalidIdentityError: for anything else
    """
    if isinstance(value, (NamedRole, InlineRole)):
        return value
    if isinstance(value, str):
        return NamedRole(value)
    if isinstance(value, RoleDefinition):
        return InlineRole(value)
    raise InvalidIdentityError(value)


# ---------------------------------------------------------------------------
# Push-based invocation permissions
# ---------------------------------------------------------------------------


@dataclass
class Permission:
    """Allows ``principal`` to invoke the function."""

    principal: str
    source_arn: Any = None
    source_account: str | None = None
    action: str = "lambda:InvokeFunction"

    def logical_name(self, function_logical_name: str) -> str:
        return derive(
            "LambdaPerm",
            function_logical_name,
            self.principal,
            literal(self.source_arn) if self.source_arn is not None else "",
            self.source_account or "",
        )

    def export(self, function_logical_name: str, graph: ResourceGraph) -> str:
        properties: dict[str, Any] = {
            "Action": self.action,
            "FunctionName": get_att(function_logical_name, "Arn"),
            "Principal": self.principal,
        }
        if self.source_arn is not None:
            properties["SourceArn"] = self.source_arn
        if self.source_account:
            properties["SourceAccount"] = self.source_account
        name = self.logical_name(function_logical_name)
        graph.add_resource(
            name,
            Resource("AWS::Lambda::Permission", properties, depends_on=[function_logical_name]),
        )
        return name


@dataclass
class SNSPermission(Permission):
    principal: str = "sns.amazonaws.com"


@dataclass
class S3Permission(Permission):
    principal: str = "s3.amazonaws.com"


@dataclass
class CloudWatchEventsPermission(Permission):
    principal: str = "events.amazonaws.com"


@dataclass
class SESPermission(Permission):
    principal: str = "ses.amazonaws.com"


# ---------------------------------------------------------------------------
# Pull-based event sources
# ---------------------------------------------------------------------------


@dataclass
class EventSourceMapping:
    event_source_arn: Any
    starting_position: str = "TRIM_HORIZON"
    batch_size: int = 100
    disabled: bool = False

    def logical_name(self, function_name: str, function_arn: Any) -> str:
        return derive(
            "LambdaES",
            function_name,
            literal(self.event_source_arn),
            literal(function_arn),
            self.batch_size,
            self.starting_position,
        )


# ---------------------------------------------------------------------------
# Template decorators
# ---------------------------------------------------------------------------

# decorator(service_name, logical_name, function_resource, metadata,
#           bucket, archive_key, build_id, scratch_graph, hook_context, logger)
TemplateDecorator = Callable[..., None]


# ---------------------------------------------------------------------------
# Custom resources
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class CustomResourceDeclaration:
    """A handler invoked by the template during stack operations."""

    handler: Callable[..., Any]
    identity: Identity
    options: FunctionOptions = field(default_factory=FunctionOptions)
    properties: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.identity = coerce_identity(self.identity)

    @property
    def user_function_name(self) -> str:
        if self.options.name:
            return self.options.name
        return qualified_name(self.handler)

    @property
    def export_name(self) -> str:
        return sanitized_name(self.user_function_name)

    def logical_name(self) -> str:
        """Invocation resource name; stable so the ServiceToken never changes."""
        return derive(self.export_name, self.user_function_name)

    def lambda_logical_name(self) -> str:
        return derive("CustomResourceLambda", self.user_function_name, self.logical_name())


# ---------------------------------------------------------------------------
# Functions
# ---------------------------------------------------------------------------


@dataclass(eq=False)
class FunctionDeclaration:
    """One deployable function."""

    handler: Callable[..., Any]
    identity: Identity
    options: FunctionOptions = field(default_factory=FunctionOptions)
    permissions: list[Permission] = field(default_factory=list)
    event_source_mappings: list[EventSourceMapping] = field(default_factory=list)
    decorators: list[TemplateDecorator] = field(default_factory=list)
    depends_on: list[str] = field(default_factory=list)
    custom_resources: list[CustomResourceDeclaration] = field(default_factory=list)
    naming: NamingStrategy | None = None
    _function_name: str | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.identity = coerce_identity(self.identity)
        if self.naming is None:
            self.naming = ExplicitNaming(self.options.name) if self.options.name else HandlerNaming()

    @property
    def function_name(self) -> str:
        """Stable name, computed once and cached for the life of the declaration."""
        if self._function_name is None:
            self._function_name = self.naming.function_name(self.handler)
        return self._function_name

    @property
    def logical_name(self) -> str:
        base = self.function_name.replace("_", "")
        return derive(f"{base}Lambda", self.function_name)

    def require_custom_resource(
        self,
        identity: Any,
        handler: Callable[..., Any],
        options: FunctionOptions | None = None,
        properties: dict[str, Any] | None = None,
    ) -> str:
        """Attach a custom resource and return its logical name.

        The returned name can be used in ``get_att`` lookups from decorators.
        """
        if handler is None or not callable(handler):
            raise TypeError(f"Custom resource handler must be callable, got {handler!r}")
        declaration = CustomResourceDeclaration(
            handler=handler,
            identity=coerce_identity(identity),
            options=options or FunctionOptions(),
            properties=dict(properties or {}),
        )
        self.custom_resources.append(declaration)
        return declaration.logical_name()


def handle_function(
    handler: Callable[..., Any],
    identity: Any,
    *,
    name: str | None = None,
    options: FunctionOptions | None = None,
    permissions: list[Permission] | None = None,
    event_source_mappings: list[EventSourceMapping] | None = None,
    decorators: list[TemplateDecorator] | None = None,
    decorator: TemplateDecorator | None = None,
    depends_on: list[str] | None = None,
) -> FunctionDeclaration:
    """Build a FunctionDeclaration.

    ``decorator`` is the deprecated single-decorator form; it becomes the
    first entry of ``decorators``.
    """
    options = options or FunctionOptions()
    if name:
        options.name = name
    chain = list(decorators or [])
    if decorator is not None:
        warnings.warn(
            "decorator= is deprecated; pass decorators=[...] instead",
            DeprecationWarning,
            stacklevel=2,
        )
        logger.warning("declaration.deprecated_decorator", handler=getattr(handler, "__name__", repr(handler)))
        chain.insert(0, decorator)
    return FunctionDeclaration(
        handler=handler,
        identity=coerce_identity(identity),
        options=options,
        permissions=list(permissions or []),
        event_source_mappings=list(event_source_mappings or []),
        decorators=chain,
        depends_on=list(depends_on or []),
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


@dataclass
class ServiceDefinition:
    """Everything one provisioning run deploys as a single stack."""

    name: str
    functions: list[FunctionDeclaration] = field(default_factory=list)
    description: str = ""
    gateway: GatewayExporter | None = None
    site: Site | None = None
    hooks: WorkflowHooks | None = None

    def custom_resources(self) -> list[CustomResourceDeclaration]:
        return [cr for fn in self.functions for cr in fn.custom_resources]
