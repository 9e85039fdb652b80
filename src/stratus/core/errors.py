"""
Structured error types for stratus.

Provides a hierarchy of typed errors with metadata for error categorization,
diagnostics and root cause analysis through error chaining.

Instead of generic exceptions that lose context, StratusError and its
subclasses carry:
- **Category:** What kind of error (validation, storage, converge, etc.)
- **Retryable:** Whether re-running the same operation could succeed
- **Context:** Metadata such as service, step, bucket and key
- **Cause:** Chained underlying exception for root cause analysis

Manifesto:
    A provisioning run fails in one of three ways, and callers need to tell
    them apart without parsing messages:

    - **Precondition errors:** invalid declarations, detected before any
      side effect happens. Nothing to roll back.
    - **Step errors:** a build, upload, graph or convergence failure inside
      the workflow. Rollback runs, then the original error surfaces.
    - **Aggregate errors:** several concurrent tasks failed; every underlying
      failure is reported, not just the first.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                        StratusError                              │
        │  (category, retryable, context, cause)                           │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  PreconditionError     IdentityError        BuildError           │
        │  (VALIDATION)          (AUTH)               (BUILD)              │
        │       │                    │                                     │
        │  InvalidIdentityError  RoleNotFoundError    StorageError         │
        │  InvalidHandlerError   IdentityServiceError (STORAGE)            │
        │                                                 │                │
        │  TemplateError         ConvergeError        UploadError          │
        │  (TEMPLATE)            (CONVERGE)           (aggregate)          │
        │       │                                                          │
        │  ResourceCollisionError  ExportError        HookError (HOOK)     │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = StorageError("put failed").with_context(bucket="b", key="k")
    >>> error.context.bucket
    'b'

    >>> err = UploadError([StorageError("a"), StorageError("b")])
    >>> len(err.errors)
    2

Tags:
    error-handling, exception-hierarchy, error-context, stratus

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and reporting.

    Categories are grouped by where in a provisioning run they arise:
    - **Declarations:** VALIDATION, CONFIG
    - **External services:** AUTH, NETWORK, STORAGE, CONVERGE
    - **Workflow steps:** BUILD, TEMPLATE, HOOK, ORCHESTRATION
    - **Internal errors:** INTERNAL, UNKNOWN
    """

    # Declarations
    VALIDATION = "VALIDATION"  # Invalid function/role declarations
    CONFIG = "CONFIG"  # Missing or invalid settings

    # External services
    AUTH = "AUTH"  # Identity service lookups
    NETWORK = "NETWORK"  # Transport failures
    STORAGE = "STORAGE"  # Object storage, local files
    CONVERGE = "CONVERGE"  # Deployment target rejected the template

    # Workflow steps
    BUILD = "BUILD"  # Code generation / compilation / archive
    TEMPLATE = "TEMPLATE"  # Resource graph assembly
    HOOK = "HOOK"  # User-supplied workflow hooks
    ORCHESTRATION = "ORCHESTRATION"  # Step chain failures

    # Internal errors
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Attributes:
        service: Service (stack) name being provisioned
        step: Workflow step in which the error occurred
        build_id: Build identifier of the run
        bucket: Object storage bucket involved
        key: Object storage key involved
        metadata: Additional key-value pairs
    """

    service: str | None = None
    step: str | None = None
    build_id: str | None = None
    bucket: str | None = None
    key: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["service", "step", "build_id", "bucket", "key"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class StratusError(Exception):
    """
    Base exception for all stratus errors.

    All StratusError instances carry:
    - **category:** ErrorCategory enum for classification
    - **retryable:** Boolean indicating whether a retry could succeed
    - **context:** ErrorContext with structured metadata
    - **cause:** Optional underlying exception for chaining

    Subclasses set ``default_category`` and ``default_retryable`` class
    attributes to provide defaults for their domain.

    Examples:
        >>> error = StratusError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False

        >>> try:
        ...     raise ConnectionError("DNS lookup failed")
        ... except ConnectionError as e:
        ...     error = StratusError("Network error", cause=e)
        >>> error.cause
        ConnectionError('DNS lookup failed')
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> StratusError:
        """
        Add context to this error (fluent API).

        Usage:
            raise StorageError("Upload failed").with_context(
                bucket="artifacts",
                key="svc/archive.zip",
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# PRECONDITION ERRORS (raised before the workflow starts)
# =============================================================================


class PreconditionError(StratusError):
    """
    Declarations are invalid; nothing has been built or uploaded yet.

    Collects every problem found so a single run reports them all.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(self, message: str | None = None, *, problems: list[str] | None = None, **kwargs: Any):
        self.problems = list(problems or [])
        if message is None:
            message = "\n".join(self.problems) or "Invalid service declaration"
        super().__init__(message, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.problems:
            result["problems"] = self.problems
        return result


class InvalidIdentityError(PreconditionError):
    """Execution identity is neither a role name nor an inline role definition."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__(
            f"Unsupported execution identity {value!r}: expected a role name "
            "or a RoleDefinition"
        )


class InvalidHandlerError(PreconditionError):
    """Handler is not callable or has an unsupported signature."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid handler for {name}: {reason}")


# =============================================================================
# IDENTITY SERVICE ERRORS
# =============================================================================


class IdentityError(StratusError):
    """Execution identity could not be resolved."""

    default_category = ErrorCategory.AUTH
    default_retryable = False


class RoleNotFoundError(IdentityError):
    """A named role does not exist. Fatal and not retryable."""

    def __init__(self, role_name: str, **kwargs: Any):
        self.role_name = role_name
        super().__init__(f"IAM role not found: {role_name}", **kwargs)


class IdentityServiceError(IdentityError):
    """The identity service could not be reached or returned an unexpected error."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True

    def __init__(self, role_name: str, message: str | None = None, **kwargs: Any):
        self.role_name = role_name
        super().__init__(message or f"Failed to look up IAM role: {role_name}", **kwargs)


# =============================================================================
# STEP ERRORS (trigger rollback)
# =============================================================================


class BuildError(StratusError):
    """Code generation, compilation or packaging failed."""

    default_category = ErrorCategory.BUILD
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        returncode: int | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.command = command
        self.returncode = returncode

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.command:
            result["command"] = self.command
        if self.returncode is not None:
            result["returncode"] = self.returncode
        return result


class StorageError(StratusError):
    """Object storage or local file error."""

    default_category = ErrorCategory.STORAGE
    default_retryable = False


class UploadError(StorageError):
    """One or more concurrent uploads failed. Every failure is reported."""

    def __init__(self, errors: list[BaseException], **kwargs: Any):
        self.errors = list(errors)
        lines = ["Encountered multiple errors during upload:"]
        lines.extend(f"  - {err}" for err in self.errors)
        super().__init__("\n".join(lines), **kwargs)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["errors"] = [str(err) for err in self.errors]
        return result


class TemplateError(StratusError):
    """Resource graph assembly failed."""

    default_category = ErrorCategory.TEMPLATE
    default_retryable = False


class ResourceCollisionError(TemplateError):
    """Two graphs declare the same logical name with different bodies."""

    def __init__(self, names: list[str], message: str | None = None, **kwargs: Any):
        self.names = sorted(names)
        super().__init__(
            message or f"Conflicting resource definitions: {', '.join(self.names)}",
            **kwargs,
        )


class ExportError(TemplateError):
    """A declaration could not be exported into the resource graph."""


class ConvergeError(StratusError):
    """The deployment target rejected or failed to apply the template."""

    default_category = ErrorCategory.CONVERGE
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        stack_name: str | None = None,
        reasons: list[str] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.stack_name = stack_name
        self.reasons = list(reasons or [])

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.stack_name:
            result["stack_name"] = self.stack_name
        if self.reasons:
            result["reasons"] = self.reasons
        return result


class HookError(StratusError):
    """A user-supplied workflow hook failed."""

    default_category = ErrorCategory.HOOK
    default_retryable = False

    def __init__(self, hook: str, phase: str, cause: BaseException, **kwargs: Any):
        self.hook = hook
        self.phase = phase
        super().__init__(f"{phase} hook {hook} failed: {cause}", cause=cause, **kwargs)


class OrchestrationError(StratusError):
    """Workflow step chain error."""

    default_category = ErrorCategory.ORCHESTRATION
    default_retryable = False


class ConfigError(StratusError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, StratusError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, StratusError):
        return error.category
    if isinstance(error, (ConnectionError, TimeoutError)):
        return ErrorCategory.NETWORK
    if isinstance(error, OSError):
        return ErrorCategory.STORAGE
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "StratusError",
    # Preconditions
    "PreconditionError",
    "InvalidIdentityError",
    "InvalidHandlerError",
    # Identity
    "IdentityError",
    "RoleNotFoundError",
    "IdentityServiceError",
    # Steps
    "BuildError",
    "StorageError",
    "UploadError",
    "TemplateError",
    "ResourceCollisionError",
    "ExportError",
    "ConvergeError",
    "HookError",
    "OrchestrationError",
    "ConfigError",
    # Utilities
    "is_retryable",
    "categorize_error",
]
