"""
Stratus - provision serverless services from Python declarations.

Compiles a function binary, packages it with a generated dispatch shim,
uploads the archive, assembles a CloudFormation template and converges the
stack, rolling back partial side effects when any step fails.
"""

__version__ = "0.3.0"

from stratus.model.declarations import (  # noqa: E402
    FunctionDeclaration,
    FunctionOptions,
    InlineRole,
    NamedRole,
    ServiceDefinition,
    handle_function,
)
from stratus.model.iam import RoleDefinition, RolePrivilege  # noqa: E402
from stratus.provision.engine import ProvisionResult, provision  # noqa: E402

__all__ = [
    "__version__",
    "FunctionDeclaration",
    "FunctionOptions",
    "InlineRole",
    "NamedRole",
    "RoleDefinition",
    "RolePrivilege",
    "ServiceDefinition",
    "handle_function",
    "provision",
    "ProvisionResult",
]
