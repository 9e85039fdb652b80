"""Service declarations loadable by ``module:attr`` from the CLI tests."""

from stratus.model.declarations import ServiceDefinition, handle_function
from stratus.model.iam import RoleDefinition, RolePrivilege
from tests._support.handlers import goodbye, hello, no_args

SERVICE = ServiceDefinition(
    name="hello-svc",
    description="Hello service",
    functions=[
        handle_function(hello, RoleDefinition(privileges=[RolePrivilege(["s3:GetObject"])])),
        handle_function(goodbye, "existing-role"),
    ],
)

EMPTY = ServiceDefinition(name="empty-svc")

BROKEN = ServiceDefinition(name="broken-svc", functions=[handle_function(no_args, "existing-role")])

NOT_A_SERVICE = {"name": "hello-svc"}


def build_service() -> ServiceDefinition:
    return ServiceDefinition(name="built-svc", functions=[handle_function(hello, "existing-role")])
