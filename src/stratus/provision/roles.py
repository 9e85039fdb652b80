"""
Role resolution: every execution identity resolved exactly once.

Manifesto:
    Ten functions sharing one RoleDefinition object produce one role
    resource. Ten functions naming the same existing role produce one
    identity lookup. A missing named role stops the run before anything
    has been built or uploaded.

Architecture:
    ::

        functions + custom resources
              │
              ├── InlineRole(definition) ──► graph.add_resource(role)  ──► GetAtt(role, Arn)
              │      (keyed by object identity, first owner names it)
              │
              └── NamedRole(name) ──► identity.get_role_arn(name) ──► "arn:aws:iam::..."
                     (deduplicated by name)

Tags:
    iam, roles, resolution, caching, stratus
"""

from __future__ import annotations

from typing import Any

from stratus.core.logging import get_logger
from stratus.graph.template import ResourceGraph, get_att
from stratus.model.declarations import FunctionDeclaration, Identity, InlineRole
from stratus.model.iam import RoleDefinition
from stratus.provision.clients import IdentityService

logger = get_logger(__name__)


class RoleResolver:
    """Resolves identities against an identity service, caching results."""

    def __init__(self, identity: IdentityService, log: Any = None):
        self._identity = identity
        self._log = log or logger
        self._arn_cache: dict[str, str] = {}
        self.lookups = 0

    def _owners(self, functions: list[FunctionDeclaration]) -> list[tuple[Identity, str, bool]]:
        owners = []
        for fn in functions:
            owners.append((fn.identity, fn.function_name, fn.options.vpc_config is not None))
            for custom in fn.custom_resources:
                owners.append(
                    (custom.identity, custom.user_function_name, custom.options.vpc_config is not None)
                )
        return owners

    def lookup(self, role_name: str) -> str:
        """ARN of an existing role; each name is looked up at most once."""
        if role_name not in self._arn_cache:
            self.lookups += 1
            self._log.debug("roles.lookup", role=role_name)
            self._arn_cache[role_name] = self._identity.get_role_arn(role_name)
        return self._arn_cache[role_name]

    def resolve(
        self,
        service_name: str,
        functions: list[FunctionDeclaration],
        graph: ResourceGraph,
    ) -> dict[str, Any]:
        """Map every identity key to a role reference.

        Inline definitions are declared in ``graph``. Named roles are
        verified against the identity service.

        Raises:
            RoleNotFoundError: a named role does not exist
            IdentityServiceError: a lookup failed
        """
        refs: dict[str, Any] = {}
        inline: dict[RoleDefinition, tuple[str, bool]] = {}
        named: dict[str, None] = {}

        for identity, owner, vpc in self._owners(functions):
            if isinstance(identity, InlineRole):
                key = identity.key(service_name, owner)
                _, needs_vpc = inline.get(identity.definition, (key, False))
                inline[identity.definition] = (key, needs_vpc or vpc)
            else:
                named.setdefault(identity.name)

        for definition, (key, needs_vpc) in inline.items():
            graph.add_resource(key, definition.to_resource(vpc=needs_vpc))
            refs[key] = get_att(key, "Arn")

        for role_name in named:
            refs[role_name] = self.lookup(role_name)

        self._log.info(
            "roles.resolved",
            inline=len(inline),
            named=len(named),
            lookups=self.lookups,
        )
        return refs
