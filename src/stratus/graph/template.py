"""
In-memory resource graph with collision-checked merging.

A ResourceGraph maps logical names to resource bodies plus a separate
mapping of outputs. It is the single structure every exporter writes into
and the only thing the convergence target ever sees (after serialization).

Manifesto:
    Templates are assembled from many independent producers: per-function
    export, role resolution, gateway and site exporters, user decorators.
    None of them may silently overwrite another's resource.

    - **Collision-checked:** same name with a different body is an error
    - **Idempotent:** same name with an identical body is a no-op
    - **Atomic merge:** a merge that collides leaves the destination untouched
    - **Deterministic:** serialization sorts keys so equal graphs are equal bytes

Architecture:
    ::

        scratch = ResourceGraph()            # two-phase export
        gateway.export(scratch, ...)
        manifest = scratch.outputs           # read outputs first
        site.export(graph, manifest, ...)
        safe_merge(scratch, graph)           # merge last

Tags:
    resource-graph, template, cloudformation, merge, stratus

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from stratus.core.errors import ResourceCollisionError

if TYPE_CHECKING:
    from stratus.graph.registry import ResourceTypeRegistry

TEMPLATE_FORMAT_VERSION = "2010-09-09"


# ---------------------------------------------------------------------------
# Intrinsic functions
# ---------------------------------------------------------------------------


def ref(name: str) -> dict[str, Any]:
    return {"Ref": name}


def get_att(name: str, attribute: str) -> dict[str, Any]:
    return {"Fn::GetAtt": [name, attribute]}


def join(delimiter: str, parts: list[Any]) -> dict[str, Any]:
    return {"Fn::Join": [delimiter, list(parts)]}


def literal(value: Any) -> str:
    """Stable text form of a string or intrinsic value, used as a digest input."""
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


# ---------------------------------------------------------------------------
# Graph nodes
# ---------------------------------------------------------------------------


@dataclass
class Resource:
    """One declared resource."""

    type: str
    properties: dict[str, Any] = field(default_factory=dict)
    depends_on: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    condition: str | None = None

    def add_dependency(self, *names: str) -> None:
        for name in names:
            if name not in self.depends_on:
                self.depends_on.append(name)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"Type": self.type}
        if self.properties:
            result["Properties"] = self.properties
        if self.depends_on:
            result["DependsOn"] = list(self.depends_on)
        if self.metadata:
            result["Metadata"] = self.metadata
        if self.condition:
            result["Condition"] = self.condition
        return result


@dataclass
class Output:
    """One declared template output."""

    value: Any
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"Value": self.value}
        if self.description:
            result["Description"] = self.description
        return result


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


class ResourceGraph:
    """Mapping of logical name to resource body, plus outputs.

    The registry is optional and only consulted by ``custom_resource()``.
    """

    def __init__(self, description: str = "", registry: ResourceTypeRegistry | None = None):
        self.description = description
        self.registry = registry
        self.resources: dict[str, Resource] = {}
        self.outputs: dict[str, Output] = {}

    def __contains__(self, name: str) -> bool:
        return name in self.resources

    def __len__(self) -> int:
        return len(self.resources)

    def __repr__(self) -> str:
        return f"ResourceGraph(resources={len(self.resources)}, outputs={len(self.outputs)})"

    def get(self, name: str) -> Resource | None:
        return self.resources.get(name)

    def add_resource(self, name: str, resource: Resource) -> Resource:
        """Add a resource, returning the stored instance.

        Raises:
            ResourceCollisionError: ``name`` exists with a different body
        """
        existing = self.resources.get(name)
        if existing is not None:
            if existing.to_dict() != resource.to_dict():
                raise ResourceCollisionError([name])
            return existing
        self.resources[name] = resource
        return resource

    def add_output(self, name: str, output: Output) -> Output:
        existing = self.outputs.get(name)
        if existing is not None:
            if existing.to_dict() != output.to_dict():
                raise ResourceCollisionError([name], f"Conflicting output definitions: {name}")
            return existing
        self.outputs[name] = output
        return output

    def custom_resource(self, name: str, type_name: str, properties: dict[str, Any]) -> Resource:
        """Declare a registered custom resource type."""
        if self.registry is None:
            raise LookupError(f"No resource type registry available for {type_name}")
        return self.add_resource(name, self.registry.create(type_name, properties))

    def collisions(self, source: ResourceGraph) -> list[str]:
        """Names in ``source`` that would conflict with this graph."""
        names = []
        for name, resource in source.resources.items():
            existing = self.resources.get(name)
            if existing is not None and existing.to_dict() != resource.to_dict():
                names.append(name)
        for name, output in source.outputs.items():
            existing_output = self.outputs.get(name)
            if existing_output is not None and existing_output.to_dict() != output.to_dict():
                names.append(name)
        return names

    def merge(self, source: ResourceGraph) -> None:
        """Merge ``source`` into this graph; all-or-nothing.

        Raises:
            ResourceCollisionError: listing every conflicting name
        """
        conflicts = self.collisions(source)
        if conflicts:
            raise ResourceCollisionError(conflicts)
        for name, resource in source.resources.items():
            self.resources.setdefault(name, resource)
        for name, output in source.outputs.items():
            self.outputs.setdefault(name, output)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "AWSTemplateFormatVersion": TEMPLATE_FORMAT_VERSION,
            "Resources": {name: res.to_dict() for name, res in self.resources.items()},
        }
        if self.description:
            result["Description"] = self.description
        if self.outputs:
            result["Outputs"] = {name: out.to_dict() for name, out in self.outputs.items()}
        return result

    def serialize(self, indent: int | None = None) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, indent=indent)


def safe_merge(source: ResourceGraph, dest: ResourceGraph) -> None:
    """Merge ``source`` into ``dest`` with collision detection."""
    dest.merge(source)


# Attributes exposed for discovery, by resource type
_DISCOVERY_ATTRIBUTES: dict[str, tuple[str, ...]] = {
    "AWS::DynamoDB::Table": ("Arn", "StreamArn"),
    "AWS::IAM::Role": ("Arn",),
    "AWS::Kinesis::Stream": ("Arn",),
    "AWS::Lambda::Function": ("Arn",),
    "AWS::S3::Bucket": ("Arn", "DomainName", "WebsiteURL"),
    "AWS::SNS::Topic": ("TopicName",),
    "AWS::SQS::Queue": ("Arn", "QueueName", "QueueUrl"),
}


def outputs_for_resource(name: str, resource: Resource) -> dict[str, Any]:
    """Reference expressions a function needs to discover ``resource`` at runtime."""
    result: dict[str, Any] = {"Type": resource.type, "Ref": ref(name)}
    for attribute in _DISCOVERY_ATTRIBUTES.get(resource.type, ()):
        result[attribute] = get_att(name, attribute)
    return result
