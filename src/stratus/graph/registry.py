"""Registry of custom resource types the assembler knows how to declare.

A registry is an explicit object handed to each ResourceGraph. Tests and
parallel runs get their own instance; nothing is registered globally.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from stratus.core.errors import ExportError
from stratus.graph.template import Resource

LAMBDA_CUSTOM_RESOURCE = "Custom::StratusLambdaCustomResource"
ZIP_TO_S3_BUCKET = "Custom::Stratus::ZipToS3Bucket"

# Built-in types whose handlers ship inside every archive
BUILTIN_TYPES = (
    "Custom::Stratus::CloudWatchLogsLambdaEventSource",
    "Custom::Stratus::S3LambdaEventSource",
    "Custom::Stratus::SESLambdaEventSource",
    "Custom::Stratus::SNSLambdaEventSource",
    ZIP_TO_S3_BUCKET,
)


def export_name(type_name: str) -> str:
    """Shim export name for a custom resource type."""
    return type_name.replace("::", "_")


@dataclass(frozen=True)
class CustomResourceType:
    type_name: str
    required: tuple[str, ...] = ("ServiceToken",)
    builtin: bool = False
    defaults: dict[str, Any] = field(default_factory=dict)

    @property
    def export_name(self) -> str:
        return export_name(self.type_name)


class ResourceTypeRegistry:
    """Known custom resource types keyed by type name."""

    def __init__(self) -> None:
        self._types: dict[str, CustomResourceType] = {}

    @classmethod
    def default(cls) -> ResourceTypeRegistry:
        registry = cls()
        registry.register(LAMBDA_CUSTOM_RESOURCE, required=("ServiceToken", "UserProperties"))
        for type_name in BUILTIN_TYPES:
            registry.register(type_name, builtin=True)
        return registry

    def register(
        self,
        type_name: str,
        *,
        required: tuple[str, ...] = ("ServiceToken",),
        builtin: bool = False,
        defaults: dict[str, Any] | None = None,
    ) -> CustomResourceType:
        if not type_name.startswith("Custom::"):
            raise ValueError(f"Custom resource types must start with 'Custom::': {type_name}")
        entry = CustomResourceType(type_name, tuple(required), builtin, dict(defaults or {}))
        self._types[type_name] = entry
        return entry

    def __contains__(self, type_name: str) -> bool:
        return type_name in self._types

    def get(self, type_name: str) -> CustomResourceType:
        try:
            return self._types[type_name]
        except KeyError:
            raise ExportError(f"Unregistered custom resource type: {type_name}") from None

    def create(self, type_name: str, properties: dict[str, Any]) -> Resource:
        entry = self.get(type_name)
        merged = {**entry.defaults, **properties}
        missing = [key for key in entry.required if key not in merged]
        if missing:
            raise ExportError(f"{type_name} is missing required properties: {', '.join(missing)}")
        return Resource(type=type_name, properties=merged)

    def builtin_export_names(self) -> list[str]:
        return sorted(entry.export_name for entry in self._types.values() if entry.builtin)
