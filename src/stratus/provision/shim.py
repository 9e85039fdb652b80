"""Dispatch shim generation.

The shim is the archive's entry point: one forwarding export per distinct
invocation name, all routed through the same dispatcher into the compiled
binary. Entries are keyed by name, so two declarations resolving to the same
name produce one export.
"""

from __future__ import annotations

from importlib import resources

from stratus.graph.registry import ResourceTypeRegistry
from stratus.model.declarations import FunctionDeclaration

SHIM_ENTRY = "index.js"
GENERATED_MARKER = "// DO NOT EDIT - CONTENT UNTIL EOF IS AUTOMATICALLY GENERATED"
AUX_SCRIPTS = ("stratus_utils.js", "constants.json")


def _asset(*parts: str) -> str:
    return resources.files("stratus.assets").joinpath("/".join(parts)).read_text(encoding="utf-8")


def export_names(functions: list[FunctionDeclaration], registry: ResourceTypeRegistry) -> list[str]:
    """Distinct invocation names, in declaration order, builtins last."""
    names: dict[str, None] = {}
    for fn in functions:
        names.setdefault(fn.function_name)
        for custom in fn.custom_resources:
            names.setdefault(custom.export_name)
    for builtin in registry.builtin_export_names():
        names.setdefault(builtin)
    return list(names)


def forwarder_entry(name: str) -> str:
    return f'exports["{name}"] = createForwarder("/{name}");\n'


def render_shim(service_name: str, binary_name: str, names: list[str]) -> str:
    source = _asset(SHIM_ENTRY)
    source += f"\n{GENERATED_MARKER}\n"
    source += "".join(forwarder_entry(name) for name in names)
    source += f"BINARY_NAME='{binary_name}';\n"
    source += f"SERVICE_NAME='{service_name}';\n"
    return source


def aux_scripts() -> dict[str, str]:
    """Support scripts embedded verbatim at the archive root."""
    return {name: _asset("provision", name) for name in AUX_SCRIPTS}
