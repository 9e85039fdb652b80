"""Function naming strategies.

The stable name of a function feeds every content-addressed identifier that
depends on it, so it is computed once per declaration and cached there.
Explicit names are preferred; deriving a name from the handler object is a
fallback kept behind the same interface.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from stratus.core.hashing import sanitized_name


@runtime_checkable
class NamingStrategy(Protocol):
    def function_name(self, handler: Callable[..., Any]) -> str: ...


@dataclass(frozen=True)
class ExplicitNaming:
    """Caller-supplied stable name."""

    name: str

    def __post_init__(self) -> None:
        if not sanitized_name(self.name):
            raise ValueError(f"Function name must contain letters or digits: {self.name!r}")

    def function_name(self, handler: Callable[..., Any]) -> str:
        return sanitized_name(self.name)


class HandlerNaming:
    """Name derived from the handler's ``__name__``.

    Two handlers with the same basename in different modules get the same
    name, which precondition validation reports as a duplicate.
    """

    def function_name(self, handler: Callable[..., Any]) -> str:
        raw = getattr(handler, "__name__", None) or type(handler).__name__
        return sanitized_name(raw) or "handler"


def qualified_name(handler: Callable[..., Any]) -> str:
    """``module.qualname`` for a handler, used for custom resources."""
    module = getattr(handler, "__module__", None) or ""
    qualname = getattr(handler, "__qualname__", None) or type(handler).__qualname__
    return f"{module}.{qualname}" if module else qualname
