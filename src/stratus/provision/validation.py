"""Precondition checks run before the workflow starts.

Every problem is collected and reported together in one PreconditionError.
Nothing has been built or uploaded at this point, so nothing is rolled back.
"""

from __future__ import annotations

import inspect
from collections import Counter
from collections.abc import Callable
from typing import Any

from stratus.core.errors import InvalidHandlerError, PreconditionError
from stratus.core.logging import get_logger
from stratus.model.declarations import ServiceDefinition

logger = get_logger(__name__)


def handler_error(name: str, handler: Callable[..., Any]) -> InvalidHandlerError | None:
    """Why ``handler`` cannot be invoked as ``handler(event, context)``, if it cannot."""
    if not callable(handler):
        return InvalidHandlerError(name, f"{handler!r} is not callable")
    try:
        signature = inspect.signature(handler)
    except (TypeError, ValueError):
        # builtins without introspectable signatures
        return None
    try:
        signature.bind(object(), object())
    except TypeError:
        return InvalidHandlerError(name, f"signature {signature} does not accept (event, context)")
    return None


def find_problems(service: ServiceDefinition) -> list[str]:
    problems: list[str] = []
    if not service.name or not service.name.strip():
        problems.append("Service name must not be empty")
    if not service.functions:
        problems.append(f"No functions declared for service {service.name!r}")

    names: Counter[str] = Counter()
    for fn in service.functions:
        error = handler_error(fn.function_name, fn.handler)
        if error is not None:
            problems.append(error.message)
        names[fn.function_name] += 1
        for custom in fn.custom_resources:
            error = handler_error(custom.user_function_name, custom.handler)
            if error is not None:
                problems.append(error.message)
            names[custom.user_function_name] += 1

    for name, count in sorted(names.items()):
        if count > 1:
            logger.error("validation.duplicate_function", name=name, collision_count=count)
            problems.append(f"Multiple definitions of function: {name}")

    if service.site is not None:
        problems.extend(service.site.validate())
    return problems


def validate_service(service: ServiceDefinition) -> None:
    """Raise PreconditionError listing every problem found, if any."""
    problems = find_problems(service)
    if problems:
        raise PreconditionError(problems=problems).with_context(service=service.name)
    logger.debug("validation.passed", service=service.name, functions=len(service.functions))
