"""
Deterministic naming and hashing utilities for resource graphs.

Provides stable, reproducible logical names so that repeated provisioning
runs of the same service produce byte-identical templates. The deployment
target recognizes unchanged resources by logical name, so anything that
feeds a name must be a pure function of its inputs.

Manifesto:
    Logical names need to survive re-provisioning:
    - **Deterministic:** Same inputs always produce the same name
    - **Order-dependent:** ("a", "b") and ("b", "a") are different identities
    - **Unambiguous:** ("a|b",) and ("a", "b") never collide
    - **Template-safe:** Names contain only ASCII letters and digits

    digest() is the foundation. Each part is length-prefixed before hashing
    so that joining never makes two different part lists look alike.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                    Naming Patterns                          │
        └─────────────────────────────────────────────────────────────┘

        Content-addressed name (event sources, custom resources):
        ┌────────────────────────────────────────────────────────────┐
        │ derive("LambdaES", fn_name, event_source_arn)              │
        │   -> "LambdaES" + sha1(len:part|len:part)                   │
        └────────────────────────────────────────────────────────────┘

        Function resources:
        ┌────────────────────────────────────────────────────────────┐
        │ derive(name + "Lambda", name) -> "helloLambda" + sha1(...) │
        └────────────────────────────────────────────────────────────┘

Examples:
    >>> derive("IAMRole", "svc", "fn") == derive("IAMRole", "svc", "fn")
    True
    >>> derive("IAMRole", "a|b") == derive("IAMRole", "a", "b")
    False
    >>> sanitized_name("Hello World!")
    'HelloWorld'

Tags:
    hashing, naming, idempotency, stratus

Doc-Types:
    - API Reference
"""

import hashlib
import re
from typing import Any

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def digest(*parts: Any, length: int | None = None) -> str:
    """
    Compute a deterministic hex digest over ordered identity parts.

    Each part is converted to text and length-prefixed before it is fed to
    SHA-1, which keeps the encoding unambiguous regardless of the characters
    a part contains.

    Args:
        *parts: Identity parts (converted to strings)
        length: Optional truncation of the hex digest

    Returns:
        Lowercase hex string
    """
    hasher = hashlib.sha1()
    for part in parts:
        encoded = str(part).encode("utf-8")
        hasher.update(f"{len(encoded)}:".encode())
        hasher.update(encoded)
    value = hasher.hexdigest()
    return value[:length] if length else value


def sanitized_name(value: str) -> str:
    """Strip everything but ASCII letters and digits."""
    return _NON_ALNUM.sub("", value)


def derive(kind: str, *parts: Any) -> str:
    """
    Derive a collision-resistant logical name.

    The human-readable ``kind`` prefix is followed by the digest of the
    remaining parts. Pure: no clock, no randomness, no process state.
    """
    return f"{sanitized_name(kind)}{digest(kind, *parts)}"


def template_key(service_name: str, build_id: str) -> str:
    """Object storage key for the serialized template of one build."""
    return (
        f"{service_name}/{sanitized_name(service_name)}-"
        f"{hashlib.sha1(build_id.encode('utf-8')).hexdigest()}-cf.json"
    )
