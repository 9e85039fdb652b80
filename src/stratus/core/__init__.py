"""Stratus core -- errors, naming, logging and settings shared by every layer.

Architecture::

    errors.py      Structured error hierarchy (StratusError and friends)
    hashing.py     Deterministic logical-name derivation
    logging.py     structlog configuration and context binding
    settings.py    pydantic-settings configuration (STRATUS_ prefix)
"""
