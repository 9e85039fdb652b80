"""
Shared pytest fixtures and configuration for stratus tests.

This module provides:
- Auto-marking of unit and integration tests by location
- Sample handlers and service declarations
- In-memory client bundles (see tests/_support/fakes.py)
- A scratch work directory per test
"""

import sys
from pathlib import Path

import pytest

# Ensure stratus package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from stratus.core.logging import clear_context, get_logger
from stratus.model.declarations import ServiceDefinition, handle_function
from stratus.model.iam import RoleDefinition, RolePrivilege
from tests._support.fakes import FakeStorage, FakeTarget, FakeToolchain, make_clients
from tests._support.handlers import hello


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)
        if test_path.parts and test_path.parts[0] == "aws":
            item.add_marker(pytest.mark.integration)
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def clean_log_context():
    """Structlog context vars must not leak between tests."""
    clear_context()
    yield
    clear_context()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def logger():
    return get_logger("stratus.tests")


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def inline_role() -> RoleDefinition:
    return RoleDefinition(privileges=[RolePrivilege(actions=["s3:GetObject"], resource="arn:aws:s3:::data/*")])


@pytest.fixture
def simple_service(inline_role: RoleDefinition) -> ServiceDefinition:
    """One function with an inline role granting one extra permission."""
    return ServiceDefinition(
        name="hello-svc",
        description="Hello service",
        functions=[handle_function(hello, inline_role)],
    )


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage(lifecycle_rules=[{"Status": "Enabled", "Expiration": {"Days": 7}}])


@pytest.fixture
def target() -> FakeTarget:
    return FakeTarget()


@pytest.fixture
def toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture
def clients(storage: FakeStorage, target: FakeTarget, toolchain: FakeToolchain):
    return make_clients(
        roles={"existing-role": "arn:aws:iam::123456789012:role/existing-role"},
        storage=storage,
        target=target,
        toolchain=toolchain,
    )
