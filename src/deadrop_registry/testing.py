"""Pytest fixtures for testing with a DeadDropRegistry.

Usage in conftest.py:
    pytest_plugins = ["deadrop_registry.testing"]

Available fixtures:
    - registry: Fresh in-memory registry administered by TEST_ADMIN
    - registry_local: File-backed local registry (uses tmp_path)
    - registry_any_backend: Parametrized over in_memory and local
    - registry_with_drop: Registry holding one drop from TEST_SENDER to TEST_RECIPIENT
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generator

import pytest

from .registry import DeadDropRegistry

if TYPE_CHECKING:
    from pathlib import Path

TEST_ADMIN = "admin"
TEST_SENDER = "alice"
TEST_RECIPIENT = "bob"
TEST_PAYLOAD = bytes([1, 2, 3, 4, 5])


@pytest.fixture
def registry() -> Generator[DeadDropRegistry, None, None]:
    """Fresh in-memory registry.

    Example:
        def test_something(registry):
            drop_id = registry.create("alice", "bob", b"hi")
            assert registry.retrieve("bob", drop_id) == b"hi"
    """
    reg = DeadDropRegistry.in_memory(administrator=TEST_ADMIN)
    yield reg
    reg.close()


@pytest.fixture
def registry_local(tmp_path: "Path") -> Generator[DeadDropRegistry, None, None]:
    """File-backed local registry in tmp_path/.deaddrop.

    Useful for testing persistence behavior.
    """
    reg = DeadDropRegistry.create_local(
        administrator=TEST_ADMIN,
        path=tmp_path / ".deaddrop",
        add_to_gitignore=False,
    )
    yield reg
    reg.close()


@pytest.fixture(params=["in_memory", "local"])
def registry_any_backend(
    request: Any,
    tmp_path: "Path",
) -> Generator[DeadDropRegistry, None, None]:
    """Parametrized fixture that runs tests against every backend.

    Example:
        def test_works_everywhere(registry_any_backend):
            assert registry_any_backend.create("a", "b", b"x") == 0
            # This test runs twice: once with in_memory, once with local
    """
    if request.param == "in_memory":
        reg = DeadDropRegistry.in_memory(administrator=TEST_ADMIN)
    elif request.param == "local":
        reg = DeadDropRegistry.create_local(
            administrator=TEST_ADMIN,
            path=tmp_path / ".deaddrop",
            add_to_gitignore=False,
        )
    else:
        raise ValueError(f"Unknown backend type: {request.param}")
    yield reg
    reg.close()


@pytest.fixture
def registry_with_drop(
    registry: DeadDropRegistry,
) -> Generator[tuple[DeadDropRegistry, int], None, None]:
    """Registry with one drop from TEST_SENDER to TEST_RECIPIENT.

    Returns:
        Tuple of (registry, drop_id)
    """
    drop_id = registry.create(TEST_SENDER, TEST_RECIPIENT, TEST_PAYLOAD)
    yield registry, drop_id


# --- Utility Functions ---


def seed_drops(
    registry: DeadDropRegistry,
    sender: str,
    recipients: list[str],
    payload: bytes = TEST_PAYLOAD,
) -> list[int]:
    """Create one drop from sender to each recipient.

    Returns:
        The new drop ids, in creation order
    """
    return [registry.create(sender, recipient, payload) for recipient in recipients]
