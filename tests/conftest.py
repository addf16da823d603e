"""Shared pytest configuration and fixtures."""

import pytest

pytest_plugins = ["deadrop_registry.testing"]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep registry environment variables from leaking into tests."""
    monkeypatch.delenv("DEADDROP_PATH", raising=False)
    monkeypatch.delenv("DEADDROP_ADMIN", raising=False)
