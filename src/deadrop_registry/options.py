"""Configuration options for the dead drop registry.

Provides RegistryOptions for configuring backend selection and the
administrator principal. Supports environment variable overrides for CI/CD
and containerized deployments.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


class RegistryConfigError(Exception):
    """Raised when registry configuration is invalid."""

    pass


@dataclass
class RegistryOptions:
    """Configuration options for a DeadDropRegistry.

    Supports two modes (mutually exclusive):
    1. Local: SQLite storage in a .deaddrop directory
    2. In-memory: Volatile dict storage for tests

    Environment Variables:
        DEADDROP_PATH: Force local backend with specific path
        DEADDROP_ADMIN: Administrator principal when none is given

    Examples:
        # Auto-discover a .deaddrop directory (default)
        options = RegistryOptions()

        # Explicit local
        options = RegistryOptions(path=".deaddrop")

        # New local registry
        options = RegistryOptions(path=".deaddrop", administrator="admin", create_if_missing=True)

        # In-memory for tests
        options = RegistryOptions(in_memory=True, administrator="admin")
    """

    path: str | Path | None = None
    """Explicit path to .deaddrop directory. Implies local mode."""

    local: bool = False
    """Auto-discover local .deaddrop (CWD or git root). Implies local mode."""

    in_memory: bool = False
    """Use volatile in-memory storage. Perfect for testing."""

    administrator: str | None = None
    """Administrator principal. Required for in-memory and new local registries."""

    create_if_missing: bool = False
    """If True, initialize .deaddrop directory if not found (local mode only)."""

    _resolved_path: Path | None = field(default=None, repr=False)
    _backend_type: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        """Validate options and apply environment variable overrides."""
        self._apply_env_overrides()
        self._validate()
        self._resolve_backend()

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides.

        DEADDROP_PATH only applies when no explicit backend is specified.
        DEADDROP_ADMIN applies whenever no administrator was given.
        """
        if not self.administrator:
            self.administrator = os.environ.get("DEADDROP_ADMIN") or None

        has_explicit = self.path is not None or self.local or self.in_memory
        if has_explicit:
            return

        env_path = os.environ.get("DEADDROP_PATH")
        if env_path:
            self.path = env_path

    def _validate(self) -> None:
        """Validate that options are consistent."""
        if self.in_memory and (self.path is not None or self.local):
            raise RegistryConfigError("in_memory cannot be combined with path or local options.")

        if self.in_memory and not self.administrator:
            raise RegistryConfigError(
                "in_memory requires an administrator (pass administrator= or set DEADDROP_ADMIN)."
            )

        if self.create_if_missing and self.in_memory:
            raise RegistryConfigError(
                "create_if_missing only applies to local backends, not in_memory."
            )

    def _resolve_backend(self) -> None:
        """Determine the backend type and resolve paths."""
        if self.in_memory:
            self._backend_type = "in_memory"
            return

        if self.path is not None:
            self._backend_type = "local"
            self._resolved_path = Path(self.path).resolve()
            return

        if self.local:
            self._backend_type = "local"
            # Path will be resolved during discovery
            return

        # No explicit options - will use auto-discovery
        self._backend_type = None

    @property
    def backend_type(self) -> str | None:
        """The resolved backend type: 'local', 'in_memory', or None (auto-discover)."""
        return self._backend_type

    @property
    def resolved_path(self) -> Path | None:
        """The resolved .deaddrop path (for local backends)."""
        return self._resolved_path

    def is_auto_discover(self) -> bool:
        """True if no explicit backend was specified (will auto-discover)."""
        return self._backend_type is None

    def is_local(self) -> bool:
        """True if configured for local backend."""
        return self._backend_type == "local"

    def is_in_memory(self) -> bool:
        """True if configured for in-memory backend."""
        return self._backend_type == "in_memory"

    @classmethod
    def for_local(
        cls,
        path: str | Path | None = None,
        administrator: str | None = None,
        create_if_missing: bool = False,
    ) -> "RegistryOptions":
        """Create options for local backend.

        Args:
            path: Explicit .deaddrop path. If None, auto-discovers.
            administrator: Administrator principal (required when creating).
            create_if_missing: Initialize .deaddrop if not found.
        """
        if path:
            return cls(
                path=path,
                administrator=administrator,
                create_if_missing=create_if_missing,
            )
        return cls(local=True, administrator=administrator, create_if_missing=create_if_missing)

    @classmethod
    def for_in_memory(cls, administrator: str) -> "RegistryOptions":
        """Create options for in-memory backend (testing)."""
        return cls(in_memory=True, administrator=administrator)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (for debugging/logging)."""
        return {
            "backend_type": self._backend_type,
            "path": str(self._resolved_path) if self._resolved_path else None,
            "local": self.local,
            "in_memory": self.in_memory,
            "administrator": self.administrator,
            "create_if_missing": self.create_if_missing,
        }
