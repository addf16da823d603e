"""The dead drop registry.

This module provides `DeadDropRegistry`, the single owner of registry state.
A sender deposits an opaque payload for exactly one recipient; only that
recipient may retrieve it; the administrator fixed at initialization may
delete drops.

Usage:
    # In-memory (tests)
    registry = DeadDropRegistry.in_memory(administrator="admin")

    # Existing local .deaddrop (auto-discovered)
    registry = DeadDropRegistry.local()

    # Create new local .deaddrop
    registry = DeadDropRegistry.create_local(administrator="admin")

    drop_id = registry.create("alice", "bob", b"ciphertext")
    payload = registry.retrieve("bob", drop_id)
    registry.list_drops_for_user("alice")  # [drop_id]
    registry.delete("admin", drop_id)
"""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Any, Callable

from .backends import Backend, Drop, InMemoryBackend, LocalBackend
from .discovery import RegistryNotFound, discover_registry_path, get_deaddrop_init_path
from .errors import InvalidPayload, NotAuthorized, NotFound
from .metrics import RegistryMetrics
from .options import RegistryOptions


class DeadDropRegistry:
    """Access-controlled store of drops addressed to a single recipient.

    Every operation runs under one lock, so ids are allocated without gaps or
    duplicates and no caller observes a half-applied operation. Failed
    operations leave state untouched.

    Deleting a drop removes it from the drop table only: per-user indexes
    keep the id, so `list_drops_for_user` may return ids whose `retrieve`
    raises NotFound.
    """

    def __init__(
        self,
        options: RegistryOptions | None = None,
        *,
        backend: Backend | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize a registry.

        Args:
            options: Configuration options. If None, auto-discovers a local registry.
            backend: Explicit backend; takes precedence over options.
            clock: Timestamp source for the informational created_at field.
        """
        self._options = options or RegistryOptions()
        self._backend = backend or self._create_backend()
        self._clock = clock
        self._last_created_at = 0.0
        self._lock = threading.Lock()
        self.metrics = RegistryMetrics()

    def _create_backend(self) -> Backend:
        """Create the appropriate backend based on options."""
        opts = self._options

        if opts.is_in_memory():
            assert opts.administrator is not None
            return InMemoryBackend(opts.administrator)

        if opts.resolved_path is not None:
            return LocalBackend(
                opts.resolved_path,
                create_if_missing=opts.create_if_missing,
                administrator=opts.administrator,
            )

        # local=True or full auto-discovery
        try:
            path = discover_registry_path()
        except RegistryNotFound:
            if not opts.create_if_missing:
                raise
            path = get_deaddrop_init_path()
        return LocalBackend(
            path,
            create_if_missing=opts.create_if_missing,
            administrator=opts.administrator,
        )

    # --- Factory Methods ---

    @classmethod
    def in_memory(cls, administrator: str, **kwargs: Any) -> "DeadDropRegistry":
        """Create a registry with volatile in-memory storage."""
        return cls(RegistryOptions.for_in_memory(administrator), **kwargs)

    @classmethod
    def local(cls, path: str | Path | None = None, **kwargs: Any) -> "DeadDropRegistry":
        """Open an existing local registry.

        Args:
            path: Path to .deaddrop directory. If None, auto-discovers.

        Raises:
            RegistryNotFound: If no local .deaddrop found.
            FileNotFoundError: If an explicit path does not exist.
        """
        return cls(RegistryOptions.for_local(path=path), **kwargs)

    @classmethod
    def create_local(
        cls,
        administrator: str,
        path: str | Path | None = None,
        add_to_gitignore: bool = True,
        **kwargs: Any,
    ) -> "DeadDropRegistry":
        """Create (or reopen) a local registry directory.

        Args:
            administrator: Administrator principal, fixed for the registry's lifetime.
            path: Path for .deaddrop directory. If None, uses git root or cwd.
            add_to_gitignore: Add .deaddrop/ to .gitignore if in git repo.
        """
        backend = LocalBackend.create(
            administrator,
            path=Path(path) if path is not None else None,
            add_to_gitignore=add_to_gitignore,
        )
        return cls(backend=backend, **kwargs)

    # --- Properties ---

    @property
    def administrator(self) -> str:
        """The principal allowed to delete drops."""
        return self._backend.administrator

    @property
    def backend(self) -> str:
        """Backend type: 'local' or 'in_memory'."""
        return self._backend.get_info().backend_type

    @property
    def location(self) -> str:
        """Backend location (path or ':memory:')."""
        return self._backend.get_info().location

    # --- Drop Operations ---

    def create(self, sender: str, recipient: str, payload: bytes) -> int:
        """Deposit a payload for a recipient.

        Args:
            sender: Depositing principal
            recipient: The only principal allowed to retrieve the payload
            payload: Opaque, non-empty bytes

        Returns:
            The new drop id (0, 1, 2, ... in creation order)

        Raises:
            InvalidPayload: If payload is empty. No id is consumed.
            TypeError: If payload is not bytes-like.
        """
        with self.metrics.track("create"), self._lock:
            if not isinstance(payload, (bytes, bytearray, memoryview)):
                raise TypeError(f"payload must be bytes, not {type(payload).__name__}")
            data = bytes(payload)
            if not data:
                raise InvalidPayload("Payload must not be empty")

            created_at = max(self._clock(), self._last_created_at)
            drop = self._backend.insert_drop(sender, recipient, data, created_at)
            self._last_created_at = created_at
            return drop.id

    def retrieve(self, caller: str, drop_id: int) -> bytes:
        """Read a drop's payload. Only the recipient may do this.

        Retrieval does not consume the drop.

        Raises:
            NotFound: If the drop does not exist (or was deleted).
            NotAuthorized: If caller is not the drop's recipient.
        """
        with self.metrics.track("retrieve"), self._lock:
            drop = self._backend.get_drop(drop_id)
            if drop is None:
                raise NotFound(drop_id)
            if caller != drop.recipient:
                raise NotAuthorized(f"{caller!r} is not the recipient of drop {drop_id}")
            return drop.payload

    def list_drops_for_user(self, user: str) -> list[int]:
        """List ids of drops the user sent or received, in creation order.

        Never fails; unknown principals get an empty list. Ids of deleted
        drops are still listed.
        """
        with self.metrics.track("list_drops_for_user"), self._lock:
            return self._backend.list_user_drops(user)

    def delete(self, caller: str, drop_id: int) -> None:
        """Remove a drop. Only the administrator may do this.

        Raises:
            NotAuthorized: If caller is not the administrator.
            NotFound: If the drop does not exist (a second delete fails).
        """
        with self.metrics.track("delete"), self._lock:
            self._require_administrator(caller, "delete")
            if not self._backend.remove_drop(drop_id):
                raise NotFound(drop_id)

    def inspect(self, caller: str, drop_id: int) -> Drop:
        """Administrative lookup of a stored drop record.

        Raises:
            NotAuthorized: If caller is not the administrator.
            NotFound: If the drop does not exist.
        """
        with self.metrics.track("inspect"), self._lock:
            self._require_administrator(caller, "inspect")
            drop = self._backend.get_drop(drop_id)
            if drop is None:
                raise NotFound(drop_id)
            return drop

    def count(self) -> int:
        """Number of drops currently stored (deleted drops excluded)."""
        with self.metrics.track("count"), self._lock:
            return self._backend.count_drops()

    def get_info(self) -> dict[str, Any]:
        """Describe the backend and administrator."""
        info = self._backend.get_info()
        return {
            "backend": info.backend_type,
            "location": info.location,
            "administrator": self.administrator,
            "drops": self.count(),
        }

    def _require_administrator(self, caller: str, action: str) -> None:
        if caller != self._backend.administrator:
            raise NotAuthorized(f"Only the administrator may {action} drops")

    # --- Lifecycle ---

    def close(self) -> None:
        """Close the backend."""
        self._backend.close()

    def __enter__(self) -> "DeadDropRegistry":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
