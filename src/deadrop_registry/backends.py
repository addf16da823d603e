"""Backend implementations for the dead drop registry.

This module provides backend classes that hold registry state:
- Backend: Abstract base class defining the storage interface
- InMemoryBackend: Volatile dict-based storage
- LocalBackend: File-system based SQLite storage in a .deaddrop directory

Backends are pure storage. Validation and authorization live in
DeadDropRegistry so every backend behaves identically.
"""

from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import yaml

from . import db
from .discovery import ensure_gitignore, get_deaddrop_init_path
from .options import RegistryConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Drop:
    """A stored payload addressed from one principal to another."""

    id: int
    sender: str
    recipient: str
    payload: bytes
    created_at: float
    """Seconds since the epoch. Informational only."""

    def to_dict(self, include_payload: bool = True) -> dict[str, Any]:
        """Convert to dictionary (payload replaced by its size when excluded)."""
        data = asdict(self)
        if not include_payload:
            del data["payload"]
            data["payload_size"] = len(self.payload)
        return data


@dataclass
class BackendInfo:
    """Information about a backend instance."""

    backend_type: str
    """Type of backend: 'local' or 'in_memory'."""

    location: str
    """Location description: path or ':memory:'."""


class Backend(ABC):
    """Abstract base class for registry backends.

    A backend owns the drop table, the per-user index, the id counter and
    the fixed administrator principal.
    """

    @property
    @abstractmethod
    def administrator(self) -> str:
        """The administrator principal, fixed when the backend was created."""
        ...

    @abstractmethod
    def get_info(self) -> BackendInfo:
        """Get information about this backend."""
        ...

    @abstractmethod
    def insert_drop(
        self,
        sender: str,
        recipient: str,
        payload: bytes,
        created_at: float,
    ) -> Drop:
        """Allocate the next id and store a drop under it.

        Appends the id to the sender's index and, when different, to the
        recipient's index. Must be all-or-nothing.
        """
        ...

    @abstractmethod
    def get_drop(self, drop_id: int) -> Drop | None:
        """Get a drop from the drop table, or None if absent."""
        ...

    @abstractmethod
    def remove_drop(self, drop_id: int) -> bool:
        """Remove a drop from the drop table. Index entries are not touched.

        Returns:
            True if removed, False if not found
        """
        ...

    @abstractmethod
    def list_user_drops(self, principal: str) -> list[int]:
        """List the ids indexed for a principal, in creation order."""
        ...

    @abstractmethod
    def count_drops(self) -> int:
        """Count drops currently in the drop table."""
        ...

    def close(self) -> None:
        """Close any resources held by the backend."""
        pass


class InMemoryBackend(Backend):
    """Volatile backend for tests and single-process use.

    All data is lost when the backend is garbage collected.
    """

    def __init__(self, administrator: str):
        self._administrator = administrator
        self._drops: dict[int, Drop] = {}
        self._user_drops: defaultdict[str, list[int]] = defaultdict(list)
        self._next_id = 0

    @property
    def administrator(self) -> str:
        return self._administrator

    def get_info(self) -> BackendInfo:
        return BackendInfo(backend_type="in_memory", location=":memory:")

    def insert_drop(
        self,
        sender: str,
        recipient: str,
        payload: bytes,
        created_at: float,
    ) -> Drop:
        drop = Drop(
            id=self._next_id,
            sender=sender,
            recipient=recipient,
            payload=payload,
            created_at=created_at,
        )
        self._next_id += 1
        self._drops[drop.id] = drop
        self._user_drops[sender].append(drop.id)
        if recipient != sender:
            self._user_drops[recipient].append(drop.id)
        return drop

    def get_drop(self, drop_id: int) -> Drop | None:
        return self._drops.get(drop_id)

    def remove_drop(self, drop_id: int) -> bool:
        return self._drops.pop(drop_id, None) is not None

    def list_user_drops(self, principal: str) -> list[int]:
        # .get() so that lookups do not create index entries
        return list(self._user_drops.get(principal, []))

    def count_drops(self) -> int:
        return len(self._drops)


@dataclass
class LocalConfig:
    """Configuration stored in .deaddrop/config.yaml."""

    administrator: str | None = None
    """Administrator principal, fixed when the directory is initialized."""

    @classmethod
    def load(cls, path: Path) -> "LocalConfig":
        """Load config from YAML file."""
        config_path = path / "config.yaml"
        if not config_path.exists():
            return cls()

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(administrator=data.get("administrator"))

    def save(self, path: Path) -> None:
        """Save config to YAML file."""
        config_path = path / "config.yaml"
        data = {"administrator": self.administrator}

        with open(config_path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)


class LocalBackend(Backend):
    """Local file-system based backend using SQLite.

    Stores data in a .deaddrop directory:
    - config.yaml: Registry config (administrator)
    - data.db: SQLite database with drops and the per-user index
    """

    def __init__(
        self,
        path: Path,
        create_if_missing: bool = False,
        administrator: str | None = None,
    ):
        """Initialize local backend.

        Args:
            path: Path to .deaddrop directory
            create_if_missing: If True, create directory if it doesn't exist
            administrator: Administrator for a new directory. For an existing
                directory it must match the stored one if given.

        Raises:
            FileNotFoundError: If the directory is missing and not created.
            RegistryConfigError: If the administrator is missing or conflicts.
        """
        self._path = path
        self._conn: sqlite3.Connection | None = None
        self._config: LocalConfig | None = None

        if not (path / "config.yaml").exists():
            if not create_if_missing:
                raise FileNotFoundError(f"Local registry not found: {path}")
            if not administrator:
                raise RegistryConfigError(
                    "An administrator is required to initialize a new registry."
                )
            self._init_local(administrator)
        else:
            self._load(administrator)

    @classmethod
    def create(
        cls,
        administrator: str,
        path: Path | None = None,
        add_to_gitignore: bool = True,
    ) -> "LocalBackend":
        """Create a new local registry.

        Args:
            administrator: Administrator principal, fixed for the registry's lifetime.
            path: Path for .deaddrop directory. If None, uses git root or cwd.
            add_to_gitignore: Add .deaddrop/ to .gitignore if in git repo.

        Returns:
            Initialized LocalBackend instance.
        """
        if path is None:
            path = get_deaddrop_init_path()

        backend = cls(path, create_if_missing=True, administrator=administrator)

        if add_to_gitignore:
            ensure_gitignore(path)

        return backend

    def _init_local(self, administrator: str) -> None:
        """Initialize a new .deaddrop directory."""
        self._path.mkdir(parents=True, exist_ok=True)

        self._config = LocalConfig(administrator=administrator)
        self._config.save(self._path)

        self._conn = db.get_connection(self._path / "data.db")
        db.init_db_with_conn(self._conn)
        logger.info("Initialized local registry at %s", self._path)

    def _load(self, administrator: str | None) -> None:
        """Load existing .deaddrop directory."""
        self._config = LocalConfig.load(self._path)
        stored = self._config.administrator
        if not stored:
            raise RegistryConfigError(f"No administrator configured in {self._path / 'config.yaml'}")
        if administrator and administrator != stored:
            raise RegistryConfigError(
                f"Registry at {self._path} is administered by {stored!r}; "
                "the administrator cannot be changed."
            )

        self._conn = db.get_connection(self._path / "data.db")
        db.init_db_with_conn(self._conn)
        logger.debug("Loaded local registry at %s", self._path)

    @property
    def path(self) -> Path:
        """Path to .deaddrop directory."""
        return self._path

    @property
    def config(self) -> LocalConfig:
        """Local configuration."""
        if self._config is None:
            self._config = LocalConfig.load(self._path)
        return self._config

    @property
    def administrator(self) -> str:
        assert self.config.administrator is not None
        return self.config.administrator

    @property
    def conn(self) -> sqlite3.Connection:
        """Open database connection."""
        if self._conn is None:
            raise RuntimeError(f"Local registry at {self._path} is closed")
        return self._conn

    def get_info(self) -> BackendInfo:
        return BackendInfo(backend_type="local", location=str(self._path))

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def insert_drop(
        self,
        sender: str,
        recipient: str,
        payload: bytes,
        created_at: float,
    ) -> Drop:
        result = db.insert_drop(sender, recipient, payload, created_at, conn=self.conn)
        return Drop(**result)

    def get_drop(self, drop_id: int) -> Drop | None:
        # No stored id lies outside the INTEGER range
        if not db.fits_integer_column(drop_id):
            return None
        result = db.get_drop(drop_id, conn=self.conn)
        return Drop(**result) if result else None

    def remove_drop(self, drop_id: int) -> bool:
        if not db.fits_integer_column(drop_id):
            return False
        return db.delete_drop(drop_id, conn=self.conn)

    def list_user_drops(self, principal: str) -> list[int]:
        return db.list_user_drops(principal, conn=self.conn)

    def count_drops(self) -> int:
        return db.count_drops(conn=self.conn)
