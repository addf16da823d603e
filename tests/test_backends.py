"""Tests for backend implementations."""

import pytest
import yaml

from deadrop_registry import DeadDropRegistry, NotFound, RegistryConfigError
from deadrop_registry.backends import (
    BackendInfo,
    Drop,
    InMemoryBackend,
    LocalBackend,
    LocalConfig,
)


class TestLocalConfig:
    """Test LocalConfig persistence."""

    def test_load_empty(self, tmp_path):
        """Should return empty config if file doesn't exist."""
        config = LocalConfig.load(tmp_path)
        assert config.administrator is None

    def test_save_and_load(self, tmp_path):
        """Should round-trip config to YAML."""
        LocalConfig(administrator="admin").save(tmp_path)

        loaded = LocalConfig.load(tmp_path)
        assert loaded.administrator == "admin"

        data = yaml.safe_load((tmp_path / "config.yaml").read_text())
        assert data == {"administrator": "admin"}


class TestInMemoryBackend:
    """Test InMemoryBackend storage primitives."""

    def test_info(self):
        backend = InMemoryBackend("admin")
        assert backend.get_info() == BackendInfo(backend_type="in_memory", location=":memory:")
        assert backend.administrator == "admin"

    def test_insert_and_get(self):
        """Should store drops under sequential ids."""
        backend = InMemoryBackend("admin")
        first = backend.insert_drop("alice", "bob", b"one", 1.0)
        second = backend.insert_drop("alice", "bob", b"two", 2.0)

        assert (first.id, second.id) == (0, 1)
        assert backend.get_drop(1) == Drop(1, "alice", "bob", b"two", 2.0)
        assert backend.get_drop(2) is None

    def test_remove(self):
        """Should remove from the drop table but keep index entries."""
        backend = InMemoryBackend("admin")
        backend.insert_drop("alice", "bob", b"one", 1.0)

        assert backend.remove_drop(0) is True
        assert backend.remove_drop(0) is False
        assert backend.count_drops() == 0
        assert backend.list_user_drops("alice") == [0]


class TestLocalBackend:
    """Test LocalBackend operations."""

    def test_create_new(self, tmp_path):
        """Should create new .deaddrop directory."""
        path = tmp_path / ".deaddrop"
        backend = LocalBackend.create("admin", path=path)

        assert path.exists()
        assert (path / "config.yaml").exists()
        assert (path / "data.db").exists()

        info = backend.get_info()
        assert info.backend_type == "local"
        assert str(path) in info.location
        assert backend.administrator == "admin"
        backend.close()

    def test_create_in_existing_empty_directory(self, tmp_path):
        """Should initialize a directory that exists but has no config."""
        path = tmp_path / ".deaddrop"
        path.mkdir()

        backend = LocalBackend.create("admin", path=path)
        assert backend.administrator == "admin"
        backend.close()

    def test_raises_if_not_found(self, tmp_path):
        """Should raise if .deaddrop doesn't exist."""
        with pytest.raises(FileNotFoundError):
            LocalBackend(tmp_path / ".deaddrop")

    def test_create_requires_administrator(self, tmp_path):
        """A new registry cannot be created without an administrator."""
        with pytest.raises(RegistryConfigError, match="administrator is required"):
            LocalBackend(tmp_path / ".deaddrop", create_if_missing=True)

    def test_missing_administrator_in_config(self, tmp_path):
        """A config without an administrator is rejected."""
        path = tmp_path / ".deaddrop"
        path.mkdir()
        LocalConfig().save(path)

        with pytest.raises(RegistryConfigError, match="No administrator"):
            LocalBackend(path)

    def test_administrator_is_fixed(self, tmp_path):
        """Reopening with a different administrator fails."""
        path = tmp_path / ".deaddrop"
        LocalBackend.create("admin", path=path).close()

        with pytest.raises(RegistryConfigError, match="cannot be changed"):
            LocalBackend(path, administrator="mallory")

        backend = LocalBackend(path, administrator="admin")
        assert backend.administrator == "admin"
        backend.close()

    def test_closed_backend_raises(self, tmp_path):
        """Operations on a closed backend fail loudly."""
        backend = LocalBackend.create("admin", path=tmp_path / ".deaddrop")
        backend.close()
        with pytest.raises(RuntimeError, match="closed"):
            backend.count_drops()

    def test_gitignore_updated(self, tmp_path):
        """Should add .deaddrop/ to the git root's .gitignore."""
        (tmp_path / ".git").mkdir()
        backend = LocalBackend.create("admin", path=tmp_path / ".deaddrop")
        backend.close()

        assert ".deaddrop/" in (tmp_path / ".gitignore").read_text()


class TestLocalPersistence:
    """Test that registry state survives reopening."""

    def test_drops_persist(self, tmp_path):
        """Drops and indexes should be readable after reopening."""
        path = tmp_path / ".deaddrop"
        with DeadDropRegistry.create_local("admin", path=path, add_to_gitignore=False) as reg:
            reg.create("alice", "bob", b"\x00\x01secret")
            reg.create("alice", "carol", b"more")

        with DeadDropRegistry.local(path) as reg:
            assert reg.administrator == "admin"
            assert reg.retrieve("bob", 0) == b"\x00\x01secret"
            assert reg.list_drops_for_user("alice") == [0, 1]

    def test_counter_persists_after_delete(self, tmp_path):
        """Ids deleted before a reopen are not reissued."""
        path = tmp_path / ".deaddrop"
        with DeadDropRegistry.create_local("admin", path=path, add_to_gitignore=False) as reg:
            reg.create("alice", "bob", b"a")
            reg.create("alice", "bob", b"b")
            reg.delete("admin", 1)

        with DeadDropRegistry.local(path) as reg:
            assert reg.create("alice", "bob", b"c") == 2
            assert reg.list_drops_for_user("bob") == [0, 1, 2]
            with pytest.raises(NotFound):
                reg.retrieve("bob", 1)

    def test_create_local_reopens_existing(self, tmp_path):
        """create_local on an initialized directory keeps its data."""
        path = tmp_path / ".deaddrop"
        with DeadDropRegistry.create_local("admin", path=path, add_to_gitignore=False) as reg:
            reg.create("alice", "bob", b"a")

        with DeadDropRegistry.create_local("admin", path=path, add_to_gitignore=False) as reg:
            assert reg.count() == 1
