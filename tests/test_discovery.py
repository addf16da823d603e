"""Tests for discovery logic."""

import pytest

from deadrop_registry.discovery import (
    RegistryNotFound,
    discover_registry_path,
    ensure_gitignore,
    find_deaddrop_dir,
    find_git_root,
    get_deaddrop_init_path,
)


class TestFindGitRoot:
    """Test git root finding."""

    def test_finds_git_root(self, tmp_path):
        """Should find .git directory."""
        (tmp_path / ".git").mkdir()

        assert find_git_root(tmp_path) == tmp_path

        subdir = tmp_path / "src" / "module"
        subdir.mkdir(parents=True)
        assert find_git_root(subdir) == tmp_path

    def test_returns_none_if_not_in_git(self, tmp_path):
        """Should return None if not in a git repo."""
        assert find_git_root(tmp_path) is None

    def test_defaults_to_cwd(self, tmp_path, monkeypatch):
        """Should default to current working directory."""
        (tmp_path / ".git").mkdir()
        monkeypatch.chdir(tmp_path)
        assert find_git_root() == tmp_path


class TestFindDeaddropDir:
    """Test .deaddrop directory finding."""

    def test_finds_in_cwd(self, tmp_path):
        deaddrop_dir = tmp_path / ".deaddrop"
        deaddrop_dir.mkdir()
        assert find_deaddrop_dir(tmp_path) == deaddrop_dir

    def test_finds_in_git_root(self, tmp_path):
        (tmp_path / ".git").mkdir()
        deaddrop_dir = tmp_path / ".deaddrop"
        deaddrop_dir.mkdir()
        subdir = tmp_path / "src"
        subdir.mkdir()

        assert find_deaddrop_dir(subdir) == deaddrop_dir

    def test_returns_none_if_not_found(self, tmp_path):
        assert find_deaddrop_dir(tmp_path) is None


class TestGetInitPath:
    def test_prefers_git_root(self, tmp_path):
        (tmp_path / ".git").mkdir()
        subdir = tmp_path / "pkg"
        subdir.mkdir()
        assert get_deaddrop_init_path(subdir) == tmp_path / ".deaddrop"

    def test_uses_start_path_outside_git(self, tmp_path):
        assert get_deaddrop_init_path(tmp_path) == tmp_path / ".deaddrop"


class TestDiscoverRegistryPath:
    def test_env_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DEADDROP_PATH", str(tmp_path))
        assert discover_registry_path() == tmp_path

    def test_env_path_missing(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DEADDROP_PATH", str(tmp_path / "missing"))
        with pytest.raises(RegistryNotFound, match="non-existent"):
            discover_registry_path()

    def test_local_dir(self, tmp_path):
        (tmp_path / ".deaddrop").mkdir()
        assert discover_registry_path(tmp_path) == tmp_path / ".deaddrop"

    def test_not_found(self, tmp_path):
        with pytest.raises(RegistryNotFound, match="init --admin"):
            discover_registry_path(tmp_path)


class TestEnsureGitignore:
    def test_adds_entry(self, tmp_path):
        (tmp_path / ".git").mkdir()
        (tmp_path / ".gitignore").write_text("*.pyc")

        assert ensure_gitignore(tmp_path / ".deaddrop") is True
        assert (tmp_path / ".gitignore").read_text() == "*.pyc\n.deaddrop/\n"

    def test_already_ignored(self, tmp_path):
        (tmp_path / ".git").mkdir()
        (tmp_path / ".gitignore").write_text("/.deaddrop\n")

        assert ensure_gitignore(tmp_path / ".deaddrop") is False

    def test_not_in_git(self, tmp_path):
        assert ensure_gitignore(tmp_path / ".deaddrop") is False
        assert not (tmp_path / ".gitignore").exists()
