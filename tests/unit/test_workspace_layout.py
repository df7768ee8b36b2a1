"""
Tests for WorkspaceLayout

Tests the on-disk layout, atomic JSON writes and the workspace lock.
"""

import json

import pytest

from packsource.layout import WorkspaceLayout, WorkspaceNotInitializedError


@pytest.fixture
def bare_layout(temp_dir):
    """Create a WorkspaceLayout with temp directory, not initialized."""
    return WorkspaceLayout(temp_dir)


class TestWorkspaceLayoutInit:
    """Tests for workspace initialization."""

    def test_not_initialized_initially(self, bare_layout):
        """Workspace should not be initialized by default."""
        assert not bare_layout.is_initialized()
        with pytest.raises(WorkspaceNotInitializedError):
            bare_layout.require_initialized()

    def test_init_creates_directories(self, bare_layout):
        """Init should create required directories."""
        bare_layout.init_workspace()

        assert bare_layout.packages_path.is_dir()
        assert bare_layout.settings_path.is_dir()
        assert bare_layout.sources_path.is_dir()
        assert bare_layout.is_initialized()
        bare_layout.require_initialized()

    def test_root_from_env(self, temp_dir, monkeypatch):
        monkeypatch.setenv("PACKSOURCE_ROOT", str(temp_dir))
        assert WorkspaceLayout().root == temp_dir.resolve()


class TestWorkspacePaths:
    """Tests for path helpers."""

    def test_package_paths(self, layout):
        assert layout.package_dir("Acme-Lib") == layout.root / "Packages" / "Acme-Lib"
        assert layout.manifest_path("Acme-Lib", "Lib").name == "Lib.manifest.json"
        assert layout.descriptor_path("Acme-Lib").name == "package.json"
        assert layout.staged_manifest_path("Lib").parent == layout.staging_path

    def test_settings_paths(self, layout):
        assert layout.settings_file == layout.root / "PackSourceSettings" / "settings.json"
        assert layout.source_record_path("feed") == layout.sources_path / "feed.json"
        assert layout.script_assemblies_path == layout.root / "Library" / "ScriptAssemblies"


class TestJsonIO:
    """Tests for atomic JSON writes."""

    def test_write_read_roundtrip(self, layout):
        path = layout.root / "nested" / "doc.json"
        layout.write_json(path, {"b": 1, "a": [1, 2]})

        assert layout.read_json(path) == {"a": [1, 2], "b": 1}
        assert not path.with_name("doc.json.tmp").exists()

    def test_canonical_formatting(self, layout):
        path = layout.root / "doc.json"
        layout.write_json(path, {"z": 1, "a": 2})

        text = path.read_text(encoding="utf-8")
        assert text.index('"a"') < text.index('"z"')
        assert text.endswith("\n")
        assert json.loads(text) == {"a": 2, "z": 1}


class TestLocking:
    """Tests for the workspace lock."""

    def test_lock_creates_lock_file(self, layout):
        with layout.lock():
            assert layout.lock_file_path.exists()

    def test_lock_is_released(self, layout):
        with layout.lock(timeout=1):
            pass
        with layout.lock(timeout=1):
            pass


class TestListingAndCleanup:
    """Tests for installed listing and staging cleanup."""

    def test_list_installed(self, layout):
        assert layout.list_installed() == []
        layout.package_dir("Zed-Pkg").mkdir()
        layout.package_dir("Acme-Lib").mkdir()
        (layout.packages_path / "stray.txt").write_text("x")

        assert layout.list_installed() == ["Acme-Lib", "Zed-Pkg"]

    def test_clean_staging(self, layout):
        assert not layout.clean_staging()
        layout.staging_path.mkdir(parents=True)
        (layout.staging_path / "Lib.manifest.json").write_text("{}")

        assert layout.clean_staging()
        assert not layout.staging_path.exists()
