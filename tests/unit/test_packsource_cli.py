"""
Tests for the packsource CLI.

Most commands run against a mocked Workspace; the init/add-source/install
flow at the end runs against a real temp workspace.
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from packsource.cli import app
from packsource.models import InstallReport, ResolutionMode
from packsource.config import PackSourceConfig
from packsource.source import GroupNotFoundError
from tests.helpers.fixtures import FakeSource, fake_package, write_directory_source

runner = CliRunner()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def mock_ws():
    """Create a mock Workspace instance."""
    with patch("packsource.cli.get_workspace") as mock_get_workspace:
        ws = MagicMock()
        ws.is_initialized.return_value = True
        mock_get_workspace.return_value = ws
        yield ws


@pytest.fixture
def loaded_source(temp_dir):
    source = FakeSource(
        "feed", "local",
        catalog=[fake_package("Lib", ("2.0.0", []), ("1.0.0", [])), fake_package("App")],
        packages_root=temp_dir,
    )
    source.load_packages()
    return source


# =============================================================================
# Mocked Workspace
# =============================================================================


class TestInstallCommand:
    """Tests for 'packsource install'."""

    def test_install_success(self, mock_ws):
        mock_ws.install.return_value = InstallReport(
            target="App", version="1.0.0", installed=["Lib", "App"],
        )

        result = runner.invoke(app, ["install", "App"])

        assert result.exit_code == 0
        mock_ws.load_all_sources.assert_called_once()
        mock_ws.install.assert_called_once_with("App", "latest", source_group=None)
        mock_ws.wait_for_refresh.assert_called_once()
        assert "+ Lib" in result.output
        assert "Installed 2 package(s)" in result.output

    def test_install_version_and_group(self, mock_ws):
        mock_ws.install.return_value = InstallReport(target="App", version="1.0.0")

        result = runner.invoke(app, ["install", "App", "1.0.0", "--group", "remote", "--no-wait"])

        assert result.exit_code == 0
        mock_ws.install.assert_called_once_with("App", "1.0.0", source_group="remote")
        mock_ws.wait_for_refresh.assert_not_called()

    def test_install_error(self, mock_ws):
        mock_ws.install.side_effect = GroupNotFoundError("Package not found: Ghost")

        result = runner.invoke(app, ["install", "Ghost"])

        assert result.exit_code == 1
        assert "Package not found: Ghost" in result.output

    def test_not_initialized(self, mock_ws):
        mock_ws.is_initialized.return_value = False

        result = runner.invoke(app, ["install", "App"])

        assert result.exit_code == 1
        mock_ws.install.assert_not_called()


class TestListCommands:
    """Tests for 'packsource list' and 'packsource sources'."""

    def test_list_json(self, mock_ws, loaded_source):
        mock_ws.list_groups.return_value = loaded_source.packages

        result = runner.invoke(app, ["list", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [p["name"] for p in data["packages"]] == ["Lib", "App"]
        assert data["packages"][0]["versions"] == ["2.0.0", "1.0.0"]
        assert data["packages"][0]["source"] == "local/feed"
        assert data["packages"][0]["installed"] is False

    def test_list_text(self, mock_ws, loaded_source):
        mock_ws.list_groups.return_value = loaded_source.packages

        result = runner.invoke(app, ["list"])

        assert result.exit_code == 0
        assert "Found 2 package(s)" in result.output
        assert "Lib (2.0.0) [local/feed]" in result.output

    def test_list_empty(self, mock_ws):
        mock_ws.list_groups.return_value = []
        result = runner.invoke(app, ["list"])
        assert "No packages found." in result.output

    def test_sources(self, mock_ws):
        mock_ws.registry.source_groups = {
            "local": [FakeSource("feed", "local")],
            "remote": [FakeSource("mirror", "remote")],
        }

        result = runner.invoke(app, ["sources", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.output) == {"local": ["feed"], "remote": ["mirror"]}


class TestSettingsCommand:
    """Tests for 'packsource settings'."""

    def test_update_game_path(self, mock_ws, temp_dir):
        mock_ws.config = PackSourceConfig(root=temp_dir)

        result = runner.invoke(app, ["settings", "--game-path", "/games/x", "--json"])

        assert result.exit_code == 0
        mock_ws.save_config.assert_called_once()
        assert mock_ws.config.game.game_path == "/games/x"
        assert '"game_path": "/games/x"' in result.output

    def test_show(self, mock_ws, temp_dir):
        mock_ws.config = PackSourceConfig(root=temp_dir)
        mock_ws.config.install.resolution_mode = ResolutionMode.STRICT

        result = runner.invoke(app, ["settings"])

        assert result.exit_code == 0
        mock_ws.save_config.assert_not_called()
        assert "Resolution mode: strict" in result.output


# =============================================================================
# Real Workspace
# =============================================================================


class TestCliWorkflow:
    """init -> add-source -> list -> install -> sync-assemblies on disk."""

    def test_full_flow(self, temp_dir):
        root = temp_dir / "project"
        feed = write_directory_source(
            temp_dir / "feed",
            packages=[
                {"author": "Acme", "name": "Lib", "versions": [{"version": "1.0.0"}]},
                {"author": "Acme", "name": "App", "versions": [
                    {"version": "1.0.0", "dependencies": ["Acme-Lib-1.0.0"]},
                ]},
            ],
            payloads={
                "Acme-Lib-1.0.0": {"Lib.dll": "lib"},
                "Acme-App-1.0.0": {"App.txt": "app"},
            },
        )
        base = ["--root", str(root)]

        result = runner.invoke(app, base + ["init"])
        assert result.exit_code == 0
        assert (root / "Packages").is_dir()

        result = runner.invoke(app, base + ["init"])
        assert "already initialized" in result.output

        result = runner.invoke(app, base + ["add-source", str(feed)])
        assert result.exit_code == 0, result.output

        result = runner.invoke(app, base + ["list", "--json"])
        assert result.exit_code == 0, result.output
        assert {p["name"] for p in json.loads(result.output)["packages"]} == {"Lib", "App"}

        result = runner.invoke(app, base + ["install", "App", "--no-wait"])
        assert result.exit_code == 0, result.output
        assert (root / "Packages" / "Acme-Lib" / "Lib.manifest.json").exists()
        assert (root / "Packages" / "Acme-App" / "App.manifest.json").exists()

        result = runner.invoke(app, base + ["sync-assemblies"])
        assert result.exit_code == 0, result.output
        assert (root / "Library" / "ScriptAssemblies" / "Lib.dll").exists()

    def test_add_source_without_index(self, temp_dir):
        root = temp_dir / "project"
        runner.invoke(app, ["--root", str(root), "init"])

        result = runner.invoke(app, ["--root", str(root), "add-source", str(temp_dir)])

        assert result.exit_code == 1
        assert "No index.yaml" in result.output
