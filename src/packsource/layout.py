"""
packsource - Workspace Layout Manager

Manages the on-disk layout of a workspace:
- Packages/<group dependency id>/           installed package payload
  - <PackageName>.manifest.json (+ .meta)   committed manifest
  - package.json                            package descriptor
- PackSourceSettings/
  - settings.json                           workspace settings
  - Sources/<source>.json                   persisted source snapshots
  - Temp/                                   manifest staging area
- Library/ScriptAssemblies/                 synced assemblies
- .packsource.lock                          workspace lock
"""

from __future__ import annotations

import json
import os
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

import filelock


class PackSourceError(Exception):
    """Base exception for packsource errors."""
    pass


class WorkspaceLockError(PackSourceError):
    """Error when the workspace lock cannot be acquired."""
    pass


class WorkspaceNotInitializedError(PackSourceError):
    """Error when the workspace is not initialized."""
    pass


class WorkspaceLayout:
    """
    Manages the workspace directory layout.

    Provides atomic JSON writes and a cross-process lock around
    operations that mutate the package tree.
    """

    LOCK_TIMEOUT = 30.0  # seconds

    PACKAGES_DIR = "Packages"
    SETTINGS_DIR = "PackSourceSettings"
    MANIFEST_SUFFIX = ".manifest.json"
    DESCRIPTOR_NAME = "package.json"

    def __init__(self, root: Optional[Path] = None):
        """
        Initialize workspace layout.

        Args:
            root: Workspace root. Defaults to PACKSOURCE_ROOT env var
                  or the current directory.
        """
        if root is None:
            root = Path(os.environ.get("PACKSOURCE_ROOT", Path.cwd()))

        self.root = Path(root).expanduser().resolve()

    # =========================================================================
    # Path Properties
    # =========================================================================

    @property
    def packages_path(self) -> Path:
        """Root of installed packages."""
        return self.root / self.PACKAGES_DIR

    @property
    def settings_path(self) -> Path:
        """Directory holding settings, source snapshots and staging."""
        return self.root / self.SETTINGS_DIR

    @property
    def settings_file(self) -> Path:
        """Path to settings.json."""
        return self.settings_path / "settings.json"

    @property
    def sources_path(self) -> Path:
        """Directory of persisted source snapshots."""
        return self.settings_path / "Sources"

    @property
    def staging_path(self) -> Path:
        """Scratch area for manifest staging."""
        return self.settings_path / "Temp"

    @property
    def script_assemblies_path(self) -> Path:
        """Output folder for synced assemblies."""
        return self.root / "Library" / "ScriptAssemblies"

    @property
    def lock_file_path(self) -> Path:
        """Path to workspace lock file."""
        return self.root / ".packsource.lock"

    # =========================================================================
    # Package Paths
    # =========================================================================

    def package_dir(self, group_dependency_id: str) -> Path:
        """Get the install directory for a package group."""
        return self.packages_path / group_dependency_id

    def manifest_filename(self, package_name: str) -> str:
        return f"{package_name}{self.MANIFEST_SUFFIX}"

    def staged_manifest_path(self, package_name: str) -> Path:
        """Get the staging path of a package manifest."""
        return self.staging_path / self.manifest_filename(package_name)

    def manifest_path(self, group_dependency_id: str, package_name: str) -> Path:
        """Get the committed manifest path inside a package directory."""
        return self.package_dir(group_dependency_id) / self.manifest_filename(package_name)

    def descriptor_path(self, group_dependency_id: str) -> Path:
        """Get the package.json path inside a package directory."""
        return self.package_dir(group_dependency_id) / self.DESCRIPTOR_NAME

    def source_record_path(self, source_name: str) -> Path:
        """Get the persisted snapshot path for a source."""
        return self.sources_path / f"{source_name}.json"

    # =========================================================================
    # Locking
    # =========================================================================

    @contextmanager
    def lock(self, timeout: Optional[float] = None) -> Generator[None, None, None]:
        """
        Acquire exclusive lock on the workspace.

        Args:
            timeout: Lock timeout in seconds. Defaults to LOCK_TIMEOUT.

        Raises:
            WorkspaceLockError: If lock cannot be acquired.
        """
        if timeout is None:
            timeout = self.LOCK_TIMEOUT

        self.lock_file_path.parent.mkdir(parents=True, exist_ok=True)

        lock = filelock.FileLock(self.lock_file_path)
        try:
            lock.acquire(timeout=timeout)
        except filelock.Timeout:
            raise WorkspaceLockError(
                f"Could not acquire workspace lock within {timeout}s. "
                "Another install may be in progress."
            )
        try:
            yield
        finally:
            lock.release()

    # =========================================================================
    # Initialization
    # =========================================================================

    def is_initialized(self) -> bool:
        """Check if the workspace is initialized."""
        return self.settings_path.is_dir() and self.packages_path.is_dir()

    def init_workspace(self) -> None:
        """Ensure all required directories exist."""
        for d in (self.packages_path, self.settings_path, self.sources_path):
            d.mkdir(parents=True, exist_ok=True)

    def require_initialized(self) -> None:
        if not self.is_initialized():
            raise WorkspaceNotInitializedError(
                f"Workspace not initialized at {self.root}. Run 'packsource init' first."
            )

    # =========================================================================
    # JSON I/O (Atomic)
    # =========================================================================

    def write_json(self, path: Path, data: Dict[str, Any]) -> None:
        """
        Write JSON file atomically with canonical formatting.

        Uses write-to-temp-then-rename pattern for atomicity.
        """
        path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = path.with_name(path.name + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True, ensure_ascii=False)
                f.write("\n")

            tmp_path.replace(path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    def read_json(self, path: Path) -> Dict[str, Any]:
        """Read JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    # =========================================================================
    # Listing / Cleanup
    # =========================================================================

    def list_installed(self) -> List[str]:
        """List group dependency ids with an install directory."""
        if not self.packages_path.exists():
            return []
        return sorted(d.name for d in self.packages_path.iterdir() if d.is_dir())

    def clean_staging(self) -> bool:
        """Remove a leftover staging area. Returns True if one existed."""
        if self.staging_path.exists():
            shutil.rmtree(self.staging_path)
            return True
        return False
