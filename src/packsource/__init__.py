"""
packsource - Package Source and Installer

Usage:
    from packsource import Workspace
    from packsource.sources import DirectorySource

    ws = Workspace("/path/to/project")
    ws.init()
    ws.add_source(DirectorySource(Path("/path/to/feed"), name="feed"))
    ws.load_all_sources()

    report = ws.install("Name", "1.0.0")
    ws.wait_for_refresh()
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from .assemblies import sync_assemblies
from .config import PackSourceConfig, SourceEntry
from .installer import (
    CyclicDependencyError,
    ManifestLookupError,
    PackageInstaller,
    compute_install_set,
)
from .layout import (
    PackSourceError,
    WorkspaceLayout,
    WorkspaceLockError,
    WorkspaceNotInitializedError,
)
from .models import (
    InstallReport,
    Manifest,
    ManifestRef,
    PackageDescriptor,
    ResolutionMode,
    VersionInfo,
)
from .object_store import ObjectStore
from .registry import SourceRegistry
from .resolver import ResolutionReport, UnresolvedDependencyError
from .scheduler import RefreshScheduler
from .source import (
    GroupNotFoundError,
    InvalidPackageNameError,
    PackageGroup,
    PackageSource,
    PackageVersion,
    SourceKey,
    SourceLoadError,
    SourceStateError,
    VersionNotFoundError,
)
from .sources import DirectorySource


__all__ = [
    # Main facade
    "Workspace",

    # Components
    "WorkspaceLayout",
    "ObjectStore",
    "SourceRegistry",
    "PackageInstaller",
    "RefreshScheduler",
    "compute_install_set",

    # Model
    "PackageSource",
    "PackageGroup",
    "PackageVersion",
    "SourceKey",
    "DirectorySource",
    "VersionInfo",
    "Manifest",
    "ManifestRef",
    "PackageDescriptor",
    "ResolutionMode",
    "InstallReport",
    "ResolutionReport",
    "PackSourceConfig",

    # Errors
    "PackSourceError",
    "WorkspaceLockError",
    "WorkspaceNotInitializedError",
    "SourceLoadError",
    "SourceStateError",
    "GroupNotFoundError",
    "VersionNotFoundError",
    "InvalidPackageNameError",
    "UnresolvedDependencyError",
    "CyclicDependencyError",
    "ManifestLookupError",
]


class Workspace:
    """
    Main facade for a packsource workspace.

    Wires layout, settings, object store, source registry, installer and the
    deferred refresh together.
    """

    def __init__(
        self,
        root: Optional[Path] = None,
        config: Optional[PackSourceConfig] = None,
        scheduler: Optional[RefreshScheduler] = None,
    ):
        if config is None:
            config = PackSourceConfig.load(root)
        self.config = config
        self.layout = WorkspaceLayout(root if root is not None else config.root)
        self.layout.LOCK_TIMEOUT = config.install.lock_timeout
        self.objects = ObjectStore(self.layout)
        self.registry = SourceRegistry()
        self.scheduler = scheduler or RefreshScheduler(
            self.objects.refresh, window=config.install.refresh_window
        )
        self.installer = PackageInstaller(
            self.layout,
            self.objects,
            scheduler=self.scheduler,
            assembly_extensions=config.install.assembly_extensions,
        )
        for entry in config.sources:
            self.add_source(DirectorySource(
                Path(entry.path), name=entry.name, source_group=entry.source_group,
            ))

    # =========================================================================
    # Workspace
    # =========================================================================

    def init(self) -> None:
        """Create the workspace directories and settings file."""
        self.layout.init_workspace()
        if not self.config.settings_file.exists():
            self.config.save()

    def is_initialized(self) -> bool:
        return self.layout.is_initialized()

    def save_config(self) -> None:
        self.config.save()

    # =========================================================================
    # Sources
    # =========================================================================

    def add_source(self, source: PackageSource) -> PackageSource:
        """Bind ``source`` to this workspace and register it."""
        source.packages_root = self.layout.packages_path
        source.store = self.objects
        source.resolution_mode = self.config.install.resolution_mode
        return self.registry.register(source)

    def add_directory_source(self, path: Path, name: Optional[str] = None, source_group: str = "local") -> PackageSource:
        """Register a DirectorySource and remember it in the settings."""
        source = self.add_source(DirectorySource(Path(path), name=name, source_group=source_group))
        self.config.add_source(SourceEntry(
            name=source.name, path=str(Path(path).resolve()), source_group=source.source_group,
        ))
        self.config.save()
        return source

    def load_all_sources(self) -> None:
        with self.layout.lock():
            self.registry.load_all_sources()

    def list_groups(self) -> List[PackageGroup]:
        return list(self.registry.iter_groups())

    def find_group(self, name: str, source_group: Optional[str] = None) -> PackageGroup:
        return self.registry.find_group(name, source_group)

    # =========================================================================
    # Install
    # =========================================================================

    def install(self, name: str, version: str = "latest", source_group: Optional[str] = None) -> InstallReport:
        """Install a package (and its missing dependencies) by name."""
        group = self.find_group(name, source_group)
        return self.install_group(group, version)

    def install_group(self, group: PackageGroup, version: str) -> InstallReport:
        self.layout.require_initialized()
        with self.layout.lock():
            return self.installer.install(group, version)

    def wait_for_refresh(self) -> bool:
        """Block until a pending post-install refresh has run."""
        return self.scheduler.wait()

    def sync_assemblies(self) -> List[Path]:
        return sync_assemblies(
            self.layout.packages_path,
            self.layout.script_assemblies_path,
            excluded=self.config.install.excluded_assemblies,
            extensions=self.config.install.assembly_extensions,
        )
