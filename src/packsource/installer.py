"""
packsource - Package Installer

Installs a package version together with every dependency that is not yet
installed.

Install runs in three phases, each finished for every package before the
next one starts:
- A: materialize payloads (destructive recreate of each package directory)
- B: stage one manifest per package in the staging area
- C: wire manifest dependencies, then commit manifests and descriptors
     into their package directories

A failure in any phase propagates; nothing is rolled back. Running the same
install again rebuilds every package directory from scratch.
"""

from __future__ import annotations

import errno
import logging
import os
import shutil
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .assemblies import find_assemblies
from .layout import PackSourceError, WorkspaceLayout
from .metadata import (
    generate_package_descriptor,
    read_guid,
    sidecar_path,
    write_asset_metadata,
    write_assembly_metadata,
)
from .models import InstallReport, Manifest, ManifestRef
from .object_store import ObjectStore
from .scheduler import RefreshScheduler
from .source import PackageGroup, PackageVersion, SourceStateError

logger = logging.getLogger(__name__)

DEFAULT_ASSEMBLY_EXTENSIONS = (".dll",)


class CyclicDependencyError(PackSourceError):
    """The dependency graph below the install target contains a cycle."""

    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__("Cyclic dependency: " + " -> ".join(self.cycle))


class ManifestLookupError(PackSourceError):
    """No manifest could be found for a dependency of an installed package."""
    pass


def compute_install_set(group: PackageGroup, version_label: str) -> List[PackageVersion]:
    """
    Dependency closure of ``group[version_label]`` in install order.

    Dependencies come before the packages that need them; a version shared
    by several dependents appears once. Versions whose group is already
    installed with a committed manifest are left out; a package directory
    without one (left by a failed install) is rebuilt.

    Raises:
        VersionNotFoundError: If the group has no such version.
        CyclicDependencyError: If a version depends on itself, directly
            or transitively.
        SourceStateError: If the owning source has not been resolved.
    """
    target = group[version_label]
    order: List[PackageVersion] = []
    done: Set[str] = set()
    path: List[str] = []

    def visit(version: PackageVersion) -> None:
        key = version.dependency_id
        if key in path:
            raise CyclicDependencyError(path[path.index(key):] + [key])
        if key in done:
            return
        if version.dependencies is None:
            raise SourceStateError(
                f"Dependencies of {key} are not resolved; load the source first"
            )
        path.append(key)
        for dependency in version.dependencies:
            visit(dependency)
        path.pop()
        done.add(key)
        order.append(version)

    visit(target)
    install_set: List[PackageVersion] = []
    for version in order:
        if version.group.installed:
            if version.group.has_manifest:
                continue
            logger.warning(
                f"[Installer] {version.group.package_name} has no committed manifest, reinstalling"
            )
        install_set.append(version)
    return install_set


def unique_by_group(versions: Iterable[PackageVersion]) -> List[PackageVersion]:
    """Keep the first version seen for every group."""
    seen: Dict[int, PackageVersion] = {}
    for version in versions:
        seen.setdefault(id(version.group), version)
    return list(seen.values())


def move_file(src: Path, dst: Path) -> None:
    """Rename ``src`` over ``dst``; copy then rename when crossing devices."""
    try:
        os.replace(src, dst)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        tmp = dst.with_name(dst.name + ".tmp")
        shutil.copy2(src, tmp)
        os.replace(tmp, dst)
        src.unlink()


class PackageInstaller:
    """
    Installs package versions into their package directories.

    Manifests are written through the ObjectStore so other manifests can find
    them by kind and name.
    """

    def __init__(
        self,
        layout: WorkspaceLayout,
        store: ObjectStore,
        scheduler: Optional[RefreshScheduler] = None,
        assembly_extensions: Sequence[str] = DEFAULT_ASSEMBLY_EXTENSIONS,
    ):
        self.layout = layout
        self.store = store
        self.scheduler = scheduler
        self.assembly_extensions = tuple(ext.lower() for ext in assembly_extensions)

    def install(self, group: PackageGroup, version_label: str) -> InstallReport:
        """
        Install ``group[version_label]`` and its missing dependencies.

        The requested version is always reinstalled, even when its group
        is already present.

        Raises:
            CyclicDependencyError: If the dependency graph has a cycle.
            ManifestLookupError: If a dependency's manifest cannot be found.
            OSError: On any filesystem failure.
        """
        target = group[version_label]
        install_set = compute_install_set(group, version_label)
        if target not in install_set:
            install_set.append(target)
        installables = unique_by_group(install_set)

        logger.info(
            f"[Installer] Installing {group.package_name}@{target.version}: "
            f"{', '.join(v.group.package_name for v in installables)}"
        )

        assemblies = 0
        for version in installables:
            assemblies += self._materialize(version)

        if self.layout.clean_staging():
            logger.warning("[Installer] Removed staging area left by an interrupted install")
        self.layout.staging_path.mkdir(parents=True)
        for version in installables:
            self._stage_manifest(version)

        for version in installables:
            self._wire_dependencies(version)

        manifests: List[str] = []
        for version in installables:
            manifests.append(str(self._commit(version)))

        shutil.rmtree(self.layout.staging_path)
        logger.info(f"[Installer] Installed {len(installables)} package(s)")

        if self.scheduler is not None:
            self.scheduler.schedule()

        return InstallReport(
            target=group.package_name,
            version=target.version,
            installed=[v.group.package_name for v in installables],
            manifests=manifests,
            assemblies=assemblies,
        )

    # =========================================================================
    # Phase A: Materialize
    # =========================================================================

    def _materialize(self, version: PackageVersion) -> int:
        directory = version.group.package_directory
        if directory.exists():
            shutil.rmtree(directory)
        directory.mkdir(parents=True)

        version.group.source.on_install_package_files(version, directory)

        assemblies = find_assemblies(directory, self.assembly_extensions)
        for path in assemblies:
            write_assembly_metadata(path)
        logger.debug(f"[Installer] Materialized {version.dependency_id} ({len(assemblies)} assemblies)")
        return len(assemblies)

    # =========================================================================
    # Phase B: Stage
    # =========================================================================

    def _stage_manifest(self, version: PackageVersion) -> Path:
        group = version.group
        path = self.layout.staged_manifest_path(group.package_name)
        if path.exists():
            self.store.delete_at(path)

        manifest = Manifest(
            author=group.author,
            name=group.package_name,
            description=group.description,
            version=version.version,
        )
        self.store.write_object(path, manifest)
        write_asset_metadata(path)
        return path

    # =========================================================================
    # Phase C: Wire + Commit
    # =========================================================================

    def _wire_dependencies(self, version: PackageVersion) -> None:
        path = self.layout.staged_manifest_path(version.group.package_name)
        manifest = self.store.read_object(path, Manifest)
        if manifest is None:
            raise ManifestLookupError(f"Staged manifest missing: {path}")
        manifest.dependencies = [self.find_manifest(dep) for dep in version.dependencies or []]
        self.store.write_object(path, manifest)

    def find_manifest(self, dependency: PackageVersion) -> ManifestRef:
        """
        Locate the manifest of ``dependency``.

        Looks in the staging area, then the dependency's package directory,
        then searches every manifest under the package roots by name.

        Raises:
            ManifestLookupError: If none of the three lookups succeeds.
        """
        name = dependency.group.package_name

        staged = self.layout.staged_manifest_path(name)
        if staged.exists():
            return ManifestRef(guid=read_guid(staged), name=name)

        installed = dependency.group.manifest_path
        if installed.exists():
            return ManifestRef(guid=read_guid(installed), name=name)

        roots = list(dict.fromkeys([self.layout.packages_path, dependency.group.source.packages_root]))
        found = self.store.find_objects_of_type("manifest", roots=roots, name=name)
        if found:
            logger.debug(f"[Installer] Found manifest for {name} by search: {found[0]}")
            return ManifestRef(guid=read_guid(found[0]), name=name)

        raise ManifestLookupError(
            f"No manifest found for dependency {dependency.dependency_id} ({name})"
        )

    def _commit(self, version: PackageVersion) -> Path:
        group = version.group
        staged = self.layout.staged_manifest_path(group.package_name)
        final = group.manifest_path

        move_file(staged, final)
        if sidecar_path(staged).exists():
            move_file(sidecar_path(staged), sidecar_path(final))

        generate_package_descriptor(
            self.layout,
            group.dependency_id,
            group.package_directory,
            group.package_name,
            group.author,
            version.version,
            group.description,
        )
        return final
