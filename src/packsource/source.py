"""
packsource - Package Sources

Data model for providers of installable packages:
- PackageSource: a provider; loads groups and materializes payloads
- PackageGroup: a named package owning one or more versions
- PackageVersion: a single installable revision

Concrete sources implement three callbacks:
- on_load_packages(): call add_package_group() for every package offered
- version_id_to_group_id(): map a versioned dependency id to its group id
- on_install_package_files(): write a version's payload into a directory
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, FrozenSet, Iterable, List, Optional

from .layout import PackSourceError, WorkspaceLayout
from .models import (
    GroupRecord,
    ResolutionMode,
    SourceRecord,
    VersionInfo,
    VersionRecord,
    validate_safe_name,
)
from .resolver import LoadSession, ResolutionReport, resolve_dependencies

if TYPE_CHECKING:
    from .object_store import ObjectStore

logger = logging.getLogger(__name__)

LATEST = "latest"


class SourceLoadError(PackSourceError):
    """A source's load callback failed."""
    pass


class SourceStateError(PackSourceError):
    """A source was used outside the phase that allows it."""
    pass


class GroupNotFoundError(PackSourceError):
    """No package group with the requested name."""
    pass


class VersionNotFoundError(PackSourceError):
    """The package group has no such version."""
    pass


class InvalidPackageNameError(PackSourceError):
    """A package name or group id cannot be used as a directory or file name."""
    pass


@dataclass(frozen=True)
class SourceKey:
    """Value identity of a source: equal name and source group."""
    name: str
    source_group: str

    def __str__(self) -> str:
        return f"{self.source_group}/{self.name}"


@dataclass(eq=False)
class PackageVersion:
    """One installable revision of a PackageGroup."""
    version: str
    dependency_id: str
    group: "PackageGroup" = field(repr=False)
    declared_dependencies: List[str] = field(default_factory=list, repr=False)
    # None until the owning source has resolved
    dependencies: Optional[List["PackageVersion"]] = field(default=None, repr=False)
    unresolved_dependencies: List[str] = field(default_factory=list, repr=False)

    @property
    def is_resolved(self) -> bool:
        return self.dependencies is not None

    def to_record(self) -> VersionRecord:
        return VersionRecord(
            version=self.version,
            dependency_id=self.dependency_id,
            raw_dependencies=list(self.declared_dependencies),
            dependencies=(
                [d.dependency_id for d in self.dependencies]
                if self.dependencies is not None else None
            ),
            unresolved=list(self.unresolved_dependencies),
        )


@dataclass(eq=False)
class PackageGroup:
    """A named package with its versions, newest first."""
    author: str
    package_name: str
    description: str
    dependency_id: str
    tags: FrozenSet[str]
    source: "PackageSource" = field(repr=False)
    versions: List[PackageVersion] = field(default_factory=list, repr=False)

    @property
    def package_directory(self) -> Path:
        return self.source.packages_root / self.dependency_id

    @property
    def installed(self) -> bool:
        return self.package_directory.is_dir()

    @property
    def manifest_path(self) -> Path:
        """Committed manifest inside the package directory."""
        return self.package_directory / f"{self.package_name}{WorkspaceLayout.MANIFEST_SUFFIX}"

    @property
    def has_manifest(self) -> bool:
        return self.manifest_path.is_file()

    def get_version(self, label: str) -> Optional[PackageVersion]:
        """
        Find a version by label.

        ``latest`` matches a version literally named latest, otherwise
        the first (newest) version.
        """
        for version in self.versions:
            if version.version == label:
                return version
        if label == LATEST and self.versions:
            return self.versions[0]
        return None

    def __getitem__(self, label: str) -> PackageVersion:
        version = self.get_version(label)
        if version is None:
            raise VersionNotFoundError(
                f"Package '{self.package_name}' has no version '{label}'. "
                f"Available: {[v.version for v in self.versions]}"
            )
        return version

    def to_record(self) -> GroupRecord:
        return GroupRecord(
            id=self.dependency_id,
            author=self.author,
            name=self.package_name,
            description=self.description,
            tags=sorted(self.tags),
            versions=[v.to_record() for v in self.versions],
        )


class PackageSource(ABC):
    """
    Base class for package providers.

    Sources compare equal when name and source group match, so a source
    rebuilt from settings is the same source as the instance it replaces.
    """

    def __init__(
        self,
        packages_root: Optional[Path] = None,
        store: Optional["ObjectStore"] = None,
        resolution_mode: ResolutionMode = ResolutionMode.PERMISSIVE,
    ):
        self.packages_root = Path(packages_root) if packages_root else Path("Packages")
        self.store = store
        self.resolution_mode = resolution_mode
        self.packages: List[PackageGroup] = []
        self.last_update_time: Optional[datetime] = None
        self.last_report: Optional[ResolutionReport] = None
        self._session: Optional[LoadSession] = None

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    @abstractmethod
    def source_group(self) -> str:
        ...

    @property
    def key(self) -> SourceKey:
        return SourceKey(self.name, self.source_group)

    @property
    def record_path(self) -> Optional[Path]:
        if self.store is None:
            return None
        return self.store.layout.source_record_path(self.name)

    # =========================================================================
    # Callbacks
    # =========================================================================

    @abstractmethod
    def on_load_packages(self) -> None:
        """Load data from the backing provider via add_package_group()."""

    @abstractmethod
    def version_id_to_group_id(self, dependency_id: str) -> str:
        """Map a versioned dependency id to the group id it belongs to."""

    @abstractmethod
    def on_install_package_files(self, version: PackageVersion, package_directory: Path) -> None:
        """
        Download, unpack and place the files of ``version``.

        Args:
            version: The version to install.
            package_directory: Empty directory the payload is written into.
        """

    # =========================================================================
    # Load Phase
    # =========================================================================

    def add_package_group(
        self,
        author: str,
        name: str,
        description: str,
        dependency_id: str,
        tags: Iterable[str],
        versions: Iterable[VersionInfo],
    ) -> PackageGroup:
        """
        Register a package group with its versions.

        Only valid while on_load_packages() runs.

        Args:
            dependency_id: Group id, used when mapping dependencies to
                a group's latest version.
            versions: Version labels, their dependency ids and the raw
                dependency ids each one declares.

        Raises:
            SourceStateError: Outside load_packages().
            InvalidPackageNameError: If ``name`` or ``dependency_id`` is not
                a single path component.
        """
        if self._session is None:
            raise SourceStateError(
                f"add_package_group('{name}') called outside load_packages() on {self.key}"
            )

        for value in (name, dependency_id):
            try:
                validate_safe_name(value)
            except ValueError as e:
                raise InvalidPackageNameError(f"Invalid package name {value!r} in {self.key}: {e}") from e

        infos = list(versions)
        group = PackageGroup(
            author=author,
            package_name=name,
            description=description,
            dependency_id=dependency_id,
            tags=frozenset(tags or ()),
            source=self,
        )
        for info in infos:
            group.versions.append(PackageVersion(
                version=info.version,
                dependency_id=info.dependency_id,
                group=group,
                declared_dependencies=list(dict.fromkeys(info.dependencies)),
            ))

        self._session.record_group(group, infos)
        self.packages.append(group)
        if self.store is not None:
            self.store.add_child_object(self.record_path, group.to_record())
        return group

    def clear(self) -> None:
        """Destroy all groups owned by this source."""
        if self.store is not None:
            for group in self.packages:
                self.store.remove_child_object(self.record_path, group.dependency_id)
        self.packages.clear()

    def load_packages(self) -> ResolutionReport:
        """
        Rebuild this source: clear, load, persist, resolve, persist.

        Raises:
            SourceLoadError: If on_load_packages() raises. The source is
                left empty.
            UnresolvedDependencyError: In strict mode.
        """
        self.clear()
        self._session = session = LoadSession()
        if self.store is not None:
            self.store.put(self.record_path, self.to_record())

        try:
            self.on_load_packages()
        except Exception as e:
            logger.error(f"[PackageSource] Load failed for {self.key}: {e}")
            self.clear()
            raise SourceLoadError(f"Failed to load packages from {self.key}: {e}") from e
        finally:
            self._session = None

        logger.info(f"[PackageSource] {self.key}: loaded {len(self.packages)} group(s)")
        self._persist()

        self.last_report = resolve_dependencies(
            self.packages,
            session,
            self.version_id_to_group_id,
            self.resolution_mode,
        )
        self.last_update_time = datetime.now(timezone.utc)
        self._persist()
        return self.last_report

    def _persist(self) -> None:
        if self.store is None:
            return
        self.store.put(self.record_path, self.to_record())
        self.store.save()
        self.store.refresh()

    # =========================================================================
    # Queries
    # =========================================================================

    def find_group(self, name: str) -> Optional[PackageGroup]:
        """Find a group by package name or group dependency id."""
        for group in self.packages:
            if group.package_name == name or group.dependency_id == name:
                return group
        return None

    def get_group(self, name: str) -> PackageGroup:
        group = self.find_group(name)
        if group is None:
            raise GroupNotFoundError(f"Package not found in {self.key}: {name}")
        return group

    def to_record(self) -> SourceRecord:
        return SourceRecord(
            name=self.name,
            source_group=self.source_group,
            last_update_time=self.last_update_time,
            children=[g.to_record() for g in self.packages],
        )

    # =========================================================================
    # Identity
    # =========================================================================

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageSource):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.key})"
