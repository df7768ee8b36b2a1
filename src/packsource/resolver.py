"""
packsource - Dependency Resolver

Second phase of a source load: converts each version's raw dependency ids into
concrete PackageVersion references.

Lookup order per raw id:
1. exact match on a version dependency id within the source
2. the source's group-id mapping, then that group's "latest" version
3. unresolved (recorded, or raised in strict mode)

All maps live in a LoadSession owned by a single load_packages() call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Sequence, Tuple

from .layout import PackSourceError
from .models import ResolutionMode, VersionInfo

if TYPE_CHECKING:
    from .source import PackageGroup, PackageVersion

logger = logging.getLogger(__name__)


class UnresolvedDependencyError(PackSourceError):
    """Raised in strict mode when dependency ids match nothing."""

    def __init__(self, unresolved: Sequence[Tuple[str, str]]):
        self.unresolved = list(unresolved)
        lines = [f"{owner} -> {raw}" for owner, raw in self.unresolved]
        super().__init__(
            f"{len(self.unresolved)} unresolved dependency(ies):\n  " + "\n  ".join(lines)
        )


@dataclass
class LoadSession:
    """Transient maps collected while a source's load callback runs."""
    raw_dependencies: Dict[str, List[str]] = field(default_factory=dict)
    groups: Dict[str, "PackageGroup"] = field(default_factory=dict)

    def record_group(self, group: "PackageGroup", infos: Iterable[VersionInfo]) -> None:
        self.groups[group.dependency_id] = group
        for info in infos:
            deps = self.raw_dependencies.setdefault(info.dependency_id, [])
            for raw in info.dependencies:
                if raw not in deps:
                    deps.append(raw)


@dataclass
class ResolutionReport:
    """Summary of one resolve pass."""
    exact: int = 0
    fallback: int = 0
    unresolved: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def resolved(self) -> int:
        return self.exact + self.fallback


def build_version_map(groups: Sequence["PackageGroup"]) -> Dict[str, "PackageVersion"]:
    """Index every version of every group by its dependency id."""
    version_map: Dict[str, "PackageVersion"] = {}
    for group in groups:
        for version in group.versions:
            if version.dependency_id in version_map:
                logger.warning(
                    f"[Resolver] Duplicate version id '{version.dependency_id}' "
                    f"in group '{group.package_name}', keeping first"
                )
                continue
            version_map[version.dependency_id] = version
    return version_map


def resolve_dependencies(
    groups: Sequence["PackageGroup"],
    session: LoadSession,
    group_id_of: Callable[[str], str],
    mode: ResolutionMode = ResolutionMode.PERMISSIVE,
) -> ResolutionReport:
    """
    Populate ``dependencies`` on every version of ``groups``.

    Args:
        groups: Groups in load order.
        session: Raw dependency and group maps recorded during load.
        group_id_of: Maps a raw dependency id to a group dependency id.
        mode: Strict raises on holes, permissive records them.

    Returns:
        ResolutionReport with counts and the unresolved (owner, raw id) pairs.

    Raises:
        UnresolvedDependencyError: In strict mode, after every version
            has been processed.
    """
    report = ResolutionReport()
    version_map = build_version_map(groups)

    for group in groups:
        for version in group.versions:
            resolved: List["PackageVersion"] = []
            unresolved: List[str] = []
            for raw in session.raw_dependencies.get(version.dependency_id, []):
                target = version_map.get(raw)
                if target is not None:
                    report.exact += 1
                    resolved.append(target)
                    continue

                fallback_group = session.groups.get(group_id_of(raw))
                target = fallback_group.get_version("latest") if fallback_group else None
                if target is not None:
                    report.fallback += 1
                    resolved.append(target)
                    logger.debug(
                        f"[Resolver] {version.dependency_id}: '{raw}' -> "
                        f"{target.dependency_id} (latest)"
                    )
                    continue

                unresolved.append(raw)
                report.unresolved.append((version.dependency_id, raw))

            version.dependencies = resolved
            version.unresolved_dependencies = unresolved

    if report.unresolved:
        if mode == ResolutionMode.STRICT:
            raise UnresolvedDependencyError(report.unresolved)
        for owner, raw in report.unresolved:
            logger.warning(f"[Resolver] Unresolved dependency '{raw}' of {owner}")

    logger.info(
        f"[Resolver] Resolved {report.resolved} dependency(ies) "
        f"({report.fallback} via latest), {len(report.unresolved)} unresolved"
    )
    return report
