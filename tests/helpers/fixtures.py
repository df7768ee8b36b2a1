"""
Test fixtures and helpers for packsource tests.

Provides:
- FakeSource: in-memory PackageSource with scripted catalog and payloads
- FakeClock: manually advanced clock for the refresh scheduler
- Builders for catalogs and directory sources
- Assertion helpers for installed packages
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import yaml

from packsource.models import VersionInfo
from packsource.source import PackageSource, PackageVersion


# =============================================================================
# Fake Source
# =============================================================================

@dataclass
class FakePackage:
    """One catalog entry of a FakeSource."""
    author: str
    name: str
    group_id: str
    versions: List[VersionInfo] = field(default_factory=list)
    description: str = ""
    tags: List[str] = field(default_factory=list)


def fake_package(
    name: str,
    *versions: Tuple[str, Sequence[str]],
    author: str = "Acme",
    group_id: Optional[str] = None,
    description: str = "",
) -> FakePackage:
    """
    Build a catalog entry.

    Args:
        versions: ``(label, [raw dependency ids])`` pairs, newest first.
            Defaults to a single ``1.0.0`` without dependencies.
    """
    gid = group_id or f"{author}-{name}"
    if not versions:
        versions = (("1.0.0", []),)
    return FakePackage(
        author=author,
        name=name,
        group_id=gid,
        versions=[
            VersionInfo(version=label, dependency_id=f"{gid}-{label}", dependencies=list(deps))
            for label, deps in versions
        ],
        description=description,
    )


class FakeSource(PackageSource):
    """
    Package source serving a fixed catalog from memory.

    Payloads map a version dependency id to ``{relative path: text}``; versions
    without an entry get a README.txt.
    """

    def __init__(
        self,
        name: str = "fake",
        source_group: str = "test",
        catalog: Iterable[FakePackage] = (),
        payloads: Optional[Dict[str, Dict[str, str]]] = None,
        fail_on_load: Optional[Exception] = None,
        fail_on_install: Optional[Exception] = None,
        fail_versions: Iterable[str] = (),
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self._name = name
        self._source_group = source_group
        self.catalog = list(catalog)
        self.payloads = payloads or {}
        self.fail_on_load = fail_on_load
        self.fail_on_install = fail_on_install
        # dependency ids whose payload fails with fail_on_install
        self.fail_versions = set(fail_versions)
        self.load_calls = 0
        self.install_calls: List[str] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def source_group(self) -> str:
        return self._source_group

    def on_load_packages(self) -> None:
        self.load_calls += 1
        for pkg in self.catalog:
            self.add_package_group(
                pkg.author, pkg.name, pkg.description, pkg.group_id, pkg.tags, pkg.versions,
            )
        if self.fail_on_load is not None:
            raise self.fail_on_load

    def version_id_to_group_id(self, dependency_id: str) -> str:
        head, sep, _ = dependency_id.rpartition("-")
        return head if sep else dependency_id

    def on_install_package_files(self, version: PackageVersion, package_directory: Path) -> None:
        self.install_calls.append(version.dependency_id)
        if self.fail_on_install is not None and (
            not self.fail_versions or version.dependency_id in self.fail_versions
        ):
            raise self.fail_on_install
        files = self.payloads.get(
            version.dependency_id, {"README.txt": f"{version.dependency_id}\n"}
        )
        for rel, content in files.items():
            path = package_directory / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")


# =============================================================================
# Fake Clock
# =============================================================================

class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    # Usable as the ``sleep`` argument of RefreshScheduler.wait()
    sleep = advance


# =============================================================================
# Directory Source Builder
# =============================================================================

def write_directory_source(
    root: Path,
    packages: List[Dict[str, Any]],
    payloads: Optional[Dict[str, Dict[str, str]]] = None,
) -> Path:
    """
    Create an index.yaml plus payload folders under ``root``.

    Args:
        packages: Entries of the ``packages`` list in index.yaml.
        payloads: Folder name -> {relative path: text}.
    """
    root.mkdir(parents=True, exist_ok=True)
    with open(root / "index.yaml", "w", encoding="utf-8") as f:
        yaml.safe_dump({"packages": packages}, f, sort_keys=False)
    for folder, files in (payloads or {}).items():
        for rel, content in files.items():
            path = root / folder / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
    return root


# =============================================================================
# Assertions
# =============================================================================

def read_json(path: Path) -> Dict[str, Any]:
    """Assert that a file contains valid JSON and return it."""
    assert path.exists(), f"File not found: {path}"
    with open(path, encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise AssertionError(f"Invalid JSON in {path}: {e}")


def assert_installed(layout, group_id: str, package_name: str) -> Dict[str, Any]:
    """Assert a package directory holds a manifest, its sidecar and package.json."""
    manifest = layout.manifest_path(group_id, package_name)
    assert manifest.exists(), f"Manifest missing: {manifest}"
    assert manifest.with_name(manifest.name + ".meta").exists(), f"Sidecar missing for {manifest}"
    assert layout.descriptor_path(group_id).exists(), f"package.json missing in {group_id}"
    return read_json(manifest)
