"""
Directory-backed package source.

Layout of a source directory::

    index.yaml
    Author-Name-1.0.0/      payload of one version
        plugins/Thing.dll
        ...

index.yaml::

    packages:
      - author: Author
        name: Name
        description: Does things
        dependency_id: Author-Name        # optional, default "<author>-<name>"
        tags: [tools]
        versions:                          # newest first
          - version: "1.0.0"               # quote versions, YAML reads 1.10 as 1.1
            dependency_id: Author-Name-1.0.0   # optional
            dependencies: [Other-Lib-2.0.0]
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..models import VersionInfo
from ..source import PackageSource, PackageVersion

logger = logging.getLogger(__name__)


class DirectorySource(PackageSource):
    """Packages described by an index.yaml with payload folders beside it."""

    INDEX_NAME = "index.yaml"

    def __init__(
        self,
        root: Path,
        name: Optional[str] = None,
        source_group: str = "local",
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.root = Path(root)
        self._name = name or self.root.name
        self._source_group = source_group

    @property
    def name(self) -> str:
        return self._name

    @property
    def source_group(self) -> str:
        return self._source_group

    @property
    def index_path(self) -> Path:
        return self.root / self.INDEX_NAME

    def on_load_packages(self) -> None:
        with open(self.index_path, "r", encoding="utf-8") as f:
            data: Dict[str, Any] = yaml.safe_load(f) or {}

        for entry in data.get("packages") or []:
            author = entry.get("author", "")
            name = entry["name"]
            group_id = entry.get("dependency_id") or (f"{author}-{name}" if author else name)
            versions = [
                VersionInfo(
                    version=str(v["version"]),
                    dependency_id=v.get("dependency_id") or f"{group_id}-{v['version']}",
                    dependencies=[str(d) for d in v.get("dependencies") or []],
                )
                for v in entry.get("versions") or []
            ]
            self.add_package_group(
                author,
                name,
                entry.get("description", ""),
                group_id,
                entry.get("tags") or [],
                versions,
            )

    def version_id_to_group_id(self, dependency_id: str) -> str:
        """``Author-Name-1.0.0`` -> ``Author-Name``."""
        head, sep, _ = dependency_id.rpartition("-")
        return head if sep else dependency_id

    def on_install_package_files(self, version: PackageVersion, package_directory: Path) -> None:
        payload = self.root / version.dependency_id
        if not payload.is_dir():
            raise FileNotFoundError(f"Payload missing for {version.dependency_id}: {payload}")
        shutil.copytree(payload, package_directory, dirs_exist_ok=True)
        logger.debug(f"[DirectorySource] Copied {payload} -> {package_directory}")
