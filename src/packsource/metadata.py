"""
packsource - Sidecar Metadata

Writes the ``.meta`` sidecars placed next to assemblies and manifests and the
``package.json`` descriptor of each installed package.

Sidecar guids are derived from the file name, so a manifest keeps its guid
when it moves from the staging area into its package directory.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Optional

import yaml

from .layout import WorkspaceLayout
from .models import AssetMeta, ImporterKind, PackageDescriptor

logger = logging.getLogger(__name__)


def guid_for(file_name: str) -> str:
    """Deterministic 32-char hex guid for a file name."""
    return hashlib.md5(file_name.encode("utf-8")).hexdigest()


def sidecar_path(path: Path) -> Path:
    return path.with_name(path.name + ".meta")


def write_meta(path: Path, importer: ImporterKind) -> AssetMeta:
    """Write the sidecar for ``path`` and return its contents."""
    meta = AssetMeta(guid=guid_for(path.name), importer=importer)
    with open(sidecar_path(path), "w", encoding="utf-8") as f:
        yaml.safe_dump(meta.model_dump(mode="json"), f, sort_keys=True)
    return meta


def write_assembly_metadata(assembly_path: Path) -> AssetMeta:
    return write_meta(assembly_path, ImporterKind.PLUGIN)


def write_asset_metadata(asset_path: Path) -> AssetMeta:
    return write_meta(asset_path, ImporterKind.NATIVE)


def read_meta(path: Path) -> Optional[AssetMeta]:
    """Read the sidecar of ``path``; None if there is none."""
    meta_path = sidecar_path(path)
    if not meta_path.exists():
        return None
    with open(meta_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return AssetMeta.model_validate(data)


def read_guid(path: Path) -> str:
    """Guid of ``path`` from its sidecar, falling back to the derived guid."""
    meta = read_meta(path)
    return meta.guid if meta else guid_for(path.name)


def generate_package_descriptor(
    layout: WorkspaceLayout,
    group_id: str,
    package_dir: Path,
    name: str,
    author: str,
    version: str,
    description: str,
) -> Path:
    """Write package.json into ``package_dir``."""
    descriptor = PackageDescriptor(
        id=group_id,
        name=name,
        author=author,
        version=version,
        description=description,
    )
    path = package_dir / layout.DESCRIPTOR_NAME
    layout.write_json(path, descriptor.model_dump(mode="json"))
    logger.debug(f"[Installer] Wrote descriptor {path}")
    return path
