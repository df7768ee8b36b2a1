"""
packsource - Assembly Sync

Copies assemblies shipped by installed packages into the script assemblies
folder so tooling that only looks there can load them.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterable, List, Sequence

logger = logging.getLogger(__name__)


def find_assemblies(root: Path, extensions: Sequence[str] = (".dll",)) -> List[Path]:
    """All files under ``root`` with one of ``extensions`` (case-insensitive)."""
    if not root.is_dir():
        return []
    exts = {e.lower() for e in extensions}
    return sorted(p for p in root.rglob("*") if p.is_file() and p.suffix.lower() in exts)


def sync_assemblies(
    packages_root: Path,
    output_dir: Path,
    excluded: Iterable[str] = (),
    extensions: Sequence[str] = (".dll",),
) -> List[Path]:
    """
    Copy every package assembly into ``output_dir``, overwriting.

    Args:
        excluded: File names to skip.

    Returns:
        Paths written in ``output_dir``.
    """
    skip = set(excluded)
    output_dir.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []
    for assembly in find_assemblies(packages_root, extensions):
        if assembly.name in skip:
            continue
        target = output_dir / assembly.name
        if target.exists():
            target.unlink()
        shutil.copy2(assembly, target)
        written.append(target)
    logger.info(f"[Assemblies] Synced {len(written)} assembly(ies) to {output_dir}")
    return written
