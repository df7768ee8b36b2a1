"""
packsource Configuration Module

Workspace settings: game location, assembly handling, install behaviour
and the directory sources known to the workspace.

Stored at <root>/PackSourceSettings/settings.json.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .models import ResolutionMode

logger = logging.getLogger(__name__)


@dataclass
class GameSettings:
    """Location of the game the packages are installed for."""
    game_executable: str = ""
    game_path: str = ""
    is_64_bit: bool = True

    def to_dict(self) -> dict:
        return {
            "game_executable": self.game_executable,
            "game_path": self.game_path,
            "is_64_bit": self.is_64_bit,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'GameSettings':
        return cls(
            game_executable=data.get("game_executable", ""),
            game_path=data.get("game_path", ""),
            is_64_bit=data.get("is_64_bit", True),
        )


@dataclass
class InstallSettings:
    """Installer and resolver behaviour."""
    assembly_extensions: List[str] = field(default_factory=lambda: [".dll"])
    excluded_assemblies: List[str] = field(default_factory=list)
    refresh_window: float = 1.0
    resolution_mode: ResolutionMode = ResolutionMode.PERMISSIVE
    lock_timeout: float = 30.0

    def to_dict(self) -> dict:
        return {
            "assembly_extensions": list(self.assembly_extensions),
            "excluded_assemblies": list(self.excluded_assemblies),
            "refresh_window": self.refresh_window,
            "resolution_mode": self.resolution_mode.value,
            "lock_timeout": self.lock_timeout,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'InstallSettings':
        return cls(
            assembly_extensions=data.get("assembly_extensions", [".dll"]),
            excluded_assemblies=data.get("excluded_assemblies", []),
            refresh_window=float(data.get("refresh_window", 1.0)),
            resolution_mode=ResolutionMode(data.get("resolution_mode", "permissive")),
            lock_timeout=float(data.get("lock_timeout", 30.0)),
        )


@dataclass
class SourceEntry:
    """A DirectorySource registered in the workspace."""
    name: str
    path: str
    source_group: str = "local"

    def to_dict(self) -> dict:
        return {"name": self.name, "path": self.path, "source_group": self.source_group}

    @classmethod
    def from_dict(cls, data: dict) -> 'SourceEntry':
        return cls(
            name=data["name"],
            path=data["path"],
            source_group=data.get("source_group", "local"),
        )


@dataclass
class PackSourceConfig:
    """Main configuration container."""
    root: Path = field(
        default_factory=lambda: Path(os.environ.get("PACKSOURCE_ROOT", Path.cwd()))
    )
    game: GameSettings = field(default_factory=GameSettings)
    install: InstallSettings = field(default_factory=InstallSettings)
    sources: List[SourceEntry] = field(default_factory=list)

    @property
    def settings_file(self) -> Path:
        return Path(self.root) / "PackSourceSettings" / "settings.json"

    def add_source(self, entry: SourceEntry) -> None:
        """Add or replace the source entry with the same name and group."""
        self.sources = [
            s for s in self.sources
            if (s.name, s.source_group) != (entry.name, entry.source_group)
        ]
        self.sources.append(entry)

    def to_dict(self) -> dict:
        return {
            "game": self.game.to_dict(),
            "install": self.install.to_dict(),
            "sources": [s.to_dict() for s in self.sources],
        }

    def save(self) -> None:
        """Save configuration to file."""
        self.settings_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.settings_file, 'w', encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, root: Optional[Path] = None) -> 'PackSourceConfig':
        """Load configuration from file or create default."""
        config = cls() if root is None else cls(root=Path(root))
        if config.settings_file.exists():
            try:
                with open(config.settings_file, encoding="utf-8") as f:
                    data = json.load(f)
                config.game = GameSettings.from_dict(data.get("game", {}))
                config.install = InstallSettings.from_dict(data.get("install", {}))
                config.sources = [SourceEntry.from_dict(s) for s in data.get("sources", [])]
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                logger.warning(f"Could not load settings, using defaults: {e}")
        return config
