"""
packsource - Data Models

Pydantic v2 models for everything written to disk:
- <PackageName>.manifest.json   (Manifest)
- package.json                  (PackageDescriptor)
- <file>.meta                   (AssetMeta, YAML sidecar)
- Sources/<source>.json         (SourceRecord)

Schema versions:
- packsource.manifest.v1
- packsource.source.v1
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Enums
# =============================================================================

class ResolutionMode(str, Enum):
    """How dependency ids that match nothing are handled."""
    PERMISSIVE = "permissive"
    STRICT = "strict"


class ImporterKind(str, Enum):
    """Importer recorded in a .meta sidecar."""
    PLUGIN = "PluginImporter"
    NATIVE = "NativeFormatImporter"
    DEFAULT = "DefaultImporter"


# =============================================================================
# Validators
# =============================================================================

def validate_safe_name(name: str) -> str:
    """Validate name is usable as a single path component."""
    if not name:
        raise ValueError("Name cannot be empty")
    if "/" in name or "\\" in name:
        raise ValueError("Name cannot contain path separators")
    if name in (".", ".."):
        raise ValueError("Name cannot be a relative directory reference")
    if "\x00" in name:
        raise ValueError("Name cannot contain null bytes")
    return name


# =============================================================================
# Source Input
# =============================================================================

class VersionInfo(BaseModel):
    """One version as reported by a source's load callback."""
    version: str
    dependency_id: str
    dependencies: List[str] = Field(default_factory=list)


# =============================================================================
# Manifest Models
# =============================================================================

class ManifestRef(BaseModel):
    """Reference from one manifest to another, by sidecar guid."""
    guid: str
    name: str


class Manifest(BaseModel):
    """Identity and dependency links of an installed package."""
    model_config = ConfigDict(populate_by_name=True)

    schema_: str = Field(default="packsource.manifest.v1", alias="schema")
    kind: Literal["manifest"] = "manifest"
    author: str = ""
    name: str
    description: str = ""
    version: str
    dependencies: List[ManifestRef] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return validate_safe_name(v)


class PackageDescriptor(BaseModel):
    """package.json written into every installed package directory."""
    id: str
    name: str
    author: str = ""
    version: str
    description: str = ""

    @field_validator("id")
    @classmethod
    def lowercase_id(cls, v: str) -> str:
        return v.lower()


class AssetMeta(BaseModel):
    """Sidecar metadata carried next to assemblies and manifests."""
    file_format_version: int = 2
    guid: str
    importer: ImporterKind = ImporterKind.DEFAULT


# =============================================================================
# Persisted Source Snapshot
# =============================================================================

class VersionRecord(BaseModel):
    """Persisted state of a PackageVersion."""
    version: str
    dependency_id: str
    raw_dependencies: List[str] = Field(default_factory=list)
    dependencies: Optional[List[str]] = None
    unresolved: List[str] = Field(default_factory=list)


class GroupRecord(BaseModel):
    """Persisted state of a PackageGroup (child object of a SourceRecord)."""
    kind: Literal["package_group"] = "package_group"
    id: str
    author: str = ""
    name: str
    description: str = ""
    tags: List[str] = Field(default_factory=list)
    versions: List[VersionRecord] = Field(default_factory=list)


class SourceRecord(BaseModel):
    """Persisted snapshot of a PackageSource."""
    model_config = ConfigDict(populate_by_name=True)

    schema_: str = Field(default="packsource.source.v1", alias="schema")
    kind: Literal["package_source"] = "package_source"
    name: str
    source_group: str
    last_update_time: Optional[datetime] = None
    children: List[GroupRecord] = Field(default_factory=list)


# =============================================================================
# Results
# =============================================================================

class InstallReport(BaseModel):
    """Outcome of one install call."""
    target: str
    version: str
    installed: List[str] = Field(default_factory=list)
    manifests: List[str] = Field(default_factory=list)
    assemblies: int = 0
