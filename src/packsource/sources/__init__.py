"""Concrete package sources."""

from .directory import DirectorySource

__all__ = ["DirectorySource"]
