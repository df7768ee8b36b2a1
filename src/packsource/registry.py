"""
packsource - Source Registry

Index of known package sources, clustered by source group. Sources are keyed
by SourceKey, so registering a rebuilt source that compares equal to a known
one keeps the first registered entry.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterator, List, Optional

from .source import GroupNotFoundError, PackageGroup, PackageSource, SourceKey

logger = logging.getLogger(__name__)

RegistryHandler = Callable[["SourceRegistry"], None]


class SourceRegistry:
    """Registered sources plus initialize / initialized hooks."""

    def __init__(self):
        self._sources: Dict[SourceKey, PackageSource] = {}
        self.initialize_handlers: List[RegistryHandler] = []
        self.initialized_handlers: List[RegistryHandler] = []

    def register(self, source: PackageSource) -> PackageSource:
        """Add ``source`` unless an equal one is known. Returns the registered instance."""
        existing = self._sources.get(source.key)
        if existing is not None:
            return existing
        self._sources[source.key] = source
        logger.debug(f"[Registry] Registered source {source.key}")
        return source

    def unregister(self, source: PackageSource) -> bool:
        return self._sources.pop(source.key, None) is not None

    def get(self, name: str, source_group: Optional[str] = None) -> Optional[PackageSource]:
        for key, source in self._sources.items():
            if key.name == name and (source_group is None or key.source_group == source_group):
                return source
        return None

    def __iter__(self) -> Iterator[PackageSource]:
        return iter(list(self._sources.values()))

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, source: object) -> bool:
        return isinstance(source, PackageSource) and source.key in self._sources

    @property
    def source_groups(self) -> Dict[str, List[PackageSource]]:
        """Sources clustered by their source group, in registration order."""
        groups: Dict[str, List[PackageSource]] = {}
        for source in self._sources.values():
            groups.setdefault(source.source_group, []).append(source)
        return groups

    def on_initialize(self, handler: RegistryHandler) -> None:
        self.initialize_handlers.append(handler)

    def on_initialized(self, handler: RegistryHandler) -> None:
        self.initialized_handlers.append(handler)

    def load_all_sources(self) -> None:
        """
        Run initialize handlers, load every source, then run initialized handlers.

        Initialize handlers may register further sources. The first failing
        source stops the run.
        """
        for handler in list(self.initialize_handlers):
            handler(self)
        for source in self:
            source.load_packages()
        for handler in list(self.initialized_handlers):
            handler(self)
        logger.info(f"[Registry] Loaded {len(self)} source(s)")

    def iter_groups(self) -> Iterator[PackageGroup]:
        for source in self:
            yield from source.packages

    def find_group(self, name: str, source_group: Optional[str] = None) -> PackageGroup:
        """
        First group named ``name`` across sources (optionally one source group).

        Raises:
            GroupNotFoundError: If no source offers it.
        """
        for source in self:
            if source_group is not None and source.source_group != source_group:
                continue
            group = source.find_group(name)
            if group is not None:
                return group
        raise GroupNotFoundError(f"Package not found: {name}")
