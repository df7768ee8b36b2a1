"""
packsource - Object Store

Typed JSON documents stored under the workspace root. Every document carries
a ``kind`` field; documents may own child objects (a source snapshot owns its
package groups). Changes to parents are buffered until ``save()``; direct
object writes go straight to disk.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Type, TypeVar, Union

from pydantic import BaseModel

from .layout import WorkspaceLayout

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)
PathLike = Union[str, Path]


class ObjectStore:
    """
    JSON object store backing sources and manifests.

    Paths may be absolute or relative to the workspace root.
    """

    def __init__(self, layout: WorkspaceLayout):
        self.layout = layout
        self._documents: Dict[Path, Dict[str, Any]] = {}
        self._dirty: Set[Path] = set()
        self._listeners: List[Callable[[], None]] = []
        self.refresh_count = 0

    def _resolve(self, path: PathLike) -> Path:
        path = Path(path)
        if not path.is_absolute():
            path = self.layout.root / path
        return path

    def _document(self, path: Path) -> Dict[str, Any]:
        doc = self._documents.get(path)
        if doc is None:
            if not path.exists():
                raise KeyError(f"No object at {path}")
            doc = self.layout.read_json(path)
            self._documents[path] = doc
        return doc

    # =========================================================================
    # Objects
    # =========================================================================

    def write_object(self, path: PathLike, obj: BaseModel) -> Path:
        """Write a model to disk immediately."""
        path = self._resolve(path)
        data = obj.model_dump(mode="json", by_alias=True)
        self.layout.write_json(path, data)
        self._documents[path] = data
        self._dirty.discard(path)
        return path

    def read_object(self, path: PathLike, model: Type[M]) -> Optional[M]:
        """Read a model from disk, None if missing."""
        path = self._resolve(path)
        if path in self._dirty:
            return model.model_validate(self._documents[path])
        if not path.exists():
            return None
        return model.model_validate(self.layout.read_json(path))

    def put(self, path: PathLike, obj: BaseModel) -> Path:
        """Stage a root object; written on the next save()."""
        path = self._resolve(path)
        self._documents[path] = obj.model_dump(mode="json", by_alias=True)
        self._dirty.add(path)
        return path

    def load_all_objects_at(self, path: PathLike) -> List[Dict[str, Any]]:
        """Return the root object at path followed by its children."""
        path = self._resolve(path)
        try:
            doc = self._document(path)
        except KeyError:
            return []
        return [doc] + list(doc.get("children", []))

    # =========================================================================
    # Children
    # =========================================================================

    def add_child_object(self, parent: PathLike, child: BaseModel) -> None:
        parent = self._resolve(parent)
        doc = self._document(parent)
        doc.setdefault("children", []).append(child.model_dump(mode="json", by_alias=True))
        self._dirty.add(parent)

    def remove_child_object(self, parent: PathLike, child_id: str) -> bool:
        parent = self._resolve(parent)
        try:
            doc = self._document(parent)
        except KeyError:
            return False
        children = doc.get("children", [])
        kept = [c for c in children if c.get("id") != child_id]
        if len(kept) == len(children):
            return False
        doc["children"] = kept
        self._dirty.add(parent)
        return True

    # =========================================================================
    # Persistence
    # =========================================================================

    def save(self) -> int:
        """Flush buffered documents. Returns number written."""
        written = 0
        for path in sorted(self._dirty):
            self.layout.write_json(path, self._documents[path])
            written += 1
        self._dirty.clear()
        if written:
            logger.debug(f"[ObjectStore] Saved {written} document(s)")
        return written

    def refresh(self) -> None:
        """Drop cached documents and notify refresh listeners."""
        for path in list(self._documents):
            if path not in self._dirty:
                del self._documents[path]
        self.refresh_count += 1
        logger.debug(f"[ObjectStore] Refresh #{self.refresh_count}")
        for listener in list(self._listeners):
            listener()

    def add_refresh_listener(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def delete_at(self, path: PathLike) -> bool:
        """Delete an object and its .meta sidecar. Returns True if deleted."""
        path = self._resolve(path)
        self._documents.pop(path, None)
        self._dirty.discard(path)
        meta = path.with_name(path.name + ".meta")
        if meta.exists():
            meta.unlink()
        if path.exists():
            path.unlink()
            return True
        return False

    # =========================================================================
    # Search
    # =========================================================================

    def find_objects_of_type(
        self,
        kind: str,
        roots: Optional[Iterable[PathLike]] = None,
        name: Optional[str] = None,
    ) -> List[Path]:
        """
        Find JSON documents of the given kind.

        Args:
            kind: Value of the document's ``kind`` field.
            roots: Directories to search. Defaults to the packages root.
            name: Optional exact match on the document's ``name`` field.

        Returns:
            Sorted list of matching paths.
        """
        search_roots = [self._resolve(r) for r in roots] if roots else [self.layout.packages_path]
        matches: List[Path] = []
        for root in search_roots:
            if not root.is_dir():
                continue
            for candidate in root.rglob("*.json"):
                try:
                    data = self.layout.read_json(candidate)
                except (OSError, ValueError) as e:
                    logger.warning(f"[ObjectStore] Skipping unreadable document {candidate}: {e}")
                    continue
                if not isinstance(data, dict) or data.get("kind") != kind:
                    continue
                if name is not None and data.get("name") != name:
                    continue
                matches.append(candidate)
        return sorted(matches)
