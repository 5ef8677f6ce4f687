"""Parent/child/sibling relationships between documents."""

import threading

from loguru import logger

from notion_retrieval.core.tree.extract import DOCUMENT_BLOCK_KINDS
from notion_retrieval.errors import ApiError
from notion_retrieval.source import ContentSource


class HierarchyGraph:
    """child -> parent edges plus memoized parent -> children lists.

    Edges come from authoritative parent references or are back-filled when a
    document's children are discovered lazily through the remote source. The
    remote data is not guaranteed acyclic, so upward walks carry a visited set.
    """

    def __init__(self, source: ContentSource | None = None) -> None:
        self._source = source
        self._parents: dict[str, str] = {}
        self._children: dict[str, list[str]] = {}
        self._roots: dict[str, None] = {}
        self._lock = threading.RLock()

    def add_edge(self, child_id: str, parent_id: str) -> None:
        """Record child -> parent. Idempotent; a later parent replaces an earlier one."""
        if child_id == parent_id:
            logger.warning("Ignoring self-referencing parent edge for {}", child_id)
            return
        with self._lock:
            previous = self._parents.get(child_id)
            if previous == parent_id:
                return
            if previous is not None:
                siblings = self._children.get(previous, [])
                if child_id in siblings:
                    siblings.remove(child_id)
            self._parents[child_id] = parent_id
            self._roots.pop(child_id, None)
            children = self._children.setdefault(parent_id, [])
            if child_id not in children:
                children.append(child_id)

    def mark_root(self, doc_id: str) -> None:
        """Record a document known to sit at the top of the workspace."""
        with self._lock:
            if doc_id not in self._parents:
                self._roots.setdefault(doc_id, None)

    def parent(self, doc_id: str) -> str | None:
        return self._parents.get(doc_id)

    def has_parent(self, doc_id: str) -> bool:
        return doc_id in self._parents

    def roots(self) -> list[str]:
        """Documents with no recorded parent: marked roots first, then parents of edges."""
        with self._lock:
            found = dict(self._roots)
            for parent_id in self._children:
                if parent_id not in self._parents:
                    found.setdefault(parent_id, None)
            return list(found)

    def path_to_root(self, doc_id: str) -> list[str]:
        """Ids from the outermost known ancestor down to `doc_id`.

        Stops at the first id without a recorded parent, or when an id repeats
        (a cycle); the partial path is returned either way.
        """
        path: list[str] = []
        visited: set[str] = set()
        current: str | None = doc_id
        while current is not None and current not in visited:
            visited.add(current)
            path.append(current)
            current = self._parents.get(current)
        if current is not None:
            logger.warning("Cycle in parent chain of {} at {}", doc_id, current)
        path.reverse()
        return path

    def cached_children(self, doc_id: str) -> list[str] | None:
        with self._lock:
            children = self._children.get(doc_id)
            return list(children) if children is not None else None

    def children(self, doc_id: str) -> list[str]:
        """Child documents of `doc_id`, discovering them remotely on first use.

        Only nested pages and databases count as children, not content blocks.
        Remote failures are logged and memoized as "no children".
        """
        cached = self.cached_children(doc_id)
        if cached is not None:
            return cached
        if self._source is None:
            return []

        try:
            blocks = self._source.list_block_children(doc_id)
        except ApiError:
            logger.opt(exception=True).warning("Could not discover children of {}", doc_id)
            blocks = []

        discovered = [b["id"] for b in blocks if b.get("type") in DOCUMENT_BLOCK_KINDS]
        with self._lock:
            # Another caller may have filled it meanwhile; keep whichever came first.
            if doc_id not in self._children:
                self._children[doc_id] = []
                for child_id in discovered:
                    self.add_edge(child_id, doc_id)
            return list(self._children[doc_id])

    def related(self, doc_id: str, *, limit: int = 3) -> list[str]:
        """Siblings first, then cousins (children of the parent's siblings)."""
        parent_id = self._parents.get(doc_id)
        if parent_id is None:
            return []

        related: dict[str, None] = {}
        for sibling_id in self.children(parent_id):
            if sibling_id != doc_id:
                related.setdefault(sibling_id, None)

        grandparent_id = self._parents.get(parent_id)
        if grandparent_id is not None and len(related) < limit:
            for uncle_id in self.children(grandparent_id):
                if uncle_id in (parent_id, doc_id):
                    continue
                for cousin_id in self.children(uncle_id):
                    if cousin_id != doc_id:
                        related.setdefault(cousin_id, None)
                if len(related) >= limit:
                    break

        return list(related)[:limit]

    def __len__(self) -> int:
        return len(self._parents)
