"""Disjoint set (union-find) over string keys with path compression."""

from __future__ import annotations


class DisjointSet:
    """Union-find with directed unions.

    ``union(keep, merge)`` always attaches ``merge``'s root under
    ``keep``'s root, so callers decide which code stays representative.
    Unknown keys are their own singleton set.
    """

    def __init__(self) -> None:
        self._parent: dict[str, str] = {}

    def find(self, key: str) -> str:
        root = key
        while self._parent.get(root, root) != root:
            root = self._parent[root]
        # Path compression
        while key != root:
            nxt = self._parent.get(key, key)
            self._parent[key] = root
            key = nxt
        return root

    def union(self, keep: str, merge: str) -> str:
        """Merge ``merge``'s set into ``keep``'s set; returns the root."""
        keep_root = self.find(keep)
        merge_root = self.find(merge)
        if keep_root != merge_root:
            self._parent[merge_root] = keep_root
        return keep_root

    def connected(self, a: str, b: str) -> bool:
        return self.find(a) == self.find(b)

    def __len__(self) -> int:
        return len(self._parent)
