"""
Cluster builder: union-find over account ids interned to dense indices.

Account ids are mapped to integers on first sight; parent/rank live in
plain lists (path compression on find, union by rank). Ids are translated
back only when components are emitted. Accounts never touched by a link
do not enter the structure and are handled by the caller as singletons.
"""

from __future__ import annotations

from typing import Iterable

from fraudlink.analysis_engine.models import IdentityLink
from fraudlink.fraudlink_logging import get_logger

logger = get_logger(__name__)


class UnionFind:
    """Disjoint-set forest over interned string ids."""

    def __init__(self) -> None:
        self._index: dict[str, int] = {}
        self._ids: list[str] = []
        self._parent: list[int] = []
        self._rank: list[int] = []

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, item: object) -> bool:
        return item in self._index

    def intern(self, item: str) -> int:
        idx = self._index.get(item)
        if idx is None:
            idx = len(self._ids)
            self._index[item] = idx
            self._ids.append(item)
            self._parent.append(idx)
            self._rank.append(0)
        return idx

    def _find(self, idx: int) -> int:
        parent = self._parent
        root = idx
        while parent[root] != root:
            root = parent[root]
        while parent[idx] != root:
            parent[idx], idx = root, parent[idx]
        return root

    def find(self, item: str) -> str:
        return self._ids[self._find(self.intern(item))]

    def union(self, a: str, b: str) -> None:
        ra = self._find(self.intern(a))
        rb = self._find(self.intern(b))
        if ra == rb:
            return
        if self._rank[ra] < self._rank[rb]:
            ra, rb = rb, ra
        self._parent[rb] = ra
        if self._rank[ra] == self._rank[rb]:
            self._rank[ra] += 1

    def connected(self, a: str, b: str) -> bool:
        if a not in self._index or b not in self._index:
            return a == b
        return self._find(self._index[a]) == self._find(self._index[b])

    def components(self) -> list[list[str]]:
        """
        Components as sorted member lists, ordered by each component's
        first-interned member.
        """
        groups: dict[int, list[str]] = {}
        for idx, item in enumerate(self._ids):
            groups.setdefault(self._find(idx), []).append(item)
        return [sorted(members) for members in groups.values()]


def build_clusters(links: Iterable[IdentityLink]) -> list[list[str]]:
    """
    Partition all linked accounts into maximal connected components.

    Every account appearing in at least one link lands in exactly one
    component; link type is irrelevant (A-B and B-C put A, B, C together).
    """
    uf = UnionFind()
    link_count = 0
    for link in links:
        uf.union(link.account_a, link.account_b)
        link_count += 1
    components = uf.components()
    logger.info(
        "clusters_built",
        link_count=link_count,
        linked_accounts=len(uf),
        cluster_count=len(components),
    )
    return components
