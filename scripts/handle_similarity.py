#!/usr/bin/env python3
"""
Nearest-lexical-neighbour graph over account handles.

Every handle is linked to the handle(s) closest to it by Levenshtein
distance. Batches of sock-puppet accounts tend to be named from a template
(`maria_k1984`, `maria_k1985`, ...), so they end up pointing at each other.

The distance matrix is all-pairs, O(n^2 * L) for n handles of average
length L. That is fine for the few hundred accounts that survive the
creation-date filter and is the ceiling of this approach.

Run:
  python scripts/handle_similarity.py abc123 abd123 xyz999
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd
from tqdm import tqdm

logger = logging.getLogger(__name__)

LARGE_HANDLE_SET = 500


@dataclass(frozen=True)
class DistanceEdge:
    source: str
    target: str
    distance: int


@dataclass
class NearestNeighborGraph:
    """Handles plus, for each handle, the edge(s) to its closest other handle(s).

    A pair that are each other's nearest neighbour shows up twice, once from
    each side, unless the graph was built with `deduplicate=True`.
    """

    nodes: List[str] = field(default_factory=list)
    edges: List[DistanceEdge] = field(default_factory=list)

    def edge_table(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "from": [e.source for e in self.edges],
                "to": [e.target for e in self.edges],
                "distance": pd.Series([e.distance for e in self.edges], dtype="int64"),
            }
        )

    def node_table(self) -> pd.DataFrame:
        degree = {n: 0 for n in self.nodes}
        for e in self.edges:
            degree[e.source] += 1
            degree[e.target] += 1
        return pd.DataFrame({"screen_name": self.nodes, "edges": [degree[n] for n in self.nodes]})


# ---------------------------------
# Edit distance
# ---------------------------------
def levenshtein(left: str, right: str) -> int:
    if left == right:
        return 0
    if not left:
        return len(right)
    if not right:
        return len(left)

    prev = list(range(len(right) + 1))
    for i, c1 in enumerate(left, start=1):
        curr = [i]
        for j, c2 in enumerate(right, start=1):
            cost = 0 if c1 == c2 else 1
            curr.append(min(curr[j - 1] + 1, prev[j] + 1, prev[j - 1] + cost))
        prev = curr
    return prev[-1]


def distance_matrix(handles: Sequence[str], progress: bool = False) -> np.ndarray:
    """Symmetric all-pairs Levenshtein matrix with a zero diagonal."""
    n = len(handles)
    if n > LARGE_HANDLE_SET:
        logger.warning(
            f"Computing {n * (n - 1) // 2:,} pairwise distances for {n:,} handles; "
            f"this grows quadratically, consider a stricter creation-date filter"
        )
    dist = np.zeros((n, n), dtype=np.int64)
    for i in tqdm(range(n), desc="Handle distances", disable=not progress):
        for j in range(i + 1, n):
            d = levenshtein(handles[i], handles[j])
            dist[i, j] = d
            dist[j, i] = d
    return dist


# ---------------------------------
# Nearest-neighbour edges
# ---------------------------------
def nearest_edges(index: int, handles: Sequence[str], dist: np.ndarray) -> List[DistanceEdge]:
    """Edges from handles[index] to every other handle at its minimum distance."""
    if len(handles) < 2:
        return []
    row = dist[index]
    others = [j for j in range(len(handles)) if j != index]
    best = min(int(row[j]) for j in others)
    return [DistanceEdge(handles[index], handles[j], best) for j in others if int(row[j]) <= best]


def deduplicate_edges(edges: Iterable[DistanceEdge]) -> List[DistanceEdge]:
    """Keep the first edge of each unordered handle pair."""
    seen = set()
    out = []
    for e in edges:
        key = frozenset((e.source, e.target))
        if key in seen:
            continue
        seen.add(key)
        out.append(e)
    return out


def build(handles: Iterable[str], deduplicate: bool = False, progress: bool = False) -> NearestNeighborGraph:
    nodes = list(dict.fromkeys(handles))
    if not nodes:
        return NearestNeighborGraph()

    logger.info(f"Building nearest-neighbour graph over {len(nodes):,} handles")
    dist = distance_matrix(nodes, progress=progress)
    edges = [e for i in range(len(nodes)) for e in nearest_edges(i, nodes, dist)]
    if deduplicate:
        edges = deduplicate_edges(edges)
    logger.info(f"  - {len(edges):,} nearest-neighbour edges")
    return NearestNeighborGraph(nodes=nodes, edges=edges)


def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Print the nearest-neighbour edges for a list of handles")
    p.add_argument("handles", nargs="+")
    p.add_argument("--dedupe-edges", action="store_true")
    args = p.parse_args(argv)

    graph = build(args.handles, deduplicate=args.dedupe_edges)
    print(graph.edge_table().to_string(index=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
