#!/usr/bin/env python3
"""
Community detection over handle graphs.

Thin adapter: sanitizes a nearest-neighbour graph into a simple undirected
networkx graph and hands it to an off-the-shelf algorithm. Every node of the
input graph gets exactly one group id, including isolated nodes.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Union

import community as community_louvain  # python-louvain package
import networkx as nx
import pandas as pd
from networkx.algorithms.community import girvan_newman, greedy_modularity_communities, modularity

from handle_similarity import NearestNeighborGraph

logger = logging.getLogger(__name__)

MODULARITY_GREEDY = "modularity_greedy"
EDGE_BETWEENNESS = "edge_betweenness"
LOUVAIN = "louvain"
ALGORITHMS = (MODULARITY_GREEDY, EDGE_BETWEENNESS, LOUVAIN)

LOUVAIN_SEED = 42


def to_simple_graph(graph: Union[NearestNeighborGraph, nx.Graph]) -> nx.Graph:
    """Undirected, no self-loops, one edge per pair (smallest distance kept)."""
    G = nx.Graph()
    if isinstance(graph, NearestNeighborGraph):
        G.add_nodes_from(graph.nodes)
        triples = [(e.source, e.target, e.distance) for e in graph.edges]
    else:
        G.add_nodes_from(graph.nodes())
        triples = [(u, v, d.get("distance", d.get("weight", 1))) for u, v, d in graph.edges(data=True)]

    for u, v, d in triples:
        if u == v:
            continue
        if G.has_edge(u, v):
            G[u][v]["distance"] = min(G[u][v]["distance"], d)
        else:
            G.add_edge(u, v, distance=d)
    return G


def _number_groups(communities):
    ranked = sorted((sorted(c, key=str) for c in communities), key=lambda c: (-len(c), str(c[0])))
    return {node: gid for gid, members in enumerate(ranked, start=1) for node in members}


def _edge_betweenness_partition(G):
    """Girvan-Newman dendrogram cut at the level with the highest modularity."""
    best = [set(c) for c in nx.connected_components(G)]
    best_q = modularity(G, best)
    for level in girvan_newman(G):
        q = modularity(G, level)
        if q > best_q:
            best, best_q = [set(c) for c in level], q
    logger.info(f"  - Edge-betweenness cut with modularity {best_q:.4f}")
    return best


def cluster(graph: Union[NearestNeighborGraph, nx.Graph], algorithm: str = MODULARITY_GREEDY) -> Dict[str, int]:
    """Map every node to a group id (1-based; ordering carries no meaning)."""
    if algorithm not in ALGORITHMS:
        raise ValueError(f"Unknown clustering algorithm {algorithm!r}; expected one of {ALGORITHMS}")

    G = to_simple_graph(graph)
    if G.number_of_nodes() == 0:
        return {}
    if G.number_of_edges() == 0:
        logger.warning("Graph has no edges; every node is its own group")
        return _number_groups([n] for n in G.nodes())

    logger.info(f"Clustering {G.number_of_nodes():,} nodes / {G.number_of_edges():,} edges with {algorithm}")
    if algorithm == MODULARITY_GREEDY:
        communities = greedy_modularity_communities(G)
    elif algorithm == EDGE_BETWEENNESS:
        communities = _edge_betweenness_partition(G)
    else:
        partition = community_louvain.best_partition(G, random_state=LOUVAIN_SEED)
        grouped = defaultdict(list)
        for node, comm in partition.items():
            grouped[comm].append(node)
        communities = grouped.values()

    assignment = _number_groups(communities)
    logger.info(f"  - Detected {len(set(assignment.values()))} groups")
    return assignment


def assignment_table(assignment: Dict[str, int]) -> pd.DataFrame:
    df = pd.DataFrame(
        {"screen_name": list(assignment.keys()), "group": pd.Series(list(assignment.values()), dtype="int64")}
    )
    return df.sort_values(["group", "screen_name"]).reset_index(drop=True)


def group_sizes(assignment: Dict[str, int]) -> pd.DataFrame:
    sizes = assignment_table(assignment).groupby("group").size().reset_index(name="size")
    return sizes.sort_values(["size", "group"], ascending=[False, True]).reset_index(drop=True)
