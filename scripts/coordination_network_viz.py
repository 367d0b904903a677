"""
coordination_network_viz.py - node/edge tables and renderers for the
creation-date graph and the handle-similarity graph.

Tables use the vis.js column names (id/shape/color/label, from/to) so they
can go straight into pyvis; the matplotlib renderers read the same tables.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

from matplotlib.colors import to_hex
import matplotlib.pyplot as plt
import networkx as nx
import pandas as pd
import seaborn as sns
from pyvis.network import Network

from handle_similarity import NearestNeighborGraph

logger = logging.getLogger(__name__)

DATE_NODE_COLOR = "#d62728"
ACCOUNT_NODE_COLOR = "#1f77b4"
EDGE_LENGTH_SCALE = 50
NODE_COLUMNS = ["id", "shape", "color", "label"]


def _group_color(group):
    return to_hex(plt.cm.tab20((group - 1) % 20))


# ---------------------------------
# Tables
# ---------------------------------
def date_graph_tables(pairs: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Dates as boxes linked to the accounts created on them."""
    dates = sorted(pairs["creation_date"].unique())
    accounts = sorted(pairs["screen_name"].unique())

    date_nodes = pd.DataFrame(
        {
            "id": [str(d) for d in dates],
            "shape": "box",
            "color": DATE_NODE_COLOR,
            "label": [str(d) for d in dates],
        },
        columns=NODE_COLUMNS,
    )
    account_nodes = pd.DataFrame(
        {"id": accounts, "shape": "dot", "color": ACCOUNT_NODE_COLOR, "label": accounts},
        columns=NODE_COLUMNS,
    )
    nodes = pd.concat([date_nodes, account_nodes], ignore_index=True)
    edges = pd.DataFrame(
        {"from": pairs["creation_date"].astype(str).to_numpy(), "to": pairs["screen_name"].to_numpy()},
        columns=["from", "to"],
    )
    return nodes, edges


def neighbor_graph_tables(
    graph: NearestNeighborGraph, assignment: Optional[Dict[str, int]] = None
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    assignment = assignment or {}
    groups = [assignment.get(n, 0) for n in graph.nodes]
    nodes = pd.DataFrame(
        {
            "id": graph.nodes,
            "shape": "dot",
            "color": [_group_color(g) if g else ACCOUNT_NODE_COLOR for g in groups],
            "label": graph.nodes,
            "group": pd.Series(groups, dtype="int64"),
        },
        columns=NODE_COLUMNS + ["group"],
    )
    edge_table = graph.edge_table()
    edges = pd.DataFrame(
        {
            "from": edge_table["from"],
            "to": edge_table["to"],
            "weight": edge_table["distance"],
            "length": edge_table["distance"] * EDGE_LENGTH_SCALE,
        },
        columns=["from", "to", "weight", "length"],
    )
    return nodes, edges


# ---------------------------------
# Renderers
# ---------------------------------
def render_interactive(nodes: pd.DataFrame, edges: pd.DataFrame, out_html: Path, title: str = "") -> Optional[Path]:
    """Write a pyvis page; selecting a node highlights its neighbours."""
    if nodes.empty:
        logger.info(f"No nodes to render; skipping {out_html}")
        return None

    net = Network(
        height="800px",
        width="100%",
        heading=title,
        notebook=False,
        neighborhood_highlight=True,
        cdn_resources="remote",
    )
    for row in nodes.itertuples(index=False):
        net.add_node(row.id, label=row.label, shape=row.shape, color=row.color, title=row.label)
    for row in edges.to_dict("records"):
        options = {}
        if "weight" in row:
            options["title"] = f"distance={row['weight']}"
            options["value"] = 1.0 / (1 + float(row["weight"]))
        if "length" in row:
            options["length"] = float(row["length"])
        net.add_edge(row["from"], row["to"], **options)

    out_html = Path(out_html)
    out_html.parent.mkdir(parents=True, exist_ok=True)
    net.write_html(str(out_html))
    logger.info(f"Interactive graph written to {out_html}")
    return out_html


def plot_network(nodes: pd.DataFrame, edges: pd.DataFrame, out_png: Path, title: str = "") -> Optional[Path]:
    if nodes.empty:
        logger.info(f"No nodes to plot; skipping {out_png}")
        return None

    G = nx.Graph()
    G.add_nodes_from(nodes["id"])
    G.add_edges_from(zip(edges["from"], edges["to"]))
    colors = dict(zip(nodes["id"], nodes["color"]))

    plt.figure(figsize=(14, 14))
    pos = nx.spring_layout(G, seed=42)
    nx.draw_networkx_edges(G, pos, alpha=0.3, edge_color='gray')
    nx.draw_networkx_nodes(G, pos, node_size=60, node_color=[colors[n] for n in G.nodes()])
    if G.number_of_nodes() <= 80:
        nx.draw_networkx_labels(G, pos, labels=dict(zip(nodes["id"], nodes["label"])), font_size=8)

    plt.title(f"{title}\n{G.number_of_nodes()} nodes, {G.number_of_edges()} edges", fontsize=14)
    plt.axis('off')
    plt.tight_layout()

    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(out_png, dpi=150)
    plt.close()
    return out_png


def plot_date_counts(counts: pd.DataFrame, out_png: Path, top: int = 30) -> Optional[Path]:
    if counts.empty:
        logger.info(f"No creation dates to plot; skipping {out_png}")
        return None

    sns.set_theme(style="whitegrid")
    data = counts.head(top).copy()
    data["creation_date"] = data["creation_date"].astype(str)

    plt.figure(figsize=(12, 6))
    ax = sns.barplot(data=data, x="creation_date", y="n", color=ACCOUNT_NODE_COLOR)
    ax.set_xlabel("Account creation date")
    ax.set_ylabel("Accounts")
    ax.set_title(f"Top {len(data)} account creation dates")
    plt.xticks(rotation=60, ha="right")
    plt.tight_layout()

    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(out_png, dpi=150)
    plt.close()
    return out_png
