#!/usr/bin/env python3
"""
coordinated_accounts.py - look for batches of accounts behind a shared message.

1. Load tweets that carry a common message (file, or live recent search)
2. Reduce to one row per account and its creation date
3. Count accounts per creation date and keep the crowded dates
4. Link each suspicious handle to its nearest handle(s) by edit distance
5. Cluster the handle graph and write tables + interactive figures

Run:
  python scripts/coordinated_accounts.py data/tweets.csv.gz --min-count 4 \
    --algorithm modularity_greedy --algorithm edge_betweenness
"""

from __future__ import annotations

import argparse
import logging
import os
from datetime import date
from pathlib import Path
from typing import List, Optional

import pandas as pd

import account_dates as ad
import coordination_network_viz as viz
import graph_clusters as gc
import handle_similarity as hs

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = Path("coordination_output")


def _iso_date(value):
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Cluster accounts by shared creation dates and similar handles"
    )
    p.add_argument("input", type=Path, nargs="?", default=None, help="Tweet file (csv, csv.gz, ...)")
    p.add_argument("--query", type=str, default=None, help="Use live recent search instead of a file")
    p.add_argument("--max-results", type=int, default=100)
    p.add_argument("--text-pattern", type=str, default=None, help="Keep only tweets containing this text")
    p.add_argument("--min-count", type=int, default=ad.DEFAULT_MIN_COUNT,
                   help="Keep creation dates shared by more than this many accounts")
    p.add_argument("--start-date", type=_iso_date, default=None)
    p.add_argument("--end-date", type=_iso_date, default=None)
    p.add_argument("--algorithm", choices=gc.ALGORITHMS, action="append", default=None,
                   help="Clustering algorithm (repeatable, default modularity_greedy)")
    p.add_argument("--dedupe-edges", action="store_true",
                   help="Collapse mirrored nearest-neighbour edges")
    p.add_argument("--all-handles", action="store_true",
                   help="Compare every account, not just those on crowded dates")
    p.add_argument("--output-dir", type=Path, default=DEFAULT_OUTPUT_DIR)
    p.add_argument("--no-render", action="store_true", help="Skip HTML/PNG output")
    p.add_argument("--log-level", type=str, default="INFO",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return p


def load_input(args: argparse.Namespace) -> pd.DataFrame:
    if args.query:
        return ad.search_tweets(args.query, args.max_results, os.environ.get("TWITTER_BEARER_TOKEN"))
    if args.input is None:
        raise ad.InputDataError("No input: pass a tweet file or --query")
    return ad.load_tweets(args.input)


def run(args: argparse.Namespace) -> int:
    tweets = load_input(args)
    if args.text_pattern:
        tweets = ad.filter_by_text(tweets, args.text_pattern)

    out_dir = args.output_dir
    out_dir.mkdir(parents=True, exist_ok=True)

    # Creation dates
    logger.info("[1/4] Aggregating account creation dates...")
    pairs = ad.aggregate(tweets)
    pairs = ad.filter_by_date_range(pairs, args.start_date, args.end_date)
    counts = ad.count_by_date(pairs)
    quantiles = ad.count_quantiles(counts)
    suspicious = ad.filter_by_min_count(pairs, counts, args.min_count)
    logger.info(
        f"  - {pairs['screen_name'].nunique():,} accounts over {len(counts):,} creation dates; "
        f"{suspicious['screen_name'].nunique():,} on dates with more than {args.min_count} creations"
    )

    counts.to_csv(out_dir / "date_counts.csv", index=False)
    quantiles.to_csv(out_dir / "date_count_quantiles.csv", index=False)
    suspicious.to_csv(out_dir / "suspicious_accounts.csv", index=False)

    print("\nAccounts per creation date:")
    print(counts.head(20).to_string(index=False) if not counts.empty else "  (none)")
    print("\nQuantiles of accounts per creation date:")
    print(quantiles.to_string(index=False) if not quantiles.empty else "  (none)")

    # Handle similarity
    logger.info("[2/4] Building nearest-neighbour handle graph...")
    handle_source = pairs if args.all_handles else suspicious
    graph = hs.build(handle_source["screen_name"], deduplicate=args.dedupe_edges, progress=True)
    graph.edge_table().to_csv(out_dir / "nearest_neighbor_edges.csv", index=False)
    if not graph.edges:
        logger.warning("No nearest-neighbour edges; cluster tables will hold singletons only")

    # Clusters
    logger.info("[3/4] Clustering handles...")
    assignments = {}
    for algorithm in args.algorithm or [gc.MODULARITY_GREEDY]:
        assignment = gc.cluster(graph, algorithm)
        assignments[algorithm] = assignment
        gc.assignment_table(assignment).to_csv(out_dir / f"clusters_{algorithm}.csv", index=False)
        sizes = gc.group_sizes(assignment)
        if not sizes.empty:
            print(f"\nLargest groups ({algorithm}):")
            print(sizes.head(10).to_string(index=False))

    # Figures
    if args.no_render:
        logger.info("[4/4] Rendering disabled")
    elif suspicious.empty and not graph.nodes:
        logger.info("[4/4] Nothing to render")
    else:
        logger.info("[4/4] Rendering figures...")
        viz.plot_date_counts(counts, out_dir / "date_counts.png")
        date_nodes, date_edges = viz.date_graph_tables(suspicious)
        viz.render_interactive(date_nodes, date_edges, out_dir / "creation_dates.html",
                               title="Accounts on crowded creation dates")
        for algorithm, assignment in assignments.items():
            nodes, edges = viz.neighbor_graph_tables(graph, assignment)
            viz.render_interactive(nodes, edges, out_dir / f"handle_graph_{algorithm}.html",
                                   title=f"Nearest-neighbour handles ({algorithm})")
            viz.plot_network(nodes, edges, out_dir / f"handle_graph_{algorithm}.png",
                             title=f"Nearest-neighbour handles ({algorithm})")

    print(f"\nOutput written to {out_dir}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    try:
        return run(args)
    except ad.InputDataError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
