#!/usr/bin/env python3
"""
Account creation-date aggregation for tweets that share a message.

- Loads a (compressed) tweet table with at least `screen_name` and
  `account_created_at`, or pulls the same shape from the recent-search API.
- Reduces tweets to one row per (account, creation date).
- Counts accounts per creation date and keeps the dates where an unusual
  number of accounts were created on the same day.

Run:
  python scripts/account_dates.py tweets.csv.gz --min-count 4
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import FrozenSet, List, Optional, Sequence

import pandas as pd

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("screen_name", "account_created_at")
DEFAULT_MIN_COUNT = 4
DEFAULT_QUANTILES = (0.0, 0.25, 0.5, 0.75, 0.9, 0.95, 0.99, 1.0)


class InputDataError(ValueError):
    """Tweet input is missing, unreadable or lacks required columns."""


@dataclass(frozen=True)
class CreationDateGroup:
    creation_date: date
    screen_names: FrozenSet[str]


# ---------------------------------
# Data sources
# ---------------------------------
def _require_columns(df: pd.DataFrame, columns: Sequence[str], source: str) -> None:
    missing = sorted(set(columns) - set(df.columns))
    if missing:
        raise InputDataError(
            f"{source} missing required columns: {missing}. Available columns: {df.columns.tolist()}"
        )


def load_tweets(path: Path) -> pd.DataFrame:
    """Load a delimited tweet file; compression is inferred from the extension."""
    path = Path(path)
    if not path.exists():
        raise InputDataError(f"Input file not found: {path}")

    logger.info(f"Loading tweets from {path}")
    try:
        df = pd.read_csv(path, compression="infer", low_memory=False)
    except pd.errors.EmptyDataError:
        raise InputDataError(f"Input file is empty: {path}") from None
    except (pd.errors.ParserError, UnicodeDecodeError, OSError) as e:
        raise InputDataError(f"Unable to read {path}: {e}") from e

    _require_columns(df, REQUIRED_COLUMNS, str(path))
    df = _clean_tweets(df)
    logger.info(f"Loaded {len(df):,} tweets from {df['screen_name'].nunique():,} accounts")
    return df


def _clean_tweets(df):
    df = df.copy()
    df["screen_name"] = df["screen_name"].astype("string").str.strip()
    df["account_created_at"] = _parse_timestamps(df["account_created_at"])

    valid = df["screen_name"].notna() & (df["screen_name"] != "") & df["account_created_at"].notna()
    dropped = int((~valid).sum())
    if dropped:
        logger.warning(f"Dropping {dropped:,} tweets with missing screen_name or unparseable account_created_at")
    df = df[valid].reset_index(drop=True)
    df["screen_name"] = df["screen_name"].astype(str)
    return df


def _parse_timestamps(values):
    return pd.to_datetime(values, utc=True, errors="coerce", format="mixed")


def search_tweets(query: str, n: int = 100, bearer_token: Optional[str] = None) -> pd.DataFrame:
    """Recent-search live source returning the same columns as `load_tweets`.

    Disabled unless a query is given; needs the `live` extra (tweepy).
    """
    try:
        import tweepy
    except ImportError as exc:
        raise InputDataError(
            "Live search requires tweepy. Install with: pip install 'coordinated-accounts[live]'"
        ) from exc

    if not bearer_token:
        raise InputDataError("Live search needs a bearer token (TWITTER_BEARER_TOKEN)")

    rows = []
    try:
        client = tweepy.Client(bearer_token=bearer_token, wait_on_rate_limit=True)
        paginator = tweepy.Paginator(
            client.search_recent_tweets,
            query=query,
            max_results=max(10, min(n, 100)),
            expansions=["author_id"],
            tweet_fields=["created_at", "author_id"],
            user_fields=["created_at", "username"],
        )
        for response in paginator:
            users = {u.id: u for u in (response.includes or {}).get("users", [])}
            for tweet in response.data or []:
                author = users.get(tweet.author_id)
                if author is None:
                    continue
                rows.append(
                    {
                        "screen_name": author.username,
                        "account_created_at": author.created_at,
                        "text": tweet.text,
                    }
                )
                if len(rows) >= n:
                    break
            if len(rows) >= n:
                break
    except tweepy.TweepyException as e:
        raise InputDataError(f"Live search failed for {query!r}: {e}") from e

    logger.info(f"Fetched {len(rows):,} tweets for query {query!r}")
    df = pd.DataFrame(rows, columns=["screen_name", "account_created_at", "text"])
    return _clean_tweets(df)


# ---------------------------------
# Table transforms
# ---------------------------------
def filter_by_text(tweets: pd.DataFrame, pattern: str) -> pd.DataFrame:
    """Keep tweets whose text contains `pattern` (literal, case-insensitive)."""
    _require_columns(tweets, ["text"], "tweet table")
    mask = tweets["text"].astype(str).str.contains(pattern, case=False, regex=False, na=False)
    logger.info(f"{int(mask.sum()):,} of {len(tweets):,} tweets contain {pattern!r}")
    return tweets[mask].reset_index(drop=True)


def aggregate(tweets: pd.DataFrame) -> pd.DataFrame:
    """One row per unique (screen_name, creation_date); date is the UTC day."""
    _require_columns(tweets, REQUIRED_COLUMNS, "tweet table")
    created = _parse_timestamps(tweets["account_created_at"])
    pairs = pd.DataFrame(
        {
            "screen_name": tweets["screen_name"].astype(str).to_numpy(),
            "creation_date": created.dt.floor("D").dt.date.to_numpy(),
        }
    )
    pairs = pairs[pd.notna(pairs["creation_date"])]
    pairs = pairs.drop_duplicates().sort_values(["creation_date", "screen_name"])
    return pairs.reset_index(drop=True)


def count_by_date(pairs: pd.DataFrame) -> pd.DataFrame:
    counts = pairs.groupby("creation_date").size().reset_index(name="n")
    counts = counts.sort_values(["n", "creation_date"], ascending=[False, True])
    return counts.reset_index(drop=True)


def filter_by_min_count(
    pairs: pd.DataFrame, counts: pd.DataFrame, threshold: int = DEFAULT_MIN_COUNT
) -> pd.DataFrame:
    """Pairs whose creation date was shared by strictly more than `threshold` accounts."""
    keep = set(counts.loc[counts["n"] > threshold, "creation_date"])
    return pairs[pairs["creation_date"].isin(keep)].reset_index(drop=True)


def filter_by_date_range(
    pairs: pd.DataFrame, start: Optional[date] = None, end: Optional[date] = None
) -> pd.DataFrame:
    mask = pd.Series(True, index=pairs.index)
    if start is not None:
        mask &= pairs["creation_date"].map(lambda d: d >= start).astype(bool)
    if end is not None:
        mask &= pairs["creation_date"].map(lambda d: d <= end).astype(bool)
    return pairs[mask].reset_index(drop=True)


def count_quantiles(counts: pd.DataFrame, probs: Sequence[float] = DEFAULT_QUANTILES) -> pd.DataFrame:
    if counts.empty:
        return pd.DataFrame({"quantile": pd.Series(dtype=float), "n": pd.Series(dtype=float)})
    values = counts["n"].astype(float).quantile(list(probs))
    return pd.DataFrame({"quantile": list(probs), "n": values.to_numpy()})


def creation_date_groups(pairs: pd.DataFrame) -> List[CreationDateGroup]:
    groups = []
    for creation_date, frame in pairs.groupby("creation_date", sort=True):
        groups.append(CreationDateGroup(creation_date, frozenset(frame["screen_name"])))
    return groups


def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Count accounts per creation date in a tweet file")
    p.add_argument("input", type=Path, help="Tweet file (csv, csv.gz, ...)")
    p.add_argument("--min-count", type=int, default=DEFAULT_MIN_COUNT)
    args = p.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    try:
        tweets = load_tweets(args.input)
    except InputDataError as e:
        logger.error(str(e))
        return 1

    pairs = aggregate(tweets)
    counts = count_by_date(pairs)
    print(counts.head(20).to_string(index=False))
    print()
    print(count_quantiles(counts).to_string(index=False))
    kept = filter_by_min_count(pairs, counts, args.min_count)
    print(f"\n{kept['screen_name'].nunique()} accounts on dates with more than {args.min_count} creations")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
