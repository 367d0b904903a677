import logging
import sys
from types import SimpleNamespace

import pandas as pd

from coordinated_accounts import main


def _write_tweets(path) -> None:
    rows = [("alice", "2020-03-14 10:00:00"), ("bob", "2019-11-02 08:30:00")]
    rows += [(f"maria_k198{i}", f"2021-08-02 0{i}:12:00") for i in range(5)]
    rows += [(f"jon_smith0{i}", f"2021-08-02 1{i}:40:00") for i in range(3)]
    rows += [("maria_k1980", "2021-08-02 00:12:00")]
    df = pd.DataFrame(rows, columns=["screen_name", "account_created_at"])
    df["text"] = "share this before it gets deleted"
    df.to_csv(path, index=False)


def test_end_to_end_tables(tmp_path) -> None:
    data = tmp_path / "tweets.csv.gz"
    out = tmp_path / "out"
    _write_tweets(data)

    code = main([
        str(data),
        "--output-dir", str(out),
        "--algorithm", "modularity_greedy",
        "--algorithm", "edge_betweenness",
        "--no-render",
    ])

    assert code == 0
    counts = pd.read_csv(out / "date_counts.csv")
    assert counts.iloc[0].to_dict() == {"creation_date": "2021-08-02", "n": 8}

    suspicious = pd.read_csv(out / "suspicious_accounts.csv")
    assert set(suspicious["screen_name"]) == {f"maria_k198{i}" for i in range(5)} | {f"jon_smith0{i}" for i in range(3)}

    edges = pd.read_csv(out / "nearest_neighbor_edges.csv")
    assert set(edges["from"]) == set(suspicious["screen_name"])
    assert "alice" not in set(edges["to"])

    for algorithm in ("modularity_greedy", "edge_betweenness"):
        clusters = pd.read_csv(out / f"clusters_{algorithm}.csv")
        assert set(clusters["screen_name"]) == set(suspicious["screen_name"])
        groups = dict(zip(clusters["screen_name"], clusters["group"]))
        assert groups["maria_k1980"] != groups["jon_smith00"]

    assert not list(out.glob("*.html"))


def test_end_to_end_renders(tmp_path) -> None:
    data = tmp_path / "tweets.csv"
    out = tmp_path / "out"
    _write_tweets(data)

    assert main([str(data), "--output-dir", str(out), "--dedupe-edges"]) == 0

    assert (out / "creation_dates.html").exists()
    assert (out / "handle_graph_modularity_greedy.html").exists()
    assert (out / "handle_graph_modularity_greedy.png").exists()
    assert (out / "date_counts.png").exists()

    edges = pd.read_csv(out / "nearest_neighbor_edges.csv")
    pairs = [frozenset(p) for p in zip(edges["from"], edges["to"])]
    assert len(pairs) == len(set(pairs))


def test_all_handles_and_text_filter(tmp_path) -> None:
    data = tmp_path / "tweets.csv"
    out = tmp_path / "out"
    _write_tweets(data)

    code = main([str(data), "--output-dir", str(out), "--all-handles", "--no-render",
                 "--text-pattern", "BEFORE IT GETS"])

    assert code == 0
    clusters = pd.read_csv(out / "clusters_modularity_greedy.csv")
    assert {"alice", "bob"} <= set(clusters["screen_name"])


def test_empty_input_produces_empty_tables(tmp_path) -> None:
    data = tmp_path / "tweets.csv.gz"
    out = tmp_path / "out"
    pd.DataFrame(columns=["screen_name", "account_created_at"]).to_csv(data, index=False)

    assert main([str(data), "--output-dir", str(out)]) == 0

    assert pd.read_csv(out / "date_counts.csv").empty
    assert pd.read_csv(out / "nearest_neighbor_edges.csv").empty
    assert pd.read_csv(out / "clusters_modularity_greedy.csv").empty
    assert not list(out.glob("*.html"))
    assert not list(out.glob("*.png"))


def test_input_errors_abort_before_output(tmp_path) -> None:
    out = tmp_path / "out"

    assert main([str(tmp_path / "missing.csv.gz"), "--output-dir", str(out)]) == 1

    bad = tmp_path / "bad.csv"
    pd.DataFrame({"user": ["a"]}).to_csv(bad, index=False)
    assert main([str(bad), "--output-dir", str(out)]) == 1

    assert main(["--output-dir", str(out)]) == 1
    assert not out.exists()


def test_live_search_failure_exits_cleanly(tmp_path, monkeypatch) -> None:
    class RateLimited(Exception):
        pass

    def paginator(method, **kwargs):
        raise RateLimited("429 Too Many Requests")

    fake = SimpleNamespace(
        TweepyException=RateLimited,
        Client=lambda **kwargs: SimpleNamespace(search_recent_tweets=None),
        Paginator=paginator,
    )
    monkeypatch.setitem(sys.modules, "tweepy", fake)
    monkeypatch.setenv("TWITTER_BEARER_TOKEN", "token")
    out = tmp_path / "out"

    assert main(["--query", "share this", "--output-dir", str(out)]) == 1
    assert not out.exists()

    monkeypatch.delenv("TWITTER_BEARER_TOKEN")
    assert main(["--query", "share this", "--output-dir", str(out)]) == 1


def test_log_counts_unique_accounts(tmp_path, caplog) -> None:
    data = tmp_path / "tweets.csv"
    _write_tweets(data)
    tweets = pd.read_csv(data)
    tweets.loc[len(tweets)] = ["alice", "2018-01-01 12:00:00", "share this before it gets deleted"]
    tweets.to_csv(data, index=False)
    caplog.set_level(logging.INFO)

    assert main([str(data), "--output-dir", str(tmp_path / "out"), "--no-render"]) == 0

    assert "10 accounts over 4 creation dates; 8 on dates with more than 4 creations" in caplog.text
