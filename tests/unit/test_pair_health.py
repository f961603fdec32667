"""report_pair_health のユニットテスト."""

import csv
import sqlite3
from pathlib import Path

from game_title_similarity.core import pair_store
from game_title_similarity.core.database import connect, create_database
from game_title_similarity.core.reconcile import reconcile
from game_title_similarity.tools.report_pair_health import run_pair_health_checks

OWNER = 1


def _read_summary(path: Path) -> dict[str, str]:
    with open(path, encoding="utf-8", newline="") as f:
        reader = csv.reader(f, delimiter="\t")
        next(reader)
        return {row[0]: row[1] for row in reader}


def _build_db(tmp_path: Path) -> Path:
    db_path = tmp_path / "titles.db"
    create_database(db_path)
    conn = connect(db_path)
    try:
        pair_store.upsert_titles(
            conn,
            OWNER,
            [("t1", "Portal"), ("t2", "Portal™"), ("t3", "Minecraft"), ("t4", "Lego Minecraft")],
        )
        pair_store.upsert_titles(conn, 2, [("u1", "Doom")])
        result = reconcile(OWNER, pair_store.load_titles(conn, OWNER), [])
        pair_store.apply_reconcile_result(conn, result)
    finally:
        conn.close()
    return db_path


class TestRunPairHealthChecks:
    """run_pair_health_checks関数のテスト."""

    def test_healthy_store(self, tmp_path: Path) -> None:
        db_path = _build_db(tmp_path)

        summary_path = run_pair_health_checks(db_path, tmp_path / "health")
        summary = _read_summary(summary_path)

        assert summary_path.name == "pair_health_summary.tsv"
        assert summary["quick_check"] == "ok"
        assert summary["total_titles"] == "5"
        assert summary["total_pairs"] == "2"
        for metric in (
            "foreign_key_violations",
            "non_canonical_pairs",
            "self_pairs",
            "below_threshold_pairs",
            "owner_mismatch_pairs",
            "duplicate_pairs",
            "running_analysis_runs",
        ):
            assert summary[metric] == "0", metric

    def test_detects_violations(self, tmp_path: Path) -> None:
        """スキーマ制約を通らない行（古いDBなど）を検出する."""
        db_path = _build_db(tmp_path)
        conn = sqlite3.connect(db_path)
        try:
            conn.execute("PRAGMA ignore_check_constraints = ON;")
            conn.executemany(
                "INSERT INTO SIMILAR_TITLE_PAIRS "
                "(pair_id, title_a_id, title_b_id, owner_id, similarity_score, match_type) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                [
                    ("rev", "t2", "t1", OWNER, 100, "exact"),
                    ("self", "t3", "t3", OWNER, 100, "exact"),
                    ("low", "t1", "t4", OWNER, 20, "fuzzy"),
                    ("foreign", "t1", "u1", OWNER, 60, "fuzzy"),
                ],
            )
            conn.execute("INSERT INTO ANALYSIS_RUNS (owner_id, status) VALUES (?, 'running')", (OWNER,))
            conn.commit()
        finally:
            conn.close()

        summary = _read_summary(run_pair_health_checks(db_path, tmp_path / "health", min_score=50))

        assert summary["non_canonical_pairs"] == "1"
        assert summary["self_pairs"] == "1"
        assert summary["below_threshold_pairs"] == "1"
        assert summary["owner_mismatch_pairs"] == "1"
        # t1-t2 が正規順と逆順で2件
        assert summary["duplicate_pairs"] == "1"
        assert summary["running_analysis_runs"] == "1"

        with open(tmp_path / "health" / "owner_mismatch_pairs.tsv", encoding="utf-8", newline="") as f:
            rows = list(csv.reader(f, delimiter="\t"))
        assert rows[1][:3] == ["foreign", "1", "t1"]
        assert rows[1][5] == "2"
