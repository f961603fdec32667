"""類似ペアストアの健全性チェックを行い、TSVレポートを出力する。"""

from __future__ import annotations

import argparse
import csv
import sqlite3
from collections.abc import Iterable, Sequence
from pathlib import Path

from game_title_similarity.core.config import DEFAULT_CONFIG


def _write_tsv(path: Path, header: Sequence[str], rows: Iterable[Sequence[object]]) -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, delimiter="\t")
        writer.writerow(list(header))
        count = 0
        for r in rows:
            writer.writerow(["" if v is None else v for v in r])
            count += 1
    return count


def _fetchall(con: sqlite3.Connection, sql: str, params: Sequence[object] = ()) -> list[sqlite3.Row]:
    cur = con.execute(sql, params)
    return cur.fetchall()


_PAIR_COLUMNS = ["pair_id", "owner_id", "title_a_id", "title_b_id", "similarity_score", "match_type", "dismissed"]


def _pair_rows(rows: Sequence[sqlite3.Row]) -> list[tuple[object, ...]]:
    return [tuple(r[c] for c in _PAIR_COLUMNS) for r in rows]


def run_pair_health_checks(
    db_path: Path,
    out_dir: Path,
    min_score: int = DEFAULT_CONFIG.min_similarity_score,
) -> Path:
    db_path = Path(db_path)
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    con = sqlite3.connect(db_path)
    try:
        con.row_factory = sqlite3.Row

        # Basic info
        quick_check_rows = _fetchall(con, "PRAGMA quick_check;")
        quick_check = "|".join([r[0] for r in quick_check_rows]) if quick_check_rows else ""

        totals = {
            "titles": _fetchall(con, "SELECT COUNT(*) AS n FROM GAME_TITLES;")[0]["n"],
            "pairs": _fetchall(con, "SELECT COUNT(*) AS n FROM SIMILAR_TITLE_PAIRS;")[0]["n"],
            "dismissed": _fetchall(con, "SELECT COUNT(*) AS n FROM SIMILAR_TITLE_PAIRS WHERE dismissed = 1;")[0][
                "n"
            ],
        }

        fk_rows = _fetchall(con, "PRAGMA foreign_key_check;")
        fk_count = _write_tsv(
            out_dir / "foreign_key_check.tsv",
            ["table", "rowid", "parent", "fkid"],
            [(r["table"], r["rowid"], r["parent"], r["fkid"]) for r in fk_rows],
        )

        # スキーマの CHECK を経由せずに入った行（古いDBや手作業の修正）を拾う
        non_canonical = _fetchall(
            con,
            "SELECT * FROM SIMILAR_TITLE_PAIRS WHERE title_a_id > title_b_id ORDER BY owner_id, pair_id",
        )
        non_canonical_count = _write_tsv(
            out_dir / "non_canonical_pairs.tsv", _PAIR_COLUMNS, _pair_rows(non_canonical)
        )

        self_pairs = _fetchall(
            con,
            "SELECT * FROM SIMILAR_TITLE_PAIRS WHERE title_a_id = title_b_id ORDER BY owner_id, pair_id",
        )
        self_pair_count = _write_tsv(out_dir / "self_pairs.tsv", _PAIR_COLUMNS, _pair_rows(self_pairs))

        below_threshold = _fetchall(
            con,
            "SELECT * FROM SIMILAR_TITLE_PAIRS WHERE similarity_score < ? OR similarity_score <= 0 "
            "ORDER BY owner_id, similarity_score, pair_id",
            (min_score,),
        )
        below_threshold_count = _write_tsv(
            out_dir / "below_threshold_pairs.tsv", _PAIR_COLUMNS, _pair_rows(below_threshold)
        )

        owner_mismatch = _fetchall(
            con,
            """
            SELECT
                p.pair_id,
                p.owner_id,
                p.title_a_id,
                ta.owner_id AS title_a_owner_id,
                p.title_b_id,
                tb.owner_id AS title_b_owner_id
            FROM SIMILAR_TITLE_PAIRS p
            LEFT JOIN GAME_TITLES ta ON ta.title_id = p.title_a_id
            LEFT JOIN GAME_TITLES tb ON tb.title_id = p.title_b_id
            WHERE ta.title_id IS NULL
               OR tb.title_id IS NULL
               OR ta.owner_id != p.owner_id
               OR tb.owner_id != p.owner_id
            ORDER BY p.owner_id, p.pair_id
            """,
        )
        owner_mismatch_count = _write_tsv(
            out_dir / "owner_mismatch_pairs.tsv",
            ["pair_id", "owner_id", "title_a_id", "title_a_owner_id", "title_b_id", "title_b_owner_id"],
            [
                (
                    r["pair_id"],
                    r["owner_id"],
                    r["title_a_id"],
                    r["title_a_owner_id"],
                    r["title_b_id"],
                    r["title_b_owner_id"],
                )
                for r in owner_mismatch
            ],
        )

        # 順序違いで同じ2タイトルを指すペア（UNIQUE制約では検出できない）
        duplicate_pairs = _fetchall(
            con,
            """
            SELECT
                owner_id,
                MIN(title_a_id, title_b_id) AS low_id,
                MAX(title_a_id, title_b_id) AS high_id,
                COUNT(*) AS rows
            FROM SIMILAR_TITLE_PAIRS
            GROUP BY owner_id, low_id, high_id
            HAVING COUNT(*) > 1
            ORDER BY owner_id, low_id, high_id
            """,
        )
        duplicate_count = _write_tsv(
            out_dir / "duplicate_pairs.tsv",
            ["owner_id", "low_id", "high_id", "rows"],
            [(r["owner_id"], r["low_id"], r["high_id"], r["rows"]) for r in duplicate_pairs],
        )

        running = _fetchall(
            con,
            "SELECT run_id, owner_id, started_at FROM ANALYSIS_RUNS WHERE status = 'running' "
            "ORDER BY owner_id, run_id",
        )
        running_count = _write_tsv(
            out_dir / "running_analysis_runs.tsv",
            ["run_id", "owner_id", "started_at"],
            [(r["run_id"], r["owner_id"], r["started_at"]) for r in running],
        )

        summary_out = out_dir / "pair_health_summary.tsv"
        _write_tsv(
            summary_out,
            ["metric", "value"],
            [
                ("db_path", str(db_path)),
                ("quick_check", quick_check),
                ("min_score", min_score),
                ("total_titles", totals["titles"]),
                ("total_pairs", totals["pairs"]),
                ("dismissed_pairs", totals["dismissed"]),
                ("foreign_key_violations", fk_count),
                ("non_canonical_pairs", non_canonical_count),
                ("self_pairs", self_pair_count),
                ("below_threshold_pairs", below_threshold_count),
                ("owner_mismatch_pairs", owner_mismatch_count),
                ("duplicate_pairs", duplicate_count),
                ("running_analysis_runs", running_count),
            ],
        )

        return summary_out
    finally:
        con.close()


def main() -> None:
    p = argparse.ArgumentParser(description="Check similar title pair store health and write TSV reports.")
    p.add_argument("--db", type=Path, required=True, help="Path to SQLite DB file")
    p.add_argument("--out-dir", type=Path, required=True, help="Output directory for TSV reports")
    p.add_argument(
        "--min-score",
        type=int,
        default=DEFAULT_CONFIG.min_similarity_score,
        help="Pairs scoring below this are reported",
    )
    args = p.parse_args()

    summary = run_pair_health_checks(args.db, args.out_dir, min_score=args.min_score)
    print(f"Wrote health reports: {summary.parent}")


if __name__ == "__main__":
    main()
