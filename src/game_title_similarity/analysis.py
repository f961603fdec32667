"""類似タイトル解析（オーケストレーター）.

オーナー単位のバッチとして「タイトル読み込み → 全ペアのスコアリング → 保存済みペアとの差分適用」を行い、
表示時には保存済みペアをグループにまとめる。
スコアリングやリコンサイルの判断は core 側に寄せ、ここでは「実行記録」「適用」「レポート」を担う。

同一オーナーの解析は同時に1つだけ（ANALYSIS_RUNS で実行中を記録して排他する）。
"""

from __future__ import annotations

import argparse
import json
import sqlite3
import sys
from pathlib import Path

from loguru import logger

from game_title_similarity.adapters import adapter_for_path
from game_title_similarity.core import pair_store
from game_title_similarity.core.clustering import build_groups
from game_title_similarity.core.config import DEFAULT_CONFIG, SimilarityConfig, resolve_config
from game_title_similarity.core.database import connect, create_database
from game_title_similarity.core.exceptions import AnalysisInProgressError, PairNotFoundError
from game_title_similarity.core.models import TitleGroup
from game_title_similarity.core.reconcile import reconcile
from game_title_similarity.core.reports import export_groups_report, export_reconcile_report


def run_similarity_analysis(
    db_path: Path | str,
    owner_id: int,
    config: SimilarityConfig = DEFAULT_CONFIG,
    report_dir: Path | str | None = None,
    force: bool = False,
) -> dict[str, int]:
    """オーナーの類似度解析を実行し、結果をDBに反映する.

    Args:
        db_path: SQLiteストアのパス
        owner_id: 対象オーナー
        config: しきい値・続編パターン
        report_dir: レポート出力先（Noneの場合は出力なし）
        force: 実行中として残っている記録を失敗扱いにしてから開始する

    Returns:
        pairs_found / pairs_created / pairs_updated / pairs_removed

    Raises:
        FileNotFoundError: DBが存在しない場合
        AnalysisInProgressError: 同一オーナーの解析が実行中の場合
        sqlite3.Error: 適用に失敗した場合（ロールバック済み。再実行してよい）
    """
    conn = connect(db_path)
    try:
        run_id = pair_store.begin_analysis_run(conn, owner_id, force=force)
        logger.info(f"[Analysis] Started run {run_id} for owner {owner_id}")

        # 中断（KeyboardInterrupt など）でも実行中の記録を残さない
        try:
            titles = pair_store.load_titles(conn, owner_id)
            stored_pairs = pair_store.load_pairs(conn, owner_id, include_dismissed=True)
            logger.info(
                f"[Analysis] Scoring {len(titles)} title(s) "
                f"({len(titles) * (len(titles) - 1) // 2} pair(s)), {len(stored_pairs)} stored pair(s)"
            )

            result = reconcile(owner_id, titles, stored_pairs, config)
            pair_store.apply_reconcile_result(conn, result)
            pair_store.finish_analysis_run(conn, run_id, result=result)
        except BaseException as e:
            # 適用途中の書き込みは確定させない
            conn.rollback()
            pair_store.finish_analysis_run(conn, run_id, error=f"{type(e).__name__}: {e}")
            logger.error(f"[Analysis] Run {run_id} failed for owner {owner_id}: {type(e).__name__}: {e}")
            raise

        counts = result.counts()
        logger.info(f"[Analysis] Run {run_id} complete for owner {owner_id}: {counts}")
        if result.skipped:
            logger.warning(f"[Analysis] Skipped {len(result.skipped)} inconsistent stored pair(s)")

        if report_dir is not None:
            paths = export_reconcile_report(result, report_dir, titles={t.id: t for t in titles})
            written = [str(p) for p in paths.values() if p is not None]
            logger.info(f"[Analysis] Reports written: {written}")

        return counts
    finally:
        conn.close()


def import_titles(
    db_path: Path | str,
    owner_id: int,
    source_path: Path | str,
    replace: bool = False,
) -> dict[str, int]:
    """ファイルからオーナーのタイトルを取り込む.

    Args:
        db_path: SQLiteストアのパス
        owner_id: 対象オーナー
        source_path: タイトル一覧（.csv / .tsv / .parquet）
        replace: True の場合、ファイルに無いタイトルを削除する

    Returns:
        read / changed / deleted の件数
    """
    adapter = adapter_for_path(source_path)
    df = adapter.read()
    if not adapter.validate(df):
        return {"read": 0, "changed": 0, "deleted": 0}

    rows = list(zip(df["title_id"].to_list(), df["name"].to_list(), strict=True))

    conn = connect(db_path)
    try:
        changed = pair_store.upsert_titles(conn, owner_id, rows)
        deleted = pair_store.delete_titles_except(conn, owner_id, [r[0] for r in rows]) if replace else 0
    finally:
        conn.close()

    logger.info(
        f"[Import] owner {owner_id}: read={len(rows)} changed={changed} deleted={deleted} from {source_path}"
    )
    return {"read": len(rows), "changed": changed, "deleted": deleted}


def get_similar_title_groups(
    db_path: Path | str,
    owner_id: int,
    include_dismissed: bool = False,
) -> list[TitleGroup]:
    """保存済みペアから表示用グループを作る."""
    conn = connect(db_path)
    try:
        titles = {t.id: t for t in pair_store.load_titles(conn, owner_id)}
        pairs = pair_store.load_pairs(conn, owner_id, include_dismissed=include_dismissed)
    finally:
        conn.close()
    return build_groups(pairs, titles, include_dismissed=include_dismissed)


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


def _print_groups(groups: list[TitleGroup]) -> None:
    if not groups:
        print("No similar titles found.")
        return
    for index, group in enumerate(groups, start=1):
        print(f"[{index}] {group.normalized_name} ({group.size} titles)")
        for title in group.titles:
            print(f"    {title.id}\t{title.name}")
        for pair in group.pairs:
            flag = " (dismissed)" if pair.dismissed else ""
            print(f"    - pair {pair.pair_id}: {pair.score} {pair.match_type.value}{flag}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Detect similar / duplicate game titles per owner")
    parser.add_argument("--db", type=Path, required=True, help="SQLite store path")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional similarity config YAML (env MIN_SIMILARITY_SCORE / MIN_NORMALIZED_TITLE_LENGTH override it)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the SQLite store")

    p_import = sub.add_parser("import", help="Import titles from CSV/TSV/Parquet (columns: id|title_id, name|title)")
    p_import.add_argument("--owner", type=int, required=True, help="Owner id")
    p_import.add_argument("--source", type=Path, required=True, help="Title list file")
    p_import.add_argument("--replace", action="store_true", help="Delete titles missing from the file")

    p_analyze = sub.add_parser("analyze", help="Run similarity analysis for an owner")
    p_analyze.add_argument("--owner", type=int, required=True, help="Owner id")
    p_analyze.add_argument("--report-dir", type=Path, default=None, help="Optional CSV report directory")
    p_analyze.add_argument(
        "--force",
        action="store_true",
        help="Mark a leftover running analysis as failed before starting",
    )

    p_groups = sub.add_parser("groups", help="Show similar title groups")
    p_groups.add_argument("--owner", type=int, required=True, help="Owner id")
    p_groups.add_argument("--include-dismissed", action="store_true", help="Also group by dismissed pairs")
    p_groups.add_argument("--json", action="store_true", help="Print JSON instead of text")
    p_groups.add_argument("--csv", type=Path, default=None, help="Also write the groups to a CSV file")

    for name, help_text in (("dismiss", "Dismiss a pair"), ("undismiss", "Undismiss a pair")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("pair_id", help="Pair id")
        p.add_argument("--owner", type=int, default=None, help="Restrict to this owner")

    p_reset = sub.add_parser("reset-dismissals", help="Undismiss every pair of an owner")
    p_reset.add_argument("--owner", type=int, required=True, help="Owner id")

    p_status = sub.add_parser("status", help="Show active pair count and the latest analysis run")
    p_status.add_argument("--owner", type=int, required=True, help="Owner id")

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI エントリポイント."""
    args = _build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    try:
        if args.command == "init-db":
            create_database(args.db)
            return 0

        if args.command == "import":
            import_titles(args.db, args.owner, args.source, replace=args.replace)
            return 0

        if args.command == "analyze":
            config = resolve_config(args.config)
            counts = run_similarity_analysis(
                args.db, args.owner, config, report_dir=args.report_dir, force=args.force
            )
            print(json.dumps(counts))
            return 0

        if args.command == "groups":
            groups = get_similar_title_groups(args.db, args.owner, include_dismissed=args.include_dismissed)
            if args.csv:
                export_groups_report(groups, args.csv)
            if args.json:
                print(json.dumps([g.as_dict() for g in groups], ensure_ascii=False, indent=2))
            else:
                _print_groups(groups)
            return 0

        conn = connect(args.db)
        try:
            if args.command == "dismiss":
                pair_store.dismiss_pair(conn, args.pair_id, args.owner)
            elif args.command == "undismiss":
                pair_store.undismiss_pair(conn, args.pair_id, args.owner)
            elif args.command == "reset-dismissals":
                print(pair_store.reset_dismissals(conn, args.owner))
            elif args.command == "status":
                run = pair_store.latest_analysis_run(conn, args.owner)
                status = {
                    "active_pairs": pair_store.count_active_pairs(conn, args.owner),
                    "latest_run": None
                    if run is None
                    else {
                        "run_id": run.run_id,
                        "status": run.status,
                        "pairs_found": run.pairs_found,
                        "pairs_created": run.pairs_created,
                        "pairs_updated": run.pairs_updated,
                        "pairs_removed": run.pairs_removed,
                        "error": run.error,
                        "started_at": run.started_at.isoformat() if run.started_at else None,
                        "finished_at": run.finished_at.isoformat() if run.finished_at else None,
                    },
                }
                print(json.dumps(status))
        finally:
            conn.close()
        return 0

    except (FileNotFoundError, ValueError, PairNotFoundError, AnalysisInProgressError) as e:
        logger.error(str(e))
        return 1
    except sqlite3.Error as e:
        logger.error(f"Database error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
