"""類似ペアの永続化（SQLite）.

リコンサイル結果の適用、タイトルの取り込み、dismiss 操作、解析実行履歴を扱います。

- 適用は1トランザクション。失敗時はロールバックして例外を再送出する
- 各操作は冪等（作成は正規キーで UPSERT、更新は値が変わる場合のみ、削除はID指定）
  なので、失敗したら同じ入力でリコンサイルからやり直せばよい
"""

from __future__ import annotations

import sqlite3
import uuid
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime

from loguru import logger

from .exceptions import AnalysisInProgressError, PairNotFoundError
from .models import SimilarityPair, Title
from .reconcile import ReconcileResult
from .scoring import MatchType

_CHUNK_SIZE = 500

# 同一キーのペアが既にある場合（前回の適用が途中で失敗した後の再実行など）はスコアのみ更新。
# dismissed は更新対象に含めない。
_PAIR_UPSERT_SQL = """
INSERT INTO SIMILAR_TITLE_PAIRS (
  pair_id,
  title_a_id,
  title_b_id,
  owner_id,
  similarity_score,
  match_type,
  dismissed
)
VALUES (?, ?, ?, ?, ?, ?, 0)
ON CONFLICT(title_a_id, title_b_id, owner_id) DO UPDATE SET
  similarity_score = excluded.similarity_score,
  match_type = excluded.match_type,
  updated_at = CURRENT_TIMESTAMP
WHERE
  SIMILAR_TITLE_PAIRS.similarity_score IS NOT excluded.similarity_score
  OR SIMILAR_TITLE_PAIRS.match_type IS NOT excluded.match_type
"""

_PAIR_UPDATE_IF_CHANGED_SQL = """
UPDATE SIMILAR_TITLE_PAIRS
SET similarity_score = ?, match_type = ?, updated_at = CURRENT_TIMESTAMP
WHERE pair_id = ?
  AND (similarity_score IS NOT ? OR match_type IS NOT ?)
"""

_TITLE_UPSERT_SQL = """
INSERT INTO GAME_TITLES (title_id, owner_id, name)
VALUES (?, ?, ?)
ON CONFLICT(title_id) DO UPDATE SET
  name = excluded.name,
  updated_at = CURRENT_TIMESTAMP
WHERE GAME_TITLES.name IS NOT excluded.name
"""


@dataclass(frozen=True)
class AnalysisRun:
    run_id: int
    owner_id: int
    status: str
    pairs_found: int | None
    pairs_created: int | None
    pairs_updated: int | None
    pairs_removed: int | None
    error: str | None
    started_at: datetime | None
    finished_at: datetime | None


def _chunked(seq: list, size: int) -> Iterator[list]:
    for i in range(0, len(seq), size):
        yield seq[i : i + size]


def _parse_timestamp(value: object) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _row_to_pair(row: sqlite3.Row) -> SimilarityPair:
    return SimilarityPair(
        id=row["pair_id"],
        title_a_id=row["title_a_id"],
        title_b_id=row["title_b_id"],
        owner_id=row["owner_id"],
        similarity_score=row["similarity_score"],
        match_type=MatchType(row["match_type"]),
        dismissed=bool(row["dismissed"]),
        created_at=_parse_timestamp(row["created_at"]),
        updated_at=_parse_timestamp(row["updated_at"]),
    )


def _row_to_run(row: sqlite3.Row) -> AnalysisRun:
    return AnalysisRun(
        run_id=row["run_id"],
        owner_id=row["owner_id"],
        status=row["status"],
        pairs_found=row["pairs_found"],
        pairs_created=row["pairs_created"],
        pairs_updated=row["pairs_updated"],
        pairs_removed=row["pairs_removed"],
        error=row["error"],
        started_at=_parse_timestamp(row["started_at"]),
        finished_at=_parse_timestamp(row["finished_at"]),
    )


# ============ Titles ============


def load_titles(conn: sqlite3.Connection, owner_id: int) -> list[Title]:
    """オーナーの全タイトルを name 順で取得する."""
    rows = conn.execute(
        "SELECT title_id, owner_id, name FROM GAME_TITLES WHERE owner_id = ? ORDER BY name, title_id",
        (owner_id,),
    ).fetchall()
    return [Title(id=row[0], owner_id=row[1], name=row[2]) for row in rows]


def upsert_titles(
    conn: sqlite3.Connection,
    owner_id: int,
    titles: Iterable[tuple[str, str]],
) -> int:
    """タイトルを登録/改名する.

    Args:
        conn: DB接続
        owner_id: オーナー
        titles: (title_id, name) の列

    Returns:
        追加・変更された行数

    Raises:
        ValueError: 他オーナーのタイトルIDと衝突した場合
    """
    rows = [(str(title_id), owner_id, name) for title_id, name in titles]

    foreign: list[str] = []
    for chunk in _chunked([r[0] for r in rows], _CHUNK_SIZE):
        placeholders = ", ".join("?" for _ in chunk)
        foreign.extend(
            r[0]
            for r in conn.execute(
                f"SELECT title_id FROM GAME_TITLES WHERE owner_id != ? AND title_id IN ({placeholders})",
                (owner_id, *chunk),
            ).fetchall()
        )
    if foreign:
        msg = f"Title id(s) already owned by another owner: {sorted(foreign)[:10]}"
        raise ValueError(msg)

    before = conn.total_changes
    try:
        for chunk in _chunked(rows, _CHUNK_SIZE):
            conn.executemany(_TITLE_UPSERT_SQL, chunk)
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        logger.error(f"Failed to upsert titles for owner {owner_id}: {e}")
        raise
    return conn.total_changes - before


def delete_titles_except(conn: sqlite3.Connection, owner_id: int, keep_ids: Iterable[str]) -> int:
    """keep_ids に含まれないオーナーのタイトルを削除する（ペアは CASCADE で消える）."""
    keep = set(keep_ids)
    stale = [t.id for t in load_titles(conn, owner_id) if t.id not in keep]
    if not stale:
        return 0
    try:
        for chunk in _chunked(stale, _CHUNK_SIZE):
            conn.executemany("DELETE FROM GAME_TITLES WHERE title_id = ?", [(tid,) for tid in chunk])
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        logger.error(f"Failed to delete titles for owner {owner_id}: {e}")
        raise
    logger.info(f"Deleted {len(stale)} title(s) no longer present for owner {owner_id}")
    return len(stale)


# ============ Pairs ============


def load_pairs(
    conn: sqlite3.Connection,
    owner_id: int,
    *,
    include_dismissed: bool = True,
) -> list[SimilarityPair]:
    """オーナーの保存済みペアをスコア降順で取得する."""
    sql = "SELECT * FROM SIMILAR_TITLE_PAIRS WHERE owner_id = ?"
    if not include_dismissed:
        sql += " AND dismissed = 0"
    sql += " ORDER BY similarity_score DESC, pair_id"
    return [_row_to_pair(row) for row in conn.execute(sql, (owner_id,)).fetchall()]


def apply_reconcile_result(conn: sqlite3.Connection, result: ReconcileResult) -> int:
    """リコンサイル結果を1トランザクションで適用する.

    Returns:
        変更された行数

    Raises:
        sqlite3.Error: 適用に失敗した場合（ロールバック済み）
    """
    owner_id = result.owner_id
    before = conn.total_changes
    try:
        create_rows = [
            (str(uuid.uuid4()), c.title_a_id, c.title_b_id, owner_id, c.score, c.match_type.value)
            for c in result.created
        ]
        for chunk in _chunked(create_rows, _CHUNK_SIZE):
            conn.executemany(_PAIR_UPSERT_SQL, chunk)

        update_rows = [
            (u.score, u.match_type.value, u.pair_id, u.score, u.match_type.value) for u in result.updated
        ]
        for chunk in _chunked(update_rows, _CHUNK_SIZE):
            conn.executemany(_PAIR_UPDATE_IF_CHANGED_SQL, chunk)

        remove_rows = [(p.id,) for p in result.removed]
        for chunk in _chunked(remove_rows, _CHUNK_SIZE):
            conn.executemany("DELETE FROM SIMILAR_TITLE_PAIRS WHERE pair_id = ?", chunk)

        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        logger.error(f"Failed to apply similarity pairs for owner {owner_id}: {e}")
        raise

    changed = conn.total_changes - before
    logger.debug(f"Applied reconcile result for owner {owner_id}: {changed} row(s) changed")
    return changed


def _set_dismissed(conn: sqlite3.Connection, pair_id: str, dismissed: bool, owner_id: int | None) -> None:
    sql = "UPDATE SIMILAR_TITLE_PAIRS SET dismissed = ?, updated_at = CURRENT_TIMESTAMP WHERE pair_id = ?"
    params: tuple[object, ...] = (int(dismissed), pair_id)
    if owner_id is not None:
        sql += " AND owner_id = ?"
        params = (*params, owner_id)

    cursor = conn.execute(sql, params)
    if cursor.rowcount == 0:
        conn.rollback()
        raise PairNotFoundError(pair_id)
    conn.commit()


def dismiss_pair(conn: sqlite3.Connection, pair_id: str, owner_id: int | None = None) -> None:
    """ペアを非表示にする（再計算でも保持される）.

    Raises:
        PairNotFoundError: ペアが存在しない（または owner_id が一致しない）場合
    """
    _set_dismissed(conn, pair_id, True, owner_id)


def undismiss_pair(conn: sqlite3.Connection, pair_id: str, owner_id: int | None = None) -> None:
    """ペアの非表示を解除する."""
    _set_dismissed(conn, pair_id, False, owner_id)


def reset_dismissals(conn: sqlite3.Connection, owner_id: int) -> int:
    """オーナーの全 dismiss を解除し、解除件数を返す."""
    cursor = conn.execute(
        "UPDATE SIMILAR_TITLE_PAIRS SET dismissed = 0, updated_at = CURRENT_TIMESTAMP "
        "WHERE owner_id = ? AND dismissed = 1",
        (owner_id,),
    )
    conn.commit()
    return cursor.rowcount


def count_active_pairs(conn: sqlite3.Connection, owner_id: int) -> int:
    """dismiss されていないペア数."""
    row = conn.execute(
        "SELECT COUNT(*) FROM SIMILAR_TITLE_PAIRS WHERE owner_id = ? AND dismissed = 0",
        (owner_id,),
    ).fetchone()
    return int(row[0])


# ============ Analysis runs ============


def begin_analysis_run(conn: sqlite3.Connection, owner_id: int, *, force: bool = False) -> int:
    """解析実行を記録する（オーナーごとに実行中は1件まで）.

    Args:
        conn: DB接続
        owner_id: オーナー
        force: 実行中の記録を failed にしてから開始する（前回プロセスが異常終了した場合）

    Returns:
        run_id

    Raises:
        AnalysisInProgressError: 実行中の解析がある場合
    """
    if force:
        abandoned = conn.execute(
            "UPDATE ANALYSIS_RUNS SET status = 'failed', error = 'abandoned', finished_at = CURRENT_TIMESTAMP "
            "WHERE owner_id = ? AND status = 'running'",
            (owner_id,),
        ).rowcount
        if abandoned:
            logger.warning(f"Marked {abandoned} running analysis run(s) as failed for owner {owner_id}")

    # 存在確認と挿入を1文で行う（別プロセスとの競合対策）
    cursor = conn.execute(
        "INSERT INTO ANALYSIS_RUNS (owner_id, status) "
        "SELECT ?, 'running' WHERE NOT EXISTS ("
        "  SELECT 1 FROM ANALYSIS_RUNS WHERE owner_id = ? AND status = 'running'"
        ")",
        (owner_id, owner_id),
    )
    if cursor.rowcount == 0:
        conn.rollback()
        row = conn.execute(
            "SELECT run_id FROM ANALYSIS_RUNS WHERE owner_id = ? AND status = 'running' "
            "ORDER BY run_id DESC LIMIT 1",
            (owner_id,),
        ).fetchone()
        raise AnalysisInProgressError(owner_id, int(row[0]) if row else -1)

    conn.commit()
    return int(cursor.lastrowid)


def finish_analysis_run(
    conn: sqlite3.Connection,
    run_id: int,
    result: ReconcileResult | None = None,
    error: str | None = None,
) -> None:
    """解析実行の結果（成功時は件数、失敗時はエラー）を記録する."""
    if error is not None:
        conn.execute(
            "UPDATE ANALYSIS_RUNS SET status = 'failed', error = ?, finished_at = CURRENT_TIMESTAMP "
            "WHERE run_id = ?",
            (error, run_id),
        )
    else:
        counts = result.counts() if result is not None else {}
        conn.execute(
            "UPDATE ANALYSIS_RUNS SET status = 'success', pairs_found = ?, pairs_created = ?, "
            "pairs_updated = ?, pairs_removed = ?, finished_at = CURRENT_TIMESTAMP WHERE run_id = ?",
            (
                counts.get("pairs_found"),
                counts.get("pairs_created"),
                counts.get("pairs_updated"),
                counts.get("pairs_removed"),
                run_id,
            ),
        )
    conn.commit()


def latest_analysis_run(conn: sqlite3.Connection, owner_id: int) -> AnalysisRun | None:
    row = conn.execute(
        "SELECT * FROM ANALYSIS_RUNS WHERE owner_id = ? ORDER BY run_id DESC LIMIT 1",
        (owner_id,),
    ).fetchone()
    return _row_to_run(row) if row else None
