"""類似度解析結果の出力（レポート）.

リコンサイルで作成/更新/削除されたペアと、表示用グループをCSVとして出力します。
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path

import polars as pl

from .models import Title, TitleGroup
from .reconcile import ReconcileResult

_CREATED_SCHEMA = {
    "title_a_id": pl.String,
    "title_a_name": pl.String,
    "title_b_id": pl.String,
    "title_b_name": pl.String,
    "similarity_score": pl.Int64,
    "match_type": pl.String,
}
_UPDATED_SCHEMA = {
    "pair_id": pl.String,
    "title_a_id": pl.String,
    "title_b_id": pl.String,
    "previous_score": pl.Int64,
    "previous_match_type": pl.String,
    "similarity_score": pl.Int64,
    "match_type": pl.String,
}
_REMOVED_SCHEMA = {
    "pair_id": pl.String,
    "title_a_id": pl.String,
    "title_b_id": pl.String,
    "similarity_score": pl.Int64,
    "match_type": pl.String,
    "dismissed": pl.Boolean,
}


def _write_if_any(df: pl.DataFrame, path: Path) -> Path | None:
    if len(df) == 0:
        return None
    df.write_csv(path)
    return path


def export_reconcile_report(
    result: ReconcileResult,
    output_dir: Path | str,
    titles: Mapping[str, Title] | None = None,
) -> dict[str, Path | None]:
    """リコンサイル結果をCSVファイルとして出力する.

    Args:
        result: reconcile() の戻り値
        output_dir: 出力ディレクトリ
        titles: title_id → Title（指定時は作成ペアにタイトル名を付ける）

    Returns:
        出力したCSVのパス（該当なしなら None）
        - "created": created_pairs.csv
        - "updated": updated_pairs.csv
        - "removed": removed_pairs.csv
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    titles = titles or {}

    def _name(title_id: str) -> str | None:
        title = titles.get(title_id)
        return title.name if title else None

    created_df = pl.DataFrame(
        [
            {
                "title_a_id": c.title_a_id,
                "title_a_name": _name(c.title_a_id),
                "title_b_id": c.title_b_id,
                "title_b_name": _name(c.title_b_id),
                "similarity_score": c.score,
                "match_type": c.match_type.value,
            }
            for c in result.created
        ],
        schema=_CREATED_SCHEMA,
    )
    updated_df = pl.DataFrame(
        [
            {
                "pair_id": u.pair_id,
                "title_a_id": u.title_a_id,
                "title_b_id": u.title_b_id,
                "previous_score": u.previous_score,
                "previous_match_type": u.previous_match_type.value,
                "similarity_score": u.score,
                "match_type": u.match_type.value,
            }
            for u in result.updated
        ],
        schema=_UPDATED_SCHEMA,
    )
    removed_df = pl.DataFrame(
        [
            {
                "pair_id": p.id,
                "title_a_id": p.title_a_id,
                "title_b_id": p.title_b_id,
                "similarity_score": p.similarity_score,
                "match_type": p.match_type.value,
                "dismissed": p.dismissed,
            }
            for p in result.removed
        ],
        schema=_REMOVED_SCHEMA,
    )

    return {
        "created": _write_if_any(created_df, output_dir / "created_pairs.csv"),
        "updated": _write_if_any(updated_df, output_dir / "updated_pairs.csv"),
        "removed": _write_if_any(removed_df, output_dir / "removed_pairs.csv"),
    }


def groups_to_frame(groups: Sequence[TitleGroup]) -> pl.DataFrame:
    """グループを (group_index, title) 単位の DataFrame にする."""
    rows = [
        {
            "group_index": index,
            "group_size": group.size,
            "normalized_name": group.normalized_name,
            "title_id": title.id,
            "name": title.name,
            "pair_count": len(group.pairs),
            "max_score": max((p.score for p in group.pairs), default=0),
        }
        for index, group in enumerate(groups)
        for title in group.titles
    ]
    return pl.DataFrame(
        rows,
        schema={
            "group_index": pl.Int64,
            "group_size": pl.Int64,
            "normalized_name": pl.String,
            "title_id": pl.String,
            "name": pl.String,
            "pair_count": pl.Int64,
            "max_score": pl.Int64,
        },
    )


def export_groups_report(groups: Sequence[TitleGroup], output_path: Path | str) -> Path:
    """グループをCSVとして出力する（グループが無くてもヘッダのみ出力）."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    groups_to_frame(groups).write_csv(output_path)
    return output_path
