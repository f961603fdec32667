"""タイトル取り込み用アダプタ（基底クラス）.

各種ファイル（CSV/Parquet）を共通インターフェースで扱うための抽象基底クラスと、
列名の標準化処理を定義します。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

import polars as pl
from loguru import logger

from game_title_similarity.core.exceptions import TitleSourceError

# 標準列（アダプタで揺れがある場合はここに寄せる）
STANDARD_COLUMNS = {
    "title_id": str,  # タイトルID（不透明な識別子。数値でも文字列として扱う）
    "name": str,  # タイトル名（正規化前）
}

# 入力列名の別名 → 標準列名
COLUMN_ALIASES = {
    "id": "title_id",
    "title": "name",
}


def standardize_title_columns(df: pl.DataFrame, file_path: Path | str) -> pl.DataFrame:
    """列名を標準列に寄せ、title_id / name の2列（String）にする.

    Raises:
        TitleSourceError: ID列または名前列が見つからない場合
    """
    original_columns = list(df.columns)
    renames: dict[str, str] = {}
    for alias, standard in COLUMN_ALIASES.items():
        if alias in df.columns and standard not in df.columns:
            renames[alias] = standard
    if renames:
        df = df.rename(renames)
        logger.debug(f"{file_path}: renamed columns {renames}")

    if "title_id" not in df.columns or "name" not in df.columns:
        raise TitleSourceError(str(file_path), original_columns)

    return df.select(
        pl.col("title_id").cast(pl.String).str.strip_chars(),
        pl.col("name").cast(pl.String),
    )


class BaseAdapter(ABC):
    """タイトル入力アダプタの基底クラス.

    全てのアダプタはこのクラスを継承し、read()/validate()/repair() を実装します。
    """

    file_path: Path

    @abstractmethod
    def read(self) -> pl.DataFrame:
        """ファイルを読み込み、title_id / name 列の Polars DataFrame に変換する.

        Raises:
            FileNotFoundError: ファイルが存在しない場合
            ValueError: データ形式が不正な場合
        """
        ...

    def validate(self, df: pl.DataFrame) -> bool:
        """データ整合性を検証する."""
        if df.is_empty():
            logger.warning(f"{self.file_path}: no titles found")
            return False
        return set(STANDARD_COLUMNS) <= set(df.columns)

    def repair(self, df: pl.DataFrame) -> pl.DataFrame:
        """ID欠損行を除外し、重複IDは先頭行を残す."""
        blank = df.filter(pl.col("title_id").is_null() | (pl.col("title_id") == ""))
        if len(blank) > 0:
            logger.warning(f"{self.file_path}: dropped {len(blank)} row(s) without title id")
            df = df.filter(pl.col("title_id").is_not_null() & (pl.col("title_id") != ""))

        df = df.with_columns(pl.col("name").fill_null(""))

        deduped = df.unique(subset=["title_id"], keep="first", maintain_order=True)
        if len(deduped) < len(df):
            logger.warning(f"{self.file_path}: dropped {len(df) - len(deduped)} duplicate title id row(s)")
        return deduped
