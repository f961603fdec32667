"""Parquet読み込みアダプタ."""

from pathlib import Path

import polars as pl
from loguru import logger

from .base_adapter import BaseAdapter, standardize_title_columns


class Parquet_Adapter(BaseAdapter):
    """Parquetファイル用アダプタ."""

    def __init__(self, file_path: Path | str) -> None:
        """アダプタ初期化.

        Raises:
            FileNotFoundError: Parquetファイルが存在しない場合
        """
        self.file_path = Path(file_path)
        if not self.file_path.exists():
            raise FileNotFoundError(f"Parquet file not found: {self.file_path}")

    def read(self) -> pl.DataFrame:
        """Parquetファイルを読み込む.

        Raises:
            ValueError: Parquet読み込みに失敗した場合
            TitleSourceError: ID列または名前列が無い場合
        """
        try:
            df = pl.read_parquet(self.file_path)
        except Exception as e:
            raise ValueError(f"Failed to read Parquet: {self.file_path}") from e

        df = self.repair(standardize_title_columns(df, self.file_path))
        logger.debug(f"Read {len(df)} title(s) from {self.file_path}")
        return df
