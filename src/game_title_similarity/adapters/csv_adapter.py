"""CSV読み込みアダプタ."""

from pathlib import Path

import polars as pl
from loguru import logger

from .base_adapter import BaseAdapter, standardize_title_columns


class CSV_Adapter(BaseAdapter):
    """タイトル一覧CSV用アダプタ.

    Args:
        file_path: CSVファイルのパス
        separator: 区切り文字（TSVなら "\\t"）
    """

    def __init__(self, file_path: Path | str, separator: str = ",") -> None:
        """アダプタ初期化.

        Raises:
            FileNotFoundError: CSVファイルが存在しない場合
        """
        self.file_path = Path(file_path)
        if not self.file_path.exists():
            raise FileNotFoundError(f"CSV file not found: {self.file_path}")
        self.separator = separator

    def read(self) -> pl.DataFrame:
        """CSVファイルを読み込む.

        IDの先頭ゼロなどを保つため、全列を文字列として読む。

        Raises:
            ValueError: CSV読み込みに失敗した場合
            TitleSourceError: ID列または名前列が無い場合
        """
        try:
            df = pl.read_csv(
                self.file_path,
                separator=self.separator,
                infer_schema_length=0,
                truncate_ragged_lines=True,
            )
        except Exception as e:
            raise ValueError(f"Failed to read CSV: {self.file_path}") from e

        df = self.repair(standardize_title_columns(df, self.file_path))
        logger.debug(f"Read {len(df)} title(s) from {self.file_path}")
        return df
