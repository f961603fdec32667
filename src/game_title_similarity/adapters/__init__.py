"""タイトル取り込み用のデータソースアダプタ群."""

from pathlib import Path

from .base_adapter import STANDARD_COLUMNS, BaseAdapter
from .csv_adapter import CSV_Adapter
from .parquet_adapter import Parquet_Adapter

__all__ = [
    "BaseAdapter",
    "CSV_Adapter",
    "Parquet_Adapter",
    "STANDARD_COLUMNS",
    "adapter_for_path",
]


def adapter_for_path(file_path: Path | str) -> BaseAdapter:
    """拡張子からアダプタを選ぶ.

    Raises:
        ValueError: 未対応の拡張子の場合
    """
    file_path = Path(file_path)
    suffix = file_path.suffix.lower()
    if suffix == ".csv":
        return CSV_Adapter(file_path)
    if suffix == ".tsv":
        return CSV_Adapter(file_path, separator="\t")
    if suffix == ".parquet":
        return Parquet_Adapter(file_path)
    msg = f"Unsupported title source format: {file_path} (expected .csv, .tsv or .parquet)"
    raise ValueError(msg)
