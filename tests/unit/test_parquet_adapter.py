"""Unit tests for Parquet adapter."""

from pathlib import Path

import polars as pl
import pytest

from game_title_similarity.adapters.parquet_adapter import Parquet_Adapter


class TestParquet_Adapter:
    """Parquet_Adapterのテスト."""

    def test_init_with_nonexistent_file(self, tmp_path: Path) -> None:
        """存在しないファイルでの初期化."""
        with pytest.raises(FileNotFoundError, match="Parquet file not found"):
            Parquet_Adapter(tmp_path / "nonexistent.parquet")

    def test_read_parquet_with_integer_ids(self, tmp_path: Path) -> None:
        """数値IDは文字列として扱う."""
        parquet_path = tmp_path / "titles.parquet"
        pl.DataFrame({"id": [10, 2], "title": ["Portal", "Portal 2"]}).write_parquet(parquet_path)

        df = Parquet_Adapter(parquet_path).read()

        assert df.columns == ["title_id", "name"]
        assert df.schema["title_id"] == pl.String
        assert df["title_id"].to_list() == ["10", "2"]

    def test_read_invalid_parquet(self, tmp_path: Path) -> None:
        """壊れたファイルは ValueError."""
        parquet_path = tmp_path / "broken.parquet"
        parquet_path.write_bytes(b"not a parquet file")

        with pytest.raises(ValueError, match="Failed to read Parquet"):
            Parquet_Adapter(parquet_path).read()

    def test_validate_valid_dataframe(self, tmp_path: Path) -> None:
        """正常なDataFrameの検証."""
        parquet_path = tmp_path / "titles.parquet"
        pl.DataFrame({"title_id": ["a"], "name": ["Doom"]}).write_parquet(parquet_path)

        adapter = Parquet_Adapter(parquet_path)
        assert adapter.validate(adapter.read())
