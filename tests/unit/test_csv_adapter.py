"""Unit tests for CSV_Adapter."""

from __future__ import annotations

from pathlib import Path

import pytest

from game_title_similarity.adapters import CSV_Adapter, Parquet_Adapter, adapter_for_path
from game_title_similarity.core.exceptions import TitleSourceError


class TestCSVAdapter:
    def test_init_with_nonexistent_file(self) -> None:
        with pytest.raises(FileNotFoundError, match="CSV file not found"):
            CSV_Adapter("/nonexistent/path/titles.csv")

    def test_read_standard_columns(self, tmp_path: Path) -> None:
        csv_path = tmp_path / "titles.csv"
        csv_path.write_text("title_id,name\n001,Portal\n002,The Sims™ 4\n", encoding="utf-8")

        df = CSV_Adapter(csv_path).read()

        assert df.columns == ["title_id", "name"]
        # 先頭ゼロを保つため文字列として読む
        assert df["title_id"].to_list() == ["001", "002"]
        assert df["name"].to_list() == ["Portal", "The Sims™ 4"]

    def test_read_alias_columns(self, tmp_path: Path) -> None:
        """id / title 列を標準列に寄せる. 余分な列は捨てる."""
        csv_path = tmp_path / "titles.csv"
        csv_path.write_text("id,title,platform\n1,Doom,PC\n", encoding="utf-8")

        df = CSV_Adapter(csv_path).read()

        assert df.columns == ["title_id", "name"]
        assert df.row(0) == ("1", "Doom")

    def test_missing_name_column(self, tmp_path: Path) -> None:
        csv_path = tmp_path / "titles.csv"
        csv_path.write_text("id,platform\n1,PC\n", encoding="utf-8")

        with pytest.raises(TitleSourceError) as exc_info:
            CSV_Adapter(csv_path).read()
        assert exc_info.value.columns == ["id", "platform"]

    def test_repair_blank_and_duplicate_ids(self, tmp_path: Path) -> None:
        csv_path = tmp_path / "titles.csv"
        csv_path.write_text(
            "title_id,name\n1,Portal\n,No Id\n 2 ,Doom\n1,Portal Again\n3,\n",
            encoding="utf-8",
        )

        df = CSV_Adapter(csv_path).read()

        assert df["title_id"].to_list() == ["1", "2", "3"]
        assert df["name"].to_list() == ["Portal", "Doom", ""]

    def test_tsv(self, tmp_path: Path) -> None:
        tsv_path = tmp_path / "titles.tsv"
        tsv_path.write_text("title_id\tname\n1\tHalf-Life 2, Episode One\n", encoding="utf-8")

        adapter = adapter_for_path(tsv_path)

        assert isinstance(adapter, CSV_Adapter)
        assert adapter.read()["name"].to_list() == ["Half-Life 2, Episode One"]

    def test_validate_empty(self, tmp_path: Path) -> None:
        csv_path = tmp_path / "titles.csv"
        csv_path.write_text("title_id,name\n", encoding="utf-8")

        adapter = CSV_Adapter(csv_path)
        assert not adapter.validate(adapter.read())


class TestAdapterForPath:
    def test_parquet_suffix(self, tmp_path: Path) -> None:
        path = tmp_path / "titles.PARQUET"
        path.write_bytes(b"")
        assert isinstance(adapter_for_path(path), Parquet_Adapter)

    def test_unsupported_suffix(self, tmp_path: Path) -> None:
        path = tmp_path / "titles.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(ValueError, match="Unsupported title source format"):
            adapter_for_path(path)
