"""database.py のユニットテスト（作成・インデックス・制約）."""

import sqlite3
from pathlib import Path

import pytest

from game_title_similarity.core.database import (
    REQUIRED_INDEXES,
    build_indexes,
    connect,
    create_database,
)


class TestCreateDatabase:
    """create_database関数のテスト."""

    def test_create_new_database(self, tmp_path: Path) -> None:
        """新規データベース作成のテスト."""
        db_path = tmp_path / "nested" / "titles.db"
        create_database(db_path)

        assert db_path.exists()

        conn = sqlite3.connect(db_path)
        page_size = conn.execute("PRAGMA page_size;").fetchone()[0]
        journal_mode = conn.execute("PRAGMA journal_mode;").fetchone()[0]
        tables = {
            row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table';").fetchall()
        }
        conn.close()

        assert page_size == 4096
        assert journal_mode == "wal"
        assert {"GAME_TITLES", "SIMILAR_TITLE_PAIRS", "ANALYSIS_RUNS"} <= tables

    def test_create_database_already_exists(self, tmp_path: Path) -> None:
        """既存データベースに対する作成は警告のみ."""
        db_path = tmp_path / "titles.db"
        create_database(db_path)

        conn = connect(db_path)
        conn.execute("INSERT INTO GAME_TITLES (title_id, owner_id, name) VALUES ('t1', 1, 'Portal')")
        conn.commit()
        conn.close()

        create_database(db_path)

        conn = connect(db_path)
        assert conn.execute("SELECT COUNT(*) FROM GAME_TITLES").fetchone()[0] == 1
        conn.close()


class TestBuildIndexes:
    """build_indexes関数のテスト."""

    def test_build_indexes_success(self, tmp_path: Path) -> None:
        db_path = tmp_path / "titles.db"
        create_database(db_path)
        build_indexes(db_path)

        conn = sqlite3.connect(db_path)
        indexes = [
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='index' AND name LIKE 'idx_%';")
        ]
        conn.close()

        assert len(indexes) == len(REQUIRED_INDEXES)
        assert "idx_pairs_owner_dismissed" in indexes

    def test_build_indexes_missing_db(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            build_indexes(tmp_path / "missing.db")


class TestConnect:
    """connect関数と制約のテスト."""

    def test_connect_missing_db(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="Database does not exist"):
            connect(tmp_path / "missing.db")

    def test_foreign_keys_enabled(self, tmp_path: Path) -> None:
        db_path = tmp_path / "titles.db"
        create_database(db_path)
        conn = connect(db_path)
        try:
            assert conn.execute("PRAGMA foreign_keys;").fetchone()[0] == 1
        finally:
            conn.close()

    @pytest.mark.parametrize(
        ("a", "b", "score", "match_type"),
        [
            ("t2", "t1", 80, "prefix"),  # 正規順でない
            ("t1", "t1", 80, "prefix"),  # 自己参照
            ("t1", "t2", 120, "prefix"),  # スコア範囲外
            ("t1", "t2", 80, "similar"),  # 未知の一致種別
        ],
    )
    def test_pair_constraints(self, tmp_path: Path, a: str, b: str, score: int, match_type: str) -> None:
        db_path = tmp_path / "titles.db"
        create_database(db_path)
        conn = connect(db_path)
        try:
            conn.executemany(
                "INSERT INTO GAME_TITLES (title_id, owner_id, name) VALUES (?, 1, ?)",
                [("t1", "Portal"), ("t2", "Portal™")],
            )
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute(
                    "INSERT INTO SIMILAR_TITLE_PAIRS "
                    "(pair_id, title_a_id, title_b_id, owner_id, similarity_score, match_type) "
                    "VALUES ('p1', ?, ?, 1, ?, ?)",
                    (a, b, score, match_type),
                )
        finally:
            conn.close()

    def test_title_delete_cascades_to_pairs(self, tmp_path: Path) -> None:
        db_path = tmp_path / "titles.db"
        create_database(db_path)
        conn = connect(db_path)
        try:
            conn.executemany(
                "INSERT INTO GAME_TITLES (title_id, owner_id, name) VALUES (?, 1, ?)",
                [("t1", "Portal"), ("t2", "Portal™")],
            )
            conn.execute(
                "INSERT INTO SIMILAR_TITLE_PAIRS "
                "(pair_id, title_a_id, title_b_id, owner_id, similarity_score, match_type) "
                "VALUES ('p1', 't1', 't2', 1, 100, 'exact')"
            )
            conn.execute("DELETE FROM GAME_TITLES WHERE title_id = 't2'")
            conn.commit()
            assert conn.execute("SELECT COUNT(*) FROM SIMILAR_TITLE_PAIRS").fetchone()[0] == 0
        finally:
            conn.close()
