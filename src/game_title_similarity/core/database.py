"""SQLiteストアの作成・接続ユーティリティ.

タイトル・類似ペア・解析実行履歴を保持する SQLite の作成、インデックス作成、接続設定を提供します。

注意:
    PRAGMA のうち journal_mode は DB ファイルに永続化されるが、foreign_keys / busy_timeout などは
    接続単位の設定なので、接続ごとに connect() で適用する。
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from loguru import logger

from .scoring import MatchType

# DBファイルに永続化される設定（リコンサイル中も読み取りを並行させるため WAL）
PERSISTENT_PRAGMAS = [
    "PRAGMA journal_mode = WAL;",
    "PRAGMA synchronous = NORMAL;",
]
# 接続ごとの設定
CONNECTION_PRAGMAS = [
    "PRAGMA foreign_keys = ON;",  # ON DELETE CASCADE に必要
    "PRAGMA busy_timeout = 5000;",
    "PRAGMA temp_store = MEMORY;",
]

MATCH_TYPES = tuple(m.value for m in MatchType)

# 必須インデックス（想定クエリに基づく）
REQUIRED_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_titles_owner ON GAME_TITLES(owner_id);",
    "CREATE INDEX IF NOT EXISTS idx_pairs_owner_dismissed ON SIMILAR_TITLE_PAIRS(owner_id, dismissed);",
    "CREATE INDEX IF NOT EXISTS idx_pairs_title_b ON SIMILAR_TITLE_PAIRS(title_b_id);",
    "CREATE INDEX IF NOT EXISTS idx_pairs_score ON SIMILAR_TITLE_PAIRS(similarity_score DESC);",
    "CREATE INDEX IF NOT EXISTS idx_runs_owner_status ON ANALYSIS_RUNS(owner_id, status);",
]

_MATCH_TYPE_LIST = ", ".join(f"'{m}'" for m in MATCH_TYPES)

SCHEMA_SQL = [
    """
    CREATE TABLE IF NOT EXISTS GAME_TITLES (
        title_id TEXT NOT NULL PRIMARY KEY,
        owner_id INTEGER NOT NULL,
        name TEXT NOT NULL,
        created_at DATETIME DEFAULT (CURRENT_TIMESTAMP),
        updated_at DATETIME DEFAULT (CURRENT_TIMESTAMP)
    );
    """,
    f"""
    CREATE TABLE IF NOT EXISTS SIMILAR_TITLE_PAIRS (
        pair_id TEXT NOT NULL PRIMARY KEY,
        title_a_id TEXT NOT NULL,
        title_b_id TEXT NOT NULL,
        owner_id INTEGER NOT NULL,
        similarity_score INTEGER NOT NULL,
        match_type TEXT NOT NULL,
        dismissed BOOLEAN NOT NULL DEFAULT 0,
        created_at DATETIME DEFAULT (CURRENT_TIMESTAMP),
        updated_at DATETIME DEFAULT (CURRENT_TIMESTAMP),
        FOREIGN KEY(title_a_id) REFERENCES GAME_TITLES(title_id) ON DELETE CASCADE,
        FOREIGN KEY(title_b_id) REFERENCES GAME_TITLES(title_id) ON DELETE CASCADE,
        UNIQUE(title_a_id, title_b_id, owner_id),
        CONSTRAINT ck_canonical_order CHECK (title_a_id < title_b_id),
        CONSTRAINT ck_score_range CHECK (similarity_score BETWEEN 0 AND 100),
        CONSTRAINT ck_match_type CHECK (match_type IN ({_MATCH_TYPE_LIST}))
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS ANALYSIS_RUNS (
        run_id INTEGER NOT NULL PRIMARY KEY AUTOINCREMENT,
        owner_id INTEGER NOT NULL,
        status TEXT NOT NULL,
        pairs_found INTEGER,
        pairs_created INTEGER,
        pairs_updated INTEGER,
        pairs_removed INTEGER,
        error TEXT,
        started_at DATETIME DEFAULT (CURRENT_TIMESTAMP),
        finished_at DATETIME NULL,
        CONSTRAINT ck_status CHECK (status IN ('running', 'success', 'failed'))
    );
    """,
]


def apply_connection_pragmas(conn: sqlite3.Connection) -> None:
    """接続ごとに適用が必要な PRAGMA を設定する。"""
    for pragma in CONNECTION_PRAGMAS:
        conn.execute(pragma)


def connect(db_path: Path | str) -> sqlite3.Connection:
    """既存DBに接続する（接続PRAGMA適用済み、row_factory=sqlite3.Row）.

    Raises:
        FileNotFoundError: DBが存在しない場合
    """
    db_path = Path(db_path)
    if not db_path.exists():
        msg = f"Database does not exist: {db_path}"
        raise FileNotFoundError(msg)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    apply_connection_pragmas(conn)
    return conn


def create_schema(db_path: Path | str) -> None:
    """DBスキーマ（テーブル）を作成する（既存テーブルはそのまま）."""
    db_path = Path(db_path)
    if not db_path.exists():
        msg = f"Database does not exist: {db_path}"
        raise FileNotFoundError(msg)

    conn = sqlite3.connect(db_path)
    try:
        for stmt in SCHEMA_SQL:
            conn.executescript(stmt)
        conn.commit()
    finally:
        conn.close()


def create_database(db_path: Path | str) -> None:
    """データベースファイルを新規作成する（スキーマ・インデックス込み）.

    既に存在する場合は警告のみで、不足テーブルとインデックスを補う。

    Args:
        db_path: 作成するデータベースファイルパス
    """
    db_path = Path(db_path)

    if db_path.exists():
        logger.warning(f"Database already exists: {db_path}")
        create_schema(db_path)
        build_indexes(db_path)
        return

    db_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Creating database: {db_path}")

    conn = sqlite3.connect(db_path)
    try:
        # DB作成時にのみ有効な設定
        conn.execute("PRAGMA page_size = 4096;")

        for pragma in PERSISTENT_PRAGMAS:
            conn.execute(pragma)
            logger.debug(f"Applied: {pragma}")

        for stmt in SCHEMA_SQL:
            conn.executescript(stmt)

        conn.commit()
        logger.info("Database created successfully")

    except Exception as e:
        logger.error(f"Failed to create database: {e}")
        raise
    finally:
        conn.close()

    build_indexes(db_path)


def build_indexes(db_path: Path | str) -> None:
    """必須インデックスを作成する.

    Args:
        db_path: データベースファイルパス
    """
    db_path = Path(db_path)

    if not db_path.exists():
        msg = f"Database does not exist: {db_path}"
        raise FileNotFoundError(msg)

    conn = sqlite3.connect(db_path)
    try:
        for index_sql in REQUIRED_INDEXES:
            logger.debug(f"Creating index: {index_sql}")
            conn.execute(index_sql)

        conn.commit()
        logger.debug(f"Created {len(REQUIRED_INDEXES)} indexes")

    except Exception as e:
        logger.error(f"Failed to build indexes: {e}")
        raise
    finally:
        conn.close()
