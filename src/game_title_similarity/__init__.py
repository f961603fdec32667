"""game_title_similarity: 所持タイトルの類似/重複検出エンジン."""

__version__ = "0.1.0"
