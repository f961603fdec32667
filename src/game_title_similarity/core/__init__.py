"""類似タイトル判定のコア処理群.

- 正規化（タイトル → 比較用文字列 / トークン）
- スコアリング（完全一致 → 包含 → トークン重複）
- リコンサイル（保存済みペアとの差分抽出）
- クラスタリング（union-find による表示用グループ化）
"""

from .clustering import DisjointSet, build_groups
from .config import DEFAULT_CONFIG, SimilarityConfig, load_config, resolve_config
from .models import PairSummary, SimilarityPair, Title, TitleGroup, pair_key
from .normalize import core_tokens, is_sequel_token, normalize_title, tokenize
from .reconcile import ReconcileResult, compute_candidate_pairs, reconcile
from .scoring import MatchType, SimilarityResult, calculate_similarity

__all__ = [
    "normalize_title",
    "tokenize",
    "is_sequel_token",
    "core_tokens",
    "MatchType",
    "SimilarityResult",
    "calculate_similarity",
    "SimilarityConfig",
    "DEFAULT_CONFIG",
    "load_config",
    "resolve_config",
    "Title",
    "SimilarityPair",
    "PairSummary",
    "TitleGroup",
    "pair_key",
    "ReconcileResult",
    "compute_candidate_pairs",
    "reconcile",
    "DisjointSet",
    "build_groups",
]
