"""タイトル類似度スコアリング.

2つのタイトルを段階的なヒューリスティックで比較し、0-100 のスコアと一致種別を返します。

判定順（最初に該当したものを採用）:
    1. 完全一致（正規化後）
    2. 短すぎるタイトルは比較しない
    3. 包含（前方一致 / 後方一致 / 途中一致）。前方一致で残りが続編番号だけなら sequel
    4. トークン重複（続編トークンを除いた Jaccard 係数）

続編（"Portal" と "Portal 2" など）は同一フランチャイズの別タイトルなので重複扱いしない。
商標記号や句読点の揺れ、部分的な改名は重複として拾う。
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from .config import DEFAULT_CONFIG, SimilarityConfig
from .normalize import is_sequel_token, normalize_title, spaced_title, tokenize


class MatchType(str, Enum):
    """一致種別."""

    EXACT = "exact"
    PREFIX = "prefix"
    SUFFIX = "suffix"
    CONTAINS = "contains"
    FUZZY = "fuzzy"
    SEQUEL = "sequel"
    NONE = "none"


@dataclass(frozen=True)
class SimilarityResult:
    score: int
    match_type: MatchType

    @property
    def is_duplicate_candidate(self) -> bool:
        return self.score > 0 and self.match_type not in (MatchType.SEQUEL, MatchType.NONE)


_NO_MATCH = SimilarityResult(0, MatchType.NONE)
_SEQUEL = SimilarityResult(0, MatchType.SEQUEL)


@dataclass(frozen=True)
class PreparedTitle:
    """正規化済みタイトル（ペア比較ごとに再計算しないための前処理結果）.

    Attributes:
        raw: 大文字小文字を畳んだ元の名前（正規形が空になるタイトル同士の比較用）
        normalized: normalize_title() の結果（記号除去）
        spaced: 記号を区切りとして扱った正規形
        tokens: normalized をトークン化したもの
        core: 続編トークンを除いたトークン集合
    """

    raw: str
    normalized: str
    spaced: str
    tokens: tuple[str, ...]
    core: frozenset[str]

    @property
    def full(self) -> frozenset[str]:
        return frozenset(self.tokens)


def prepare_title(name: str | None, config: SimilarityConfig = DEFAULT_CONFIG) -> PreparedTitle:
    """タイトルを比較用に前処理する."""
    normalized = normalize_title(name)
    # トークン列は「記号除去後」の文字列から作る（"Half-Life" は "halflife" 1トークン）
    tokens = tuple(tokenize(normalized))
    patterns = config.sequel_patterns
    core = frozenset(t for t in tokens if not is_sequel_token(t, patterns))
    return PreparedTitle(
        raw=(name or "").casefold().strip(),
        normalized=normalized,
        spaced=spaced_title(name),
        tokens=tokens,
        core=core,
    )


def _round_half_up(value: float) -> int:
    # round() は偶数丸めなので使わない（82.5 → 83 にしたい）
    return int(math.floor(value + 0.5))


def _all_sequel(tokens: Iterable[str], patterns: tuple[re.Pattern[str], ...]) -> bool:
    tokens = list(tokens)
    return bool(tokens) and all(is_sequel_token(t, patterns) for t in tokens)


def _containment(a: str, b: str, config: SimilarityConfig) -> SimilarityResult | None:
    """包含判定. 包含関係が無ければ None."""
    if len(a) <= len(b):
        shorter, longer = a, b
    else:
        shorter, longer = b, a

    if len(shorter) < config.min_normalized_length or len(shorter) == len(longer):
        return None

    position = longer.find(shorter)
    if position < 0:
        return None

    ratio = len(shorter) / len(longer)

    if position == 0:
        extra = longer[len(shorter) :]
        if _all_sequel(tokenize(extra), config.sequel_patterns):
            return _SEQUEL
        return SimilarityResult(_round_half_up(70 + 25 * ratio), MatchType.PREFIX)

    if position == len(longer) - len(shorter):
        return SimilarityResult(_round_half_up(50 + 30 * ratio), MatchType.SUFFIX)

    return SimilarityResult(_round_half_up(40 + 20 * ratio), MatchType.CONTAINS)


def _token_overlap(a: PreparedTitle, b: PreparedTitle, config: SimilarityConfig) -> SimilarityResult:
    intersection = a.core & b.core
    union = a.core | b.core
    jaccard = len(intersection) / len(union) if union else 0.0

    if len(intersection) == min(len(a.core), len(b.core)):
        # コアトークンが包含関係: 差分が続編トークンだけなら続編扱い
        difference = a.full ^ b.full
        if _all_sequel(difference, config.sequel_patterns):
            return _SEQUEL
        return SimilarityResult(_round_half_up(60 + 30 * jaccard), MatchType.FUZZY)

    if jaccard >= 0.5:
        return SimilarityResult(_round_half_up(jaccard * 70), MatchType.FUZZY)

    return _NO_MATCH


def score_prepared(
    a: PreparedTitle,
    b: PreparedTitle,
    config: SimilarityConfig = DEFAULT_CONFIG,
) -> SimilarityResult:
    """前処理済みタイトル同士のスコアを計算する（引数の順序に依存しない）."""
    # 記号だけ・非ラテン文字だけのタイトルは正規形が空になるので、元の名前が同じ場合のみ一致とする
    if not a.tokens or not b.tokens:
        if not a.tokens and not b.tokens and a.raw and a.raw == b.raw:
            return SimilarityResult(100, MatchType.EXACT)
        return _NO_MATCH

    if a.normalized == b.normalized or a.spaced == b.spaced:
        return SimilarityResult(100, MatchType.EXACT)

    if len(a.normalized) < config.min_normalized_length or len(b.normalized) < config.min_normalized_length:
        return _NO_MATCH

    contained = _containment(a.normalized, b.normalized, config)
    if contained is None:
        # "Half-Life 2" と "Half Life 2: Episode One" のようなハイフン有無の揺れ
        contained = _containment(a.spaced, b.spaced, config)
    if contained is not None:
        return contained

    return _token_overlap(a, b, config)


def calculate_similarity(
    name_a: str | None,
    name_b: str | None,
    config: SimilarityConfig = DEFAULT_CONFIG,
) -> SimilarityResult:
    """2つのタイトルの類似度を計算する.

    Args:
        name_a: タイトルA
        name_b: タイトルB
        config: しきい値・続編パターン

    Returns:
        スコア（0-100）と一致種別

    Examples:
        >>> calculate_similarity("The Sims™ 4", "The Sims 4")
        SimilarityResult(score=100, match_type=<MatchType.EXACT: 'exact'>)
        >>> calculate_similarity("Portal", "Portal 2")
        SimilarityResult(score=0, match_type=<MatchType.SEQUEL: 'sequel'>)
    """
    return score_prepared(prepare_title(name_a, config), prepare_title(name_b, config), config)
