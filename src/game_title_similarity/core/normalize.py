"""タイトル正規化（name → 比較用文字列 / トークン列）.

類似タイトル判定で使う「比較用の正規形」とトークン列を作る関数群です。

設計方針:
    - 正規化は比較専用（DB上の name は書き換えない）
    - 記号・商標記号（™ ® など）は比較のノイズなので除去する
    - アクセント付き文字は基底文字に寄せる（é → e）。ロケール依存の照合は行わない
    - 続編番号（II, 2, two, second など）は「別タイトル」のシグナルなので、トークン単位で判定できるようにする
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable

_NON_ALNUM_SPACE = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")

# 続編/ナンバリング判定パターン（名前付きセット）
#
# NOTE:
# - edition_words / edition_suffixes / release_markers は定義のみで既定では無効。
#   "Deluxe Edition" などを重複扱いにするかは運用で判断するため、config で明示的に有効化する。
SEQUEL_PATTERN_SETS: dict[str, re.Pattern[str]] = {
    "roman_numerals": re.compile(r"^(i{1,3}|iv|vi{0,3}|ix|x{1,3}|xi{1,3}|xiv|xv)$", re.IGNORECASE),
    "arabic_numerals": re.compile(r"^[0-9]+$"),
    "cardinal_words": re.compile(
        r"^(one|two|three|four|five|six|seven|eight|nine|ten|eleven|twelve)$", re.IGNORECASE
    ),
    "ordinal_words": re.compile(
        r"^(first|second|third|fourth|fifth|sixth|seventh|eighth|ninth|tenth)$", re.IGNORECASE
    ),
    "edition_words": re.compile(
        r"^(hd|remastered|remake|definitive|ultimate|complete|goty|deluxe|premium|gold|platinum"
        r"|special|anniversary|enhanced)$",
        re.IGNORECASE,
    ),
    "edition_suffixes": re.compile(
        r"^(edition|version|remaster|redux|extended|director|cut|classic|legacy|standard)$",
        re.IGNORECASE,
    ),
    "release_markers": re.compile(r"^(beta|alpha|demo|trial|test|preview)$", re.IGNORECASE),
}

DEFAULT_SEQUEL_PATTERN_SET_NAMES: tuple[str, ...] = (
    "roman_numerals",
    "arabic_numerals",
    "cardinal_words",
    "ordinal_words",
)

DEFAULT_SEQUEL_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    SEQUEL_PATTERN_SETS[name] for name in DEFAULT_SEQUEL_PATTERN_SET_NAMES
)


def _fold(title: str | None) -> str:
    """小文字化し、アクセント記号を分離する（NFD）.

    NFKD ではなく NFD を使う。NFKD は ™ を "TM" に展開してしまい、
    "The Sims™ 4" と "The Sims 4" が一致しなくなるため。
    """
    if not title:
        return ""
    return unicodedata.normalize("NFD", title.lower())


def normalize_title(title: str | None) -> str:
    """タイトルを比較用の正規形に変換する.

    小文字化したうえで英数字と空白以外の文字を除去する。
    内部の空白はそのまま残す（部分一致判定とトークン化のため）。前後の空白のみ落とす。

    Args:
        title: 生タイトル（None/空文字は空文字として扱う）

    Returns:
        正規化済み文字列

    Examples:
        >>> normalize_title("The Sims™ 4")
        'the sims 4'
        >>> normalize_title("Half-Life 2")
        'halflife 2'
        >>> normalize_title("Pokémon Red")
        'pokemon red'
    """
    # 前後の空白のみ落とす（"Portal " と "Portal" は完全一致）。内部の空白はそのまま
    return _NON_ALNUM_SPACE.sub("", _fold(title)).strip()


def tokenize(title: str | None) -> list[str]:
    """タイトルをトークン列に分割する.

    英数字以外は空白に置き換えてから分割するため、"Half-Life" は ["half", "life"] になる。

    Examples:
        >>> tokenize("Half Life 2: Episode One")
        ['half', 'life', '2', 'episode', 'one']
    """
    spaced = _NON_ALNUM_SPACE.sub(" ", _fold(title))
    return [t for t in _WHITESPACE.split(spaced) if t]


def spaced_title(title: str | None) -> str:
    """記号を区切りとして扱った正規形（トークンを単一空白で連結）.

    "Half-Life 2" → "half life 2"。normalize_title() で一致しない表記揺れ
    （ハイフン有無など）の比較に使う。
    """
    return " ".join(tokenize(title))


def is_sequel_token(
    token: str,
    patterns: Iterable[re.Pattern[str]] = DEFAULT_SEQUEL_PATTERNS,
) -> bool:
    """トークンが続編/ナンバリング表記かを判定する.

    Examples:
        >>> is_sequel_token("viii")
        True
        >>> is_sequel_token("second")
        True
        >>> is_sequel_token("episode")
        False
    """
    return any(p.match(token) for p in patterns)


def core_tokens(
    title: str | None,
    patterns: Iterable[re.Pattern[str]] = DEFAULT_SEQUEL_PATTERNS,
) -> list[str]:
    """続編トークンを除いたトークン列."""
    patterns = tuple(patterns)
    return [t for t in tokenize(title) if not is_sequel_token(t, patterns)]
