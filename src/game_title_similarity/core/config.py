"""類似度判定の設定.

しきい値と続編パターンを SimilarityConfig として明示的に受け渡すためのモジュールです。
モジュールレベルの定数を書き換えるのではなく、設定オブジェクトを scorer / reconciler に渡します。

使用例:
    >>> config = load_config(Path("similarity.yml"))
    >>> config = apply_env_overrides(config)
    >>> config.min_similarity_score
    50

YAML形式:
    min_similarity_score: 50
    min_normalized_length: 4
    sequel_pattern_sets:
      - roman_numerals
      - arabic_numerals
      - cardinal_words
      - ordinal_words
    extra_sequel_patterns:
      - "^(remake)$"
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from functools import cached_property
from pathlib import Path

import yaml
from loguru import logger

from .normalize import DEFAULT_SEQUEL_PATTERN_SET_NAMES, SEQUEL_PATTERN_SETS

DEFAULT_MIN_SIMILARITY_SCORE = 50
DEFAULT_MIN_NORMALIZED_LENGTH = 4

# 環境変数名 → SimilarityConfig のフィールド名
ENV_KEY_MAP = {
    "MIN_SIMILARITY_SCORE": "min_similarity_score",
    "MIN_NORMALIZED_TITLE_LENGTH": "min_normalized_length",
}

_CONFIG_KEYS = {
    "min_similarity_score",
    "min_normalized_length",
    "sequel_pattern_sets",
    "extra_sequel_patterns",
}


@dataclass(frozen=True)
class SimilarityConfig:
    """類似度判定の設定.

    Attributes:
        min_similarity_score: ペアとして保存する最小スコア（0-100）
        min_normalized_length: 比較対象とする正規化後の最小文字数
        sequel_pattern_sets: 有効にする続編パターンセット名（normalize.SEQUEL_PATTERN_SETS のキー）
        extra_sequel_patterns: 追加の続編トークン正規表現
    """

    min_similarity_score: int = DEFAULT_MIN_SIMILARITY_SCORE
    min_normalized_length: int = DEFAULT_MIN_NORMALIZED_LENGTH
    sequel_pattern_sets: tuple[str, ...] = DEFAULT_SEQUEL_PATTERN_SET_NAMES
    extra_sequel_patterns: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        """設定値の妥当性を検証.

        Raises:
            ValueError: 範囲外の値、未知のパターンセット名、コンパイルできない正規表現がある場合
        """
        if isinstance(self.min_similarity_score, bool) or not isinstance(self.min_similarity_score, int):
            msg = f"min_similarity_score must be an integer, got {self.min_similarity_score!r}"
            raise ValueError(msg)
        if not 0 <= self.min_similarity_score <= 100:
            msg = f"min_similarity_score must be within 0..100, got {self.min_similarity_score}"
            raise ValueError(msg)

        if isinstance(self.min_normalized_length, bool) or not isinstance(self.min_normalized_length, int):
            msg = f"min_normalized_length must be an integer, got {self.min_normalized_length!r}"
            raise ValueError(msg)
        if self.min_normalized_length < 0:
            msg = f"min_normalized_length must be >= 0, got {self.min_normalized_length}"
            raise ValueError(msg)

        unknown = [name for name in self.sequel_pattern_sets if name not in SEQUEL_PATTERN_SETS]
        if unknown:
            msg = f"Unknown sequel pattern set(s): {unknown}. Valid sets: {sorted(SEQUEL_PATTERN_SETS)}"
            raise ValueError(msg)

        for pattern in self.extra_sequel_patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                msg = f"Invalid extra sequel pattern {pattern!r}: {e}"
                raise ValueError(msg) from e

    @cached_property
    def sequel_patterns(self) -> tuple[re.Pattern[str], ...]:
        """有効な続編パターン（コンパイル済み）."""
        compiled = [SEQUEL_PATTERN_SETS[name] for name in self.sequel_pattern_sets]
        compiled.extend(re.compile(p, re.IGNORECASE) for p in self.extra_sequel_patterns)
        return tuple(compiled)

    def as_dict(self) -> dict[str, object]:
        return {
            "min_similarity_score": self.min_similarity_score,
            "min_normalized_length": self.min_normalized_length,
            "sequel_pattern_sets": list(self.sequel_pattern_sets),
            "extra_sequel_patterns": list(self.extra_sequel_patterns),
        }


DEFAULT_CONFIG = SimilarityConfig()


def config_from_mapping(data: Mapping[str, object]) -> SimilarityConfig:
    """辞書から SimilarityConfig を作成する.

    Raises:
        ValueError: 未知のキーがある場合、値の型が不正な場合
    """
    unknown = sorted(set(data) - _CONFIG_KEYS)
    if unknown:
        msg = f"Unknown config key(s): {unknown}. Valid keys: {sorted(_CONFIG_KEYS)}"
        raise ValueError(msg)

    kwargs: dict[str, object] = {}
    for key in ("min_similarity_score", "min_normalized_length"):
        if key in data:
            kwargs[key] = data[key]
    for key in ("sequel_pattern_sets", "extra_sequel_patterns"):
        if key in data:
            value = data[key]
            if value is None:
                value = []
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                msg = f"'{key}' must be a list of strings, got {value!r}"
                raise ValueError(msg)
            kwargs[key] = tuple(value)

    return SimilarityConfig(**kwargs)  # type: ignore[arg-type]


def load_config(config_path: Path | str) -> SimilarityConfig:
    """YAMLファイルから設定を読み込む.

    Args:
        config_path: 設定YAMLファイルのパス

    Returns:
        設定オブジェクト

    Raises:
        FileNotFoundError: ファイルが存在しない場合
        ValueError: YAML形式が不正、またはキー/値が不正な場合
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in config file: {config_path}"
        raise ValueError(msg) from e

    # 空ファイルは既定値
    if data is None:
        data = {}

    if not isinstance(data, dict):
        msg = f"Config file must contain a mapping, got {type(data)}"
        raise ValueError(msg)

    config = config_from_mapping(data)
    logger.info(f"Loaded similarity config from {config_path}: {config.as_dict()}")
    return config


def apply_env_overrides(
    config: SimilarityConfig,
    environ: Mapping[str, str] | None = None,
) -> SimilarityConfig:
    """環境変数でしきい値を上書きする（ファイル設定より優先）.

    Args:
        config: ベースとなる設定
        environ: 環境変数（Noneの場合は os.environ）

    Raises:
        ValueError: 環境変数の値が整数でない場合
    """
    environ = os.environ if environ is None else environ

    changes: dict[str, int] = {}
    for env_key, field_name in ENV_KEY_MAP.items():
        raw = environ.get(env_key)
        if raw is None or not raw.strip():
            continue
        try:
            changes[field_name] = int(raw.strip())
        except ValueError as e:
            msg = f"Environment variable {env_key} must be an integer, got {raw!r}"
            raise ValueError(msg) from e
        logger.debug(f"Config override from {env_key}: {field_name}={changes[field_name]}")

    if not changes:
        return config
    return replace(config, **changes)  # type: ignore[arg-type]


def resolve_config(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> SimilarityConfig:
    """設定ファイル（任意）→ 環境変数の順で設定を解決する."""
    config = load_config(config_path) if config_path else DEFAULT_CONFIG
    return apply_env_overrides(config, environ)
