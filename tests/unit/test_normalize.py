"""Unit tests for title normalization."""

import pytest

from game_title_similarity.core.normalize import (
    SEQUEL_PATTERN_SETS,
    core_tokens,
    is_sequel_token,
    normalize_title,
    spaced_title,
    tokenize,
)


class TestNormalizeTitle:
    """normalize_title関数のテスト."""

    def test_trademark_symbols_removed(self) -> None:
        """商標記号の除去."""
        assert normalize_title("The Sims™ 4") == "the sims 4"
        assert normalize_title("Pokémon® Red") == "pokemon red"

    def test_hyphen_removed_without_space(self) -> None:
        """ハイフンは区切りにせず除去する."""
        assert normalize_title("Half-Life 2") == "halflife 2"
        assert normalize_title("Spider-Man") == "spiderman"

    def test_internal_whitespace_preserved(self) -> None:
        """内部の空白は保持し、前後のみ落とす."""
        assert normalize_title("  Final   Fantasy  ") == "final   fantasy"

    def test_empty_and_none(self) -> None:
        """空文字/None."""
        assert normalize_title("") == ""
        assert normalize_title(None) == ""
        assert normalize_title("™®!!") == ""

    def test_non_latin_characters_dropped(self) -> None:
        """ASCII英数字以外は残らない."""
        assert normalize_title("ドラゴンクエスト 11") == "11"


class TestTokenize:
    """tokenize / spaced_title のテスト."""

    def test_symbols_split_tokens(self) -> None:
        assert tokenize("Half Life 2: Episode One") == ["half", "life", "2", "episode", "one"]
        assert tokenize("Half-Life") == ["half", "life"]

    def test_empty(self) -> None:
        assert tokenize("") == []
        assert tokenize(None) == []

    def test_spaced_title(self) -> None:
        assert spaced_title("Half-Life 2") == "half life 2"
        assert spaced_title("  The   Witcher ") == "the witcher"


class TestSequelTokens:
    """続編トークン判定のテスト."""

    @pytest.mark.parametrize("token", ["ii", "viii", "XIV", "2", "2077", "two", "Twelve", "second", "tenth"])
    def test_sequel_tokens(self, token: str) -> None:
        assert is_sequel_token(token)

    @pytest.mark.parametrize("token", ["episode", "deluxe", "edition", "beta", "ivy", "world"])
    def test_non_sequel_tokens(self, token: str) -> None:
        """エディション語などは既定では続編扱いしない."""
        assert not is_sequel_token(token)

    def test_edition_words_opt_in(self) -> None:
        """無効化されているセットも明示的に渡せば使える."""
        patterns = [SEQUEL_PATTERN_SETS["edition_words"], SEQUEL_PATTERN_SETS["edition_suffixes"]]
        assert is_sequel_token("deluxe", patterns)
        assert is_sequel_token("edition", patterns)
        assert not is_sequel_token("2", patterns)

    def test_core_tokens(self) -> None:
        assert core_tokens("Final Fantasy VII") == ["final", "fantasy"]
        assert core_tokens("The Witcher 3: Wild Hunt") == ["the", "witcher", "wild", "hunt"]
