"""類似タイトル判定で扱うレコード型."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .scoring import MatchType


def pair_key(title_a_id: str, title_b_id: str) -> tuple[str, str]:
    """順序なしペアの正規キー（小さいIDが先）.

    Examples:
        >>> pair_key("b", "a")
        ('a', 'b')
    """
    if title_b_id < title_a_id:
        return title_b_id, title_a_id
    return title_a_id, title_b_id


@dataclass(frozen=True)
class Title:
    """カタログ上のタイトル（外部ストアから読み込む読み取り専用レコード）."""

    id: str
    name: str
    owner_id: int


@dataclass(frozen=True)
class SimilarityPair:
    """保存済みの類似タイトルペア.

    title_a_id / title_b_id は正規順（title_a_id < title_b_id）で保存される。
    dismissed はユーザー操作でのみ変わり、再計算では上書きしない。
    """

    id: str
    title_a_id: str
    title_b_id: str
    owner_id: int
    similarity_score: int
    match_type: MatchType
    dismissed: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def key(self) -> tuple[str, str]:
        return pair_key(self.title_a_id, self.title_b_id)

    def summary(self) -> PairSummary:
        return PairSummary(
            pair_id=self.id,
            score=self.similarity_score,
            match_type=self.match_type,
            dismissed=self.dismissed,
        )


@dataclass(frozen=True)
class PairSummary:
    """表示用のペア情報."""

    pair_id: str
    score: int
    match_type: MatchType
    dismissed: bool

    def as_dict(self) -> dict[str, object]:
        return {
            "pair_id": self.pair_id,
            "score": self.score,
            "match_type": self.match_type.value,
            "dismissed": self.dismissed,
        }


@dataclass(frozen=True)
class TitleGroup:
    """連結成分としてまとめた類似タイトル群（2件以上）."""

    normalized_name: str
    titles: tuple[Title, ...]
    pairs: tuple[PairSummary, ...]

    @property
    def size(self) -> int:
        return len(self.titles)

    def as_dict(self) -> dict[str, object]:
        return {
            "normalized_name": self.normalized_name,
            "titles": [{"id": t.id, "name": t.name} for t in self.titles],
            "pairs": [p.as_dict() for p in self.pairs],
        }
