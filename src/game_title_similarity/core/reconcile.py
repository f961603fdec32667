"""類似ペアの再計算と差分抽出（リコンサイル）.

- オーナーの全タイトルについて全ペアをスコアリングし、しきい値以上を候補ペアとする
- 保存済みペアと正規キーで突き合わせ、作成/更新/削除の意図（intent）を返す
- dismissed はここでは一切変更しない（更新はスコアと一致種別のみ）

この関数は純粋関数で、永続化は呼び出し側（pair_store）が行う。
同じ入力で再実行すれば同じ intent 集合が得られるため、適用に失敗しても全体を再実行すればよい。
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from loguru import logger

from .config import DEFAULT_CONFIG, SimilarityConfig
from .models import SimilarityPair, Title, pair_key
from .scoring import MatchType, prepare_title, score_prepared


@dataclass(frozen=True)
class CandidatePair:
    """今回の計算でしきい値を超えたペア（正規順）."""

    title_a_id: str
    title_b_id: str
    score: int
    match_type: MatchType

    @property
    def key(self) -> tuple[str, str]:
        return self.title_a_id, self.title_b_id


@dataclass(frozen=True)
class PairUpdate:
    """既存ペアのスコア/一致種別の更新（dismissed は触らない）."""

    pair_id: str
    title_a_id: str
    title_b_id: str
    previous_score: int
    previous_match_type: MatchType
    score: int
    match_type: MatchType


@dataclass
class ReconcileResult:
    """リコンサイル結果（適用すべき操作の一覧と集計）."""

    owner_id: int
    found: list[CandidatePair] = field(default_factory=list)
    created: list[CandidatePair] = field(default_factory=list)
    updated: list[PairUpdate] = field(default_factory=list)
    removed: list[SimilarityPair] = field(default_factory=list)
    # 保存済みデータの不整合で無視したペア（自己参照、オーナー不一致、重複キー）
    skipped: list[SimilarityPair] = field(default_factory=list)

    @property
    def pairs_found(self) -> int:
        return len(self.found)

    @property
    def pairs_created(self) -> int:
        return len(self.created)

    @property
    def pairs_updated(self) -> int:
        return len(self.updated)

    @property
    def pairs_removed(self) -> int:
        return len(self.removed)

    @property
    def has_changes(self) -> bool:
        return bool(self.created or self.updated or self.removed)

    def counts(self) -> dict[str, int]:
        return {
            "pairs_found": self.pairs_found,
            "pairs_created": self.pairs_created,
            "pairs_updated": self.pairs_updated,
            "pairs_removed": self.pairs_removed,
        }


def _unique_titles(owner_id: int, titles: Iterable[Title]) -> list[Title]:
    """オーナー一致・ID重複なしのタイトルだけを残す."""
    seen: set[str] = set()
    result: list[Title] = []
    for title in titles:
        if title.owner_id != owner_id:
            logger.warning(
                f"Skipping title {title.id!r}: owner {title.owner_id} does not match {owner_id}"
            )
            continue
        if title.id in seen:
            logger.warning(f"Skipping duplicate title id {title.id!r} (name: {title.name!r})")
            continue
        seen.add(title.id)
        result.append(title)
    return result


def compute_candidate_pairs(
    titles: Sequence[Title],
    config: SimilarityConfig = DEFAULT_CONFIG,
) -> list[CandidatePair]:
    """全ペア（i < j）をスコアリングし、しきい値以上のペアを返す.

    タイトルの前処理（正規化・トークン化）はタイトルごとに1回だけ行う。

    Args:
        titles: 同一オーナーのタイトル（ID重複なし）
        config: しきい値・続編パターン

    Returns:
        正規キー順にソートされた候補ペア
    """
    prepared = [prepare_title(t.name, config) for t in titles]
    candidates: list[CandidatePair] = []

    for i in range(len(titles)):
        for j in range(i + 1, len(titles)):
            result = score_prepared(prepared[i], prepared[j], config)
            if result.score < config.min_similarity_score or result.score <= 0:
                continue
            title_a_id, title_b_id = pair_key(titles[i].id, titles[j].id)
            candidates.append(CandidatePair(title_a_id, title_b_id, result.score, result.match_type))

    # 再現性のため正規キーでソート
    candidates.sort(key=lambda c: c.key)
    return candidates


def _index_stored_pairs(
    owner_id: int,
    stored_pairs: Iterable[SimilarityPair],
    skipped: list[SimilarityPair],
) -> dict[tuple[str, str], SimilarityPair]:
    index: dict[tuple[str, str], SimilarityPair] = {}
    for pair in stored_pairs:
        if pair.title_a_id == pair.title_b_id:
            logger.warning(f"Skipping self-referencing pair {pair.id!r} (title {pair.title_a_id!r})")
            skipped.append(pair)
            continue
        if pair.owner_id != owner_id:
            logger.warning(f"Skipping pair {pair.id!r}: owner {pair.owner_id} does not match {owner_id}")
            skipped.append(pair)
            continue
        if pair.key in index:
            logger.warning(
                f"Skipping duplicate stored pair {pair.id!r} for key {pair.key} "
                f"(kept {index[pair.key].id!r})"
            )
            skipped.append(pair)
            continue
        index[pair.key] = pair
    return index


def reconcile(
    owner_id: int,
    titles: Iterable[Title],
    stored_pairs: Iterable[SimilarityPair],
    config: SimilarityConfig = DEFAULT_CONFIG,
) -> ReconcileResult:
    """現在のタイトル集合と保存済みペアから、作成/更新/削除の操作を求める.

    Args:
        owner_id: 対象オーナー
        titles: オーナーの全タイトル
        stored_pairs: オーナーの保存済みペア
        config: しきい値・続編パターン

    Returns:
        ReconcileResult（created / updated / removed と集計）

    Examples:
        >>> titles = [Title("1", "Portal", 1), Title("2", "Portal™", 1)]
        >>> result = reconcile(1, titles, [])
        >>> result.pairs_created
        1
    """
    result = ReconcileResult(owner_id=owner_id)

    current = _unique_titles(owner_id, titles)
    existing = _index_stored_pairs(owner_id, stored_pairs, result.skipped)

    result.found = compute_candidate_pairs(current, config)
    seen_keys: set[tuple[str, str]] = set()

    for candidate in result.found:
        seen_keys.add(candidate.key)
        stored = existing.get(candidate.key)
        if stored is None:
            result.created.append(candidate)
        elif stored.similarity_score != candidate.score or stored.match_type != candidate.match_type:
            result.updated.append(
                PairUpdate(
                    pair_id=stored.id,
                    title_a_id=candidate.title_a_id,
                    title_b_id=candidate.title_b_id,
                    previous_score=stored.similarity_score,
                    previous_match_type=stored.match_type,
                    score=candidate.score,
                    match_type=candidate.match_type,
                )
            )

    # 今回見つからなかったペアは削除（dismissed 状態も一緒に消える）
    for key, stored in existing.items():
        if key not in seen_keys:
            result.removed.append(stored)

    logger.debug(
        f"Reconciled owner {owner_id}: titles={len(current)} "
        f"found={result.pairs_found} created={result.pairs_created} "
        f"updated={result.pairs_updated} removed={result.pairs_removed} skipped={len(result.skipped)}"
    )
    return result
