"""類似ペアのクラスタリング（表示用グループ化）.

保存済みペアを union-find で連結成分にまとめ、2件以上のタイトルを持つグループを返します。
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from loguru import logger

from .models import PairSummary, SimilarityPair, Title, TitleGroup
from .normalize import normalize_title


class DisjointSet:
    """配列ベースの素集合（経路圧縮付き）.

    呼び出しごとに新しく作る前提で、インデックスは 0..size-1。
    """

    def __init__(self, size: int) -> None:
        self._parent = list(range(size))

    def __len__(self) -> int:
        return len(self._parent)

    def find(self, i: int) -> int:
        root = i
        while self._parent[root] != root:
            root = self._parent[root]
        # 経路圧縮
        while self._parent[i] != root:
            next_i = self._parent[i]
            self._parent[i] = root
            i = next_i
        return root

    def union(self, i: int, j: int) -> bool:
        """i と j を同じ集合にする. 既に同じなら False."""
        root_i = self.find(i)
        root_j = self.find(j)
        if root_i == root_j:
            return False
        self._parent[root_i] = root_j
        return True


def build_groups(
    pairs: Iterable[SimilarityPair],
    titles: Mapping[str, Title],
    *,
    include_dismissed: bool = False,
) -> list[TitleGroup]:
    """ペア一覧からタイトルグループを作る.

    Args:
        pairs: 保存済みペア（通常はスコア降順）
        titles: title_id → Title
        include_dismissed: True の場合は dismissed ペアも連結に使う。
            False の場合、dismissed ペアは連結には使わないが、グループのペア情報には含める

    Returns:
        タイトル数の多い順のグループ（2件以上のもののみ）
    """
    title_index: dict[str, int] = {}
    ordered_titles: list[Title] = []
    pairs_by_title: dict[str, dict[str, PairSummary]] = {}
    usable_pairs: list[SimilarityPair] = []

    for pair in pairs:
        if pair.title_a_id == pair.title_b_id:
            logger.warning(f"Skipping self-referencing pair {pair.id!r}")
            continue
        missing = [tid for tid in (pair.title_a_id, pair.title_b_id) if tid not in titles]
        if missing:
            logger.warning(f"Skipping pair {pair.id!r}: unknown title id(s) {missing}")
            continue

        summary = pair.summary()
        for title_id in (pair.title_a_id, pair.title_b_id):
            if title_id not in title_index:
                title_index[title_id] = len(ordered_titles)
                ordered_titles.append(titles[title_id])
                pairs_by_title[title_id] = {}
            pairs_by_title[title_id][summary.pair_id] = summary
        usable_pairs.append(pair)

    if not ordered_titles:
        return []

    dsu = DisjointSet(len(ordered_titles))
    for pair in usable_pairs:
        if pair.dismissed and not include_dismissed:
            continue
        dsu.union(title_index[pair.title_a_id], title_index[pair.title_b_id])

    members: dict[int, list[int]] = {}
    for idx in range(len(ordered_titles)):
        members.setdefault(dsu.find(idx), []).append(idx)

    groups: list[TitleGroup] = []
    for root, indexes in members.items():
        if len(indexes) < 2:
            continue
        group_pairs: dict[str, PairSummary] = {}
        for idx in indexes:
            group_pairs.update(pairs_by_title[ordered_titles[idx].id])
        groups.append(
            TitleGroup(
                normalized_name=normalize_title(ordered_titles[root].name),
                titles=tuple(ordered_titles[idx] for idx in indexes),
                pairs=tuple(group_pairs.values()),
            )
        )

    # 安定ソートなので同サイズのグループは出現順のまま
    groups.sort(key=lambda g: g.size, reverse=True)
    return groups
