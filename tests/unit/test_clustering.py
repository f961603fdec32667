"""Unit tests for union-find grouping of similar titles."""

from game_title_similarity.core.clustering import DisjointSet, build_groups
from game_title_similarity.core.models import SimilarityPair, Title
from game_title_similarity.core.scoring import MatchType

OWNER = 1

TITLES = {
    t.id: t
    for t in [
        Title("a", "Witcher Wild Hunt", OWNER),
        Title("b", "The Witcher 3: Wild Hunt", OWNER),
        Title("c", "The Witcher 3 Wild Hunt GOTY", OWNER),
        Title("d", "Minecraft", OWNER),
        Title("e", "Lego Minecraft", OWNER),
        Title("f", "Portal", OWNER),
    ]
}


def _pair(pair_id: str, a: str, b: str, score: int = 80, dismissed: bool = False) -> SimilarityPair:
    return SimilarityPair(
        id=pair_id,
        title_a_id=a,
        title_b_id=b,
        owner_id=OWNER,
        similarity_score=score,
        match_type=MatchType.FUZZY,
        dismissed=dismissed,
    )


class TestDisjointSet:
    """DisjointSet のテスト."""

    def test_union_find(self) -> None:
        dsu = DisjointSet(5)
        assert dsu.union(0, 1)
        assert dsu.union(1, 2)
        assert not dsu.union(0, 2)
        assert dsu.find(0) == dsu.find(2)
        assert dsu.find(3) != dsu.find(0)
        assert len(dsu) == 5

    def test_long_chain(self) -> None:
        """長い連鎖でも再帰せずに根を求める."""
        size = 10_000
        dsu = DisjointSet(size)
        for i in range(size - 1):
            dsu.union(i, i + 1)
        root = dsu.find(0)
        assert all(dsu.find(i) == root for i in range(size))


class TestBuildGroups:
    """build_groups関数のテスト."""

    def test_transitive_grouping(self) -> None:
        """A-B, B-C のペアから A, B, C の1グループになる."""
        pairs = [_pair("p1", "a", "b", 90), _pair("p2", "b", "c", 85), _pair("p3", "d", "e", 69)]

        groups = build_groups(pairs, TITLES)

        assert [g.size for g in groups] == [3, 2]
        assert {t.id for t in groups[0].titles} == {"a", "b", "c"}
        assert {p.pair_id for p in groups[0].pairs} == {"p1", "p2"}
        assert {t.id for t in groups[1].titles} == {"d", "e"}

    def test_singletons_excluded(self) -> None:
        """ペアのないタイトルはグループにならない."""
        groups = build_groups([_pair("p1", "a", "b")], TITLES)
        assert len(groups) == 1
        assert "f" not in {t.id for g in groups for t in g.titles}

    def test_dismissed_pairs_do_not_connect(self) -> None:
        """既定では dismissed ペアは連結に使わないが、ペア情報には残る."""
        pairs = [_pair("p1", "a", "b"), _pair("p2", "b", "c", dismissed=True)]

        groups = build_groups(pairs, TITLES)

        assert len(groups) == 1
        assert {t.id for t in groups[0].titles} == {"a", "b"}
        summaries = {p.pair_id: p for p in groups[0].pairs}
        assert summaries["p2"].dismissed is True

    def test_include_dismissed(self) -> None:
        pairs = [_pair("p1", "a", "b"), _pair("p2", "b", "c", dismissed=True)]
        groups = build_groups(pairs, TITLES, include_dismissed=True)
        assert [g.size for g in groups] == [3]

    def test_all_dismissed(self) -> None:
        groups = build_groups([_pair("p1", "a", "b", dismissed=True)], TITLES)
        assert groups == []

    def test_unknown_titles_and_self_pairs_skipped(self) -> None:
        pairs = [_pair("p1", "a", "zz"), _pair("p2", "d", "d"), _pair("p3", "d", "e")]
        groups = build_groups(pairs, TITLES)
        assert len(groups) == 1
        assert {p.pair_id for p in groups[0].pairs} == {"p3"}

    def test_normalized_name_from_group_member(self) -> None:
        groups = build_groups([_pair("p1", "d", "e")], TITLES)
        assert groups[0].normalized_name in {"minecraft", "lego minecraft"}

    def test_empty(self) -> None:
        assert build_groups([], TITLES) == []

    def test_as_dict(self) -> None:
        groups = build_groups([_pair("p1", "d", "e", 69)], TITLES)
        data = groups[0].as_dict()
        assert {t["id"] for t in data["titles"]} == {"d", "e"}
        assert data["pairs"] == [{"pair_id": "p1", "score": 69, "match_type": "fuzzy", "dismissed": False}]
