"""Unit tests for ClusterEngine — greedy similarity clustering and diverse selection."""

from __future__ import annotations

import pytest

from src.models.subject import Cluster
from src.services.cluster_engine import ClusterEngine
from src.utils.errors import DimensionMismatchError
from tests.conftest import make_chunk


def _one_hot(index: int, dim: int) -> list[float]:
    vector = [0.0] * dim
    vector[index] = 1.0
    return vector


class TestClusterBySimilarity:
    def test_similar_chunks_join_the_seed(self) -> None:
        chunks = [
            make_chunk("doc", 0, "light", [1.0, 0.0]),
            make_chunk("doc", 1, "cells", [0.0, 1.0]),
            make_chunk("doc", 2, "light again", [1.0, 0.05]),
            make_chunk("doc", 3, "cells again", [0.02, 1.0]),
        ]
        clusters = ClusterEngine(similarity_threshold=0.6).cluster(chunks)

        assert len(clusters) == 2
        assert [m.id for m in clusters[0].members] == ["doc:0", "doc:2"]
        assert [m.id for m in clusters[1].members] == ["doc:1", "doc:3"]
        assert all(c.importance == 2 for c in clusters)
        assert not any(c.is_fallback for c in clusters)

    def test_centroid_is_seed_vector(self) -> None:
        chunks = [
            make_chunk("doc", 0, "a", [1.0, 0.0]),
            make_chunk("doc", 1, "b", [0.9, 0.1]),
        ]
        clusters = ClusterEngine().cluster(chunks)
        assert clusters[0].centroid == [1.0, 0.0]

    def test_clusters_sorted_by_importance(self) -> None:
        chunks = [
            make_chunk("doc", 0, "solo", [0.0, 1.0]),
            make_chunk("doc", 1, "x", [1.0, 0.0]),
            make_chunk("doc", 2, "y", [1.0, 0.0]),
            make_chunk("doc", 3, "z", [1.0, 0.0]),
        ]
        clusters = ClusterEngine().cluster(chunks)
        assert [c.importance for c in clusters] == [3, 1]
        assert clusters[0].members[0].id == "doc:1"

    def test_every_chunk_lands_in_exactly_one_cluster(self) -> None:
        vectors = [[1.0, 0.0], [0.8, 0.6], [0.6, 0.8], [0.0, 1.0], [0.7, 0.7]]
        chunks = [make_chunk("doc", i, f"t{i}", v) for i, v in enumerate(vectors)]
        clusters = ClusterEngine(similarity_threshold=0.9).cluster_by_similarity(chunks)

        ids = [m.id for c in clusters for m in c.members]
        assert sorted(ids) == sorted(c.id for c in chunks)

    def test_threshold_of_one_still_groups_identical_vectors(self) -> None:
        chunks = [
            make_chunk("doc", 0, "a", [0.3, 0.4]),
            make_chunk("doc", 1, "b", [0.3, 0.4]),
            make_chunk("doc", 2, "c", [0.4, 0.3]),
        ]
        clusters = ClusterEngine(similarity_threshold=1.0).cluster_by_similarity(chunks)
        assert [c.importance for c in clusters] == [2, 1]

    def test_single_chunk_is_one_natural_cluster(self) -> None:
        clusters = ClusterEngine().cluster([make_chunk("doc", 0, "only", [1.0, 0.0])])
        assert len(clusters) == 1
        assert clusters[0].is_fallback is False

    def test_chunks_without_embeddings_are_skipped(self) -> None:
        chunks = [
            make_chunk("doc", 0, "a", [1.0, 0.0]),
            make_chunk("doc", 1, "b", None),
        ]
        clusters = ClusterEngine().cluster(chunks)
        assert [m.id for c in clusters for m in c.members] == ["doc:0"]

    def test_no_embeddings_gives_no_clusters(self) -> None:
        assert ClusterEngine().cluster([make_chunk("doc", 0, "a", None)]) == []
        assert ClusterEngine().cluster([]) == []

    def test_mixed_dimensions_raise(self) -> None:
        chunks = [
            make_chunk("doc", 0, "a", [1.0, 0.0]),
            make_chunk("doc", 1, "b", [1.0, 0.0, 0.0]),
        ]
        with pytest.raises(DimensionMismatchError):
            ClusterEngine().cluster(chunks)


class TestFallbackGrouping:
    def test_all_singletons_fall_back_to_sequential_groups(self) -> None:
        chunks = [make_chunk("doc", i, f"t{i}", _one_hot(i, 12)) for i in range(12)]
        clusters = ClusterEngine(target_groups=8).cluster(chunks)

        assert [c.importance for c in clusters] == [5, 5, 2]
        assert all(c.is_fallback for c in clusters)
        assert [m.chunk_index for m in clusters[0].members] == [0, 1, 2, 3, 4]
        assert len(clusters) < len(chunks)

    def test_group_size_grows_with_chunk_count(self) -> None:
        chunks = [make_chunk("doc", i, f"t{i}", _one_hot(i, 80)) for i in range(80)]
        groups = ClusterEngine(target_groups=8).group_sequential(chunks)
        assert [g.importance for g in groups] == [10] * 8


class TestSelectDiverse:
    @staticmethod
    def _clusters(count: int) -> list[Cluster]:
        # Importance descends with position; mean chunk index is scrambled.
        return [
            Cluster(
                centroid=[1.0],
                members=[make_chunk("doc", (i * 7) % count, f"t{i}", [1.0])],
                importance=count - i + 1,
            )
            for i in range(count)
        ]

    def test_small_input_is_returned_whole(self) -> None:
        clusters = self._clusters(4)
        assert ClusterEngine.select_diverse(clusters, cap=10) == clusters

    def test_zero_cap(self) -> None:
        assert ClusterEngine.select_diverse(self._clusters(4), cap=0) == []

    def test_top_three_always_kept(self) -> None:
        clusters = self._clusters(15)
        selected = ClusterEngine.select_diverse(clusters, cap=10)

        assert len(selected) == 10
        assert selected[:3] == clusters[:3]

    def test_result_keeps_importance_order(self) -> None:
        clusters = self._clusters(23)
        selected = ClusterEngine.select_diverse(clusters, cap=5)

        positions = [clusters.index(c) for c in selected]
        assert positions == sorted(positions)

    def test_remaining_slots_stride_across_the_document(self) -> None:
        clusters = self._clusters(23)
        selected = ClusterEngine.select_diverse(clusters, cap=5)

        rest = sorted(clusters[3:], key=lambda c: c.mean_chunk_index)
        # 20 remaining clusters over 2 slots: stride of 10.
        assert {id(c) for c in selected[3:]} == {id(rest[0]), id(rest[10])}


class TestConfiguration:
    def test_invalid_threshold_raises(self) -> None:
        with pytest.raises(ValueError):
            ClusterEngine(similarity_threshold=1.5)

    def test_invalid_target_raises(self) -> None:
        with pytest.raises(ValueError):
            ClusterEngine(target_groups=0)
