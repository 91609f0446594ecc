"""Unit tests for cosine similarity helpers."""

from __future__ import annotations

import numpy as np
import pytest

from src.utils.errors import DimensionMismatchError
from src.utils.similarity import clamp_unit, cosine_similarity, similarity_matrix


class TestCosineSimilarity:
    def test_identical_vectors(self) -> None:
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self) -> None:
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self) -> None:
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)

    def test_zero_vector_is_similar_to_nothing(self) -> None:
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_dimension_mismatch_raises(self) -> None:
        with pytest.raises(DimensionMismatchError):
            cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])


class TestSimilarityMatrix:
    def test_matrix_is_symmetric_with_unit_diagonal(self) -> None:
        sims = similarity_matrix([[1.0, 0.0], [0.6, 0.8], [0.0, 1.0]])
        assert sims.shape == (3, 3)
        assert np.allclose(sims, sims.T)
        assert np.allclose(np.diag(sims), 1.0)
        assert sims[0, 1] == pytest.approx(0.6)

    def test_zero_rows_are_zero(self) -> None:
        sims = similarity_matrix([[0.0, 0.0], [1.0, 0.0]])
        assert sims[0].tolist() == [0.0, 0.0]
        assert sims[:, 0].tolist() == [0.0, 0.0]

    def test_empty_input(self) -> None:
        assert similarity_matrix([]).shape == (0, 0)

    def test_mixed_dimensions_raise(self) -> None:
        with pytest.raises(DimensionMismatchError):
            similarity_matrix([[1.0, 0.0], [1.0]])


def test_clamp_unit() -> None:
    assert clamp_unit(-0.2) == 0.0
    assert clamp_unit(0.4) == 0.4
    assert clamp_unit(1.3) == 1.0
