from __future__ import annotations

import numpy as np

from src.similar_items.matrix import build_interaction_matrix


def test_rows_are_sorted_and_sized_to_item_count() -> None:
    mat = build_interaction_matrix(
        np.array([1, 0, 0, 1]),
        np.array([3, 2, 0, 1]),
        np.array([1.0, 2.0, 3.0, 4.0]),
        n_users=3,
        n_items=5,
    )

    assert mat.shape == (3, 5)
    assert mat.indices[mat.indptr[0] : mat.indptr[1]].tolist() == [0, 2]
    assert mat.data[mat.indptr[0] : mat.indptr[1]].tolist() == [3.0, 2.0]
    assert mat.indices[mat.indptr[1] : mat.indptr[2]].tolist() == [1, 3]
    # user 2 rated nothing
    assert mat.indptr[3] - mat.indptr[2] == 0


def test_duplicate_user_item_keeps_last_rating() -> None:
    mat = build_interaction_matrix(
        np.array([0, 0, 0]),
        np.array([1, 1, 2]),
        np.array([1.0, 5.0, 2.0]),
        n_users=1,
        n_items=3,
    )

    assert mat.nnz == 2
    assert mat[0, 1] == 5.0
    assert mat[0, 2] == 2.0
