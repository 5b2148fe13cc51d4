from __future__ import annotations

import numpy as np
from scipy.sparse import coo_matrix, random as sparse_random

from src.similar_items.dimsum import estimate_column_similarities
from src.similar_items.index import similarity_vector, symmetrize_similarities


def test_symmetrized_index_is_exactly_symmetric_without_diagonal() -> None:
    mat = sparse_random(60, 20, density=0.25, format="csr", random_state=3)
    entries = estimate_column_similarities(mat, threshold=2.0, rng=np.random.default_rng(0))
    sims = symmetrize_similarities(entries)

    assert sims.nnz == 2 * entries.nnz
    assert (sims != sims.T).nnz == 0
    assert not sims.diagonal().any()
    for i in range(sims.shape[0]):
        idx, _ = similarity_vector(sims, i)
        assert (np.diff(idx) > 0).all()
        assert i not in idx.tolist()


def test_ascending_estimate_wins_when_both_orientations_present() -> None:
    entries = coo_matrix(
        (np.array([0.5, 0.9, 0.3, 0.7]), (np.array([0, 1, 2, 2]), np.array([1, 0, 1, 2]))),
        shape=(3, 3),
    )
    sims = symmetrize_similarities(entries).toarray()

    assert sims[0, 1] == 0.5
    assert sims[1, 0] == 0.5
    # only the descending (2, 1) estimate exists, so it is mirrored as-is
    assert sims[1, 2] == 0.3
    assert sims[2, 1] == 0.3
    # diagonal dropped
    assert sims[2, 2] == 0.0


def test_item_without_neighbors_has_empty_vector() -> None:
    entries = coo_matrix((np.array([0.4]), (np.array([0]), np.array([1]))), shape=(3, 3))
    sims = symmetrize_similarities(entries)

    idx, scores = similarity_vector(sims, 2)
    assert idx.size == 0
    assert scores.size == 0
    idx, scores = similarity_vector(sims, 1)
    assert idx.tolist() == [0]
    assert scores.tolist() == [0.4]


def test_repeated_same_orientation_entries_keep_last_instead_of_summing() -> None:
    entries = coo_matrix(
        (np.array([0.2, 0.6, 0.1, 0.4]), (np.array([0, 0, 2, 2]), np.array([1, 1, 0, 0]))),
        shape=(3, 3),
    )
    sims = symmetrize_similarities(entries).toarray()

    assert sims[0, 1] == 0.6
    assert sims[1, 0] == 0.6
    # only descending (2, 0) estimates exist: the last stored one wins
    assert sims[0, 2] == 0.4
    assert sims[2, 0] == 0.4
