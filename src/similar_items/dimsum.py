"""Sampled column-similarity estimation (DIMSUM-style) over the interaction matrix.

For every pair of items (i, j) rated by the same user, the product of the two
ratings is kept with probability

    p(i, j) = min(1, threshold / (norm[i] * norm[j]))

and kept products are scaled by 1 / p(i, j), so the accumulated value is an
unbiased estimate of the column dot product. Dividing by norm[i] * norm[j] turns
it into an estimate of cosine similarity. Pairs of popular items (large norms)
are sampled most aggressively, which bounds the work spent on them.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional

import numpy as np
from scipy.sparse import coo_matrix, csr_matrix


logger = logging.getLogger(__name__)


def column_norms(mat: csr_matrix) -> np.ndarray:
    """L2 norm of every column."""
    sq = mat.multiply(mat)
    return np.sqrt(np.asarray(sq.sum(axis=0), dtype=np.float64).ravel())


def _pair_blocks(mat: csr_matrix, max_pairs: int) -> Iterator[tuple[np.ndarray, np.ndarray, np.ndarray]]:
    """Yield (i, j, rating_i * rating_j) blocks for co-occurring pairs with i < j.

    Blocks hold at most `max_pairs` pairs (or a single anchor column's pairs if
    that alone is larger). A row with more than `max_pairs` pairs is split by
    anchor column, so memory stays bounded for very heavy users.
    Pairs come out in row order, then anchor order.
    """
    cols_i: list[np.ndarray] = []
    cols_j: list[np.ndarray] = []
    prods: list[np.ndarray] = []
    pending = 0

    def _flush() -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        nonlocal pending
        block = (
            np.concatenate(cols_i).astype(np.int64, copy=False),
            np.concatenate(cols_j).astype(np.int64, copy=False),
            np.concatenate(prods),
        )
        cols_i.clear()
        cols_j.clear()
        prods.clear()
        pending = 0
        return block

    indptr = mat.indptr
    for r in range(mat.shape[0]):
        lo, hi = indptr[r], indptr[r + 1]
        n = int(hi - lo)
        if n < 2:
            continue
        idx = mat.indices[lo:hi]
        vals = mat.data[lo:hi]
        n_row_pairs = n * (n - 1) // 2

        if n_row_pairs <= max_pairs:
            if pending + n_row_pairs > max_pairs:
                yield _flush()
            a, b = np.triu_indices(n, k=1)
            cols_i.append(idx[a])
            cols_j.append(idx[b])
            prods.append(vals[a] * vals[b])
            pending += n_row_pairs
            continue

        for a in range(n - 1):
            n_anchor = n - 1 - a
            if pending and pending + n_anchor > max_pairs:
                yield _flush()
            cols_i.append(np.full(n_anchor, idx[a], dtype=np.int64))
            cols_j.append(idx[a + 1 :])
            prods.append(vals[a] * vals[a + 1 :])
            pending += n_anchor

    if pending:
        yield _flush()


def estimate_column_similarities(
    mat: csr_matrix,
    *,
    threshold: float,
    rng: Optional[np.random.Generator] = None,
    max_pairs: int = 1_000_000,
) -> coo_matrix:
    """Estimate cosine similarity between the columns of `mat`.

    Returns an (n_cols x n_cols) COO matrix holding one entry per estimated pair,
    always in ascending orientation (row < col). Pairs that never co-occur, items
    without ratings and self-pairs produce no entries.

    `max_pairs` caps how many candidate pairs (and pending sampled contributions)
    are held in memory at once; it does not change which pairs are sampled.
    """
    if not threshold > 0:
        raise ValueError(f"threshold must be positive, got {threshold!r}")
    if int(max_pairs) < 1:
        raise ValueError(f"max_pairs must be >= 1, got {max_pairs!r}")
    if rng is None:
        rng = np.random.default_rng()

    mat = csr_matrix(mat, dtype=np.float64, copy=True)
    # zero ratings carry no signal for cosine similarity
    mat.eliminate_zeros()
    mat.sum_duplicates()
    mat.sort_indices()

    n_cols = mat.shape[1]
    norms = column_norms(mat)

    dots = csr_matrix((n_cols, n_cols), dtype=np.float64)
    acc_i: list[np.ndarray] = []
    acc_j: list[np.ndarray] = []
    acc_v: list[np.ndarray] = []
    n_pending = 0
    n_candidates = 0
    n_kept = 0

    def _compact() -> None:
        # Duplicate (i, j) contributions from different rows are summed here.
        nonlocal dots, n_pending
        dots = dots + coo_matrix(
            (np.concatenate(acc_v), (np.concatenate(acc_i), np.concatenate(acc_j))),
            shape=(n_cols, n_cols),
            dtype=np.float64,
        ).tocsr()
        acc_i.clear()
        acc_j.clear()
        acc_v.clear()
        n_pending = 0

    for i, j, prod in _pair_blocks(mat, int(max_pairs)):
        p = np.minimum(1.0, float(threshold) / (norms[i] * norms[j]))
        keep = rng.random(p.shape[0]) < p
        n_candidates += int(p.shape[0])
        n_kept += int(keep.sum())

        acc_i.append(i[keep])
        acc_j.append(j[keep])
        acc_v.append(prod[keep] / p[keep])
        n_pending += int(keep.sum())
        if n_pending >= int(max_pairs):
            _compact()

    if n_pending:
        _compact()

    logger.info(
        "Column similarities: items=%d candidate_pairs=%d sampled=%d threshold=%g",
        n_cols,
        n_candidates,
        n_kept,
        float(threshold),
    )

    dots.sort_indices()
    dots = dots.tocoo()
    sims = dots.data / (norms[dots.row] * norms[dots.col])
    return coo_matrix((sims, (dots.row, dots.col)), shape=(n_cols, n_cols), dtype=np.float64)
