"""Symmetrized per-item similarity index."""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd
from scipy.sparse import coo_matrix, csr_matrix, spmatrix


logger = logging.getLogger(__name__)


def symmetrize_similarities(entries: spmatrix) -> csr_matrix:
    """Mirror every (i, j, s) as (j, i, s) and return one sparse row per item.

    Merge rule when both orientations of a pair were estimated: the estimate
    stored in ascending orientation (i < j) wins and its value is used for both
    directions, so `sims[i, j] == sims[j, i]` holds exactly. Repeated entries
    with the same orientation are not summed: the last one stored wins.
    Diagonal entries are dropped.
    """
    n_rows, n_cols = entries.shape
    if n_rows != n_cols:
        raise ValueError(f"similarity entries must be square, got shape {entries.shape}")

    coo = coo_matrix(entries)
    df = pd.DataFrame(
        {
            "row": coo.row.astype(np.int64),
            "col": coo.col.astype(np.int64),
            "value": coo.data.astype(np.float64),
            "order": np.arange(coo.nnz, dtype=np.int64),
        }
    )
    df = df[df["row"] != df["col"]]

    ascending = df["row"] < df["col"]
    df = df.assign(
        lo=np.where(ascending, df["row"], df["col"]),
        hi=np.where(ascending, df["col"], df["row"]),
        ascending=ascending,
    )
    n_pairs = len(df)
    # Within a (lo, hi) group ascending=True sorts last, then storage order, so
    # keep="last" applies both rules.
    df = df.sort_values(["lo", "hi", "ascending", "order"]).drop_duplicates(
        subset=["lo", "hi"], keep="last"
    )
    if len(df) != n_pairs:
        logger.info("Merged %d repeated or mirrored pair estimates", n_pairs - len(df))

    lo = df["lo"].to_numpy()
    hi = df["hi"].to_numpy()
    values = df["value"].to_numpy()
    sims = csr_matrix(
        (np.concatenate([values, values]), (np.concatenate([lo, hi]), np.concatenate([hi, lo]))),
        shape=(n_rows, n_cols),
        dtype=np.float64,
    )
    sims.sort_indices()
    logger.info("Similarity index: items=%d entries=%d", n_rows, sims.nnz)
    return sims


def similarity_vector(sims: csr_matrix, index: int) -> tuple[np.ndarray, np.ndarray]:
    """(neighbor indices, scores) for one item; both empty if it has no neighbors."""
    start, end = sims.indptr[int(index)], sims.indptr[int(index) + 1]
    return sims.indices[start:end], sims.data[start:end]
