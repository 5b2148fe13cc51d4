"""Per-user sparse rating rows (the interaction matrix)."""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd
from scipy.sparse import csr_matrix


logger = logging.getLogger(__name__)


def build_interaction_matrix(
    user_idx: np.ndarray,
    item_idx: np.ndarray,
    rating: np.ndarray,
    *,
    n_users: int,
    n_items: int,
) -> csr_matrix:
    """Build a (n_users x n_items) CSR matrix with one row per user.

    Duplicate (user, item) pairs keep the last-seen rating. Column indices of every
    row are strictly increasing.
    """
    df = pd.DataFrame(
        {
            "user_idx": np.asarray(user_idx, dtype=np.int64),
            "item_idx": np.asarray(item_idx, dtype=np.int64),
            "rating": np.asarray(rating, dtype=np.float64),
        }
    )
    n_before = len(df)
    df = df.drop_duplicates(subset=["user_idx", "item_idx"], keep="last")
    if len(df) != n_before:
        logger.warning("Dropped %d duplicate (user, item) ratings (kept last)", n_before - len(df))

    df = df.sort_values(["user_idx", "item_idx"], kind="mergesort")

    mat = csr_matrix(
        (df["rating"].to_numpy(), (df["user_idx"].to_numpy(), df["item_idx"].to_numpy())),
        shape=(int(n_users), int(n_items)),
        dtype=np.float64,
    )
    mat.sort_indices()
    logger.info("Interaction matrix: shape=%s nnz=%d", mat.shape, mat.nnz)
    return mat
