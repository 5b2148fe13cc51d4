from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from ..data import parse_categories
from .dimsum import estimate_column_similarities
from .index import symmetrize_similarities
from .indexer import build_bimap
from .matrix import build_interaction_matrix
from .model import Item, SimilarItemsArtifacts, SimilarItemsModel, save_model


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimilarItemsTrainConfig:
    threshold: float = 50.0
    seed: int = 42
    max_pairs: int = 1_000_000

    def validate(self) -> None:
        if not float(self.threshold) > 0:
            raise ValueError(f"threshold must be positive, got {self.threshold!r}")
        if int(self.max_pairs) < 1:
            raise ValueError(f"max_pairs must be >= 1, got {self.max_pairs!r}")

    @classmethod
    def from_mapping(cls, raw: Optional[dict]) -> "SimilarItemsTrainConfig":
        raw = raw if isinstance(raw, dict) else {}
        return cls(
            threshold=float(raw.get("threshold", cls.threshold)),
            seed=int(raw.get("seed", cls.seed)),
            max_pairs=int(raw.get("max_pairs", cls.max_pairs)),
        )


def train_similar_items(
    users: pd.DataFrame,
    items: pd.DataFrame,
    ratings: pd.DataFrame,
    *,
    cfg: SimilarItemsTrainConfig,
) -> SimilarItemsModel:
    """Train a similar-items model.

    Expected columns: users[userId], items[itemId, categories], ratings[userId, itemId, rating].
    Input is assumed validated (see `src.data.validate_schema`).
    """
    cfg.validate()

    user_map = build_bimap(users["userId"].astype(str).tolist())
    item_map = build_bimap(items["itemId"].astype(str).tolist())

    item_records: dict[int, Item] = {}
    categories = items["categories"] if "categories" in items.columns else pd.Series([None] * len(items))
    for item_id, raw_cats in zip(items["itemId"].astype(str).tolist(), categories.tolist()):
        cats = parse_categories(raw_cats)
        item_records[item_map.id_to_index[item_id]] = Item(categories=(None if cats is None else tuple(cats)))

    user_idx = ratings["userId"].astype(str).map(user_map.id_to_index)
    item_idx = ratings["itemId"].astype(str).map(item_map.id_to_index)
    if user_idx.isna().any() or item_idx.isna().any():
        raise ValueError("ratings reference userId/itemId values missing from users/items")

    n_users = len(user_map)
    n_items = len(item_map)
    logger.info("SimilarItems: users=%d items=%d ratings=%d", n_users, n_items, len(ratings))

    rows = build_interaction_matrix(
        user_idx.to_numpy(dtype=np.int64),
        item_idx.to_numpy(dtype=np.int64),
        ratings["rating"].to_numpy(dtype=np.float64),
        n_users=n_users,
        n_items=n_items,
    )

    rng = np.random.default_rng(int(cfg.seed))
    entries = estimate_column_similarities(
        rows,
        threshold=float(cfg.threshold),
        rng=rng,
        max_pairs=int(cfg.max_pairs),
    )
    similarities = symmetrize_similarities(entries)

    return SimilarItemsModel(similarities=similarities, item_indexer=item_map, items=item_records)


def train_and_save(
    users: pd.DataFrame,
    items: pd.DataFrame,
    ratings: pd.DataFrame,
    *,
    out_dir: Path,
    cfg: SimilarItemsTrainConfig,
) -> SimilarItemsArtifacts:
    model = train_similar_items(users, items, ratings, cfg=cfg)
    return save_model(model, out_dir, meta={"train_config": asdict(cfg), "n_ratings": int(len(ratings))})
