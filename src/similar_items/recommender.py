from __future__ import annotations

import heapq
import logging
from pathlib import Path
from typing import Iterable, Optional

import numpy as np

from ..data import load_raw_data
from ..paths import ProjectPaths, get_repo_root
from ..utils import setup_logging
from .index import similarity_vector
from .model import SimilarItemsModel, artifacts_exist, load_model
from .schemas import ItemScore, PredictedResult, SimilarItemsQuery
from .train import SimilarItemsTrainConfig, train_and_save


logger = logging.getLogger(__name__)


def top_n(scores: Iterable[tuple[int, float]], n: int) -> list[tuple[int, float]]:
    """Highest-scoring (index, score) pairs, best first.

    Uses a min-heap capped at `n` entries. Equal scores are ranked by ascending
    index, so results are reproducible.
    """
    n = int(n)
    if n <= 0:
        return []
    # Heap keys are (score, -index): the root is the weakest kept candidate.
    heap: list[tuple[float, int]] = []
    for idx, score in scores:
        key = (float(score), -int(idx))
        if len(heap) < n:
            heapq.heappush(heap, key)
        elif key > heap[0]:
            heapq.heapreplace(heap, key)
    return [(-neg_idx, score) for score, neg_idx in sorted(heap, reverse=True)]


def _resolve_optional(model: SimilarItemsModel, ids: Optional[Iterable[str]], label: str) -> Optional[np.ndarray]:
    if ids is None:
        return None
    ids = list(ids)
    resolved = model.item_indexer.forward_many(ids)
    if len(resolved) != len(ids):
        logger.info("Ignoring %d unknown %s item(s)", len(ids) - len(resolved), label)
    return np.asarray(sorted(set(resolved)), dtype=np.int64)


def predict(model: SimilarItemsModel, query: SimilarItemsQuery) -> PredictedResult:
    """Rank items by summed similarity to the query items, after filtering."""
    white_list = _resolve_optional(model, query.white_list, "white-list")
    black_list = _resolve_optional(model, query.black_list, "black-list")
    categories = frozenset(query.categories) if query.categories is not None else None

    # Preserve request order (scores are summed in this order) and drop repeats.
    query_ids = list(dict.fromkeys(query.items))
    query_idx = np.asarray(sorted(set(model.item_indexer.forward_many(query_ids))), dtype=np.int64)

    agg: dict[int, float] = {}
    for iid in query_ids:
        item_int = model.item_indexer.forward(iid)
        if item_int is None:
            logger.info("No similar items for unknown item %s.", iid)
            continue

        cands, scores = similarity_vector(model.similarities, item_int)
        if cands.size == 0:
            logger.info("No similar items found for %s.", iid)
            continue

        keep = ~np.isin(cands, query_idx)
        if white_list is not None:
            keep &= np.isin(cands, white_list)
        if black_list is not None:
            keep &= ~np.isin(cands, black_list)

        for cand, score in zip(cands[keep].tolist(), scores[keep].tolist()):
            # Items without categories are dropped whenever a category filter is set.
            if categories is not None and categories.isdisjoint(model.categories_of(cand)):
                continue
            agg[cand] = agg.get(cand, 0.0) + score

    ranked = top_n(agg.items(), query.num)
    return PredictedResult(
        itemScores=[ItemScore(item=model.item_indexer.backward(i), score=s) for i, s in ranked]
    )


class SimilarItemsRecommender:
    """Serves similar-items queries from persisted artifacts.

    Loads artifacts from `artifacts/similar_items/` by default (trains if missing).
    `reload()` swaps in a freshly loaded model with a single reference assignment;
    queries already running keep using the model they started with.
    """

    def __init__(
        self,
        *,
        artifacts_dir: Path | None = None,
        raw_dir: Path | None = None,
        cfg: SimilarItemsTrainConfig | None = None,
        allow_train_if_missing: bool = True,
    ) -> None:
        setup_logging("INFO")
        if artifacts_dir is None or raw_dir is None:
            paths = ProjectPaths.from_repo_root(get_repo_root())
            artifacts_dir = artifacts_dir if artifacts_dir is not None else paths.similar_items_dir
            raw_dir = raw_dir if raw_dir is not None else paths.raw_dir

        self.artifacts_dir = Path(artifacts_dir).resolve()
        self.raw_dir = Path(raw_dir).resolve()
        self.cfg = cfg or SimilarItemsTrainConfig()
        self.allow_train_if_missing = bool(allow_train_if_missing)

        self._model: SimilarItemsModel = self._load_or_build()

    def _load_or_build(self) -> SimilarItemsModel:
        if not artifacts_exist(self.artifacts_dir):
            if not self.allow_train_if_missing:
                raise FileNotFoundError(
                    f"SimilarItems artifacts missing under {self.artifacts_dir}. Run the build pipeline first."
                )
            logger.info("SimilarItems artifacts not found in %s, training now", self.artifacts_dir)
            data = load_raw_data(self.raw_dir)
            train_and_save(data.users, data.items, data.ratings, out_dir=self.artifacts_dir, cfg=self.cfg)
        return load_model(self.artifacts_dir)

    @property
    def model(self) -> SimilarItemsModel:
        return self._model

    def reload(self) -> None:
        self._model = self._load_or_build()

    def has_item(self, item_id: str) -> bool:
        return item_id in self._model.item_indexer

    def similar_items(
        self,
        items: list[str],
        *,
        num: int = 10,
        categories: Optional[set[str]] = None,
        white_list: Optional[set[str]] = None,
        black_list: Optional[set[str]] = None,
    ) -> list[ItemScore]:
        query = SimilarItemsQuery(
            items=items,
            num=num,
            categories=categories,
            white_list=white_list,
            black_list=black_list,
        )
        return predict(self._model, query).itemScores
