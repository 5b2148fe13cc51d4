from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

import numpy as np
from scipy.sparse import csr_matrix, load_npz, save_npz

from .indexer import BiMap


logger = logging.getLogger(__name__)


SIMILARITIES_FILE = "similarities.npz"
ITEM_IDS_FILE = "item_ids.json"
ITEMS_FILE = "items.json"
META_FILE = "similar_items_meta.json"


@dataclass(frozen=True)
class Item:
    categories: Optional[tuple[str, ...]] = None


@dataclass(frozen=True)
class SimilarItemsModel:
    """Trained similar-items model: similarity index + item ID map + item records.

    Read-only after construction: `items` is exposed as a mapping proxy and the
    similarity arrays are copied and flagged non-writeable. A retrain produces a
    new instance.
    """

    similarities: csr_matrix
    item_indexer: BiMap
    items: Mapping[int, Item]
    _category_sets: dict[int, frozenset[str]] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        n = len(self.item_indexer)
        if self.similarities.shape != (n, n):
            raise ValueError(f"similarities shape {self.similarities.shape} does not match {n} items")

        sims = csr_matrix(self.similarities, dtype=np.float64, copy=True)
        sims.sort_indices()
        for arr in (sims.data, sims.indices, sims.indptr):
            arr.flags.writeable = False
        object.__setattr__(self, "similarities", sims)
        object.__setattr__(self, "items", MappingProxyType(dict(self.items)))

        cats = {
            idx: frozenset(item.categories)
            for idx, item in self.items.items()
            if item.categories
        }
        object.__setattr__(self, "_category_sets", cats)

    @property
    def n_items(self) -> int:
        return len(self.item_indexer)

    def categories_of(self, index: int) -> frozenset[str]:
        """Category labels of an item (empty if it has none)."""
        return self._category_sets.get(int(index), frozenset())

    def __repr__(self) -> str:
        head_ids = list(self.item_indexer.index_to_id[:2])
        head_items = {self.item_indexer.backward(i): self.items[i] for i in sorted(self.items)[:2]}
        return (
            f"SimilarItemsModel(similarities=[{self.similarities.nnz} entries], "
            f"item_indexer=[{len(self.item_indexer)}]({head_ids}...), "
            f"items=[{len(self.items)}]({head_items}...))"
        )


@dataclass(frozen=True)
class SimilarItemsArtifacts:
    similarities_path: Path
    item_ids_path: Path
    items_path: Path
    meta_path: Path


def save_model(model: SimilarItemsModel, out_dir: Path, *, meta: Optional[dict] = None) -> SimilarItemsArtifacts:
    """Persist a model; I/O errors propagate to the caller."""
    out_dir = Path(out_dir).resolve()
    out_dir.mkdir(parents=True, exist_ok=True)

    similarities_path = out_dir / SIMILARITIES_FILE
    item_ids_path = out_dir / ITEM_IDS_FILE
    items_path = out_dir / ITEMS_FILE
    meta_path = out_dir / META_FILE

    save_npz(similarities_path, model.similarities.tocsr(), compressed=True)
    item_ids_path.write_text(json.dumps(list(model.item_indexer.index_to_id)) + "\n")

    items_payload = {
        str(idx): (None if item.categories is None else list(item.categories))
        for idx, item in sorted(model.items.items())
    }
    items_path.write_text(json.dumps(items_payload, sort_keys=True) + "\n")

    meta_out = {"n_items": model.n_items, "n_similarities": int(model.similarities.nnz)}
    if meta:
        meta_out.update(meta)
    meta_path.write_text(json.dumps(meta_out, indent=2, sort_keys=True) + "\n")

    logger.info("Saved similar-items model to %s", out_dir)
    return SimilarItemsArtifacts(
        similarities_path=similarities_path,
        item_ids_path=item_ids_path,
        items_path=items_path,
        meta_path=meta_path,
    )


def artifacts_exist(artifacts_dir: Path) -> bool:
    artifacts_dir = Path(artifacts_dir)
    return all((artifacts_dir / name).exists() for name in (SIMILARITIES_FILE, ITEM_IDS_FILE, ITEMS_FILE))


def load_model(artifacts_dir: Path) -> SimilarItemsModel:
    artifacts_dir = Path(artifacts_dir).resolve()
    if not artifacts_exist(artifacts_dir):
        raise FileNotFoundError(f"similar-items artifacts missing under {artifacts_dir}")

    sims = load_npz(artifacts_dir / SIMILARITIES_FILE).tocsr()
    sims = csr_matrix(sims, dtype=np.float64)
    sims.sort_indices()
    item_indexer = BiMap.from_ordered_ids(json.loads((artifacts_dir / ITEM_IDS_FILE).read_text()))

    items_raw = json.loads((artifacts_dir / ITEMS_FILE).read_text())
    items = {
        int(idx): Item(categories=(None if cats is None else tuple(str(c) for c in cats)))
        for idx, cats in items_raw.items()
    }
    model = SimilarItemsModel(similarities=sims, item_indexer=item_indexer, items=items)
    logger.info("Loaded similar-items model from %s: items=%d entries=%d", artifacts_dir, model.n_items, sims.nnz)
    return model
