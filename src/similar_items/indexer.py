"""Bidirectional mapping between opaque string IDs and dense integer indices."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import numpy as np
from sklearn.preprocessing import LabelEncoder


@dataclass(frozen=True)
class BiMap:
    """Immutable ID <-> index lookup table built once per training run."""

    id_to_index: dict[str, int]
    index_to_id: tuple[str, ...]

    def __len__(self) -> int:
        return len(self.index_to_id)

    def __contains__(self, raw_id: object) -> bool:
        return raw_id in self.id_to_index

    def forward(self, raw_id: str) -> Optional[int]:
        """Index for `raw_id`, or None if the ID was never seen at training time."""
        return self.id_to_index.get(raw_id)

    def backward(self, index: int) -> str:
        return self.index_to_id[int(index)]

    def forward_many(self, raw_ids: Iterable[str]) -> list[int]:
        """Resolve IDs to indices, silently dropping unknown ones."""
        out: list[int] = []
        for raw_id in raw_ids:
            idx = self.id_to_index.get(raw_id)
            if idx is not None:
                out.append(idx)
        return out

    @classmethod
    def from_ordered_ids(cls, ids: Sequence[str]) -> "BiMap":
        """Rebuild a map where `ids[i]` owns index `i` (used when loading artifacts)."""
        index_to_id = tuple(str(x) for x in ids)
        id_to_index = {raw_id: i for i, raw_id in enumerate(index_to_id)}
        if len(id_to_index) != len(index_to_id):
            raise ValueError("duplicate IDs in index mapping")
        return cls(id_to_index=id_to_index, index_to_id=index_to_id)


def build_bimap(ids: Iterable[str]) -> BiMap:
    """Assign every distinct ID an index in [0, count).

    Indices follow sorted ID order (LabelEncoder classes_), so the same ID set
    always yields the same mapping.
    """
    values = np.asarray([str(x) for x in ids], dtype=object)
    if values.size == 0:
        return BiMap(id_to_index={}, index_to_id=())
    le = LabelEncoder()
    le.fit(values)
    return BiMap.from_ordered_ids(le.classes_.tolist())
