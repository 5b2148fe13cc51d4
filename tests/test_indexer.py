from __future__ import annotations

import pytest

from src.similar_items.indexer import BiMap, build_bimap


def test_build_bimap_is_bijective_over_dense_range() -> None:
    m = build_bimap(["b", "a", "c", "a"])

    assert len(m) == 3
    assert sorted(m.id_to_index.values()) == [0, 1, 2]
    for raw_id in ["a", "b", "c"]:
        assert m.backward(m.forward(raw_id)) == raw_id


def test_build_bimap_is_deterministic_for_same_ids() -> None:
    assert build_bimap(["x", "y", "z"]).index_to_id == build_bimap(["z", "x", "y"]).index_to_id


def test_forward_unknown_id_returns_none() -> None:
    m = build_bimap(["a"])

    assert m.forward("nope") is None
    assert "nope" not in m
    assert m.forward_many(["a", "nope"]) == [m.forward("a")]


def test_empty_bimap() -> None:
    m = build_bimap([])
    assert len(m) == 0
    assert m.forward("a") is None


def test_from_ordered_ids_rejects_duplicates() -> None:
    with pytest.raises(ValueError):
        BiMap.from_ordered_ids(["a", "a"])
