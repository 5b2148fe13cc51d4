from __future__ import annotations

import json

import numpy as np
import pytest

from src.similar_items.model import SimilarItemsModel, load_model, save_model
from src.similar_items.recommender import SimilarItemsRecommender, predict
from src.similar_items.schemas import SimilarItemsQuery
from src.similar_items.train import SimilarItemsTrainConfig, train_similar_items


def _write_raw(raw_dir, users, items, ratings) -> None:
    raw_dir.mkdir(parents=True, exist_ok=True)
    users.to_csv(raw_dir / "users.csv", index=False)
    items.to_csv(raw_dir / "items.csv", index=False)
    ratings.to_csv(raw_dir / "ratings.csv", index=False)


def test_save_load_reproduces_predictions(toy_frames, tmp_path) -> None:
    users, items, ratings = toy_frames
    model = train_similar_items(users, items, ratings, cfg=SimilarItemsTrainConfig(threshold=3.0, seed=11))

    artifacts = save_model(model, tmp_path / "model", meta={"threshold": 3.0})
    loaded = load_model(tmp_path / "model")

    assert loaded.item_indexer.index_to_id == model.item_indexer.index_to_id
    assert loaded.items == model.items
    assert np.array_equal(loaded.similarities.indptr, model.similarities.indptr)
    assert np.array_equal(loaded.similarities.indices, model.similarities.indices)
    assert np.array_equal(loaded.similarities.data, model.similarities.data)

    meta = json.loads(artifacts.meta_path.read_text())
    assert meta["n_items"] == 4
    assert meta["threshold"] == 3.0

    for query in (["A"], ["B", "D"], ["C"]):
        q = SimilarItemsQuery(items=query, num=3)
        assert predict(loaded, q) == predict(model, q)


def test_same_seed_trains_identical_model(toy_frames) -> None:
    users, items, ratings = toy_frames
    cfg = SimilarItemsTrainConfig(threshold=2.0, seed=5)
    a = train_similar_items(users, items, ratings, cfg=cfg)
    b = train_similar_items(users, items, ratings, cfg=cfg)

    assert (a.similarities != b.similarities).nnz == 0


def test_load_missing_artifacts_raises(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_model(tmp_path / "nothing-here")


def test_recommender_without_artifacts_and_no_training_fails(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        SimilarItemsRecommender(
            artifacts_dir=tmp_path / "artifacts",
            raw_dir=tmp_path / "raw",
            allow_train_if_missing=False,
        )


def test_recommender_trains_on_demand_and_reloads(toy_frames, tmp_path) -> None:
    users, items, ratings = toy_frames
    _write_raw(tmp_path / "raw", users, items, ratings)

    rec = SimilarItemsRecommender(
        artifacts_dir=tmp_path / "artifacts",
        raw_dir=tmp_path / "raw",
        cfg=SimilarItemsTrainConfig(threshold=1e9),
    )
    assert (tmp_path / "artifacts" / "similarities.npz").exists()
    assert rec.has_item("A")
    assert not rec.has_item("Z")

    before = rec.model
    results = rec.similar_items(["A"], num=2)
    assert [r.item for r in results] == ["B", "C"]

    rec.reload()
    assert rec.model is not before
    assert rec.similar_items(["A"], num=2) == results


def test_config_rejects_non_positive_values() -> None:
    with pytest.raises(ValueError):
        SimilarItemsTrainConfig(threshold=0.0).validate()
    with pytest.raises(ValueError):
        SimilarItemsTrainConfig(max_pairs=0).validate()


def test_config_from_mapping_uses_defaults() -> None:
    cfg = SimilarItemsTrainConfig.from_mapping({"threshold": 7})
    assert cfg.threshold == 7.0
    assert cfg.seed == 42
    assert SimilarItemsTrainConfig.from_mapping(None) == SimilarItemsTrainConfig()


def test_model_is_read_only_after_construction(toy_frames) -> None:
    users, items, ratings = toy_frames
    model = train_similar_items(users, items, ratings, cfg=SimilarItemsTrainConfig(threshold=1e9))

    with pytest.raises(TypeError):
        model.items[0] = model.items[1]  # type: ignore[index]
    with pytest.raises(ValueError):
        model.similarities.data[0] = 123.0
    with pytest.raises(ValueError):
        model.similarities.indices[0] = 0


def test_model_does_not_alias_constructor_inputs(toy_frames) -> None:
    users, items, ratings = toy_frames
    trained = train_similar_items(users, items, ratings, cfg=SimilarItemsTrainConfig(threshold=1e9))

    raw_items = dict(trained.items)
    raw_sims = trained.similarities.copy()
    model = SimilarItemsModel(similarities=raw_sims, item_indexer=trained.item_indexer, items=raw_items)

    raw_items.clear()
    raw_sims.data[:] = 0.0

    assert len(model.items) == 4
    assert model.similarities.data.any()
