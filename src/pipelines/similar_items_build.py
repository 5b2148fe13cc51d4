from __future__ import annotations

import argparse
import logging
from pathlib import Path

import yaml

from ..data import load_raw_data
from ..paths import ProjectPaths, get_repo_root
from ..utils import ReproducibilityConfig, set_global_seed, setup_logging
from ..similar_items.train import SimilarItemsTrainConfig, train_and_save


logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Build similar-items artifacts (item-item similarity index).")
    p.add_argument("--config", type=Path, default=Path("config.yaml"), help="Path to config YAML.")
    p.add_argument("--out-dir", type=Path, default=None, help="Output directory for artifacts")
    p.add_argument("--threshold", type=float, default=None, help="Override sampling threshold")
    p.add_argument("--seed", type=int, default=None, help="Override sampling seed")
    return p


def load_train_config(config_path: Path) -> tuple[dict, SimilarItemsTrainConfig]:
    cfg_yaml = yaml.safe_load(Path(config_path).read_text())
    if not isinstance(cfg_yaml, dict):
        raise ValueError("config.yaml must be a mapping")
    return cfg_yaml, SimilarItemsTrainConfig.from_mapping(cfg_yaml.get("similar_items"))


def main(argv: list[str] | None = None) -> None:
    setup_logging("INFO")
    args = build_arg_parser().parse_args(argv)
    repo_root = get_repo_root()
    config_path = Path(args.config)
    if not config_path.is_absolute():
        config_path = (repo_root / config_path).resolve()

    cfg_yaml, cfg = load_train_config(config_path)
    cfg = SimilarItemsTrainConfig(
        threshold=float(args.threshold if args.threshold is not None else cfg.threshold),
        seed=int(args.seed if args.seed is not None else cfg.seed),
        max_pairs=cfg.max_pairs,
    )
    cfg.validate()
    set_global_seed(ReproducibilityConfig(seed=cfg.seed))

    dataset_cfg = cfg_yaml.get("dataset", {}) if isinstance(cfg_yaml.get("dataset"), dict) else {}
    paths = ProjectPaths.from_repo_root(repo_root, raw_dir=Path(str(dataset_cfg.get("raw_dir", "data/raw"))))
    data = load_raw_data(paths.raw_dir)

    out_dir = Path(args.out_dir) if args.out_dir is not None else paths.similar_items_dir
    if not out_dir.is_absolute():
        out_dir = (repo_root / out_dir).resolve()

    logger.info("Building SimilarItems artifacts to %s (threshold=%g seed=%d)", out_dir, cfg.threshold, cfg.seed)
    train_and_save(data.users, data.items, data.ratings, out_dir=out_dir, cfg=cfg)


if __name__ == "__main__":
    main()
