from __future__ import annotations

import argparse
from pathlib import Path

import pandas as pd

from .recommender import SimilarItemsRecommender


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Similar items from item-item rating similarity")
    p.add_argument("--item", dest="items", action="append", required=True, help="Query item ID (repeatable)")
    p.add_argument("--num", type=int, default=10, help="How many similar items to return")
    p.add_argument("--category", dest="categories", action="append", default=None, help="Category filter (repeatable)")
    p.add_argument("--white-list", nargs="+", default=None, help="Only return these item IDs")
    p.add_argument("--black-list", nargs="+", default=None, help="Never return these item IDs")
    p.add_argument("--artifacts-dir", type=Path, default=None, help="Where to read/write similar_items artifacts")
    p.add_argument("--raw-dir", type=Path, default=None, help="Raw users/items/ratings CSV directory")
    p.add_argument("--no-train-if-missing", action="store_true", help="Fail if artifacts are missing")
    return p


def main(argv: list[str] | None = None) -> None:
    args = build_arg_parser().parse_args(argv)
    rec = SimilarItemsRecommender(
        artifacts_dir=args.artifacts_dir,
        raw_dir=args.raw_dir,
        allow_train_if_missing=(not bool(args.no_train_if_missing)),
    )

    results = rec.similar_items(
        list(args.items),
        num=int(args.num),
        categories=(set(args.categories) if args.categories else None),
        white_list=(set(args.white_list) if args.white_list else None),
        black_list=(set(args.black_list) if args.black_list else None),
    )

    print("\n=== Similar Items ===")
    if results:
        df = pd.DataFrame([r.model_dump() for r in results])
        print(df.to_string(index=False))
    else:
        print("No similar items found.")


if __name__ == "__main__":
    main()
