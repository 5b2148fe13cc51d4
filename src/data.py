from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class RawSimilarItemsData:
    users: pd.DataFrame
    items: pd.DataFrame
    ratings: pd.DataFrame


REQUIRED_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "users": ("userId",),
    "items": ("itemId", "categories"),
    "ratings": ("userId", "itemId", "rating"),
}

CATEGORY_SEPARATOR = "|"


def parse_categories(raw: object) -> Optional[list[str]]:
    """Normalize a category cell to a label list; empty or missing cells mean "no categories".

    Accepts a pipe-separated string (CSV input) or an already list-valued cell.
    """
    if raw is None or raw is pd.NA:
        return None
    if isinstance(raw, float) and np.isnan(raw):
        return None
    if isinstance(raw, (set, frozenset)):
        raw = sorted(str(c) for c in raw)
    if isinstance(raw, (list, tuple, np.ndarray)):
        labels = [str(c).strip() for c in raw if c is not None and c is not pd.NA]
    else:
        labels = [c.strip() for c in str(raw).split(CATEGORY_SEPARATOR)]
    labels = [c for c in labels if c]
    return labels or None


def load_raw_data(raw_dir: Path) -> RawSimilarItemsData:
    """Load users/items/ratings CSV files from a directory.

    Notes
    -----
    IDs are opaque strings: they are read with dtype "string" so values such as
    "007" keep their leading zeros.
    """
    raw_dir = Path(raw_dir)
    users = pd.read_csv(raw_dir / "users.csv", dtype={"userId": "string"})
    items = pd.read_csv(raw_dir / "items.csv", dtype={"itemId": "string", "categories": "string"})
    ratings = pd.read_csv(
        raw_dir / "ratings.csv",
        dtype={"userId": "string", "itemId": "string", "rating": "float64"},
    )

    data = RawSimilarItemsData(users=users, items=items, ratings=ratings)
    validate_schema(data)
    return data


def validate_schema(data: RawSimilarItemsData) -> None:
    """Reject malformed training input before it reaches the training pipeline."""
    for name, cols in REQUIRED_COLUMNS.items():
        df = getattr(data, name)
        missing = [c for c in cols if c not in df.columns]
        if missing:
            raise ValueError(f"{name}.csv missing columns: {missing}")

    if data.users["userId"].isna().any():
        raise ValueError("users.csv has missing userId values")
    if data.items["itemId"].isna().any():
        raise ValueError("items.csv has missing itemId values")

    if data.users["userId"].duplicated().any():
        raise ValueError("users.csv has duplicate userId values")
    if data.items["itemId"].duplicated().any():
        raise ValueError("items.csv has duplicate itemId values")

    ratings = data.ratings
    if ratings[["userId", "itemId", "rating"]].isna().any().any():
        raise ValueError("ratings.csv has missing values")
    if not np.isfinite(ratings["rating"].astype("float64").to_numpy()).all():
        raise ValueError("ratings.csv contains non-finite rating values")

    # Ratings must reference known users and items
    bad_users = set(ratings["userId"].astype(str).tolist()) - set(data.users["userId"].astype(str).tolist())
    bad_items = set(ratings["itemId"].astype(str).tolist()) - set(data.items["itemId"].astype(str).tolist())
    if bad_users:
        raise ValueError(f"ratings.csv has {len(bad_users)} userIds not in users.csv")
    if bad_items:
        raise ValueError(f"ratings.csv has {len(bad_items)} itemIds not in items.csv")

    if ratings.duplicated(subset=["userId", "itemId"]).any():
        raise ValueError("ratings.csv contains duplicate (userId, itemId) rows")
