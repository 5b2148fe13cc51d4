from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd
import pytest

# Ensure `import src...` works when pytest uses importlib import mode.
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture()
def toy_frames() -> tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """U1 rates {A:5, B:3}, U2 rates {A:4, C:5}, U3 rates {B:2, D:1}."""
    users = pd.DataFrame({"userId": ["U1", "U2", "U3"]})
    items = pd.DataFrame(
        {
            "itemId": ["A", "B", "C", "D"],
            "categories": ["x", None, "y", "x|z"],
        }
    )
    ratings = pd.DataFrame(
        {
            "userId": ["U1", "U1", "U2", "U2", "U3", "U3"],
            "itemId": ["A", "B", "A", "C", "B", "D"],
            "rating": [5.0, 3.0, 4.0, 5.0, 2.0, 1.0],
        }
    )
    return users, items, ratings
