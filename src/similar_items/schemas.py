"""Pydantic schemas for similar-items queries and results."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class SimilarItemsQuery(BaseModel):
    """A similar-items request: query items plus optional filters."""

    items: list[str] = Field(..., min_length=1, description="Query item IDs; unknown IDs are ignored.")
    num: int = Field(10, ge=1, description="Maximum number of similar items to return.")
    categories: Optional[set[str]] = Field(
        None, description="Keep only items sharing at least one of these categories."
    )
    white_list: Optional[set[str]] = Field(None, description="If set, only these item IDs may be returned.")
    black_list: Optional[set[str]] = Field(None, description="Item IDs that must never be returned.")


class ItemScore(BaseModel):
    item: str
    score: float


class PredictedResult(BaseModel):
    itemScores: list[ItemScore]
