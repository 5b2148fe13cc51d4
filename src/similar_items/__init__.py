"""Item-item similarity ("similar items") from user ratings.

Core idea:
- Encode user/item string IDs to dense indices and build one sparse rating row per user
- Estimate item-item cosine similarity with threshold-controlled pair sampling (DIMSUM-style)
- Symmetrize the estimates into a per-item similarity index
- Answer queries by summing neighbor scores across query items, then filter and take the top N
"""
