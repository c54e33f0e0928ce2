"""Deterministic top-k ranking over a probability vector."""

from __future__ import annotations

import numpy as np

from xlm_keyboard.selection.types import Candidate


def rank_top_k(probs: np.ndarray, k: int) -> list[Candidate]:
    """Return the *k* most probable tokens, highest first.

    Ties are broken by lower token id so that repeated calls on the same
    vector always give the same order.

    Args:
        probs: 1-D probability (or score) array.
        k: Number of candidates wanted. Values above the vocabulary size
            are clamped; ``k <= 0`` returns an empty list.

    Returns:
        Up to *k* candidates in descending probability order.
    """
    n = len(probs)
    k = min(k, n)
    if k <= 0:
        return []

    if k < n:
        # O(n) selection of the k-th largest value, then keep every index
        # reaching it so ties at the boundary are resolved by id below.
        kth = probs[np.argpartition(-probs, k - 1)[k - 1]]
        pool = np.flatnonzero(probs >= kth)
    else:
        pool = np.arange(n)

    order = np.lexsort((pool, -probs[pool]))[:k]
    return [Candidate(token_id=int(pool[i]), probability=float(probs[pool[i]])) for i in order]
