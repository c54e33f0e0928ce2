"""Data types for the selection subsystem."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Candidate:
    """One ranked next-token candidate.

    Attributes:
        token_id: Vocabulary index.
        probability: Transformed (masked) probability used for ranking.
    """

    token_id: int
    probability: float
