"""Data types for the gesture subsystem."""

from __future__ import annotations

from dataclasses import dataclass

from xlm_keyboard.config import MIX_WIDTH


@dataclass(frozen=True, slots=True)
class MixCandidate:
    """One weighted letter token inside a TokenMix."""

    weight: float
    token: int


@dataclass(frozen=True, slots=True)
class TokenMix:
    """One ambiguous input position.

    Attributes:
        x: Touch x divided by keyboard width.
        y: Touch y divided by keyboard height.
        candidates: Exactly ``MIX_WIDTH`` letter candidates, weights
            non-negative and non-increasing. Unused slots carry weight 0.
    """

    x: float
    y: float
    candidates: tuple[MixCandidate, ...]

    def __post_init__(self) -> None:
        if len(self.candidates) > MIX_WIDTH:
            raise ValueError(f"A TokenMix holds at most {MIX_WIDTH} candidates")
        weights = [c.weight for c in self.candidates]
        if any(w < 0 for w in weights):
            raise ValueError("TokenMix weights must be non-negative")
        if any(a < b for a, b in zip(weights, weights[1:])):
            raise ValueError("TokenMix weights must be non-increasing")
        if len(self.candidates) < MIX_WIDTH:
            padding = (MixCandidate(0.0, 0),) * (MIX_WIDTH - len(self.candidates))
            object.__setattr__(self, "candidates", self.candidates + padding)

    @property
    def total_weight(self) -> float:
        """Sum of all candidate weights."""
        return sum(c.weight for c in self.candidates)

    def matches(self, other: TokenMix, epsilon: float) -> bool:
        """Whether both coordinates lie within *epsilon* of *other*'s."""
        return abs(self.x - other.x) < epsilon and abs(self.y - other.y) < epsilon
