"""Data types exchanged with the evaluator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from collections.abc import Sequence


class DecodeStatus(IntEnum):
    """Outcome of a forward pass."""

    OK = 0
    FAILED = 1


@dataclass(frozen=True, slots=True)
class DecodeRequest:
    """Immutable input for one forward pass.

    Exactly one of ``tokens`` or ``embeddings`` is set. Entry *i* is written
    to cache slot ``seq_ids[i]`` at position ``positions[i]``; logits are
    produced for the entries whose ``logits`` flag is set and are read back
    with ``Evaluator.get_logits(i)``.

    Attributes:
        positions: Cache position of each entry.
        seq_ids: Cache slot of each entry.
        logits: Whether logits are requested for each entry.
        tokens: Token ids, one per entry.
        embeddings: Read-only array of shape ``(n_entries, n_embd)``.
    """

    positions: tuple[int, ...]
    seq_ids: tuple[int, ...]
    logits: tuple[bool, ...]
    tokens: tuple[int, ...] | None = None
    embeddings: np.ndarray | None = None

    def __post_init__(self) -> None:
        if (self.tokens is None) == (self.embeddings is None):
            raise ValueError("DecodeRequest needs exactly one of tokens or embeddings")
        n = len(self.positions)
        if len(self.seq_ids) != n or len(self.logits) != n:
            raise ValueError("positions, seq_ids and logits must have equal length")
        if self.tokens is not None and len(self.tokens) != n:
            raise ValueError(f"Expected {n} tokens, got {len(self.tokens)}")
        if self.embeddings is not None:
            frozen = np.array(self.embeddings, dtype=np.float32, ndmin=2)
            if frozen.shape[0] != n:
                raise ValueError(f"Expected {n} embedding rows, got {frozen.shape[0]}")
            frozen.setflags(write=False)
            object.__setattr__(self, "embeddings", frozen)

    def __len__(self) -> int:
        return len(self.positions)

    @classmethod
    def for_prompt(
        cls,
        tokens: Sequence[int],
        start: int,
        seq_id: int = 0,
        logits_last: bool = True,
    ) -> DecodeRequest:
        """Build a request writing *tokens* contiguously from *start* into one slot."""
        n = len(tokens)
        flags = [False] * n
        if n and logits_last:
            flags[-1] = True
        return cls(
            positions=tuple(range(start, start + n)),
            seq_ids=(seq_id,) * n,
            logits=tuple(flags),
            tokens=tuple(int(t) for t in tokens),
        )

    @classmethod
    def for_embedding(
        cls,
        embedding: np.ndarray,
        position: int,
        seq_id: int = 0,
        logits: bool = False,
    ) -> DecodeRequest:
        """Build a single-entry request feeding a continuous embedding."""
        return cls(
            positions=(position,),
            seq_ids=(seq_id,),
            logits=(logits,),
            embeddings=embedding,
        )


@dataclass(frozen=True, slots=True)
class PositionEncoder:
    """Learned affine map from normalized keyboard coordinates to embeddings.

    ``embedding = bias + weight[:, 0] * x + weight[:, 1] * y``

    Attributes:
        weight: Array of shape ``(n_embd, 2)``.
        bias: Array of shape ``(n_embd,)``.
    """

    weight: np.ndarray
    bias: np.ndarray

    def __post_init__(self) -> None:
        if self.weight.ndim != 2 or self.weight.shape[1] != 2:
            raise ValueError(f"Encoder weight must have shape (n_embd, 2), got {self.weight.shape}")
        if self.bias.shape != (self.weight.shape[0],):
            raise ValueError(
                f"Encoder bias must have shape ({self.weight.shape[0]},), got {self.bias.shape}"
            )

    def encode(self, x: float, y: float) -> np.ndarray:
        """Return the embedding for normalized coordinates (*x*, *y*)."""
        result: np.ndarray = self.bias + self.weight @ np.array([x, y], dtype=self.weight.dtype)
        return result
