"""Abstract interfaces for the model runtime and its tokenizer.

The evaluator turns token ids or embedding vectors plus position/slot
metadata into logits, and owns the per-slot key/value cache. Every backend
(a native runtime binding, or the numpy mock used in tests) implements
:class:`Evaluator`. Model loading and weight formats are the backend's
concern; the decoder only sees this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    import numpy as np

    from xlm_keyboard.evaluator.types import DecodeRequest, DecodeStatus, PositionEncoder


class Tokenizer(ABC):
    """String <-> token id conversion for one vocabulary."""

    @abstractmethod
    def tokenize(self, text: str) -> list[int]:
        """Split *text* into token ids (no BOS is added)."""

    @abstractmethod
    def decode(self, tokens: Sequence[int]) -> str:
        """Render token ids back to text."""


class Evaluator(ABC):
    """Abstract base for causal LM runtimes with a slotted KV cache.

    A forward pass is a pure function of (slot contents, position): callers
    must remove stale positions before rewriting them.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend identifier (e.g., ``'mock'``)."""

    @property
    @abstractmethod
    def vocab_size(self) -> int:
        """Number of token ids; the length of every logits vector."""

    @property
    @abstractmethod
    def n_embd(self) -> int:
        """Embedding dimension accepted by embedding-input requests."""

    @property
    @abstractmethod
    def tokenizer(self) -> Tokenizer:
        """Tokenizer matching this model's vocabulary."""

    @property
    @abstractmethod
    def token_embeddings(self) -> np.ndarray:
        """The model's input embedding table, shape ``(vocab_size, n_embd)``."""

    @property
    def position_encoder(self) -> PositionEncoder | None:
        """Optional learned coordinate encoder; ``None`` when the model has none."""
        return None

    @abstractmethod
    def decode(self, request: DecodeRequest) -> DecodeStatus:
        """Run one forward pass.

        Args:
            request: Immutable batch description.

        Returns:
            ``DecodeStatus.OK`` on success, ``DecodeStatus.FAILED`` otherwise.
        """

    @abstractmethod
    def get_logits(self, index: int) -> np.ndarray:
        """Return logits for entry *index* of the last successful request.

        Raises:
            KeyError: If logits were not requested for that entry.
        """

    @abstractmethod
    def cache_remove(self, seq_id: int, start: int = 0, end: int | None = None) -> None:
        """Evict cached positions ``[start, end)`` of slot *seq_id* (``end=None``: to the end)."""

    @abstractmethod
    def cache_copy(self, src_seq_id: int, dst_seq_id: int, upto: int) -> None:
        """Duplicate positions ``[0, upto)`` of *src_seq_id* into *dst_seq_id*."""

    @abstractmethod
    def token_to_id(self, text: str) -> int:
        """Return the id spelled *text*, or ``0`` if it is not in the vocabulary."""

    @abstractmethod
    def id_to_token_text(self, token_id: int) -> str:
        """Return the raw vocabulary spelling of *token_id*."""

    @abstractmethod
    def close(self) -> None:
        """Release model resources."""
