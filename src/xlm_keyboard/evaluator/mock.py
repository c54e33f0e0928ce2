"""Deterministic numpy evaluator for testing and offline experiments.

``MockEvaluator`` keeps a real per-slot cache (position -> entry) and computes
logits from the cached history of the slot being decoded, so cache bookkeeping
mistakes (a missing copy, a stale position) show up as different logits or as
a failed forward pass. The logits themselves come from a pluggable *scorer*;
the default hashes the history into a seeded Gaussian vector.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from string import ascii_lowercase, ascii_uppercase
from typing import TYPE_CHECKING

import numpy as np

from xlm_keyboard.evaluator.base import Evaluator, Tokenizer
from xlm_keyboard.evaluator.registry import register_evaluator
from xlm_keyboard.evaluator.types import DecodeRequest, DecodeStatus, PositionEncoder

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from xlm_keyboard.config import XLMConfig

logger = logging.getLogger("xlm_keyboard")

_WORDS = (
    "I", "like", "to", "eat", "the", "a", "and", "you", "it", "is", "go",
    "pizza", "food", "cake", "hello", "help", "hell", "held", "world", "there",
)
_PIECES = ("he", "hel", "hell", "lo▁", "p▁", "o▁", "s▁", "ing▁", "ed▁")


def _default_vocabulary() -> list[str]:
    vocab = ["<unk>", "<s>", "</s>", "<pad>", "▁", "<XBU>", "<XBC>", "<XEC>", "<XC0>"]
    vocab += [f"<CHAR_{c}>" for c in ascii_uppercase]
    vocab += ["\n", "\t"]
    # Banned punctuation range [".▁", "0") with "." kept allowed.
    vocab += [".▁", ",▁", "!▁", "?▁", ".", ",", "'", "-"]
    vocab += [str(d) for d in range(10)]
    # Banned symbol range [":", "~"].
    vocab += [":", ";", "?", "!", "@", "~"]
    vocab += list(ascii_lowercase) + list(ascii_uppercase)
    vocab += [f"{w}▁" for w in _WORDS]
    vocab += list(_PIECES)
    return vocab


DEFAULT_VOCABULARY: tuple[str, ...] = tuple(_default_vocabulary())


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """One cached position: the token fed there (``None`` for embeddings) and its input vector."""

    token: int | None
    embedding: np.ndarray

    def key(self) -> bytes:
        """Stable byte key used to hash a history."""
        if self.token is not None:
            return b"t" + int(self.token).to_bytes(4, "little", signed=True)
        return b"e" + np.round(self.embedding, 4).astype(np.float32).tobytes()


class HashedScorer:
    """Maps a cached history to pseudo-random logits, deterministically.

    Identical histories always give identical logits; any difference in any
    position gives unrelated logits.
    """

    def __init__(self, vocab_size: int, seed: int = 0, scale: float = 4.0) -> None:
        self._vocab_size = vocab_size
        self._seed_bytes = int(seed).to_bytes(8, "little", signed=True)
        self._scale = scale

    def __call__(self, history: Sequence[CacheEntry]) -> np.ndarray:
        digest = hashlib.sha256(self._seed_bytes)
        for entry in history:
            digest.update(entry.key())
        rng = np.random.default_rng(int.from_bytes(digest.digest()[:8], "little"))
        result: np.ndarray = (rng.standard_normal(self._vocab_size) * self._scale).astype(
            np.float32
        )
        return result


class MockTokenizer(Tokenizer):
    """Greedy longest-match tokenizer over a vocabulary of ``▁``-suffixed words.

    Spaces in the input map to the space marker; characters with no matching
    token become id 0. Control tokens (``<...>``) never match text and are
    dropped by :meth:`decode`.
    """

    def __init__(self, vocabulary: Sequence[str], space: str = "▁") -> None:
        self._vocabulary = list(vocabulary)
        self._space = space
        self._lookup: dict[str, int] = {}
        for token_id, text in enumerate(self._vocabulary):
            if token_id < 4 or _is_control(text):
                continue
            self._lookup.setdefault(text, token_id)
        self._max_len = max((len(t) for t in self._lookup), default=1)

    def tokenize(self, text: str) -> list[int]:
        """Split *text* greedily into the longest known pieces."""
        s = text.replace(" ", self._space)
        tokens: list[int] = []
        i = 0
        while i < len(s):
            for length in range(min(self._max_len, len(s) - i), 0, -1):
                token_id = self._lookup.get(s[i : i + length])
                if token_id is not None:
                    tokens.append(token_id)
                    i += length
                    break
            else:
                tokens.append(0)
                i += 1
        return tokens

    def decode(self, tokens: Sequence[int]) -> str:
        """Join token spellings, skipping control tokens, with spaces restored."""
        parts = []
        for token_id in tokens:
            text = self._vocabulary[token_id]
            if token_id < 4 or _is_control(text):
                continue
            parts.append(text)
        return "".join(parts).replace(self._space, " ")


def _is_control(text: str) -> bool:
    return len(text) > 2 and text.startswith("<") and text.endswith(">")


@register_evaluator("mock")
class MockEvaluator(Evaluator):
    """In-process evaluator with exact slot/position cache semantics.

    A forward pass fails if the target slot is missing any earlier position,
    which is what a real runtime would silently get wrong. Every request is
    appended to :attr:`requests` for inspection.

    Args:
        config: Optional config; supplies the space marker for the tokenizer.
        vocabulary: Token spellings indexed by id. Defaults to a small
            English vocabulary containing every special token.
        n_embd: Embedding dimension.
        seed: Seed for the embedding table and the default scorer.
        scorer: ``history -> logits`` callable. Defaults to :class:`HashedScorer`.
        encoder: Optional learned coordinate encoder exposed to the mixer.
    """

    def __init__(
        self,
        config: XLMConfig | None = None,
        vocabulary: Sequence[str] | None = None,
        n_embd: int = 16,
        seed: int = 0,
        scorer: Callable[[Sequence[CacheEntry]], np.ndarray] | None = None,
        encoder: PositionEncoder | None = None,
    ) -> None:
        self._vocabulary = list(vocabulary if vocabulary is not None else DEFAULT_VOCABULARY)
        self._ids: dict[str, int] = {}
        for token_id, text in enumerate(self._vocabulary):
            self._ids.setdefault(text, token_id)
        self._n_embd = n_embd
        rng = np.random.default_rng(seed)
        self._embeddings = rng.standard_normal((len(self._vocabulary), n_embd)).astype(np.float32)
        self._embeddings.setflags(write=False)
        self._scorer = scorer if scorer is not None else HashedScorer(len(self._vocabulary), seed)
        self._encoder = encoder
        space = config.space_token if config is not None else "▁"
        self._tokenizer = MockTokenizer(self._vocabulary, space=space)
        self._cache: dict[int, dict[int, CacheEntry]] = {}
        self._logits: dict[int, np.ndarray] = {}
        self.requests: list[DecodeRequest] = []

    @property
    def name(self) -> str:
        """Return ``'mock'``."""
        return "mock"

    @property
    def vocab_size(self) -> int:
        return len(self._vocabulary)

    @property
    def n_embd(self) -> int:
        return self._n_embd

    @property
    def tokenizer(self) -> MockTokenizer:
        return self._tokenizer

    @property
    def token_embeddings(self) -> np.ndarray:
        return self._embeddings

    @property
    def position_encoder(self) -> PositionEncoder | None:
        return self._encoder

    def decode(self, request: DecodeRequest) -> DecodeStatus:
        """Write every entry into its slot and score the flagged ones.

        The request is applied atomically: on failure the cache is restored.
        """
        self.requests.append(request)
        touched = set(request.seq_ids)
        backup = {seq: dict(self._cache.get(seq, {})) for seq in touched}
        logits: dict[int, np.ndarray] = {}

        for i, (pos, seq) in enumerate(zip(request.positions, request.seq_ids)):
            slot = self._cache.setdefault(seq, {})
            missing = next((p for p in range(pos) if p not in slot), None)
            if missing is not None:
                logger.warning(
                    "mock decode: slot %d has no position %d (writing %d)", seq, missing, pos
                )
                self._restore(backup)
                return DecodeStatus.FAILED

            if request.tokens is not None:
                token = request.tokens[i]
                if not 0 <= token < self.vocab_size:
                    logger.warning("mock decode: token id %d out of range", token)
                    self._restore(backup)
                    return DecodeStatus.FAILED
                slot[pos] = CacheEntry(token=token, embedding=self._embeddings[token])
            else:
                embedding = request.embeddings[i]  # type: ignore[index]
                slot[pos] = CacheEntry(token=None, embedding=embedding)

            if request.logits[i]:
                history = [slot[p] for p in range(pos + 1)]
                logits[i] = np.asarray(self._scorer(history), dtype=np.float32)

        self._logits = logits
        return DecodeStatus.OK

    def _restore(self, backup: dict[int, dict[int, CacheEntry]]) -> None:
        for seq, entries in backup.items():
            self._cache[seq] = entries

    def get_logits(self, index: int) -> np.ndarray:
        """Return a copy of the logits for entry *index* of the last request."""
        return self._logits[index].copy()

    def cache_remove(self, seq_id: int, start: int = 0, end: int | None = None) -> None:
        slot = self._cache.get(seq_id)
        if not slot:
            return
        for pos in [p for p in slot if p >= start and (end is None or p < end)]:
            del slot[pos]

    def cache_copy(self, src_seq_id: int, dst_seq_id: int, upto: int) -> None:
        src = self._cache.get(src_seq_id, {})
        dst = self._cache.setdefault(dst_seq_id, {})
        for pos, entry in src.items():
            if pos < upto:
                dst[pos] = entry

    def cached_positions(self, seq_id: int) -> list[int]:
        """Sorted positions currently cached in slot *seq_id*."""
        return sorted(self._cache.get(seq_id, {}))

    def cached_history(self, seq_id: int) -> list[CacheEntry]:
        """Entries of slot *seq_id* in position order."""
        slot = self._cache.get(seq_id, {})
        return [slot[p] for p in sorted(slot)]

    def token_to_id(self, text: str) -> int:
        return self._ids.get(text, 0)

    def id_to_token_text(self, token_id: int) -> str:
        return self._vocabulary[token_id]

    def close(self) -> None:
        """Drop all cached state."""
        self._cache.clear()
        self._logits.clear()
