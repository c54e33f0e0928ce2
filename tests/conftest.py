"""Shared pytest fixtures for xlm-keyboard tests.

Provides quiet configuration objects, a mock evaluator over the default
vocabulary, resolved special tokens, a QWERTY layout, and a scripted scorer
factory for steering the mock model toward known continuations.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence

import numpy as np
import pytest

from xlm_keyboard.config import XLMConfig
from xlm_keyboard.evaluator.mock import DEFAULT_VOCABULARY, CacheEntry, MockEvaluator
from xlm_keyboard.gesture.qwerty import QwertyKeyboard
from xlm_keyboard.special_tokens import SpecialTokens, resolve_special_tokens


def tid(text: str) -> int:
    """Token id of *text* in the default mock vocabulary."""
    return DEFAULT_VOCABULARY.index(text)


class SuffixScorer:
    """Scores a history by the tokens that follow the last *marker* in it.

    ``table`` maps a tuple of generated token ids to ``{token_id: logit}``.
    Unlisted tokens get logit 0, so unknown suffixes give a flat distribution.
    Embedding positions never match the marker.
    """

    def __init__(
        self,
        marker: int,
        table: Mapping[tuple[int, ...], Mapping[int, float]],
        vocab_size: int = len(DEFAULT_VOCABULARY),
    ) -> None:
        self._marker = marker
        self._table = table
        self._vocab_size = vocab_size

    def __call__(self, history: Sequence[CacheEntry]) -> np.ndarray:
        tokens = [entry.token for entry in history]
        start = len(tokens)
        for i in range(len(tokens) - 1, -1, -1):
            if tokens[i] == self._marker:
                start = i + 1
                break
        key = tuple(t for t in tokens[start:] if t is not None)
        logits = np.zeros(self._vocab_size, dtype=np.float32)
        for token_id, value in self._table.get(key, {}).items():
            logits[token_id] = value
        return logits


@pytest.fixture
def config() -> XLMConfig:
    """Default configuration, isolated from any .env file, with logging off."""
    return XLMConfig(_env_file=None, log_level="none")  # type: ignore[call-arg]


@pytest.fixture
def strict_config() -> XLMConfig:
    """Configuration that raises on invariant violations."""
    return XLMConfig(
        _env_file=None,
        log_level="none",
        strict_invariants=True,  # type: ignore[call-arg]
    )


@pytest.fixture
def diagnostic_config() -> XLMConfig:
    """Configuration with diagnostic mode and full logging enabled."""
    return XLMConfig(
        _env_file=None,
        log_level="full",
        diagnostic_mode=True,  # type: ignore[call-arg]
    )


@pytest.fixture
def evaluator(config: XLMConfig) -> MockEvaluator:
    """Mock evaluator with the default hashed scorer."""
    return MockEvaluator(config)


@pytest.fixture
def special_tokens(evaluator: MockEvaluator, config: XLMConfig) -> SpecialTokens:
    """Special tokens resolved against the default mock vocabulary."""
    return resolve_special_tokens(evaluator, config)


@pytest.fixture
def keyboard() -> QwertyKeyboard:
    """Default 1080 x 640 QWERTY layout."""
    return QwertyKeyboard()


@pytest.fixture
def make_scorer() -> Callable[..., SuffixScorer]:
    """Factory for :class:`SuffixScorer` keyed by token spellings.

    Usage::

        scorer = make_scorer("<XBC>", {(): {"hel": 6.0}, ("hel",): {"p▁": 8.0}})
    """

    def factory(marker: str, table: Mapping[tuple[str, ...], Mapping[str, float]]) -> SuffixScorer:
        resolved = {
            tuple(tid(t) for t in key): {tid(t): v for t, v in row.items()}
            for key, row in table.items()
        }
        return SuffixScorer(tid(marker), resolved)

    return factory
