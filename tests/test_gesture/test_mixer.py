"""Tests for touch decomposition and gesture embeddings."""

from __future__ import annotations

import logging

import numpy as np
import pytest

from xlm_keyboard.config import MIX_WIDTH
from xlm_keyboard.evaluator.mock import MockEvaluator
from xlm_keyboard.evaluator.types import PositionEncoder
from xlm_keyboard.exceptions import InvariantViolationError
from xlm_keyboard.gesture.base import KeyboardGeometry
from xlm_keyboard.gesture.mixer import GestureEmbeddingMixer, TokenMixBuilder
from xlm_keyboard.gesture.qwerty import QwertyKeyboard
from xlm_keyboard.gesture.types import MixCandidate, TokenMix
from xlm_keyboard.special_tokens import SpecialTokens


class FixedGeometry(KeyboardGeometry):
    """Returns the same key distribution for every touch."""

    def __init__(self, chars: str, probs: list[float]) -> None:
        self._chars = chars
        self._probs = np.array(probs, dtype=np.float64)

    @property
    def width(self) -> int:
        return 200

    @property
    def height(self) -> int:
        return 100

    @property
    def key_count(self) -> int:
        return len(self._chars)

    def key_probabilities(self, x: int, y: int) -> np.ndarray:
        return self._probs.copy()

    def key_char(self, index: int) -> str:
        return self._chars[index]


class TestTokenMixBuilder:
    """Floor, letter filtering, top-four selection and normalization."""

    def test_centre_of_h(self, keyboard: QwertyKeyboard, special_tokens: SpecialTokens) -> None:
        builder = TokenMixBuilder(keyboard, special_tokens)
        (mix,) = builder.build([648], [240])

        assert mix.x == pytest.approx(0.6)
        assert mix.y == pytest.approx(0.375)
        tokens = [c.token for c in mix.candidates]
        assert tokens == [special_tokens.letter_id(c) for c in "hgjb"]
        assert mix.candidates[0].weight == pytest.approx(0.797, abs=0.01)
        assert mix.total_weight == pytest.approx(1.0)

    def test_symbol_touch_skipped(
        self, keyboard: QwertyKeyboard, special_tokens: SpecialTokens
    ) -> None:
        builder = TokenMixBuilder(keyboard, special_tokens)
        mixes = builder.build([648, 378, 702], [240, 630, 80])
        assert len(mixes) == 2
        assert mixes[0].candidates[0].token == special_tokens.letter_id("h")
        assert mixes[1].candidates[0].token == special_tokens.letter_id("u")

    def test_floor_zeroes_weak_keys(self, special_tokens: SpecialTokens) -> None:
        geometry = FixedGeometry("abc", [0.9, 0.07, 0.03])
        (mix,) = TokenMixBuilder(geometry, special_tokens).build([10], [10])
        assert [c.token for c in mix.candidates[:2]] == [
            special_tokens.letter_id("a"),
            special_tokens.letter_id("b"),
        ]
        assert mix.candidates[0].weight == pytest.approx(0.9 / 0.97)
        assert mix.candidates[2].weight == 0.0
        assert mix.candidates[3].weight == 0.0

    def test_top_four_letters_only(self, special_tokens: SpecialTokens) -> None:
        geometry = FixedGeometry("a,bcdef", [0.3, 0.2, 0.15, 0.12, 0.1, 0.08, 0.05])
        (mix,) = TokenMixBuilder(geometry, special_tokens, floor=0.01).build([0], [0])
        assert len(mix.candidates) == MIX_WIDTH
        assert [c.token for c in mix.candidates] == [
            special_tokens.letter_id(ch) for ch in "abcd"
        ]
        total = 0.3 + 0.15 + 0.12 + 0.1
        assert mix.candidates[0].weight == pytest.approx(0.3 / total)

    def test_symbols_dominating_top_four_skip_point(self, special_tokens: SpecialTokens) -> None:
        geometry = FixedGeometry(",.'-a", [0.3, 0.25, 0.2, 0.15, 0.1])
        assert TokenMixBuilder(geometry, special_tokens).build([0], [0]) == []

    def test_ties_prefer_lower_key_index(self, special_tokens: SpecialTokens) -> None:
        geometry = FixedGeometry("xyz", [0.25, 0.5, 0.25])
        (mix,) = TokenMixBuilder(geometry, special_tokens).build([0], [0])
        assert [c.token for c in mix.candidates[:3]] == [
            special_tokens.letter_id(ch) for ch in "yxz"
        ]

    def test_coordinates_normalized(self, special_tokens: SpecialTokens) -> None:
        geometry = FixedGeometry("a", [1.0])
        (mix,) = TokenMixBuilder(geometry, special_tokens).build([50], [75])
        assert (mix.x, mix.y) == (0.25, 0.75)

    def test_length_mismatch(self, keyboard: QwertyKeyboard, special_tokens: SpecialTokens) -> None:
        with pytest.raises(ValueError):
            TokenMixBuilder(keyboard, special_tokens).build([1, 2], [1])


class TestGestureEmbeddingMixer:
    def test_weighted_blend(self, evaluator: MockEvaluator) -> None:
        table = evaluator.token_embeddings
        mix = TokenMix(0.1, 0.2, (MixCandidate(0.7, 40), MixCandidate(0.3, 41)))
        result = GestureEmbeddingMixer(table).embed(mix)
        expected = 0.7 * table[40] + 0.3 * table[41]
        np.testing.assert_allclose(result, expected, rtol=1e-5, atol=1e-6)

    def test_blend_stops_at_negligible_weight(self, evaluator: MockEvaluator) -> None:
        table = evaluator.token_embeddings
        mix = TokenMix(
            0.1,
            0.2,
            (MixCandidate(0.99995, 40), MixCandidate(5e-5, 41), MixCandidate(0.0, 42)),
        )
        result = GestureEmbeddingMixer(table).embed(mix)
        np.testing.assert_allclose(result, 0.99995 * table[40], rtol=1e-5, atol=1e-6)

    def test_encoder_used_exclusively(self, evaluator: MockEvaluator) -> None:
        n = evaluator.n_embd
        encoder = PositionEncoder(
            weight=np.ones((n, 2), dtype=np.float32),
            bias=np.full(n, 0.5, dtype=np.float32),
        )
        mixer = GestureEmbeddingMixer(evaluator.token_embeddings, encoder=encoder)
        mix = TokenMix(0.25, 0.5, (MixCandidate(1.0, 40),))

        assert mixer.uses_encoder
        np.testing.assert_allclose(mixer.embed(mix), np.full(n, 1.25))

    def test_zero_weight_logged(
        self, evaluator: MockEvaluator, caplog: pytest.LogCaptureFixture
    ) -> None:
        mix = TokenMix(0.1, 0.2, ())
        with caplog.at_level(logging.ERROR, logger="xlm_keyboard"):
            result = GestureEmbeddingMixer(evaluator.token_embeddings).embed(mix)
        assert not np.any(result)
        assert "zero weight" in caplog.text

    def test_zero_weight_strict_raises(self, evaluator: MockEvaluator) -> None:
        mixer = GestureEmbeddingMixer(evaluator.token_embeddings, strict=True)
        with pytest.raises(InvariantViolationError):
            mixer.embed(TokenMix(0.1, 0.2, ()))

    def test_embed_all(self, evaluator: MockEvaluator) -> None:
        mixer = GestureEmbeddingMixer(evaluator.token_embeddings)
        mixes = [TokenMix(0.1, 0.2, (MixCandidate(1.0, t),)) for t in (40, 41, 42)]
        stacked = mixer.embed_all(mixes)
        assert stacked.shape == (3, evaluator.n_embd)
        np.testing.assert_allclose(stacked[2], evaluator.token_embeddings[42])

    def test_embed_all_empty(self, evaluator: MockEvaluator) -> None:
        stacked = GestureEmbeddingMixer(evaluator.token_embeddings).embed_all([])
        assert stacked.shape == (0, evaluator.n_embd)
