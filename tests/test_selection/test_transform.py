"""Tests for LogitTransform."""

from __future__ import annotations

import numpy as np
import pytest

from xlm_keyboard.evaluator.mock import MockEvaluator
from xlm_keyboard.selection.transform import LogitTransform
from xlm_keyboard.special_tokens import SpecialTokens


def _softmax(x: np.ndarray) -> np.ndarray:
    e = np.exp(x - np.max(x))
    result: np.ndarray = e / np.sum(e)
    return result


@pytest.fixture
def logits(evaluator: MockEvaluator) -> np.ndarray:
    rng = np.random.default_rng(seed=7)
    return rng.standard_normal(evaluator.vocab_size).astype(np.float64) * 3.0


class TestSoftmax:
    """The in-place stable softmax."""

    def test_sums_to_one(self, logits: np.ndarray) -> None:
        probs = LogitTransform.softmax(logits.copy())
        assert np.sum(probs) == pytest.approx(1.0)

    def test_matches_reference(self, logits: np.ndarray) -> None:
        np.testing.assert_allclose(LogitTransform.softmax(logits.copy()), _softmax(logits))

    def test_large_logits_stable(self) -> None:
        probs = LogitTransform.softmax(np.array([1000.0, 1000.0, -1000.0]))
        assert np.all(np.isfinite(probs))
        np.testing.assert_allclose(probs, [0.5, 0.5, 0.0], atol=1e-12)

    def test_in_place(self) -> None:
        x = np.array([0.0, 1.0, 2.0])
        assert LogitTransform.softmax(x) is x


class TestApply:
    """Masking and banned-mass folding."""

    def test_banned_tokens_zeroed(
        self, special_tokens: SpecialTokens, logits: np.ndarray
    ) -> None:
        probs = LogitTransform(special_tokens).apply(logits, True, True)
        assert np.all(probs[list(special_tokens.banned)] == 0.0)

    def test_space_absorbs_banned_mass(
        self, special_tokens: SpecialTokens, logits: np.ndarray
    ) -> None:
        reference = _softmax(logits)
        probs = LogitTransform(special_tokens).apply(logits.copy(), True, True)
        expected = reference[special_tokens.space] + reference[list(special_tokens.banned)].sum()
        assert probs[special_tokens.space] == pytest.approx(expected)
        assert probs[special_tokens.space] >= reference[special_tokens.space]

    def test_structural_markers_always_zero(
        self, special_tokens: SpecialTokens, logits: np.ndarray
    ) -> None:
        logits[special_tokens.xbu] = 50.0
        logits[special_tokens.xbc] = 50.0
        probs = LogitTransform(special_tokens).apply(logits, True, True)
        assert probs[special_tokens.xbu] == 0.0
        assert probs[special_tokens.xbc] == 0.0

    def test_end_of_correction_masked_unless_allowed(
        self, special_tokens: SpecialTokens, logits: np.ndarray
    ) -> None:
        transform = LogitTransform(special_tokens)
        assert transform.apply(logits.copy(), True, False)[special_tokens.xec] == 0.0
        assert transform.apply(logits.copy(), True, True)[special_tokens.xec] > 0.0

    def test_letter_tokens_zeroed(
        self, special_tokens: SpecialTokens, logits: np.ndarray
    ) -> None:
        logits[list(special_tokens.letters)] = 20.0
        probs = LogitTransform(special_tokens).apply(logits, True, True)
        assert np.all(probs[list(special_tokens.letters)] == 0.0)

    def test_space_masked_when_disallowed(
        self, special_tokens: SpecialTokens, logits: np.ndarray
    ) -> None:
        probs = LogitTransform(special_tokens).apply(logits, False, True)
        assert probs[special_tokens.space] == 0.0

    def test_not_renormalized_by_default(
        self, special_tokens: SpecialTokens, logits: np.ndarray
    ) -> None:
        probs = LogitTransform(special_tokens).apply(logits, False, False)
        total = float(np.sum(probs))
        assert 0.0 < total < 1.0
        assert np.all((probs >= 0.0) & (probs <= 1.0))

    def test_renormalize_option(
        self, special_tokens: SpecialTokens, logits: np.ndarray
    ) -> None:
        plain = LogitTransform(special_tokens).apply(logits.copy(), False, False)
        renorm = LogitTransform(special_tokens, renormalize=True).apply(logits.copy(), False, False)
        assert np.sum(renorm) == pytest.approx(1.0)
        # Scale changes, order does not.
        np.testing.assert_array_equal(
            np.argsort(-plain, kind="stable"), np.argsort(-renorm, kind="stable")
        )

    def test_integer_logits_accepted(
        self, special_tokens: SpecialTokens, evaluator: MockEvaluator
    ) -> None:
        logits = np.zeros(evaluator.vocab_size, dtype=np.int32)
        probs = LogitTransform(special_tokens).apply(logits, True, False)
        assert np.issubdtype(probs.dtype, np.floating)
        assert probs[special_tokens.space] > probs[evaluator.token_to_id("hello▁")]

    def test_float32_modified_in_place(
        self, special_tokens: SpecialTokens, logits: np.ndarray
    ) -> None:
        x = logits.astype(np.float32)
        assert LogitTransform(special_tokens).apply(x, True, True) is x
