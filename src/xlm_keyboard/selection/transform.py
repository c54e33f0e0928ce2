"""Logit transform: raw model outputs -> masked ranking scores.

Pipeline, applied in place to one position's logits:
    softmax -> structural markers off -> letter tokens off ->
    banned mass folded into space -> optional space mask.

The result is ranked with deterministic top-k, never sampled by inverse
CDF. It is NOT renormalized after masking by default, so values are
relative scores whose sum can fall slightly below 1. Pass
``renormalize=True`` to divide by the surviving mass instead; this changes
the scale of reported probabilities but not their order.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from xlm_keyboard.special_tokens import SpecialTokens


class LogitTransform:
    """Converts a logits vector into masked probabilities for ranking.

    Args:
        special_tokens: Resolved ids for the model.
        renormalize: Divide by the remaining mass after masking.
    """

    def __init__(self, special_tokens: SpecialTokens, renormalize: bool = False) -> None:
        self._tokens = special_tokens
        self._renormalize = renormalize
        self._structural = np.array([special_tokens.xbu, special_tokens.xbc], dtype=np.intp)
        self._letters = np.array(special_tokens.letters, dtype=np.intp)
        self._banned = np.array(special_tokens.banned, dtype=np.intp)

    @staticmethod
    def softmax(logits: np.ndarray) -> np.ndarray:
        """Numerically stable softmax, in place.

        Subtracts ``max + log(sum(exp(x - max)))`` before exponentiating.

        Args:
            logits: 1-D floating-point array; overwritten.

        Returns:
            The same array, now holding probabilities.
        """
        m = np.max(logits)
        offset = m + np.log(np.sum(np.exp(logits - m)))
        np.exp(logits - offset, out=logits)
        return logits

    def apply(
        self,
        logits: np.ndarray,
        allow_space: bool,
        allow_end_of_correction: bool,
    ) -> np.ndarray:
        """Transform one position's logits into masked probabilities.

        Args:
            logits: 1-D array of length vocab_size. Floating arrays are
                modified in place; other dtypes are converted first.
            allow_space: If False, the space token is zeroed last.
            allow_end_of_correction: If False, the end-of-correction marker
                is zeroed.

        Returns:
            The transformed array.
        """
        if not np.issubdtype(logits.dtype, np.floating):
            logits = logits.astype(np.float64)
        probs = self.softmax(logits)
        tokens = self._tokens

        probs[self._structural] = 0.0
        if not allow_end_of_correction:
            probs[tokens.xec] = 0.0

        # Letter tokens are conditioning inputs only.
        probs[self._letters] = 0.0

        # Fold punctuation/control mass into "end the word here".
        if self._banned.size:
            probs[tokens.space] += np.sum(np.maximum(probs[self._banned], 0.0))
            probs[self._banned] = 0.0

        if not allow_space:
            probs[tokens.space] = 0.0

        if self._renormalize:
            total = np.sum(probs)
            if total > 0:
                probs /= total

        return probs
