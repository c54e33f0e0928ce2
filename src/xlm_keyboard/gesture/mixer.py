"""Touch points -> token mixes -> continuous input embeddings.

Two stages:

1. :class:`TokenMixBuilder` turns raw touch coordinates into ``TokenMix``
   records using the keyboard geometry: noise floor, top-``MIX_WIDTH``
   letter keys, weight normalization. Points whose best keys above the
   floor are all symbols are dropped.
2. :class:`GestureEmbeddingMixer` turns each mix into one embedding, either
   through the model's learned coordinate encoder or as a weighted blend
   of the letter token embeddings.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from xlm_keyboard.config import MIX_WIDTH
from xlm_keyboard.gesture.types import MixCandidate, TokenMix
from xlm_keyboard.invariants import report_violation

if TYPE_CHECKING:
    from collections.abc import Sequence

    from xlm_keyboard.evaluator.types import PositionEncoder
    from xlm_keyboard.gesture.base import KeyboardGeometry
    from xlm_keyboard.special_tokens import SpecialTokens

logger = logging.getLogger("xlm_keyboard")

# Candidates below this weight do not contribute to a blend.
MIX_WEIGHT_EPSILON = 1e-4


class TokenMixBuilder:
    """Builds TokenMix records from touch coordinates.

    Args:
        geometry: Keyboard layout used to decompose each touch.
        special_tokens: Supplies the per-letter token ids.
        floor: Key probabilities below this are zeroed.
    """

    def __init__(
        self,
        geometry: KeyboardGeometry,
        special_tokens: SpecialTokens,
        floor: float = 0.05,
    ) -> None:
        self._geometry = geometry
        self._tokens = special_tokens
        self._floor = floor

    def build(self, xs: Sequence[int], ys: Sequence[int]) -> list[TokenMix]:
        """Convert touch points to mixes.

        Args:
            xs: Touch x coordinates.
            ys: Touch y coordinates, same length as *xs*.

        Returns:
            One TokenMix per kept point, in input order. Symbol-key touches
            are skipped, so the result may be shorter than the input.

        Raises:
            ValueError: If *xs* and *ys* differ in length.
        """
        if len(xs) != len(ys):
            raise ValueError(f"Got {len(xs)} x coordinates but {len(ys)} y coordinates")

        mixes = []
        for i, (x, y) in enumerate(zip(xs, ys)):
            mix = self._build_one(int(x), int(y))
            if mix is None:
                logger.debug("Skipping touch %d at (%d, %d): no letter key", i, x, y)
                continue
            mixes.append(mix)
        return mixes

    def _build_one(self, x: int, y: int) -> TokenMix | None:
        geometry = self._geometry
        probs = np.array(geometry.key_probabilities(x, y), dtype=np.float64)
        probs[probs < self._floor] = 0.0

        # Keys above the floor, descending probability, lower index first on ties.
        order = np.lexsort((np.arange(len(probs)), -probs))
        order = order[probs[order] > 0.0]

        letter_ids = [self._tokens.letter_id(geometry.key_char(int(k))) for k in order]
        if all(token is None for token in letter_ids[:MIX_WIDTH]):
            return None

        picked = [
            (float(probs[k]), token)
            for k, token in zip(order, letter_ids)
            if token is not None
        ][:MIX_WIDTH]

        total = sum(weight for weight, _ in picked)

        return TokenMix(
            x=x / geometry.width,
            y=y / geometry.height,
            candidates=tuple(MixCandidate(weight / total, token) for weight, token in picked),
        )


class GestureEmbeddingMixer:
    """Produces one input embedding per TokenMix.

    If the model ships a learned coordinate encoder it is used exclusively and
    the letter candidates are ignored. Otherwise the embedding is the
    weight-blended sum of the candidates' token embeddings.

    Args:
        token_embeddings: Model embedding table, shape ``(vocab, n_embd)``.
        encoder: Optional learned coordinate encoder.
        strict: Raise instead of log on invariant violations.
    """

    def __init__(
        self,
        token_embeddings: np.ndarray,
        encoder: PositionEncoder | None = None,
        strict: bool = False,
    ) -> None:
        self._embeddings = token_embeddings
        self._encoder = encoder
        self._strict = strict

    @property
    def uses_encoder(self) -> bool:
        """Whether embeddings come from the coordinate encoder."""
        return self._encoder is not None

    def embed(self, mix: TokenMix) -> np.ndarray:
        """Return the embedding for one mix, shape ``(n_embd,)``."""
        if self._encoder is not None:
            return np.asarray(self._encoder.encode(mix.x, mix.y), dtype=np.float32)

        result = np.zeros(self._embeddings.shape[1], dtype=np.float32)
        num_added = 0
        for candidate in mix.candidates:
            if candidate.weight < MIX_WEIGHT_EPSILON:
                break
            result += self._embeddings[candidate.token] * candidate.weight
            num_added += 1

        if num_added == 0:
            report_violation(
                self._strict, "token mix at (%.4f, %.4f) has zero weight", mix.x, mix.y
            )
        return result

    def embed_all(self, mixes: Sequence[TokenMix]) -> np.ndarray:
        """Embeddings for *mixes*, shape ``(len(mixes), n_embd)``."""
        if not mixes:
            return np.zeros((0, self._embeddings.shape[1]), dtype=np.float32)
        return np.stack([self.embed(mix) for mix in mixes])
