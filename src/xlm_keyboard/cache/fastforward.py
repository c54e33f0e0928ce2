"""Prefix reuse between consecutive calls on one model instance.

The evaluator's slot 0 holds the deterministic prefix of the last call.
:func:`fast_forward` finds how much of it survives for the new prompt;
:func:`count_cached_mixes` does the same for the gesture positions that
follow the prompt.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from xlm_keyboard.gesture.types import TokenMix


@dataclass(frozen=True, slots=True)
class FastForward:
    """Tokens still to evaluate and the position where they start.

    Attributes:
        tokens: Suffix of the new prompt not yet in the cache.
        n_past: Number of cached leading positions that stay valid.
            Everything at or beyond it must be evicted before writing.
    """

    tokens: tuple[int, ...]
    n_past: int

    @property
    def is_empty(self) -> bool:
        return not self.tokens


def common_prefix_length(a: Sequence[int], b: Sequence[int]) -> int:
    """Length of the longest shared prefix of *a* and *b*."""
    n = 0
    for x, y in zip(a, b):
        if x != y:
            break
        n += 1
    return n


def fast_forward(
    previous: Sequence[int],
    prompt: Sequence[int],
    allow_empty: bool = True,
) -> FastForward:
    """Compute the minimal prompt suffix that must be newly evaluated.

    Args:
        previous: Prompt held in the cache from the last call.
        prompt: Prompt required now.
        allow_empty: If False and nothing would be evaluated, the last
            prompt token is evaluated again so that fresh logits exist for
            it. Callers that do not follow the prompt with anything else
            need this.

    Returns:
        The suffix and its starting position.
    """
    n_past = common_prefix_length(previous, prompt)
    if n_past == len(prompt) and not allow_empty and prompt:
        n_past -= 1
    return FastForward(tokens=tuple(prompt[n_past:]), n_past=n_past)


def count_cached_mixes(
    previous: Sequence[TokenMix],
    mixes: Sequence[TokenMix],
    epsilon: float,
) -> int:
    """Number of leading *mixes* whose coordinates match *previous* within *epsilon*."""
    n = 0
    for old, new in zip(previous, mixes):
        if not new.matches(old, epsilon):
            break
        n += 1
    return n
