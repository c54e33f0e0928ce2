"""Decoding subsystem for xlm-keyboard.

Turns a token prompt plus optional gesture input into ranked completions::

    from xlm_keyboard.decoding import ModelState, ParallelHypothesisDecoder
"""

from xlm_keyboard.decoding.decoder import ParallelHypothesisDecoder
from xlm_keyboard.decoding.state import ModelState
from xlm_keyboard.decoding.types import DecodeResult, Hypothesis, SampleResult, ScoredSequence

__all__ = [
    "DecodeResult",
    "Hypothesis",
    "ModelState",
    "ParallelHypothesisDecoder",
    "SampleResult",
    "ScoredSequence",
]
