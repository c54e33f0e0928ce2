"""Selection subsystem for xlm-keyboard.

Masked softmax over the vocabulary and deterministic top-k ranking.
"""

from xlm_keyboard.selection.ranking import rank_top_k
from xlm_keyboard.selection.transform import LogitTransform
from xlm_keyboard.selection.types import Candidate

__all__ = [
    "Candidate",
    "LogitTransform",
    "rank_top_k",
]
