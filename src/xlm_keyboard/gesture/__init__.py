"""Gesture subsystem for xlm-keyboard.

Turns ambiguous touch input into continuous embeddings fed to the model in
place of discrete tokens.
"""

from xlm_keyboard.gesture.base import KeyboardGeometry
from xlm_keyboard.gesture.mixer import GestureEmbeddingMixer, TokenMixBuilder
from xlm_keyboard.gesture.qwerty import QwertyKeyboard
from xlm_keyboard.gesture.types import MixCandidate, TokenMix

__all__ = [
    "GestureEmbeddingMixer",
    "KeyboardGeometry",
    "MixCandidate",
    "QwertyKeyboard",
    "TokenMix",
    "TokenMixBuilder",
]
