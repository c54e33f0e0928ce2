"""Evaluator subsystem for xlm-keyboard.

Re-exports the ABCs, request types, registry, and the built-in mock backend::

    from xlm_keyboard.evaluator import Evaluator, EvaluatorRegistry
    from xlm_keyboard.evaluator import MockEvaluator
"""

from xlm_keyboard.evaluator.base import Evaluator, Tokenizer
from xlm_keyboard.evaluator.mock import DEFAULT_VOCABULARY, MockEvaluator, MockTokenizer
from xlm_keyboard.evaluator.registry import EvaluatorRegistry, register_evaluator
from xlm_keyboard.evaluator.types import DecodeRequest, DecodeStatus, PositionEncoder

__all__ = [
    "DEFAULT_VOCABULARY",
    "DecodeRequest",
    "DecodeStatus",
    "Evaluator",
    "EvaluatorRegistry",
    "MockEvaluator",
    "MockTokenizer",
    "PositionEncoder",
    "Tokenizer",
    "register_evaluator",
]
