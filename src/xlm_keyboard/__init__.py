"""xlm-keyboard: transformer-driven next-word prediction and typo/swipe correction.

Runs a causal language model behind a mobile keyboard. A parallel-hypothesis
decoder expands a few candidate words at once over a slotted KV cache,
reusing the cached prefix between keystrokes and feeding ambiguous touch
input to the model as blended embeddings.
"""

from __future__ import annotations

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("xlm-keyboard")
except PackageNotFoundError:
    __version__ = "0.0.0"

from xlm_keyboard.config import XLMConfig, resolve_config, validate_extra_args
from xlm_keyboard.exceptions import (
    CacheSlotExhaustedError,
    ConfigValidationError,
    EvaluatorError,
    InvariantViolationError,
    SpecialTokenError,
    XLMError,
)
from xlm_keyboard.predictor import Suggestion, XLMPredictor

__all__ = [
    "CacheSlotExhaustedError",
    "ConfigValidationError",
    "EvaluatorError",
    "InvariantViolationError",
    "SpecialTokenError",
    "Suggestion",
    "XLMConfig",
    "XLMError",
    "XLMPredictor",
    "__version__",
    "resolve_config",
    "validate_extra_args",
]
