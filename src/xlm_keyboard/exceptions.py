"""Exception hierarchy for xlm-keyboard.

All exceptions derive from XLMError, enabling broad catch patterns
at the application boundary while allowing fine-grained handling internally.
"""


class XLMError(Exception):
    """Base exception for all xlm-keyboard errors."""


class SpecialTokenError(XLMError):
    """A required special token could not be resolved from the vocabulary.

    Raised while loading a model. The model is unusable without these ids,
    so this is fatal to construction.
    """


class EvaluatorError(XLMError):
    """The evaluator reported a failed forward pass.

    Cache state may be inconsistent after this error; callers discard the
    whole decode call instead of returning partial results.
    """


class CacheSlotExhaustedError(XLMError):
    """No unused cache slot was available during collision resolution.

    Indicates more live hypotheses than configured slots.
    """


class InvariantViolationError(XLMError):
    """An internal invariant was violated.

    Only raised when ``strict_invariants`` is enabled; otherwise the
    violation is logged and decoding continues.
    """


class ConfigValidationError(XLMError):
    """Configuration field validation failed.

    Raised when per-call extra_args contain invalid keys, attempt to
    override non-overridable infrastructure fields, or fail type validation.
    """
