"""Configuration system for xlm-keyboard.

Uses pydantic-settings for declarative, layered configuration:
init kwargs -> environment variables (XLM_*) -> .env file -> field defaults.

Per-call overrides are applied via resolve_config() which creates a new
config instance without mutating the defaults. Model-level fields (token
names, cache tolerances) are protected from per-call override because the
per-model cache memo depends on them staying fixed.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from xlm_keyboard.exceptions import ConfigValidationError

# Hard caps on the search. These bound worst-case latency and are not
# configurable; num_suggestions may only lower the width.
MAX_RESULTS = 3
MAX_EXPANSION_STEPS = 10
MIX_WIDTH = 4

# Fields that can be overridden per call via extra_args.
_PER_CALL_FIELDS: frozenset[str] = frozenset(
    {
        "num_suggestions",
        "renormalize_after_mask",
        "log_level",
        "diagnostic_mode",
    }
)

# All known config field names (populated after class definition).
_ALL_FIELDS: frozenset[str] = frozenset()


class XLMConfig(BaseSettings):
    """Configuration for xlm-keyboard.

    Resolution order: init kwargs -> env vars (XLM_*) -> .env file -> defaults.

    Fields are divided into two groups:
    - **Model**: evaluator backend, special token spellings, banned ranges,
      gesture thresholds. NOT overridable per call.
    - **Suggestion parameters**: result width, renormalization, logging.
      Overridable per call via extra_args with the xlm_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="XLM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Model (NOT per-call overridable) ---

    evaluator_type: str = Field(
        default="mock",
        description="Registered evaluator backend name",
    )
    model_path: str = Field(
        default="",
        description="Model location passed to evaluator backends that load files",
    )
    bos_token_id: int = Field(
        default=1,
        description="Beginning-of-sequence token id prepended to every prompt",
    )

    # --- Special token spellings ---

    space_token: str = Field(default="▁", description="Word-boundary token text")
    xbu_token: str = Field(default="<XBU>", description="Begin-correction marker")
    xbc_token: str = Field(default="<XBC>", description="End-of-gesture marker")
    xec_token: str = Field(default="<XEC>", description="End-of-correction marker")
    swipe_mode_token: str = Field(default="<XC0>", description="Swipe-mode marker")
    letter_token_template: str = Field(
        default="<CHAR_{}>",
        description="Per-letter token spelling, formatted with 'A'..'Z'",
    )

    # --- Banned tokens ---

    control_token_ids: list[int] = Field(
        default=[0, 1, 2, 3],
        description="Control token ids folded into space (out-of-vocab ids ignored)",
    )
    whitespace_tokens: list[str] = Field(
        default=["\n", "\t", "\r"],
        description="Whitespace token spellings folded into space (unresolved ones ignored)",
    )
    punctuation_range_start: str = Field(
        default=".▁",
        description="First token of the banned punctuation id range (inclusive)",
    )
    punctuation_range_stop: str = Field(
        default="0",
        description="Token ending the banned punctuation id range (exclusive)",
    )
    punctuation_keep: str = Field(
        default=".",
        description="Token inside the punctuation range that stays allowed (acronyms)",
    )
    symbol_range_first: str = Field(
        default=":",
        description="First token of the banned symbol id range (inclusive)",
    )
    symbol_range_last: str = Field(
        default="~",
        description="Last token of the banned symbol id range (inclusive)",
    )

    # --- Decoding / gesture (NOT per-call overridable) ---

    word_boundary_suffix: str = Field(
        default="▁",
        description="A hypothesis ends when its newest token text ends with this suffix",
    )
    key_probability_floor: float = Field(
        default=0.05,
        description="Key probabilities below this are treated as noise",
    )
    mix_match_epsilon: float = Field(
        default=1e-4,
        description="Coordinate tolerance for reusing cached gesture embeddings",
    )
    strict_invariants: bool = Field(
        default=False,
        description="Raise on invariant violations instead of logging them",
    )

    # --- Suggestion parameters (per-call overridable) ---

    num_suggestions: int = Field(
        default=MAX_RESULTS,
        ge=1,
        le=MAX_RESULTS,
        description="Number of ranked suggestions to return",
    )
    renormalize_after_mask: bool = Field(
        default=False,
        description="Renormalize probabilities after masking (changes score scale, not order)",
    )

    # --- Logging (per-call overridable) ---

    log_level: str = Field(
        default="summary",
        description="Logging verbosity: 'none', 'summary', 'full'",
    )
    diagnostic_mode: bool = Field(
        default=False,
        description="Store all suggestion records in memory for analysis",
    )


# Populate _ALL_FIELDS now that the class is defined.
_ALL_FIELDS = frozenset(XLMConfig.model_fields.keys())


def _strip_prefix(key: str) -> str:
    """Strip the 'xlm_' prefix from an extra_args key."""
    if key.startswith("xlm_"):
        return key[4:]
    return key


def validate_extra_args(extra_args: dict[str, Any]) -> None:
    """Validate all xlm_* keys in extra_args without creating a config.

    Args:
        extra_args: Dictionary of extra arguments, potentially with xlm_ prefix.

    Raises:
        ConfigValidationError: If any xlm_* key is unknown or non-overridable.
    """
    for key in extra_args:
        if not key.startswith("xlm_"):
            continue
        field_name = _strip_prefix(key)
        if field_name not in _ALL_FIELDS:
            raise ConfigValidationError(
                f"Unknown config field: '{key}' (no field '{field_name}' exists)"
            )
        if field_name not in _PER_CALL_FIELDS:
            raise ConfigValidationError(
                f"Field '{field_name}' is a model field and cannot be "
                f"overridden per call via extra_args"
            )


def resolve_config(
    defaults: XLMConfig,
    extra_args: dict[str, Any] | None,
) -> XLMConfig:
    """Create a new config instance merging defaults with per-call overrides.

    The extra_args keys use the 'xlm_' prefix (e.g., 'xlm_num_suggestions': 1).
    Keys without the prefix are silently ignored.

    Args:
        defaults: The base configuration loaded from environment.
        extra_args: Per-call overrides.

    Returns:
        A new XLMConfig with overrides applied, or *defaults* itself when
        there is nothing to override.

    Raises:
        ConfigValidationError: If any xlm_* key is unknown, non-overridable,
            or carries a value that fails validation.
    """
    if not extra_args:
        return defaults

    validate_extra_args(extra_args)

    overrides: dict[str, Any] = {}
    for key, value in extra_args.items():
        if not key.startswith("xlm_"):
            continue
        overrides[_strip_prefix(key)] = value

    if not overrides:
        return defaults

    # model_validate (not model_copy) so values are coerced and range-checked.
    merged = defaults.model_dump()
    merged.update(overrides)
    try:
        return XLMConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigValidationError(f"Invalid override: {exc}") from exc
