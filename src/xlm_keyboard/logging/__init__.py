"""Diagnostic logging subsystem for xlm-keyboard.

Provides immutable per-request records and a configurable logger that
supports none/summary/full verbosity and in-memory diagnostic mode.
"""

from xlm_keyboard.logging.logger import SuggestionLogger
from xlm_keyboard.logging.types import SuggestionRecord

__all__ = [
    "SuggestionLogger",
    "SuggestionRecord",
]
