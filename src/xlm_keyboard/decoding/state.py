"""What one model instance remembers between calls."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from xlm_keyboard.gesture.types import TokenMix

logger = logging.getLogger("xlm_keyboard")


@dataclass
class ModelState:
    """Mirror of what the evaluator's slot 0 holds after the last call.

    ``previous_prompt`` occupies positions ``[0, len(previous_prompt))``;
    when the last call had gesture input, ``previous_mixes`` follow it.
    Must be cleared together with the cache, never on its own.
    """

    previous_prompt: tuple[int, ...] = ()
    previous_mixes: tuple[TokenMix, ...] = field(default_factory=tuple)

    def reset(self) -> None:
        """Forget everything; the next call recomputes from scratch."""
        logger.debug("Resetting model state (%d prompt tokens)", len(self.previous_prompt))
        self.previous_prompt = ()
        self.previous_mixes = ()
