"""Binding of live hypotheses to the evaluator's cache slots.

Slot 0 always holds the shared deterministic prefix. During one sampling
call, slots ``0 .. n_slots - 1`` are each owned by at most one live
hypothesis. When a re-ranking step leaves two hypotheses on the same slot,
one of them is moved to the lowest unused slot and the parent's history is
copied there.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import replace
from typing import TYPE_CHECKING

from xlm_keyboard.exceptions import CacheSlotExhaustedError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from xlm_keyboard.decoding.types import Hypothesis
    from xlm_keyboard.evaluator.base import Evaluator

logger = logging.getLogger("xlm_keyboard")


class SlotAllocator:
    """Arena of ``n_slots`` cache slot ids over one evaluator.

    Args:
        evaluator: Owner of the cache memory.
        n_slots: Number of slots usable in one call (one per result).
        prefix_size: Length of the shared prefix held in slot 0.
    """

    def __init__(self, evaluator: Evaluator, n_slots: int, prefix_size: int) -> None:
        if n_slots < 1:
            raise ValueError(f"n_slots must be >= 1, got {n_slots}")
        self._evaluator = evaluator
        self._n_slots = n_slots
        self._prefix_size = prefix_size
        self.reassignments = 0

    @property
    def n_slots(self) -> int:
        return self._n_slots

    def fan_out(self) -> None:
        """Clear every scratch slot and give it a copy of the shared prefix."""
        for slot in range(1, self._n_slots):
            self._evaluator.cache_remove(slot, 0, None)
            self._evaluator.cache_copy(0, slot, self._prefix_size)

    def rebind(self, src: int, dst: int, length: int) -> None:
        """Give slot *dst* the first *length* positions of slot *src*.

        Whatever *dst* held beyond the shared prefix is evicted first.
        """
        self._evaluator.cache_remove(dst, self._prefix_size, None)
        self._evaluator.cache_copy(src, dst, length)

    def resolve_collisions(self, hypotheses: Sequence[Hypothesis]) -> list[Hypothesis]:
        """Ensure no two hypotheses share a slot.

        Hypotheses are visited in order; while a slot is owned more than
        once, the hypothesis being visited moves to the lowest unused slot.

        Args:
            hypotheses: Survivors of one re-ranking step.

        Returns:
            The hypotheses with reassigned slots, in the same order.

        Raises:
            CacheSlotExhaustedError: If a collision needs a slot and none is free.
        """
        use_count = Counter(h.slot for h in hypotheses)
        resolved: list[Hypothesis] = []
        for hyp in hypotheses:
            if use_count[hyp.slot] <= 1:
                resolved.append(hyp)
                continue

            free = next((s for s in range(self._n_slots) if use_count[s] == 0), None)
            if free is None:
                raise CacheSlotExhaustedError(
                    f"No free cache slot for {len(hypotheses)} hypotheses "
                    f"over {self._n_slots} slots"
                )

            use_count[hyp.slot] -= 1
            use_count[free] += 1
            # The newest token is not in the cache yet; copy the parent's history.
            self.rebind(hyp.slot, free, self._prefix_size + len(hyp.tokens) - 1)
            logger.debug("Moved hypothesis from slot %d to slot %d", hyp.slot, free)
            resolved.append(replace(hyp, slot=free))
            self.reassignments += 1
        return resolved

    def release_all(self) -> None:
        """Evict scratch slots entirely and slot 0 beyond the shared prefix."""
        for slot in range(1, self._n_slots):
            self._evaluator.cache_remove(slot, 0, None)
        self._evaluator.cache_remove(0, self._prefix_size, None)
