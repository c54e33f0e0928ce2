"""Cache reuse and slot management for xlm-keyboard."""

from xlm_keyboard.cache.fastforward import (
    FastForward,
    common_prefix_length,
    count_cached_mixes,
    fast_forward,
)
from xlm_keyboard.cache.slots import SlotAllocator

__all__ = [
    "FastForward",
    "SlotAllocator",
    "common_prefix_length",
    "count_cached_mixes",
    "fast_forward",
]
