"""Data types for the diagnostic logging subsystem."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SuggestionRecord:
    """Immutable record of one suggestion request.

    Attributes:
        timestamp_ns: Wall-clock time of the request (nanoseconds since epoch).
        mode: ``"next_word"`` or ``"correction"``.
        status: ``"ok"`` or ``"failed"``.
        prompt_length: Tokens in the prompt, BOS and markers included.
        tail_length: Prompt tokens that had to be evaluated.
        mix_count: Gesture positions fed to the model.
        cached_mixes: Gesture positions reused from the previous request.
        expansion_steps: Batched forward passes after the prefix.
        slot_reassignments: Cache-slot collisions resolved.
        num_results: Suggestions returned.
        top_probability: Score of the best suggestion, 0.0 if none.
        decode_ms: Time spent decoding the prefix.
        sample_ms: Time spent expanding hypotheses.
        total_ms: Time for the whole request.
    """

    timestamp_ns: int
    mode: str
    status: str

    # Prefix
    prompt_length: int
    tail_length: int
    mix_count: int
    cached_mixes: int

    # Expansion
    expansion_steps: int
    slot_reassignments: int
    num_results: int
    top_probability: float

    # Timing
    decode_ms: float
    sample_ms: float
    total_ms: float
