"""Data types for the decoding subsystem."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Hypothesis:
    """One candidate continuation being expanded.

    Attributes:
        tokens: Generated tokens so far. The last one has been chosen but
            not yet fed to the model.
        slot: Cache slot holding this hypothesis's history.
        probability: Product of the conditional probabilities of ``tokens``.
    """

    tokens: tuple[int, ...]
    slot: int
    probability: float

    @property
    def last_token(self) -> int:
        return self.tokens[-1]

    def extend(self, token: int, probability: float) -> Hypothesis:
        """Child hypothesis on the same slot with *token* appended."""
        return Hypothesis(
            tokens=self.tokens + (token,),
            slot=self.slot,
            probability=self.probability * probability,
        )


@dataclass(frozen=True, slots=True)
class DecodeResult:
    """Where the deterministic prefix left the model.

    Attributes:
        logits_head: Index into the last forward pass whose logits predict
            the first generated token.
        size: Context length after the prompt and any gesture positions.
        corrections_allowed: Whether the end-of-correction marker may be
            generated. True only after a gesture sequence was decoded.
        tail_length: Prompt tokens evaluated in this call.
        mix_count: Gesture positions in the prefix.
        cached_mixes: Gesture positions reused from the previous call.
    """

    logits_head: int
    size: int
    corrections_allowed: bool = False
    tail_length: int = 0
    mix_count: int = 0
    cached_mixes: int = 0


@dataclass(frozen=True, slots=True)
class ScoredSequence:
    """A finished hypothesis."""

    probability: float
    tokens: tuple[int, ...]


@dataclass(frozen=True, slots=True)
class SampleResult:
    """Outcome of one sampling call.

    Attributes:
        sequences: Finished sequences, highest probability first.
        expansion_steps: Forward passes run after the prefix.
        slot_reassignments: Collisions resolved by moving a hypothesis.
    """

    sequences: tuple[ScoredSequence, ...]
    expansion_steps: int = 0
    slot_reassignments: int = 0
