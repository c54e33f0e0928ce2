"""Parallel-hypothesis decoding over a shared, slotted KV cache.

One call runs through:

    prompt decode -> gesture decode (optional) -> expansion steps -> done

The prompt and gesture positions form the deterministic prefix in slot 0.
Expansion then keeps up to ``n_results`` hypotheses alive, each in its own
cache slot, and runs one batched forward pass per step until every
hypothesis has finished a word or the step cap is reached.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from xlm_keyboard.cache.fastforward import count_cached_mixes, fast_forward
from xlm_keyboard.cache.slots import SlotAllocator
from xlm_keyboard.config import MAX_EXPANSION_STEPS, MAX_RESULTS
from xlm_keyboard.decoding.types import DecodeResult, Hypothesis, SampleResult, ScoredSequence
from xlm_keyboard.evaluator.types import DecodeRequest, DecodeStatus
from xlm_keyboard.exceptions import EvaluatorError
from xlm_keyboard.gesture.mixer import GestureEmbeddingMixer
from xlm_keyboard.invariants import check_probability
from xlm_keyboard.selection.ranking import rank_top_k
from xlm_keyboard.selection.transform import LogitTransform

if TYPE_CHECKING:
    from collections.abc import Sequence

    from xlm_keyboard.config import XLMConfig
    from xlm_keyboard.decoding.state import ModelState
    from xlm_keyboard.evaluator.base import Evaluator
    from xlm_keyboard.gesture.types import TokenMix
    from xlm_keyboard.special_tokens import SpecialTokens

logger = logging.getLogger("xlm_keyboard")


class ParallelHypothesisDecoder:
    """Drives the evaluator for one loaded model.

    Not thread-safe: the evaluator's cache and *state* are shared by every
    call, so callers must run one call at a time.

    Args:
        evaluator: Forward-pass backend owning the cache.
        special_tokens: Resolved ids for the model.
        config: Supplies the word-boundary suffix, mix tolerance and
            invariant policy.
        state: Memo of what slot 0 currently holds.
    """

    def __init__(
        self,
        evaluator: Evaluator,
        special_tokens: SpecialTokens,
        config: XLMConfig,
        state: ModelState,
    ) -> None:
        self._evaluator = evaluator
        self._tokens = special_tokens
        self._state = state
        self._boundary = config.word_boundary_suffix
        self._epsilon = config.mix_match_epsilon
        self._strict = config.strict_invariants
        self._mixer = GestureEmbeddingMixer(
            evaluator.token_embeddings,
            encoder=evaluator.position_encoder,
            strict=config.strict_invariants,
        )

    @property
    def state(self) -> ModelState:
        return self._state

    # ------------------------------------------------------------------
    # Deterministic prefix
    # ------------------------------------------------------------------

    def decode_prompt_and_mixes(
        self,
        prompt: Sequence[int],
        mixes: Sequence[TokenMix] = (),
    ) -> DecodeResult:
        """Bring slot 0 up to date with *prompt* followed by *mixes*.

        Reuses whatever prefix the previous call left in slot 0. With
        gesture input, one embedding is fed per mix and the end-of-gesture
        marker is forced after them.

        Args:
            prompt: Token prompt, starting with the BOS token.
            mixes: Gesture positions following the prompt.

        Returns:
            Where the logits for the first generated token can be read.

        Raises:
            ValueError: If *prompt* is empty.
            EvaluatorError: If a forward pass fails.
        """
        prompt = tuple(prompt)
        mixes = tuple(mixes)
        if not prompt:
            raise ValueError("Prompt must contain at least the BOS token")

        previous = self._state.previous_prompt
        ff = fast_forward(previous, prompt, allow_empty=bool(mixes))
        if ff.tokens:
            self._evaluator.cache_remove(0, ff.n_past, None)
            self._forward(
                DecodeRequest.for_prompt(ff.tokens, ff.n_past, logits_last=not mixes),
                "prompt",
            )
        else:
            logger.debug("Prompt of %d tokens fully cached", len(prompt))
        self._state.previous_prompt = prompt

        size = len(prompt)
        if not mixes:
            self._state.previous_mixes = ()
            self._evaluator.cache_remove(0, size, None)
            return DecodeResult(
                logits_head=len(ff.tokens) - 1,
                size=size,
                tail_length=len(ff.tokens),
            )

        # Cached gesture positions are only valid behind an identical prompt.
        cached = 0 if prompt != previous else count_cached_mixes(
            self._state.previous_mixes, mixes, self._epsilon
        )
        self._state.previous_mixes = ()
        self._evaluator.cache_remove(0, size + cached, None)

        embeddings = self._mixer.embed_all(mixes[cached:])
        for offset, embedding in enumerate(embeddings):
            self._forward(DecodeRequest.for_embedding(embedding, size + cached + offset), "gesture")

        self._forward(
            DecodeRequest.for_prompt([self._tokens.xbc], size + len(mixes)),
            "end-of-gesture",
        )
        self._state.previous_mixes = mixes
        size += len(mixes) + 1

        logger.debug(
            "Decoded prefix: %d prompt tokens (%d new), %d gesture positions (%d cached)",
            len(prompt),
            len(ff.tokens),
            len(mixes),
            cached,
        )
        return DecodeResult(
            logits_head=0,
            size=size,
            corrections_allowed=True,
            tail_length=len(ff.tokens),
            mix_count=len(mixes),
            cached_mixes=cached,
        )

    # ------------------------------------------------------------------
    # Expansion
    # ------------------------------------------------------------------

    def sample(
        self,
        result: DecodeResult,
        n_results: int = MAX_RESULTS,
        renormalize: bool = False,
    ) -> SampleResult:
        """Expand the prefix into up to *n_results* finished sequences.

        A hypothesis finishes when its newest token is the end-of-correction
        marker (which is dropped) or when that token's text ends with the
        word-boundary suffix (which is kept). Hypotheses still unfinished
        after ``MAX_EXPANSION_STEPS`` forward passes are dropped. Scratch
        slots are released before returning, also on failure.

        Args:
            result: Output of :meth:`decode_prompt_and_mixes`; its logits
                must still be the evaluator's latest.
            n_results: Width of the search, 1 to ``MAX_RESULTS``.
            renormalize: Renormalize each distribution after masking.

        Returns:
            Finished sequences, highest probability first.

        Raises:
            ValueError: If *n_results* is out of range.
            EvaluatorError: If a forward pass fails.
            CacheSlotExhaustedError: If a slot collision cannot be resolved.
        """
        if not 1 <= n_results <= MAX_RESULTS:
            raise ValueError(f"n_results must be in [1, {MAX_RESULTS}], got {n_results}")

        transform = LogitTransform(self._tokens, renormalize=renormalize)
        allocator = SlotAllocator(self._evaluator, n_results, result.size)
        outputs: list[ScoredSequence] = []
        steps = 0

        try:
            probs = transform.apply(
                self._evaluator.get_logits(result.logits_head),
                allow_space=False,
                allow_end_of_correction=result.corrections_allowed,
            )
            live = [
                Hypothesis(tokens=(c.token_id,), slot=slot, probability=c.probability)
                for slot, c in enumerate(rank_top_k(probs, n_results))
            ]
            for hyp in live:
                check_probability(hyp.probability, self._strict, "initial hypothesis probability")
            allocator.fan_out()

            while True:
                live = self._collect_finished(live, outputs)
                if not live or steps == MAX_EXPANSION_STEPS:
                    break
                live = self._expand(live, n_results - len(outputs), result, transform, allocator)
                steps += 1

            if live:
                logger.debug("Dropping %d unfinished hypotheses after %d steps", len(live), steps)
        finally:
            allocator.release_all()

        outputs.sort(key=lambda s: s.probability, reverse=True)
        return SampleResult(
            sequences=tuple(outputs),
            expansion_steps=steps,
            slot_reassignments=allocator.reassignments,
        )

    def is_word_boundary(self, token: int) -> bool:
        """Whether *token*'s text ends a word."""
        return self._evaluator.id_to_token_text(token).endswith(self._boundary)

    def _collect_finished(
        self,
        hypotheses: list[Hypothesis],
        outputs: list[ScoredSequence],
    ) -> list[Hypothesis]:
        live = []
        for hyp in hypotheses:
            if hyp.last_token == self._tokens.xec:
                outputs.append(ScoredSequence(hyp.probability, hyp.tokens[:-1]))
            elif self.is_word_boundary(hyp.last_token):
                outputs.append(ScoredSequence(hyp.probability, hyp.tokens))
            else:
                live.append(hyp)
        return live

    def _expand(
        self,
        live: list[Hypothesis],
        remaining: int,
        result: DecodeResult,
        transform: LogitTransform,
        allocator: SlotAllocator,
    ) -> list[Hypothesis]:
        request = DecodeRequest(
            positions=tuple(result.size + len(h.tokens) - 1 for h in live),
            seq_ids=tuple(h.slot for h in live),
            logits=(True,) * len(live),
            tokens=tuple(h.last_token for h in live),
        )
        self._forward(request, "expansion")

        children = []
        for i, parent in enumerate(live):
            probs = transform.apply(
                self._evaluator.get_logits(i),
                allow_space=True,
                allow_end_of_correction=result.corrections_allowed,
            )
            for candidate in rank_top_k(probs, remaining):
                check_probability(candidate.probability, self._strict, "token probability")
                child = parent.extend(candidate.token_id, candidate.probability)
                check_probability(child.probability, self._strict, "sequence probability")
                children.append(child)

        # Stable sort: equal scores keep parent order.
        children.sort(key=lambda h: h.probability, reverse=True)
        return allocator.resolve_collisions(children[:remaining])

    def _forward(self, request: DecodeRequest, stage: str) -> None:
        status = self._evaluator.decode(request)
        if status != DecodeStatus.OK:
            raise EvaluatorError(
                f"Forward pass failed during {stage} decode "
                f"({len(request)} entries, status={status.name})"
            )
