"""Caller-facing suggestion API for xlm-keyboard.

Orchestrates one suggestion request:
    prompt assembly -> gesture mixes -> prefix decode -> expansion -> text.

Two workflows share one loaded model:

* next-word prediction from the text before the cursor, and
* correction of a partially typed (or swiped) word from its touch points.

One :class:`XLMPredictor` owns one evaluator and its cache. Requests are
serialized with a lock; the evaluator's cache and the prefix memo cannot be
shared between concurrent calls.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from xlm_keyboard.config import MAX_RESULTS, XLMConfig, resolve_config
from xlm_keyboard.decoding.decoder import ParallelHypothesisDecoder
from xlm_keyboard.decoding.state import ModelState
from xlm_keyboard.evaluator.registry import EvaluatorRegistry
from xlm_keyboard.exceptions import (
    CacheSlotExhaustedError,
    EvaluatorError,
    InvariantViolationError,
    SpecialTokenError,
)
from xlm_keyboard.gesture.mixer import TokenMixBuilder
from xlm_keyboard.gesture.qwerty import QwertyKeyboard
from xlm_keyboard.logging.logger import SuggestionLogger
from xlm_keyboard.logging.types import SuggestionRecord
from xlm_keyboard.special_tokens import resolve_special_tokens

if TYPE_CHECKING:
    from collections.abc import Sequence

    from xlm_keyboard.decoding.types import DecodeResult, SampleResult
    from xlm_keyboard.evaluator.base import Evaluator, Tokenizer
    from xlm_keyboard.gesture.base import KeyboardGeometry
    from xlm_keyboard.gesture.types import TokenMix
    from xlm_keyboard.special_tokens import SpecialTokens

logger = logging.getLogger("xlm_keyboard")

# getSuggestions input mode selecting swipe interpretation.
INPUT_MODE_SWIPE = 1


@dataclass(frozen=True, slots=True)
class Suggestion:
    """One ranked suggestion.

    Attributes:
        probability: Score of the suggestion; a relative score unless
            ``renormalize_after_mask`` is enabled.
        text: Suggested word, surrounding whitespace stripped.
    """

    probability: float
    text: str


class XLMPredictor:
    """Next-word prediction and typo/swipe correction on one loaded model.

    Args:
        evaluator: Forward-pass backend. Built from
            ``config.evaluator_type`` via the registry when omitted.
        geometry: Keyboard layout for touch decomposition. Defaults to
            :class:`QwertyKeyboard`.
        config: Default configuration. Loaded from the environment when
            omitted.
        tokenizer: Text tokenizer. Defaults to ``evaluator.tokenizer``.

    Raises:
        SpecialTokenError: If the model's vocabulary lacks a required token.
    """

    def __init__(
        self,
        evaluator: Evaluator | None = None,
        geometry: KeyboardGeometry | None = None,
        config: XLMConfig | None = None,
        tokenizer: Tokenizer | None = None,
    ) -> None:
        self._default_config = config if config is not None else XLMConfig()
        owns_evaluator = evaluator is None
        self._evaluator = (
            evaluator if evaluator is not None else EvaluatorRegistry.build(self._default_config)
        )

        try:
            self._special = resolve_special_tokens(self._evaluator, self._default_config)
        except SpecialTokenError:
            if owns_evaluator:
                self._evaluator.close()
            raise

        self._tokenizer = tokenizer if tokenizer is not None else self._evaluator.tokenizer
        self._geometry = geometry if geometry is not None else QwertyKeyboard()
        self._state = ModelState()
        self._decoder = ParallelHypothesisDecoder(
            self._evaluator, self._special, self._default_config, self._state
        )
        self._mix_builder = TokenMixBuilder(
            self._geometry,
            self._special,
            floor=self._default_config.key_probability_floor,
        )
        self._logger = SuggestionLogger(self._default_config)
        self._lock = threading.Lock()

        logger.info(
            "XLMPredictor initialized: evaluator=%s, vocab_size=%d, n_embd=%d, encoder=%s",
            self._evaluator.name,
            self._evaluator.vocab_size,
            self._evaluator.n_embd,
            self._evaluator.position_encoder is not None,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def predict_next_word(
        self,
        context: str,
        extra_args: dict[str, Any] | None = None,
    ) -> list[Suggestion]:
        """Suggest the word following *context*.

        Args:
            context: Text before the cursor.
            extra_args: Per-call overrides with the ``xlm_`` prefix.

        Returns:
            Up to ``num_suggestions`` suggestions, highest probability
            first. Empty if the evaluator failed.
        """
        config = resolve_config(self._default_config, extra_args)
        prompt = [self._special.bos, *self._tokenizer.tokenize(context.strip() + " ")]
        return self._run("next_word", prompt, (), config)

    def predict_correction(
        self,
        context: str,
        touch_points: Sequence[tuple[int, int]],
        swipe_mode: bool = False,
        extra_args: dict[str, Any] | None = None,
    ) -> list[Suggestion]:
        """Suggest the word being typed from its touch points.

        Args:
            context: Text before the word being typed.
            touch_points: ``(x, y)`` keyboard coordinates, one per letter typed
                or per sampled swipe point.
            swipe_mode: Interpret the points as a swipe gesture.
            extra_args: Per-call overrides with the ``xlm_`` prefix.

        Returns:
            Up to ``num_suggestions`` suggestions, highest probability
            first. Empty if the evaluator failed.
        """
        config = resolve_config(self._default_config, extra_args)
        special = self._special

        prompt = [special.bos]
        if context.strip():
            prompt += self._tokenizer.tokenize(context.strip() + " ")
        prompt.append(special.xbu)
        if swipe_mode:
            prompt.append(special.swipe_mode)

        xs = [p[0] for p in touch_points]
        ys = [p[1] for p in touch_points]
        mixes = self._mix_builder.build(xs, ys)
        if len(mixes) < len(touch_points):
            logger.debug("Dropped %d symbol touches", len(touch_points) - len(mixes))
        return self._run("correction", prompt, mixes, config)

    def get_suggestions(
        self,
        context: str,
        partial_word: str,
        xs: Sequence[int] = (),
        ys: Sequence[int] = (),
        input_mode: int = 0,
        extra_args: dict[str, Any] | None = None,
    ) -> list[Suggestion]:
        """Dispatch to prediction or correction the way a keyboard asks.

        An empty *partial_word* means the cursor follows a word boundary, so
        the next word is predicted. Otherwise the partial word is corrected
        using at most ``len(partial_word)`` touch points.

        Raises:
            ValueError: If *xs* and *ys* differ in length.
        """
        if len(xs) != len(ys):
            raise ValueError(f"Got {len(xs)} x coordinates but {len(ys)} y coordinates")
        if not partial_word:
            return self.predict_next_word(context, extra_args)

        n = min(len(xs), len(partial_word))
        points = list(zip(xs[:n], ys[:n]))
        return self.predict_correction(
            context,
            points,
            swipe_mode=input_mode == INPUT_MODE_SWIPE,
            extra_args=extra_args,
        )

    def reset(self) -> None:
        """Drop every cached position and the prefix memo."""
        with self._lock:
            self._reset_locked()

    def close(self) -> None:
        """Release the evaluator."""
        with self._lock:
            self._state.reset()
            self._evaluator.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run(
        self,
        mode: str,
        prompt: list[int],
        mixes: Sequence[TokenMix],
        config: XLMConfig,
    ) -> list[Suggestion]:
        with self._lock:
            t_start_ns = time.perf_counter_ns()
            decoded: DecodeResult | None = None
            sampled: SampleResult | None = None
            t_decode_ns = t_sample_ns = t_start_ns
            suggestions: list[Suggestion] = []

            try:
                decoded = self._decoder.decode_prompt_and_mixes(prompt, mixes)
                t_decode_ns = time.perf_counter_ns()
                sampled = self._decoder.sample(
                    decoded,
                    n_results=config.num_suggestions,
                    renormalize=config.renormalize_after_mask,
                )
                t_sample_ns = time.perf_counter_ns()
            except (EvaluatorError, CacheSlotExhaustedError) as exc:
                # Cache contents are unknown now; start over next time.
                logger.error("%s request failed, returning no suggestions: %s", mode, exc)
                self._reset_locked()
            except InvariantViolationError:
                self._reset_locked()
                raise
            else:
                suggestions = [
                    Suggestion(seq.probability, self._tokenizer.decode(list(seq.tokens)).strip())
                    for seq in sampled.sequences
                ]

            t_end_ns = time.perf_counter_ns()
            self._logger.log_request(
                SuggestionRecord(
                    timestamp_ns=time.time_ns(),
                    mode=mode,
                    status="ok" if sampled is not None else "failed",
                    prompt_length=len(prompt),
                    tail_length=decoded.tail_length if decoded is not None else 0,
                    mix_count=len(mixes),
                    cached_mixes=decoded.cached_mixes if decoded is not None else 0,
                    expansion_steps=sampled.expansion_steps if sampled is not None else 0,
                    slot_reassignments=sampled.slot_reassignments if sampled is not None else 0,
                    num_results=len(suggestions),
                    top_probability=suggestions[0].probability if suggestions else 0.0,
                    decode_ms=(t_decode_ns - t_start_ns) / 1_000_000.0,
                    sample_ms=(t_sample_ns - t_decode_ns) / 1_000_000.0,
                    total_ms=(t_end_ns - t_start_ns) / 1_000_000.0,
                ),
                config,
            )
            return suggestions

    def _reset_locked(self) -> None:
        self._state.reset()
        for slot in range(MAX_RESULTS):
            self._evaluator.cache_remove(slot, 0, None)

    @property
    def default_config(self) -> XLMConfig:
        """The default configuration."""
        return self._default_config

    @property
    def special_tokens(self) -> SpecialTokens:
        return self._special

    @property
    def evaluator(self) -> Evaluator:
        return self._evaluator

    @property
    def state(self) -> ModelState:
        """The prefix memo shared by all calls on this model."""
        return self._state

    @property
    def suggestion_logger(self) -> SuggestionLogger:
        """The diagnostic logger for this predictor."""
        return self._logger
