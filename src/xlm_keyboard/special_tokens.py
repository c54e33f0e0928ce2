"""Special token ids resolved once per loaded model.

Token id 0 is the runtime's "unknown" id, so a spelling that resolves to 0
is treated as missing. Every structural marker and all 26 letter tokens
must resolve or the model cannot be used.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from string import ascii_uppercase
from typing import TYPE_CHECKING

from xlm_keyboard.exceptions import SpecialTokenError

if TYPE_CHECKING:
    from xlm_keyboard.config import XLMConfig
    from xlm_keyboard.evaluator.base import Evaluator

logger = logging.getLogger("xlm_keyboard")


@dataclass(frozen=True, slots=True)
class SpecialTokens:
    """Fixed token ids for one model.

    Attributes:
        space: Word-boundary token; receives the probability mass of banned tokens.
        bos: Beginning-of-sequence token.
        xbu: Begin-correction marker.
        xbc: End-of-gesture marker forced after the gesture embeddings.
        xec: End-of-correction marker; terminates a correction hypothesis.
        swipe_mode: Marker switching the model into swipe interpretation.
        letters: Ids of the 26 per-letter conditioning tokens, ``A`` first.
        banned: Control and punctuation ids never emitted as output.
    """

    space: int
    bos: int
    xbu: int
    xbc: int
    xec: int
    swipe_mode: int
    letters: tuple[int, ...]
    banned: tuple[int, ...]

    def letter_id(self, char: str) -> int | None:
        """Return the letter token for an ASCII letter (either case), else ``None``."""
        if len(char) != 1 or not char.isascii() or not char.isalpha():
            return None
        return self.letters[ord(char.upper()) - ord("A")]


def _require(evaluator: Evaluator, text: str) -> int:
    token_id = evaluator.token_to_id(text)
    if token_id == 0:
        raise SpecialTokenError(f"Required token {text!r} is not in the vocabulary")
    return token_id


def _banned_ids(evaluator: Evaluator, config: XLMConfig, space: int) -> tuple[int, ...]:
    vocab_size = evaluator.vocab_size
    banned = {i for i in config.control_token_ids if 0 <= i < vocab_size}

    for text in config.whitespace_tokens:
        token_id = evaluator.token_to_id(text)
        if token_id != 0:
            banned.add(token_id)

    start = evaluator.token_to_id(config.punctuation_range_start)
    stop = evaluator.token_to_id(config.punctuation_range_stop)
    if start and stop:
        keep = evaluator.token_to_id(config.punctuation_keep)
        banned.update(i for i in range(start, stop) if i != keep)
    else:
        logger.warning(
            "Punctuation range %r..%r not in vocabulary, not banned",
            config.punctuation_range_start,
            config.punctuation_range_stop,
        )

    first = evaluator.token_to_id(config.symbol_range_first)
    last = evaluator.token_to_id(config.symbol_range_last)
    if first and last:
        banned.update(range(first, last + 1))
    else:
        logger.warning(
            "Symbol range %r..%r not in vocabulary, not banned",
            config.symbol_range_first,
            config.symbol_range_last,
        )

    # Space absorbs banned mass; it can never be banned itself.
    banned.discard(space)
    return tuple(sorted(banned))


def resolve_special_tokens(evaluator: Evaluator, config: XLMConfig) -> SpecialTokens:
    """Look up every special token id in *evaluator*'s vocabulary.

    Args:
        evaluator: Loaded model providing ``token_to_id``.
        config: Token spellings and banned ranges.

    Returns:
        The resolved SpecialTokens.

    Raises:
        SpecialTokenError: If any marker or letter token is missing, or the
            BOS id lies outside the vocabulary.
    """
    if not 0 <= config.bos_token_id < evaluator.vocab_size:
        raise SpecialTokenError(f"BOS id {config.bos_token_id} outside the vocabulary")

    space = _require(evaluator, config.space_token)
    letters = tuple(
        _require(evaluator, config.letter_token_template.format(c)) for c in ascii_uppercase
    )
    tokens = SpecialTokens(
        space=space,
        bos=config.bos_token_id,
        xbu=_require(evaluator, config.xbu_token),
        xbc=_require(evaluator, config.xbc_token),
        xec=_require(evaluator, config.xec_token),
        swipe_mode=_require(evaluator, config.swipe_mode_token),
        letters=letters,
        banned=_banned_ids(evaluator, config, space),
    )
    logger.debug("Resolved special tokens: %d banned ids", len(tokens.banned))
    return tokens
