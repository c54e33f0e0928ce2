"""Reporting policy for internal invariant violations.

A violated invariant (a probability outside [0, 1], a gesture mix with no
weight) is a defect signal, not a normal outcome. It is always logged at
ERROR level; with ``strict_invariants`` enabled it also raises, which is how
tests and debug deployments surface it.
"""

from __future__ import annotations

import logging

from xlm_keyboard.exceptions import InvariantViolationError

logger = logging.getLogger("xlm_keyboard")

# Slack for float32 round-off when checking probabilities.
PROBABILITY_TOLERANCE = 1e-6


def report_violation(strict: bool, message: str, *args: object) -> None:
    """Log an invariant violation and raise if *strict*.

    Args:
        strict: Whether to raise after logging.
        message: printf-style message.
        *args: Arguments for *message*.

    Raises:
        InvariantViolationError: If *strict* is True.
    """
    logger.error("Invariant violated: " + message, *args)
    if strict:
        raise InvariantViolationError(message % args if args else message)


def check_probability(value: float, strict: bool, what: str) -> None:
    """Report *value* if it lies outside [0, 1]. Never clamps."""
    if value < -PROBABILITY_TOLERANCE or value > 1.0 + PROBABILITY_TOLERANCE:
        report_violation(strict, "expected %s to be a probability, got %.6f", what, value)
