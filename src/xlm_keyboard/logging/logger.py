"""Diagnostic logger for suggestion requests.

Uses the standard ``logging`` module with the ``"xlm_keyboard"`` logger.
No ``print()`` statements. Supports three verbosity levels and an
in-memory diagnostic mode for post-hoc analysis.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from xlm_keyboard.config import XLMConfig
    from xlm_keyboard.logging.types import SuggestionRecord

logger = logging.getLogger("xlm_keyboard")


class SuggestionLogger:
    """Per-request diagnostic logger.

    Log levels:
        ``"none"``: No logging output. Records are still stored if
        ``diagnostic_mode=True``.

        ``"summary"``: One line per request with the key metrics.

        ``"full"``: Full JSON dump of all record fields.

    Diagnostic mode keeps every record in memory for
    ``get_diagnostic_data()`` and ``get_summary_stats()``.
    """

    def __init__(self, config: XLMConfig) -> None:
        self._log_level = config.log_level
        self._diagnostic_mode = config.diagnostic_mode
        self._records: list[SuggestionRecord] = []

    def log_request(self, record: SuggestionRecord, config: XLMConfig | None = None) -> None:
        """Log one suggestion request.

        Args:
            record: What happened.
            config: Per-request config whose ``log_level`` overrides the
                logger's default for this record only.
        """
        if self._diagnostic_mode:
            self._records.append(record)

        level = config.log_level if config is not None else self._log_level
        if level == "none":
            return

        if level == "summary":
            logger.info(
                "mode=%s status=%s results=%d top=%.4f prompt=%d tail=%d mixes=%d "
                "cached=%d steps=%d moves=%d decode=%.2fms sample=%.2fms total=%.2fms",
                record.mode,
                record.status,
                record.num_results,
                record.top_probability,
                record.prompt_length,
                record.tail_length,
                record.mix_count,
                record.cached_mixes,
                record.expansion_steps,
                record.slot_reassignments,
                record.decode_ms,
                record.sample_ms,
                record.total_ms,
            )
        elif level == "full":
            logger.info("suggestion_record: %s", json.dumps(asdict(record), default=str))

    def get_diagnostic_data(self) -> list[SuggestionRecord]:
        """Return all stored records; empty unless ``diagnostic_mode=True``."""
        return list(self._records)

    def get_summary_stats(self) -> dict[str, Any]:
        """Compute aggregate statistics over all stored records.

        Returns:
            Dictionary of aggregate stats, or empty dict if no records.
        """
        if not self._records:
            return {}

        n = len(self._records)
        total_times = [r.total_ms for r in self._records]
        failed = sum(1 for r in self._records if r.status != "ok")
        mixes = sum(r.mix_count for r in self._records)
        cached = sum(r.cached_mixes for r in self._records)

        return {
            "total_requests": n,
            "next_word_requests": sum(1 for r in self._records if r.mode == "next_word"),
            "correction_requests": sum(1 for r in self._records if r.mode == "correction"),
            "mean_results": sum(r.num_results for r in self._records) / n,
            "mean_steps": sum(r.expansion_steps for r in self._records) / n,
            "mean_tail_length": sum(r.tail_length for r in self._records) / n,
            "mix_cache_hit_rate": cached / mixes if mixes else 0.0,
            "slot_reassignments": sum(r.slot_reassignments for r in self._records),
            "mean_total_ms": sum(total_times) / n,
            "max_total_ms": max(total_times),
            "failed_count": failed,
            "failure_rate": failed / n,
        }
