"""Tests for SuggestionLogger and SuggestionRecord."""

from __future__ import annotations

import logging

import pytest

from xlm_keyboard.config import XLMConfig
from xlm_keyboard.logging.logger import SuggestionLogger
from xlm_keyboard.logging.types import SuggestionRecord


def _make_record(**overrides: object) -> SuggestionRecord:
    """Create a SuggestionRecord with sensible defaults, overridable."""
    defaults: dict[str, object] = {
        "timestamp_ns": 1000000000,
        "mode": "correction",
        "status": "ok",
        "prompt_length": 6,
        "tail_length": 2,
        "mix_count": 4,
        "cached_mixes": 3,
        "expansion_steps": 2,
        "slot_reassignments": 1,
        "num_results": 3,
        "top_probability": 0.42,
        "decode_ms": 1.5,
        "sample_ms": 2.5,
        "total_ms": 4.0,
    }
    defaults.update(overrides)
    return SuggestionRecord(**defaults)  # type: ignore[arg-type]


def _config(log_level: str, diagnostic_mode: bool = False) -> XLMConfig:
    return XLMConfig(
        _env_file=None,
        log_level=log_level,
        diagnostic_mode=diagnostic_mode,  # type: ignore[call-arg]
    )


class TestSuggestionRecord:
    """Tests for SuggestionRecord immutability."""

    def test_frozen(self) -> None:
        record = _make_record()
        with pytest.raises(AttributeError):
            record.num_results = 1  # type: ignore[misc]

    def test_slots(self) -> None:
        assert hasattr(_make_record(), "__slots__")


class TestSuggestionLogger:
    """Tests for SuggestionLogger."""

    def test_log_level_none_no_output(self, caplog: pytest.LogCaptureFixture) -> None:
        log = SuggestionLogger(_config("none"))
        with caplog.at_level(logging.DEBUG, logger="xlm_keyboard"):
            log.log_request(_make_record())
        assert len(caplog.records) == 0

    def test_log_level_summary_output(self, caplog: pytest.LogCaptureFixture) -> None:
        """log_level='summary' produces one line with the key metrics."""
        log = SuggestionLogger(_config("summary"))
        with caplog.at_level(logging.DEBUG, logger="xlm_keyboard"):
            log.log_request(_make_record())
        assert len(caplog.records) == 1
        msg = caplog.records[0].message
        assert "mode=correction" in msg
        assert "results=3" in msg
        assert "top=0.4200" in msg
        assert "cached=3" in msg
        assert "moves=1" in msg

    def test_log_level_full_json(self, caplog: pytest.LogCaptureFixture) -> None:
        log = SuggestionLogger(_config("full"))
        with caplog.at_level(logging.DEBUG, logger="xlm_keyboard"):
            log.log_request(_make_record())
        assert len(caplog.records) == 1
        msg = caplog.records[0].message
        assert "suggestion_record:" in msg
        assert '"expansion_steps": 2' in msg

    def test_per_call_level_overrides_default(self, caplog: pytest.LogCaptureFixture) -> None:
        log = SuggestionLogger(_config("none"))
        with caplog.at_level(logging.DEBUG, logger="xlm_keyboard"):
            log.log_request(_make_record(), _config("summary"))
        assert len(caplog.records) == 1

        caplog.clear()
        log = SuggestionLogger(_config("full"))
        with caplog.at_level(logging.DEBUG, logger="xlm_keyboard"):
            log.log_request(_make_record(), _config("none"))
        assert len(caplog.records) == 0

    def test_diagnostic_mode_stores_records(self) -> None:
        log = SuggestionLogger(_config("none", diagnostic_mode=True))
        for n in (1, 2, 3):
            log.log_request(_make_record(num_results=n))

        data = log.get_diagnostic_data()
        assert [r.num_results for r in data] == [1, 2, 3]

    def test_diagnostic_mode_false_no_storage(self) -> None:
        log = SuggestionLogger(_config("summary"))
        log.log_request(_make_record())
        assert log.get_diagnostic_data() == []

    def test_get_diagnostic_data_returns_copy(self) -> None:
        log = SuggestionLogger(_config("none", diagnostic_mode=True))
        log.log_request(_make_record())

        data = log.get_diagnostic_data()
        data.clear()
        assert len(log.get_diagnostic_data()) == 1

    def test_summary_stats_empty(self) -> None:
        log = SuggestionLogger(_config("none", diagnostic_mode=True))
        assert log.get_summary_stats() == {}

    def test_summary_stats_computed(self) -> None:
        log = SuggestionLogger(_config("none", diagnostic_mode=True))
        log.log_request(
            _make_record(
                mode="next_word",
                mix_count=0,
                cached_mixes=0,
                tail_length=4,
                expansion_steps=1,
                slot_reassignments=0,
                num_results=3,
                total_ms=2.0,
            )
        )
        log.log_request(
            _make_record(
                mode="correction",
                mix_count=4,
                cached_mixes=3,
                tail_length=0,
                expansion_steps=3,
                slot_reassignments=2,
                num_results=1,
                total_ms=6.0,
            )
        )
        log.log_request(
            _make_record(
                mode="correction",
                status="failed",
                mix_count=4,
                cached_mixes=0,
                tail_length=2,
                expansion_steps=0,
                slot_reassignments=0,
                num_results=0,
                total_ms=1.0,
            )
        )

        stats = log.get_summary_stats()
        assert stats["total_requests"] == 3
        assert stats["next_word_requests"] == 1
        assert stats["correction_requests"] == 2
        assert stats["mean_results"] == pytest.approx(4 / 3)
        assert stats["mean_steps"] == pytest.approx(4 / 3)
        assert stats["mean_tail_length"] == pytest.approx(2.0)
        assert stats["mix_cache_hit_rate"] == pytest.approx(3 / 8)
        assert stats["slot_reassignments"] == 2
        assert stats["mean_total_ms"] == pytest.approx(3.0)
        assert stats["max_total_ms"] == 6.0
        assert stats["failed_count"] == 1
        assert stats["failure_rate"] == pytest.approx(1 / 3)

    def test_no_mixes_hit_rate_zero(self) -> None:
        log = SuggestionLogger(_config("none", diagnostic_mode=True))
        log.log_request(_make_record(mix_count=0, cached_mixes=0))
        assert log.get_summary_stats()["mix_cache_hit_rate"] == 0.0
