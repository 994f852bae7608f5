"""Tests for logging helpers."""

import logging

import pytest

from nba_news_hub.logging import (
    NOISY_LOGGERS,
    PerformanceLogger,
    log_cache_lookup,
    log_error,
    log_processing_stage,
    setup_logging,
)


class RecordingLogger:
    def __init__(self):
        self.records = []

    def info(self, event, **kwargs):
        self.records.append(("info", event, kwargs))

    def error(self, event, **kwargs):
        self.records.append(("error", event, kwargs))


def test_processing_stage_entry():
    entry = log_processing_stage("dedupe", 12, 9, duration=0.5, strategy="fuzzy")

    assert entry == {
        "event": "processing_stage",
        "stage": "dedupe",
        "input_count": 12,
        "output_count": 9,
        "duration": 0.5,
        "strategy": "fuzzy",
    }


def test_error_entry():
    entry = log_error(ValueError("bad feed"), context="espn")

    assert entry["error_type"] == "ValueError"
    assert entry["error_message"] == "bad feed"
    assert entry["context"] == "espn"


def test_cache_lookup_entries():
    assert log_cache_lookup("memory", hit=False) == {"event": "cache_miss", "backend": "memory", "items": 0}

    hit = log_cache_lookup("store", hit=True, items=20, age_seconds=61.26)
    assert hit["event"] == "cache_hit"
    assert hit["age_seconds"] == 61.3


def test_performance_logger_success():
    logger = RecordingLogger()

    with PerformanceLogger("news_pipeline", logger):
        pass

    assert [(level, event) for level, event, _ in logger.records] == [
        ("info", "operation_started"),
        ("info", "operation_completed"),
    ]
    assert logger.records[-1][2]["duration"] >= 0


def test_performance_logger_failure_propagates():
    logger = RecordingLogger()

    with pytest.raises(RuntimeError):
        with PerformanceLogger("news_pipeline", logger):
            raise RuntimeError("feed parser exploded")

    level, event, data = logger.records[-1]
    assert (level, event) == ("error", "operation_failed")
    assert data["error_type"] == "RuntimeError"
    assert data["error_message"] == "feed parser exploded"


def test_noisy_libraries_kept_at_warning():
    setup_logging(log_level="DEBUG", json_logging=False)

    for name in NOISY_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING
