"""Tests for call_timeline.observability.metrics module."""

from __future__ import annotations

import json
import time
from dataclasses import asdict

import pytest

from call_timeline.observability.metrics import (
    RunMetrics,
    StageTimer,
    log_run_metrics,
)


def _make_run_metrics(**overrides) -> RunMetrics:
    """Create a RunMetrics with realistic values, applying any overrides."""
    defaults = {
        "source": "/calls/2026-10-01-support.wav",
        "status": "completed",
        "audio_duration_seconds": 312.4,
        "visual_duration_seconds": 241.9,
        "time_saved_seconds": 70.5,
        "is_stereo": True,
        "segments_per_channel": [41, 37],
        "speech_ratio_per_channel": [0.44, 0.38],
        "turn_count": 52,
        "silence_gap_count": 18,
        "cache_hit_rate": 0.5,
        "processing_wall_time_seconds": 1.8,
        "stage_timings": {"decode": 0.4, "vad": 1.1, "diarize": 0.05},
    }
    defaults.update(overrides)
    return RunMetrics(**defaults)


class TestRunMetrics:
    """Tests for RunMetrics dataclass."""

    def test_minimal_construction_defaults(self):
        metrics = RunMetrics(source="a.wav", status="failed")

        assert metrics.turn_count == 0
        assert metrics.segments_per_channel == []
        assert metrics.stage_timings == {}
        assert metrics.error_stage is None

    def test_default_containers_are_not_shared(self):
        first = RunMetrics(source="a.wav", status="completed")
        second = RunMetrics(source="b.wav", status="completed")
        first.stage_timings["vad"] = 1.0

        assert second.stage_timings == {}

    def test_error_case_serializes_with_error_fields(self):
        metrics = _make_run_metrics(
            status="failed",
            error_stage="decode",
            error_message="[source=a.wav] Failed to read WAV file",
            turn_count=0,
        )
        d = asdict(metrics)

        assert d["status"] == "failed"
        assert d["error_stage"] == "decode"
        assert d["error_message"].startswith("[source=a.wav]")


class TestLogRunMetrics:
    """Tests for log_run_metrics() function."""

    def test_output_is_single_json_line_with_envelope(self, capsys):
        log_run_metrics(_make_run_metrics())

        output = capsys.readouterr().out
        assert output.count("\n") == 1
        parsed = json.loads(output)
        assert "timestamp" in parsed
        assert parsed["severity"] == "INFO"
        assert parsed["metric_type"] == "timeline_build"

    def test_output_contains_every_field(self, capsys):
        metrics = _make_run_metrics()
        log_run_metrics(metrics)

        parsed = json.loads(capsys.readouterr().out)
        for key, value in asdict(metrics).items():
            assert parsed[key] == value, f"Mismatch for {key}"


class TestStageTimer:
    """Tests for StageTimer context manager."""

    def test_captures_positive_duration(self):
        timer = StageTimer("vad")
        with timer:
            time.sleep(0.01)

        assert timer.duration_seconds > 0.0
        assert timer.stage_name == "vad"

    def test_captures_start_and_end_times(self):
        timer = StageTimer("decode")
        with timer:
            pass

        assert timer.start_time is not None
        assert timer.end_time is not None
        assert timer.end_time >= timer.start_time

    def test_records_into_timings_dict(self):
        timings: dict[str, float] = {}
        with StageTimer("diarize", timings):
            pass

        assert set(timings) == {"diarize"}

    def test_marks_failed_stage(self):
        """A raising block is recorded under the _<stage>_failed key."""
        timings: dict[str, float] = {}
        with pytest.raises(ValueError, match="boom"):
            with StageTimer("decode", timings):
                raise ValueError("boom")

        assert "decode" not in timings
        assert timings["_decode_failed"] >= 0.0
