"""Run metrics collection and reporting.

Provides RunMetrics dataclass for structured observability data,
StageTimer context manager for measuring pipeline stage durations,
and log_run_metrics() for emitting metrics as one JSON line to stdout.
"""

from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime


@dataclass
class RunMetrics:
    """All metrics collected for a single timeline build."""

    source: str
    status: str
    audio_duration_seconds: float = 0.0
    visual_duration_seconds: float = 0.0
    time_saved_seconds: float = 0.0
    is_stereo: bool = False
    segments_per_channel: list[int] = field(default_factory=list)
    speech_ratio_per_channel: list[float] = field(default_factory=list)
    turn_count: int = 0
    silence_gap_count: int = 0
    cache_hit_rate: float = 0.0
    processing_wall_time_seconds: float = 0.0
    stage_timings: dict[str, float] = field(default_factory=dict)
    retry_count: int = 0
    error_stage: str | None = None
    error_message: str | None = None


class StageTimer:
    """Context manager that records wall-clock duration of a pipeline stage.

    When given a timings dict, the duration is stored under the stage name
    on success and under ``_<stage>_failed`` when the block raises.

    Usage:
        timer = StageTimer("vad")
        with timer:
            do_work()
        print(timer.duration_seconds)
    """

    def __init__(
        self, stage_name: str, timings: dict[str, float] | None = None
    ) -> None:
        self.stage_name = stage_name
        self.start_time: datetime | None = None
        self.end_time: datetime | None = None
        self.duration_seconds: float = 0.0
        self._timings = timings
        self._mono_start: float = 0.0

    def __enter__(self) -> StageTimer:
        self.start_time = datetime.now(UTC)
        self._mono_start = time.monotonic()
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        elapsed = time.monotonic() - self._mono_start
        self.end_time = datetime.now(UTC)
        self.duration_seconds = elapsed
        if self._timings is not None:
            if exc_type is not None:
                self._timings[f"_{self.stage_name}_failed"] = elapsed
            else:
                self._timings[self.stage_name] = elapsed


def log_run_metrics(metrics: RunMetrics) -> None:
    """Emit run metrics as a single structured JSON line to stdout.

    Args:
        metrics: Populated RunMetrics dataclass.
    """
    entry = {
        "timestamp": datetime.now(UTC).isoformat(),
        "severity": "INFO",
        "metric_type": "timeline_build",
        **asdict(metrics),
    }
    print(json.dumps(entry))
