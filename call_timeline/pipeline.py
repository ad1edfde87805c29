"""build_timeline() orchestrator for a single call recording.

Orchestrates: decode (through the shared cache) -> VAD per channel ->
stereo diarization -> optional transcription -> timeline compression.
Every stage is timed; one RunMetrics line is emitted per build.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Hashable
from dataclasses import dataclass, field

from call_timeline.audio.vad.interface import VADResult
from call_timeline.audio.vad.registry import get_vad_engine
from call_timeline.cache.audio_cache import AudioSampleCache, CachedAudio
from call_timeline.config import PipelineSettings
from call_timeline.diarization.stereo import StereoDiarizer, Turn
from call_timeline.observability.metrics import RunMetrics, StageTimer, log_run_metrics
from call_timeline.timeline.mapper import SilenceGap, TimelineCompressionMapper
from call_timeline.transcription.interface import SpeechToTextEngine
from call_timeline.transcription.runner import transcribe_turns
from call_timeline.utils.errors import DecodeError
from call_timeline.utils.retry import retry_with_backoff

logger = logging.getLogger(__name__)

STAGES = ("decode", "vad", "diarize", "transcribe", "timeline")


@dataclass
class TimelineResult:
    """Everything a dialogue view needs for one recording."""

    source: str
    audio: CachedAudio
    turns: list[Turn]
    mapper: TimelineCompressionMapper
    vad_results: list[VADResult]
    stage_timings: dict[str, float] = field(default_factory=dict)

    @property
    def is_stereo(self) -> bool:
        return self.audio.is_stereo

    @property
    def duration(self) -> float:
        return self.audio.duration

    @property
    def visual_duration(self) -> float:
        return self.mapper.total_visual_duration(self.audio.duration)

    @property
    def silence_gaps(self) -> tuple[SilenceGap, ...]:
        return self.mapper.silence_gaps


async def build_timeline(
    source: Hashable,
    cache: AudioSampleCache,
    settings: PipelineSettings | None = None,
    stt_engine: SpeechToTextEngine | None = None,
) -> TimelineResult:
    """Build the turn list and compressed timeline for one recording.

    Args:
        source: Cache key identifying the recording (usually its path).
        cache: Shared decoded-audio cache; its decoder does the decoding.
        settings: Pipeline tunables (defaults if omitted).
        stt_engine: Optional recognizer. Without it turns carry no text.

    Returns:
        TimelineResult with chronological turns and the mapper.

    Raises:
        DecodeError: If the source cannot be decoded after all retries.
        CallTimelineError: Any other stage failure, logged and re-raised.
    """
    if settings is None:
        settings = PipelineSettings()

    wall_start = time.monotonic()
    stage_timings: dict[str, float] = {}
    source_name = str(source)

    try:
        result = await _run_pipeline(
            source, source_name, cache, settings, stt_engine, stage_timings
        )
    except Exception as exc:
        wall_time = time.monotonic() - wall_start
        error_stage = _determine_error_stage(stage_timings)
        logger.error(
            "Timeline build failed at stage '%s': %s",
            error_stage,
            exc,
            exc_info=True,
            extra={"source": source_name, "stage": error_stage, "error": str(exc)},
        )
        if settings.emit_metrics:
            log_run_metrics(
                RunMetrics(
                    source=source_name,
                    status="failed",
                    processing_wall_time_seconds=wall_time,
                    stage_timings=stage_timings,
                    cache_hit_rate=cache.statistics().hit_rate,
                    retry_count=getattr(exc, "_retry_count", 0),
                    error_stage=error_stage,
                    error_message=str(exc),
                )
            )
        raise

    wall_time = time.monotonic() - wall_start
    logger.info(
        "Timeline built: %d turns, %d compressed gaps, %.1fs saved",
        len(result.turns),
        len(result.silence_gaps),
        result.mapper.time_saved,
        extra={"source": source_name, "duration_seconds": wall_time},
    )
    if settings.emit_metrics:
        log_run_metrics(_build_run_metrics(result, cache, wall_time))
    return result


async def _run_pipeline(
    source: Hashable,
    source_name: str,
    cache: AudioSampleCache,
    settings: PipelineSettings,
    stt_engine: SpeechToTextEngine | None,
    stage_timings: dict[str, float],
) -> TimelineResult:
    """Execute the stages in order. Raises on failure."""
    # Stage 1: decode, served from the cache when warm
    fetch_audio = retry_with_backoff(
        max_retries=settings.decode_retries,
        base_delay=settings.retry_base_delay,
        retryable_exceptions=(DecodeError,),
        stage="decode",
    )(cache.get)
    with StageTimer("decode", stage_timings):
        audio = await fetch_audio(source)
    _log_stage("decode", source_name, stage_timings)

    sample_rate = audio.sample_rate or settings.sample_rate

    if audio.is_stereo and audio.stereo_channels is not None:
        channels = list(audio.stereo_channels)
    else:
        channels = [audio.mono_samples]

    # Stage 2: VAD, one worker thread per channel
    with StageTimer("vad", stage_timings):
        engine = get_vad_engine(
            settings.vad_provider,
            preset=settings.vad_preset,
            sample_rate=sample_rate,
        )
        vad_results = list(
            await asyncio.gather(
                *(asyncio.to_thread(engine.analyze, samples) for samples in channels)
            )
        )
    for channel, vad_result in enumerate(vad_results):
        logger.info(
            "Channel %d: %d segments, speech ratio %.2f",
            channel,
            len(vad_result.segments),
            vad_result.speech_ratio,
            extra={"source": source_name, "stage": "vad", "channel": channel},
        )

    # Stage 3: diarization
    with StageTimer("diarize", stage_timings):
        diarizer = StereoDiarizer(
            merge_gap_threshold=settings.merge_gap_threshold,
            sample_rate=sample_rate,
        )
        if len(channels) == 2:
            turns = diarizer.diarize(
                vad_results[0].segments,
                vad_results[1].segments,
                channels[0],
                channels[1],
            )
        else:
            turns = diarizer.diarize(vad_results[0].segments, [], channels[0])
    _log_stage("diarize", source_name, stage_timings)

    # Stage 4: transcription (only with a recognizer)
    if stt_engine is not None:
        with StageTimer("transcribe", stage_timings):
            turns = await transcribe_turns(
                turns,
                stt_engine,
                sample_rate=sample_rate,
                skip_silent_turns=settings.skip_silent_turns,
            )
        _log_stage("transcribe", source_name, stage_timings)

    # Stage 5: timeline compression over the turns that will be displayed
    with StageTimer("timeline", stage_timings):
        mapper = TimelineCompressionMapper(
            turns,
            min_gap_to_compress=settings.min_gap_to_compress,
            compressed_gap_display=settings.compressed_gap_display,
        )
    _log_stage("timeline", source_name, stage_timings)

    return TimelineResult(
        source=source_name,
        audio=audio,
        turns=turns,
        mapper=mapper,
        vad_results=vad_results,
        stage_timings=stage_timings,
    )


def _log_stage(stage: str, source_name: str, stage_timings: dict[str, float]) -> None:
    logger.info(
        "Stage '%s' complete",
        stage,
        extra={
            "source": source_name,
            "stage": stage,
            "duration_seconds": stage_timings.get(stage, 0.0),
        },
    )


def _determine_error_stage(stage_timings: dict[str, float]) -> str:
    """Name the stage whose timer recorded a failure, or 'unknown'."""
    for stage in STAGES:
        if f"_{stage}_failed" in stage_timings:
            return stage
    return "unknown"


def _build_run_metrics(
    result: TimelineResult, cache: AudioSampleCache, wall_time: float
) -> RunMetrics:
    """Assemble RunMetrics for a completed build."""
    return RunMetrics(
        source=result.source,
        status="completed",
        audio_duration_seconds=result.duration,
        visual_duration_seconds=result.visual_duration,
        time_saved_seconds=result.mapper.time_saved,
        is_stereo=result.is_stereo,
        segments_per_channel=[len(r.segments) for r in result.vad_results],
        speech_ratio_per_channel=[r.speech_ratio for r in result.vad_results],
        turn_count=len(result.turns),
        silence_gap_count=len(result.silence_gaps),
        cache_hit_rate=cache.statistics().hit_rate,
        processing_wall_time_seconds=wall_time,
        stage_timings=dict(result.stage_timings),
    )
