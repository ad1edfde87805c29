"""Command-line entry point: build the timeline of a local WAV recording.

Usage:
    python -m call_timeline.main recording.wav [--preset wideband] [--pretty]

Settings come from CALL_TIMELINE_* environment variables; command-line
flags override them. The JSON summary is printed to stdout and logs go
to stderr.
"""

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from typing import Any

from call_timeline.audio.wav_utils import read_wav
from call_timeline.config import PipelineSettings, create_cache
from call_timeline.observability.logger import setup_logging
from call_timeline.pipeline import TimelineResult, build_timeline
from call_timeline.utils.errors import CallTimelineError

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="call-timeline",
        description="Detect speaker turns in a call recording and print its timeline.",
    )
    parser.add_argument("wav_path", help="16-bit PCM WAV file, mono or stereo")
    parser.add_argument("--vad-provider", help="spectral, adaptive, energy or standard")
    parser.add_argument("--preset", help="VAD parameter preset, e.g. telephone")
    parser.add_argument(
        "--merge-gap", type=float, help="merge same-speaker segments closer than this"
    )
    parser.add_argument("--pretty", action="store_true", help="indent JSON output")
    parser.add_argument("--verbose", "-v", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def _settings_from_args(args: argparse.Namespace) -> PipelineSettings:
    settings = PipelineSettings.from_env()
    overrides: dict[str, Any] = {}
    if args.vad_provider is not None:
        overrides["vad_provider"] = args.vad_provider
        # A preset from the environment belongs to the previous provider
        if args.preset is None:
            overrides["vad_preset"] = None
    if args.preset is not None:
        overrides["vad_preset"] = args.preset
    if args.merge_gap is not None:
        overrides["merge_gap_threshold"] = args.merge_gap
    # The metrics line would interleave with the summary on stdout
    overrides["emit_metrics"] = False
    return dataclasses.replace(settings, **overrides)


def summarize(result: TimelineResult) -> dict[str, Any]:
    """JSON-serializable summary of a timeline build."""
    return {
        "source": result.source,
        "is_stereo": result.is_stereo,
        "sample_rate": result.audio.sample_rate,
        "duration_seconds": round(result.duration, 3),
        "visual_duration_seconds": round(result.visual_duration, 3),
        "time_saved_seconds": round(result.mapper.time_saved, 3),
        "turns": [
            {
                "speaker": turn.speaker.display_name,
                "start_time": round(turn.start_time, 3),
                "end_time": round(turn.end_time, 3),
                "visual_start": round(result.mapper.visual_position(turn.start_time), 3),
                "text": turn.text,
            }
            for turn in result.turns
        ],
        "silence_gaps": [
            {
                "real_start_time": round(gap.real_start_time, 3),
                "real_end_time": round(gap.real_end_time, 3),
                "duration": round(gap.duration, 3),
            }
            for gap in result.silence_gaps
        ],
    }


async def _run(wav_path: str, settings: PipelineSettings) -> TimelineResult:
    cache = create_cache(settings, read_wav)
    return await build_timeline(wav_path, cache, settings)


def main(argv: list[str] | None = None) -> int:
    """Run the CLI. Returns the process exit code."""
    args = _parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        settings = _settings_from_args(args)
        result = asyncio.run(_run(args.wav_path, settings))
    except CallTimelineError as exc:
        logger.error("call-timeline failed: %s", exc)
        return 1

    print(json.dumps(summarize(result), indent=2 if args.pretty else None))
    return 0


if __name__ == "__main__":
    sys.exit(main())
