"""Attach recognized text to diarized turns.

Turns are recognized one at a time in chronological order so each
request can carry the dialogue recognized so far as its context prompt.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from call_timeline.audio.silence import is_silence
from call_timeline.audio.vad.interface import DEFAULT_SAMPLE_RATE
from call_timeline.diarization.stereo import Turn
from call_timeline.transcription.interface import SpeechToTextEngine
from call_timeline.transcription.transcript import build_context_prompt
from call_timeline.utils.errors import TranscriptionError

logger = logging.getLogger(__name__)


async def transcribe_turns(
    turns: Sequence[Turn],
    engine: SpeechToTextEngine,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    skip_silent_turns: bool = True,
) -> list[Turn]:
    """Recognize every turn and return the ones that produced text.

    Args:
        turns: Diarized turns, any order.
        engine: Speech-to-text collaborator.
        sample_rate: Sample rate of the turn buffers.
        skip_silent_turns: Drop turns that fail the RMS silence check
            without sending them to the engine.

    Returns:
        Copies of the input turns with text attached, chronological.

    Raises:
        TranscriptionError: If the engine fails on any turn.
    """
    transcribed: list[Turn] = []
    skipped = 0

    for turn in sorted(turns, key=lambda t: t.start_time):
        if skip_silent_turns and is_silence(turn.samples, sample_rate):
            skipped += 1
            continue

        prompt = build_context_prompt(transcribed)
        try:
            text = await engine.transcribe(turn.samples, sample_rate, prompt)
        except TranscriptionError:
            raise
        except Exception as exc:
            raise TranscriptionError(
                f"Speech-to-text failed for turn at {turn.start_time:.2f}s: {exc}",
                provider=engine.name,
            ) from exc

        text = text.strip()
        if not text:
            skipped += 1
            continue
        transcribed.append(turn.with_text(text))

    logger.info(
        "Transcribed %d of %d turns (%d skipped)",
        len(transcribed),
        len(turns),
        skipped,
        extra={"stage": "transcribe"},
    )
    return transcribed
