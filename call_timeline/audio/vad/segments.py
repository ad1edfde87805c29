"""Frame-flag to segment conversion with silence hysteresis.

Shared by every detector: a segment stays open across silence shorter
than the minimum silence duration and is dropped if it ends up shorter
than the minimum speech duration.

Each flag describes one cell of the timeline. Detectors that analyse
overlapping windows pass the hop-length cell at the centre of each window,
so cells tile the buffer without overlap and a segment does not grow by
the window overlap on either side.
"""

from collections.abc import Sequence

import numpy as np

from call_timeline.audio.vad.interface import SpeechSegment


def centred_cell_starts(
    num_frames: int, window_samples: int, hop_samples: int, sample_rate: int
) -> list[float]:
    """Start time of the hop-length cell centred in each analysis window."""
    offset = (window_samples - hop_samples) / 2
    return ((np.arange(num_frames) * hop_samples + offset) / sample_rate).tolist()


def frames_to_segments(
    flags: Sequence[bool],
    frame_starts: Sequence[float],
    frame_length: float,
    min_speech_duration: float,
    min_silence_duration: float,
    total_duration: float,
) -> list[SpeechSegment]:
    """Run-length encode per-cell speech flags into speech segments.

    Args:
        flags: Speech/silence classification per cell.
        frame_starts: Start time in seconds of each cell, ascending.
        frame_length: Cell length in seconds.
        min_speech_duration: Closed segments shorter than this are dropped.
        min_silence_duration: Length of a silent run that closes an open
            segment.
        total_duration: Buffer length in seconds; segment ends are clamped to it.

    Returns:
        Segments sorted ascending and pairwise non-overlapping.
    """
    segments: list[SpeechSegment] = []
    segment_start: float | None = None
    last_speech_end = 0.0

    def close() -> None:
        segment = SpeechSegment(start_time=segment_start, end_time=last_speech_end)
        if segment.duration > 0 and segment.duration >= min_speech_duration:
            segments.append(segment)

    for is_speech, frame_start in zip(flags, frame_starts):
        frame_end = min(frame_start + frame_length, total_duration)
        if is_speech:
            if segment_start is None:
                segment_start = max(frame_start, 0.0)
            last_speech_end = frame_end
        elif segment_start is not None:
            if frame_end - last_speech_end >= min_silence_duration:
                close()
                segment_start = None

    if segment_start is not None:
        close()

    return segments
