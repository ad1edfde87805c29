"""Compressed timeline mapping for the dual-column dialogue view.

Long stretches where neither party speaks (hold music, one side looking
something up) would otherwise dominate a time-proportional layout. The
mapper shrinks every mutual-silence gap longer than a threshold to a
fixed short display length and maps real timestamps onto that compacted
axis.

The mapping is for rendering and scroll coordinates only. Playback
positions always stay in real time.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from call_timeline.diarization.stereo import Turn
from call_timeline.utils.errors import TimelineError

logger = logging.getLogger(__name__)

MIN_SILENCE_GAP_TO_COMPRESS = 0.5
COMPRESSED_GAP_DISPLAY_DURATION = 0.15


@dataclass(frozen=True)
class SilenceGap:
    """An interval in which neither speaker is active."""

    real_start_time: float
    real_end_time: float
    duration: float


def activity_hull(turns: Sequence[Turn]) -> list[tuple[float, float]]:
    """Merge overlapping or touching turn intervals.

    Returns:
        Disjoint (start, end) intervals, sorted, covering every moment at
        least one speaker is active.
    """
    intervals = sorted((turn.start_time, turn.end_time) for turn in turns)
    if not intervals:
        return []

    merged = [intervals[0]]
    for start, end in intervals[1:]:
        current_start, current_end = merged[-1]
        if start <= current_end:
            merged[-1] = (current_start, max(current_end, end))
        else:
            merged.append((start, end))
    return merged


class TimelineCompressionMapper:
    """Maps real time to a visual axis with long mutual silences shrunk.

    Args:
        turns: Turns of both speakers, any order.
        min_gap_to_compress: Only gaps strictly longer than this are shrunk.
        compressed_gap_display: Visual length every qualifying gap shrinks to.

    Raises:
        TimelineError: Unless 0 <= compressed_gap_display < min_gap_to_compress.
    """

    def __init__(
        self,
        turns: Sequence[Turn],
        min_gap_to_compress: float = MIN_SILENCE_GAP_TO_COMPRESS,
        compressed_gap_display: float = COMPRESSED_GAP_DISPLAY_DURATION,
    ) -> None:
        if not 0 <= compressed_gap_display < min_gap_to_compress:
            raise TimelineError(
                "compressed_gap_display must be >= 0 and shorter than "
                f"min_gap_to_compress, got {compressed_gap_display} "
                f"vs {min_gap_to_compress}"
            )
        self.min_gap_to_compress = min_gap_to_compress
        self.compressed_gap_display = compressed_gap_display

        hull = activity_hull(turns)
        gaps: list[SilenceGap] = []
        for (_, current_end), (next_start, _) in zip(hull, hull[1:]):
            duration = next_start - current_end
            if duration > min_gap_to_compress:
                gaps.append(
                    SilenceGap(
                        real_start_time=current_end,
                        real_end_time=next_start,
                        duration=duration,
                    )
                )

        self._gaps = tuple(gaps)
        logger.debug(
            "Timeline: %d turns, %d activity intervals, %d compressible gaps",
            len(turns),
            len(hull),
            len(gaps),
        )

    @property
    def silence_gaps(self) -> tuple[SilenceGap, ...]:
        return self._gaps

    @property
    def time_saved(self) -> float:
        """Total real time removed from the visual axis."""
        return sum(self._savings(gap) for gap in self._gaps)

    def _savings(self, gap: SilenceGap) -> float:
        return gap.duration - self.compressed_gap_display

    def visual_position(self, real_time: float) -> float:
        """Map a real timestamp onto the compressed axis, clamped to >= 0.

        Gaps entirely before real_time contribute their full savings; a
        gap containing real_time contributes in proportion to how far into
        the gap it lies.
        """
        visual_time = real_time
        for gap in self._gaps:
            if real_time <= gap.real_start_time:
                break
            if real_time >= gap.real_end_time:
                visual_time -= self._savings(gap)
            else:
                fraction = (real_time - gap.real_start_time) / gap.duration
                visual_time -= self._savings(gap) * fraction
        return max(0.0, visual_time)

    def total_visual_duration(self, real_duration: float) -> float:
        """Visual length of a recording of real_duration seconds."""
        return max(0.0, real_duration - self.time_saved)

    def real_position(self, visual_time: float) -> float:
        """Inverse of visual_position, for mapping scroll offsets back to time.

        A visual time inside a compressed gap maps linearly across the
        real gap. With a zero display length the gap maps to its end.
        """
        saved_before = 0.0
        for gap in self._gaps:
            visual_start = gap.real_start_time - saved_before
            if visual_time < visual_start:
                break
            visual_end = visual_start + self.compressed_gap_display
            if visual_time < visual_end:
                fraction = (visual_time - visual_start) / self.compressed_gap_display
                return gap.real_start_time + fraction * gap.duration
            saved_before += self._savings(gap)
        return max(0.0, visual_time + saved_before)
