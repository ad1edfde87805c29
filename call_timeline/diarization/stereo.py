"""Stereo diarization: one speaker per channel, merged into one timeline.

Call recorders put the near party on the left channel and the far party
on the right, so attribution needs no speaker model: each channel's VAD
segments belong to that channel's speaker. The work here is ordering the
two streams chronologically and coalescing a speaker's segments that are
separated only by a short breath pause.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

import numpy as np

from call_timeline.audio.vad.interface import (
    DEFAULT_SAMPLE_RATE,
    SpeechSegment,
    extract_segment_audio,
)
from call_timeline.utils.errors import DiarizationError

logger = logging.getLogger(__name__)

DEFAULT_MERGE_GAP_SECONDS = 1.0


class Speaker(str, Enum):
    """Call party, identified by recording channel."""

    A = "A"
    B = "B"

    @classmethod
    def from_channel(cls, channel: int) -> Speaker:
        if channel == 0:
            return cls.A
        if channel == 1:
            return cls.B
        raise DiarizationError(f"Stereo diarization supports channels 0 and 1, got {channel}")

    @property
    def display_name(self) -> str:
        return "Speaker 1" if self is Speaker.A else "Speaker 2"


@dataclass(frozen=True)
class ChannelSegment:
    """A VAD segment tagged with its channel, speaker and audio."""

    segment: SpeechSegment
    channel: int
    speaker: Speaker
    samples: np.ndarray

    @property
    def start_time(self) -> float:
        return self.segment.start_time

    @property
    def end_time(self) -> float:
        return self.segment.end_time


@dataclass
class Turn:
    """One continuous utterance by a single speaker.

    text stays None until the speech-to-text collaborator fills it.
    """

    speaker: Speaker
    start_time: float
    end_time: float
    samples: np.ndarray
    text: str | None = None

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def with_text(self, text: str) -> Turn:
        return dataclasses.replace(self, text=text)

    @classmethod
    def from_channel_segment(cls, channel_segment: ChannelSegment) -> Turn:
        return cls(
            speaker=channel_segment.speaker,
            start_time=channel_segment.start_time,
            end_time=channel_segment.end_time,
            samples=channel_segment.samples,
        )


class StereoDiarizer:
    """Turns per-channel VAD output into one chronological Turn list.

    Args:
        merge_gap_threshold: Same-speaker neighbours separated by less than
            this many seconds are coalesced into one turn.
        sample_rate: Sample rate of the channel buffers.

    Raises:
        DiarizationError: If merge_gap_threshold is negative.
    """

    def __init__(
        self,
        merge_gap_threshold: float = DEFAULT_MERGE_GAP_SECONDS,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
    ) -> None:
        if merge_gap_threshold < 0:
            raise DiarizationError(
                f"merge_gap_threshold must be >= 0, got {merge_gap_threshold}"
            )
        self.merge_gap_threshold = merge_gap_threshold
        self.sample_rate = sample_rate

    def tag_channel(
        self,
        channel: int,
        segments: Sequence[SpeechSegment],
        samples: np.ndarray,
    ) -> list[ChannelSegment]:
        """Attach speaker identity and a copy of the channel audio to each segment."""
        speaker = Speaker.from_channel(channel)
        return [
            ChannelSegment(
                segment=segment,
                channel=channel,
                speaker=speaker,
                samples=extract_segment_audio(segment, samples, self.sample_rate),
            )
            for segment in segments
        ]

    def merge(self, channel_segments: Sequence[ChannelSegment]) -> list[Turn]:
        """Sort both speakers' segments by start time and coalesce short pauses.

        Overlapping segments from different speakers are both kept; only
        consecutive entries of the same speaker are ever merged.
        """
        ordered = sorted(channel_segments, key=lambda cs: cs.start_time)
        turns: list[Turn] = []

        for channel_segment in ordered:
            if turns:
                previous = turns[-1]
                gap = channel_segment.start_time - previous.end_time
                if (
                    previous.speaker is channel_segment.speaker
                    and gap < self.merge_gap_threshold
                ):
                    turns[-1] = Turn(
                        speaker=previous.speaker,
                        start_time=previous.start_time,
                        end_time=max(previous.end_time, channel_segment.end_time),
                        samples=np.concatenate(
                            [previous.samples, channel_segment.samples]
                        ),
                    )
                    continue
            turns.append(Turn.from_channel_segment(channel_segment))

        logger.debug(
            "Merged %d channel segments into %d turns",
            len(ordered),
            len(turns),
        )
        return turns

    def diarize(
        self,
        left_segments: Sequence[SpeechSegment],
        right_segments: Sequence[SpeechSegment],
        left_samples: np.ndarray,
        right_samples: np.ndarray | None = None,
    ) -> list[Turn]:
        """Build the chronological Turn list for a (possibly mono) recording.

        Args:
            left_segments: VAD segments of channel 0 (speaker A).
            right_segments: VAD segments of channel 1 (speaker B).
            left_samples: Channel 0 buffer.
            right_samples: Channel 1 buffer; None for mono recordings.

        Returns:
            Turns sorted by start time, text unset.
        """
        tagged = self.tag_channel(0, left_segments, left_samples)
        if right_samples is not None:
            tagged += self.tag_channel(1, right_segments, right_samples)
        return self.merge(tagged)
