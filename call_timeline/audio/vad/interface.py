"""Abstract VAD engine interface and data models.

Defines the VADEngine ABC and the segment/result data classes shared by
every detector. Concrete implementations (spectral, adaptive, energy,
standard) subclass VADEngine and only implement detect_speech_segments().
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np

DEFAULT_SAMPLE_RATE = 16000


@dataclass(frozen=True)
class SpeechSegment:
    """A contiguous segment of detected speech, in seconds."""

    start_time: float
    end_time: float

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def start_sample(self, sample_rate: int = DEFAULT_SAMPLE_RATE) -> int:
        return int(self.start_time * sample_rate)

    def end_sample(self, sample_rate: int = DEFAULT_SAMPLE_RATE) -> int:
        return int(self.end_time * sample_rate)


@dataclass
class VADResult:
    """Summary of one voice activity detection pass over a channel."""

    segments: list[SpeechSegment]
    total_duration_seconds: float
    speech_duration_seconds: float
    speech_ratio: float

    @classmethod
    def from_segments(
        cls, segments: list[SpeechSegment], total_duration: float
    ) -> VADResult:
        """Build a result, deriving speech duration and ratio from segments."""
        speech = sum(seg.duration for seg in segments)
        ratio = speech / total_duration if total_duration > 0 else 0.0
        return cls(
            segments=segments,
            total_duration_seconds=total_duration,
            speech_duration_seconds=speech,
            speech_ratio=ratio,
        )


class VADEngine(ABC):
    """Abstract base class for VAD engine implementations.

    Subclasses must implement detect_speech_segments(). Engines are pure:
    they keep no state between calls and may be shared across threads.
    """

    def __init__(self, sample_rate: int = DEFAULT_SAMPLE_RATE) -> None:
        self.sample_rate = sample_rate

    @abstractmethod
    def detect_speech_segments(self, samples: np.ndarray) -> list[SpeechSegment]:
        """Classify a mono sample buffer into speech segments.

        Args:
            samples: Mono float samples in [-1, 1] at self.sample_rate.

        Returns:
            Segments sorted ascending by start time, pairwise
            non-overlapping. Empty for empty or too-short input.
        """

    def extract_audio(
        self, segment: SpeechSegment, samples: np.ndarray
    ) -> np.ndarray:
        """Copy the samples covered by a segment, clamped to the buffer.

        Returns an empty array when the segment lies outside the buffer.
        """
        return extract_segment_audio(segment, samples, self.sample_rate)

    def analyze(self, samples: np.ndarray) -> VADResult:
        """Run detection and summarize the result for the whole buffer."""
        samples = np.asarray(samples, dtype=np.float32)
        segments = self.detect_speech_segments(samples)
        return VADResult.from_segments(segments, len(samples) / self.sample_rate)

    def has_speech(self, samples: np.ndarray) -> bool:
        return bool(self.detect_speech_segments(samples))

    def total_speech_duration(self, samples: np.ndarray) -> float:
        """Summed duration in seconds of every detected segment."""
        return sum(seg.duration for seg in self.detect_speech_segments(samples))


def extract_segment_audio(
    segment: SpeechSegment, samples: np.ndarray, sample_rate: int
) -> np.ndarray:
    """Return a copy of samples[start:end] for a segment, never raising."""
    samples = np.asarray(samples, dtype=np.float32)
    start = max(0, segment.start_sample(sample_rate))
    end = min(len(samples), segment.end_sample(sample_rate))
    if start >= end:
        return np.zeros(0, dtype=np.float32)
    return samples[start:end].copy()
