"""Fixed-threshold RMS voice activity detection.

The simplest detector: a frame is speech when its RMS reaches a constant
threshold. No per-call statistics, so results on one recording do not
depend on the rest of it. Suited to clean recordings with a known level.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from call_timeline.audio.vad.interface import (
    DEFAULT_SAMPLE_RATE,
    SpeechSegment,
    VADEngine,
)
from call_timeline.audio.vad.segments import centred_cell_starts, frames_to_segments
from call_timeline.utils.errors import VADError

logger = logging.getLogger(__name__)

FRAME_BLOCK = 4096


@dataclass(frozen=True)
class StandardParameters:
    """Tunables for the fixed-threshold detector."""

    window_size: float = 0.03
    min_speech_duration: float = 0.5
    min_silence_duration: float = 0.3
    rms_threshold: float = 0.02

    def __post_init__(self) -> None:
        if self.window_size <= 0:
            raise VADError(f"window_size must be > 0, got {self.window_size}")
        if self.min_speech_duration < 0 or self.min_silence_duration < 0:
            raise VADError("Minimum speech/silence durations must be >= 0")
        if self.rms_threshold <= 0:
            raise VADError(f"rms_threshold must be > 0, got {self.rms_threshold}")


DEFAULT = StandardParameters()

# Telephone or noisy audio: smoother window, more sensitive threshold
LOW_QUALITY = StandardParameters(
    window_size=0.05,
    min_speech_duration=0.3,
    min_silence_duration=0.5,
    rms_threshold=0.01,
)

HIGH_QUALITY = StandardParameters(
    window_size=0.02,
    min_speech_duration=0.3,
    min_silence_duration=0.2,
    rms_threshold=0.03,
)

PRESETS: dict[str, StandardParameters] = {
    "default": DEFAULT,
    "low_quality": LOW_QUALITY,
    "high_quality": HIGH_QUALITY,
}


class StandardVADEngine(VADEngine):
    """RMS detector with a constant threshold.

    Args:
        parameters: Detector tunables (default DEFAULT).
        sample_rate: Sample rate of the buffers passed in (default 16 kHz).
    """

    def __init__(
        self,
        parameters: StandardParameters | None = None,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
    ) -> None:
        super().__init__(sample_rate)
        self.parameters = parameters or DEFAULT
        self.window_samples = int(self.parameters.window_size * sample_rate)
        if self.window_samples < 2:
            raise VADError(
                f"window_size {self.parameters.window_size}s is shorter than "
                f"two samples at {sample_rate} Hz"
            )
        self.hop_samples = self.window_samples // 2

    def detect_speech_segments(self, samples: np.ndarray) -> list[SpeechSegment]:
        samples = np.asarray(samples, dtype=np.float32)
        if len(samples) < self.window_samples:
            return []

        rms = self.frame_rms(samples)
        flags = rms >= self.parameters.rms_threshold
        logger.debug(
            "StandardVAD: rms threshold=%.4f, speech frames=%d/%d",
            self.parameters.rms_threshold,
            int(flags.sum()),
            len(flags),
        )

        return frames_to_segments(
            flags.tolist(),
            centred_cell_starts(
                len(flags), self.window_samples, self.hop_samples, self.sample_rate
            ),
            frame_length=self.hop_samples / self.sample_rate,
            min_speech_duration=self.parameters.min_speech_duration,
            min_silence_duration=self.parameters.min_silence_duration,
            total_duration=len(samples) / self.sample_rate,
        )

    def frame_rms(self, samples: np.ndarray) -> np.ndarray:
        """RMS of each window, windows advancing by half their length."""
        frames = sliding_window_view(samples, self.window_samples)[:: self.hop_samples]
        rms = np.empty(len(frames), dtype=np.float64)
        for offset in range(0, len(frames), FRAME_BLOCK):
            block = frames[offset : offset + FRAME_BLOCK].astype(np.float64)
            rms[offset : offset + len(block)] = np.sqrt(np.mean(block**2, axis=1))
        return rms
