"""Energy and zero-crossing-rate voice activity detection.

Time-domain detector: a frame counts as speech when its RMS clears a
mean-plus-k-sigma threshold computed over the whole call, with the
zero-crossing rate as a weighted secondary vote. Cheaper than the
spectral detector and useful on wideband recordings with a clean floor.
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

# RMS below this never counts as speech, regardless of the adaptive threshold
MIN_RMS = 3e-4
ZCR_MEDIAN_SCALE = 1.2
FRAME_BLOCK = 4096


@dataclass(frozen=True)
class EnergyParameters:
    """Tunables for the energy/ZCR detector."""

    window_size: float = 0.03
    min_speech_duration: float = 0.5
    min_silence_duration: float = 0.3
    threshold_multiplier: float = 2.0
    zcr_weight: float = 0.3

    def __post_init__(self) -> None:
        if self.window_size <= 0:
            raise VADError(f"window_size must be > 0, got {self.window_size}")
        if self.min_speech_duration < 0 or self.min_silence_duration < 0:
            raise VADError("Minimum speech/silence durations must be >= 0")
        if self.threshold_multiplier < 0:
            raise VADError("threshold_multiplier must be >= 0")
        if not 0.0 <= self.zcr_weight <= 1.0:
            raise VADError(f"zcr_weight must be in [0, 1], got {self.zcr_weight}")


DEFAULT = EnergyParameters()

LOW_QUALITY = EnergyParameters(
    window_size=0.05,
    min_speech_duration=0.3,
    min_silence_duration=0.5,
    threshold_multiplier=1.5,
    zcr_weight=0.4,
)

AGGRESSIVE = EnergyParameters(
    window_size=0.02,
    min_speech_duration=0.2,
    min_silence_duration=0.2,
    threshold_multiplier=1.2,
    zcr_weight=0.5,
)

PRESETS: dict[str, EnergyParameters] = {
    "default": DEFAULT,
    "low_quality": LOW_QUALITY,
    "aggressive": AGGRESSIVE,
}


class EnergyVADEngine(VADEngine):
    """RMS + zero-crossing-rate detector with a per-call threshold.

    Args:
        parameters: Detector tunables (default DEFAULT).
        sample_rate: Sample rate of the buffers passed in (default 16 kHz).
    """

    def __init__(
        self,
        parameters: EnergyParameters | None = None,
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

        rms, zcr = self.frame_metrics(samples)
        energy_threshold = float(
            rms.mean() + self.parameters.threshold_multiplier * rms.std()
        )
        zcr_threshold = float(np.median(zcr)) * ZCR_MEDIAN_SCALE

        weight = self.parameters.zcr_weight
        score = (rms >= energy_threshold) * (1.0 - weight) + (zcr >= zcr_threshold) * weight
        flags = (score > 0.5) & (rms >= MIN_RMS)

        logger.debug(
            "EnergyVAD: energy threshold=%.4f, ZCR threshold=%.4f, speech frames=%d/%d",
            energy_threshold,
            zcr_threshold,
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

    def frame_metrics(self, samples: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Return per-frame RMS and zero-crossing rate."""
        frames = sliding_window_view(samples, self.window_samples)[:: self.hop_samples]
        rms = np.empty(len(frames), dtype=np.float64)
        zcr = np.empty(len(frames), dtype=np.float64)

        for offset in range(0, len(frames), FRAME_BLOCK):
            block = frames[offset : offset + FRAME_BLOCK].astype(np.float64)
            rms[offset : offset + len(block)] = np.sqrt(np.mean(block**2, axis=1))
            signs = block >= 0
            crossings = np.count_nonzero(signs[:, 1:] != signs[:, :-1], axis=1)
            zcr[offset : offset + len(block)] = crossings / self.window_samples

        return rms, zcr
