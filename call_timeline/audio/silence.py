"""Whole-buffer silence check run before a turn is sent for recognition.

A turn can pass VAD on spectral shape alone yet carry almost no energy
(line clicks, faint crosstalk); recognizers tend to hallucinate text on
such input, so it is filtered out here.
"""

import logging
from dataclasses import dataclass

import numpy as np

from call_timeline.audio.vad.interface import DEFAULT_SAMPLE_RATE

logger = logging.getLogger(__name__)

DEFAULT_RMS_THRESHOLD = 0.01
DEFAULT_MIN_DURATION = 0.3


@dataclass(frozen=True)
class AudioStats:
    """Level statistics of a sample buffer."""

    sample_count: int
    duration: float
    rms: float
    max_amplitude: float
    min_amplitude: float
    is_silence: bool


def rms(samples: np.ndarray) -> float:
    samples = np.asarray(samples, dtype=np.float64)
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(samples**2)))


def is_silence(
    samples: np.ndarray,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
    rms_threshold: float = DEFAULT_RMS_THRESHOLD,
    min_duration: float = DEFAULT_MIN_DURATION,
) -> bool:
    """Return True when a buffer is empty, too short, or too quiet.

    Args:
        samples: Mono float samples.
        sample_rate: Sample rate in Hz.
        rms_threshold: Buffers with RMS below this are silence.
        min_duration: Buffers shorter than this (seconds) are silence.
    """
    samples = np.asarray(samples)
    if samples.size == 0:
        return True

    duration = samples.size / sample_rate
    if duration < min_duration:
        logger.debug("Silence: %.2fs is shorter than %.2fs", duration, min_duration)
        return True

    level = rms(samples)
    if level < rms_threshold:
        logger.debug("Silence: RMS %.4f below %.4f", level, rms_threshold)
        return True

    return False


def audio_stats(
    samples: np.ndarray, sample_rate: int = DEFAULT_SAMPLE_RATE
) -> AudioStats:
    """Compute level statistics for a buffer."""
    samples = np.asarray(samples, dtype=np.float32)
    return AudioStats(
        sample_count=int(samples.size),
        duration=samples.size / sample_rate,
        rms=rms(samples),
        max_amplitude=float(samples.max()) if samples.size else 0.0,
        min_amplitude=float(samples.min()) if samples.size else 0.0,
        is_silence=is_silence(samples, sample_rate),
    )
