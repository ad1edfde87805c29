"""Adaptive VAD: the spectral detector tuned for degraded lines.

Shares the spectral algorithm and only swaps the default parameter
profile for LOW_QUALITY (wider band, lower ratio floor, longer silence
before a segment closes).
"""

from call_timeline.audio.vad.spectral import LOW_QUALITY, SpectralVADEngine


class AdaptiveVADEngine(SpectralVADEngine):
    """Spectral VAD with the low-quality/narrowband default profile."""

    default_parameters = LOW_QUALITY
