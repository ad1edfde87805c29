"""Spectral voice activity detection.

Cuts a mono buffer into hop-length cells and, for each cell, compares
the fraction of power inside the speech band (from a Hann-windowed FFT
frame centred on the cell) against a per-call adaptive threshold.
Speech on a telephone line concentrates its energy in roughly
300-3400 Hz, so the in-band ratio separates it from hum, hiss and line
noise that a plain loudness gate would accept.
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
from call_timeline.audio.vad.segments import frames_to_segments
from call_timeline.utils.errors import VADError

logger = logging.getLogger(__name__)

# Mean cell power below this is digital silence (about -70 dBFS)
MIN_FRAME_ENERGY = 1e-7
# Total spectral power below this yields a ratio of 0
MIN_SPECTRAL_POWER = 1e-10
NOISE_FLOOR_PERCENTILE = 10
NOISE_GATE_FACTOR = 4.0
PEAK_PERCENTILE = 90
PEAK_GATE_FRACTION = 0.5
MEDIAN_SCALE = 0.8
# Without loud/quiet contrast a buffer must sit this far from the
# white-noise band ratio towards 1.0 to count as speech
FLAT_RATIO_MARGIN = 0.5
NO_SPEECH_RATIO = float("inf")
# Frames per FFT batch, bounds peak memory on hour-long calls
FRAME_BLOCK = 4096


@dataclass(frozen=True)
class SpectralParameters:
    """Tunables for the spectral detector. Presets are instances of this class."""

    fft_size: int = 512
    min_speech_duration: float = 0.5
    min_silence_duration: float = 0.3
    speech_freq_min: float = 300.0
    speech_freq_max: float = 3400.0
    speech_energy_ratio: float = 0.3

    def __post_init__(self) -> None:
        if self.fft_size < 64 or self.fft_size & (self.fft_size - 1):
            raise VADError(
                f"fft_size must be a power of two >= 64, got {self.fft_size}"
            )
        if self.min_speech_duration < 0 or self.min_silence_duration < 0:
            raise VADError("Minimum speech/silence durations must be >= 0")
        if not 0 <= self.speech_freq_min < self.speech_freq_max:
            raise VADError(
                "Speech band must satisfy 0 <= speech_freq_min < speech_freq_max, "
                f"got {self.speech_freq_min}-{self.speech_freq_max} Hz"
            )
        if not 0.0 <= self.speech_energy_ratio <= 1.0:
            raise VADError(
                f"speech_energy_ratio must be in [0, 1], got {self.speech_energy_ratio}"
            )


DEFAULT = SpectralParameters()

TELEPHONE = SpectralParameters(
    fft_size=512,
    min_speech_duration=0.3,
    min_silence_duration=0.5,
    speech_freq_min=300.0,
    speech_freq_max=3400.0,
    speech_energy_ratio=0.25,
)

WIDEBAND = SpectralParameters(
    fft_size=1024,
    min_speech_duration=0.3,
    min_silence_duration=0.3,
    speech_freq_min=80.0,
    speech_freq_max=8000.0,
    speech_energy_ratio=0.4,
)

# Degraded or narrowband lines: wider low edge, lower ratio floor
LOW_QUALITY = SpectralParameters(
    fft_size=512,
    min_speech_duration=0.3,
    min_silence_duration=0.5,
    speech_freq_min=200.0,
    speech_freq_max=3400.0,
    speech_energy_ratio=0.2,
)

PRESETS: dict[str, SpectralParameters] = {
    "default": DEFAULT,
    "telephone": TELEPHONE,
    "wideband": WIDEBAND,
    "low_quality": LOW_QUALITY,
}


class SpectralVADEngine(VADEngine):
    """Speech detector driven by in-band spectral energy ratio.

    Args:
        parameters: Detector tunables; defaults to the class profile.
        sample_rate: Sample rate of the buffers passed in (default 16 kHz).

    Raises:
        VADError: If the speech band does not fit below the Nyquist frequency.
    """

    default_parameters: SpectralParameters = DEFAULT

    def __init__(
        self,
        parameters: SpectralParameters | None = None,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
    ) -> None:
        super().__init__(sample_rate)
        self.parameters = parameters or self.default_parameters
        params = self.parameters

        if params.speech_freq_max > sample_rate / 2:
            raise VADError(
                f"speech_freq_max {params.speech_freq_max} Hz exceeds Nyquist "
                f"for {sample_rate} Hz audio"
            )

        freq_resolution = sample_rate / params.fft_size
        num_bins = params.fft_size // 2
        self._min_bin = int(params.speech_freq_min / freq_resolution)
        self._max_bin = min(int(params.speech_freq_max / freq_resolution), num_bins - 1)
        if self._min_bin > self._max_bin:
            raise VADError(
                "Speech band is narrower than one FFT bin",
                detail=f"fft_size={params.fft_size}, sample_rate={sample_rate}",
            )
        # In-band share of a flat (white) spectrum
        self.noise_band_ratio = (self._max_bin - self._min_bin + 1) / num_bins
        self._window = np.hanning(params.fft_size).astype(np.float32)

    @property
    def hop_size(self) -> int:
        return self.parameters.fft_size // 2

    def detect_speech_segments(self, samples: np.ndarray) -> list[SpeechSegment]:
        """Detect speech segments from the spectral energy ratio series."""
        samples = np.asarray(samples, dtype=np.float32)
        if len(samples) < self.parameters.fft_size:
            return []

        ratios, energies = self.frame_metrics(samples)
        gate, threshold = self.adaptive_threshold(ratios, energies)
        flags = (energies >= gate) & (ratios >= threshold)

        logger.debug(
            "SpectralVAD: %d cells, energy gate=%.3g, ratio threshold=%.4f, "
            "speech cells=%d",
            len(ratios),
            gate,
            threshold,
            int(flags.sum()),
        )

        hop = self.hop_size
        cell_starts = np.arange(len(ratios)) * hop / self.sample_rate
        return frames_to_segments(
            flags.tolist(),
            cell_starts.tolist(),
            frame_length=hop / self.sample_rate,
            min_speech_duration=self.parameters.min_speech_duration,
            min_silence_duration=self.parameters.min_silence_duration,
            total_duration=len(samples) / self.sample_rate,
        )

    def frame_metrics(self, samples: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Compute the in-band power ratio and mean power per hop-length cell.

        Cell i covers samples [i * hop, (i + 1) * hop). Its energy is the
        plain mean square of those samples; its ratio comes from the
        windowed FFT frame centred on it (zero-padded at the buffer edges).
        A trailing partial cell is ignored.

        Returns:
            (ratios, energies), one value per cell.
        """
        fft_size = self.parameters.fft_size
        hop = self.hop_size
        num_cells = len(samples) // hop
        pad = (fft_size - hop) // 2
        frames = sliding_window_view(np.pad(samples, (pad, pad)), fft_size)[::hop]
        cells = samples[: num_cells * hop].reshape(num_cells, hop)

        ratios = np.empty(num_cells, dtype=np.float64)
        energies = np.empty(num_cells, dtype=np.float64)

        for offset in range(0, num_cells, FRAME_BLOCK):
            stop = min(offset + FRAME_BLOCK, num_cells)
            block = frames[offset:stop] * self._window
            power = np.abs(np.fft.rfft(block, axis=1)[:, : fft_size // 2]) ** 2
            total = power.sum(axis=1)
            in_band = power[:, self._min_bin : self._max_bin + 1].sum(axis=1)
            safe_total = np.where(total > MIN_SPECTRAL_POWER, total, 1.0)
            ratios[offset:stop] = np.where(
                total > MIN_SPECTRAL_POWER, in_band / safe_total, 0.0
            )
            energies[offset:stop] = np.mean(
                cells[offset:stop].astype(np.float64) ** 2, axis=1
            )

        return ratios, energies

    def adaptive_threshold(
        self, ratios: np.ndarray, energies: np.ndarray
    ) -> tuple[float, float]:
        """Derive the per-call energy gate and ratio threshold.

        The energy gate sits a fixed factor above the quietest cells (the
        line's noise floor) but never above half the loud-cell level, so
        recordings without pauses still pass. The ratio threshold is a
        fraction of the median ratio over gated cells, floored at the
        configured speech_energy_ratio.

        When loud and quiet cells differ by less than NOISE_GATE_FACTOR
        there is no noise floor to learn from: the buffer is one steady
        signal. It is speech only if its median ratio clears the
        white-noise ratio by FLAT_RATIO_MARGIN; otherwise the threshold is
        NO_SPEECH_RATIO and nothing passes.

        Returns:
            (energy_gate, ratio_threshold)
        """
        floor_ratio = self.parameters.speech_energy_ratio
        if len(energies) == 0:
            return MIN_FRAME_ENERGY, floor_ratio

        noise_floor = float(np.percentile(energies, NOISE_FLOOR_PERCENTILE))
        peak = float(np.percentile(energies, PEAK_PERCENTILE))
        gate = max(
            MIN_FRAME_ENERGY,
            min(noise_floor * NOISE_GATE_FACTOR, peak * PEAK_GATE_FRACTION),
        )

        active = ratios[energies >= gate]
        if active.size == 0:
            return gate, floor_ratio

        median = float(np.median(active))
        if peak < noise_floor * NOISE_GATE_FACTOR:
            steady_ratio = max(
                floor_ratio,
                self.noise_band_ratio + (1.0 - self.noise_band_ratio) * FLAT_RATIO_MARGIN,
            )
            if median < steady_ratio:
                return gate, NO_SPEECH_RATIO
            return gate, steady_ratio

        return gate, max(median * MEDIAN_SCALE, floor_ratio)
