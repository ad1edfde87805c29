"""Tests for the spectral and adaptive VAD engines."""

import numpy as np
import pytest

from call_timeline.audio.vad import (
    AdaptiveVADEngine,
    SpectralParameters,
    SpectralVADEngine,
    SpeechSegment,
    VADEngine,
)
from call_timeline.audio.vad.spectral import (
    DEFAULT,
    LOW_QUALITY,
    FLAT_RATIO_MARGIN,
    MIN_FRAME_ENERGY,
    NO_SPEECH_RATIO,
    PRESETS,
    TELEPHONE,
    WIDEBAND,
)
from call_timeline.utils.errors import VADError

SR = 16000
# Segment edges may move by up to one analysis frame
EDGE_TOLERANCE = 0.05
# Ten quiet cells then ten loud ones
QUIET_THEN_LOUD = np.array([0.001] * 10 + [0.1] * 10)


def _call(
    duration: float,
    bursts: list[tuple[float, float]],
    freq: float = 1000.0,
    noise: float = 0.0,
    sample_rate: int = SR,
) -> np.ndarray:
    """Silence (or low noise) with sine bursts at the given (start, end) times."""
    samples = np.zeros(int(duration * sample_rate), dtype=np.float32)
    if noise:
        rng = np.random.default_rng(7)
        samples += rng.normal(0.0, noise, samples.size).astype(np.float32)
    for start, end in bursts:
        lo, hi = int(start * sample_rate), int(end * sample_rate)
        t = np.arange(hi - lo) / sample_rate
        samples[lo:hi] += (0.5 * np.sin(2 * np.pi * freq * t)).astype(np.float32)
    return samples


class TestSpectralParameters:
    """Tests for parameter validation and presets."""

    def test_presets_are_registered_by_name(self) -> None:
        assert PRESETS == {
            "default": DEFAULT,
            "telephone": TELEPHONE,
            "wideband": WIDEBAND,
            "low_quality": LOW_QUALITY,
        }

    def test_telephone_preset_values(self) -> None:
        assert TELEPHONE.fft_size == 512
        assert TELEPHONE.min_speech_duration == 0.3
        assert TELEPHONE.min_silence_duration == 0.5
        assert (TELEPHONE.speech_freq_min, TELEPHONE.speech_freq_max) == (300.0, 3400.0)
        assert TELEPHONE.speech_energy_ratio == 0.25

    def test_wideband_uses_larger_fft(self) -> None:
        assert WIDEBAND.fft_size == 1024
        assert WIDEBAND.speech_freq_max == 8000.0

    @pytest.mark.parametrize("fft_size", [0, 32, 500, 1000])
    def test_rejects_bad_fft_size(self, fft_size: int) -> None:
        with pytest.raises(VADError, match="power of two"):
            SpectralParameters(fft_size=fft_size)

    def test_rejects_inverted_band(self) -> None:
        with pytest.raises(VADError, match="Speech band"):
            SpectralParameters(speech_freq_min=3400.0, speech_freq_max=300.0)

    def test_rejects_ratio_outside_unit_interval(self) -> None:
        with pytest.raises(VADError):
            SpectralParameters(speech_energy_ratio=1.5)

    def test_rejects_negative_durations(self) -> None:
        with pytest.raises(VADError):
            SpectralParameters(min_silence_duration=-0.1)

    def test_band_above_nyquist_rejected_by_engine(self) -> None:
        with pytest.raises(VADError, match="Nyquist"):
            SpectralVADEngine(WIDEBAND, sample_rate=8000)

    def test_telephone_fits_narrowband_audio(self) -> None:
        engine = SpectralVADEngine(TELEPHONE, sample_rate=8000)
        assert engine.hop_size == 256


class TestSpectralDetection:
    """Tests for detect_speech_segments() on synthetic calls."""

    def test_is_a_vad_engine(self) -> None:
        assert isinstance(SpectralVADEngine(), VADEngine)

    def test_digital_silence_has_no_speech(self) -> None:
        engine = SpectralVADEngine()
        assert engine.detect_speech_segments(np.zeros(SR * 3, dtype=np.float32)) == []

    def test_input_shorter_than_fft_is_empty(self) -> None:
        engine = SpectralVADEngine()
        assert engine.detect_speech_segments(np.full(511, 0.5, dtype=np.float32)) == []
        assert engine.detect_speech_segments(np.zeros(0, dtype=np.float32)) == []

    def test_two_bursts_give_two_segments(self) -> None:
        engine = SpectralVADEngine()
        segments = engine.detect_speech_segments(_call(5.0, [(1.0, 2.0), (3.0, 4.0)]))

        assert len(segments) == 2
        assert segments[0].start_time == pytest.approx(1.0, abs=EDGE_TOLERANCE)
        assert segments[0].end_time == pytest.approx(2.0, abs=EDGE_TOLERANCE)
        assert segments[1].start_time == pytest.approx(3.0, abs=EDGE_TOLERANCE)
        assert segments[1].end_time == pytest.approx(4.0, abs=EDGE_TOLERANCE)

    def test_short_pause_is_bridged(self) -> None:
        """A pause shorter than min_silence_duration does not split a segment."""
        engine = SpectralVADEngine()
        segments = engine.detect_speech_segments(_call(4.0, [(1.0, 1.6), (1.75, 2.5)]))

        assert len(segments) == 1
        assert segments[0].start_time == pytest.approx(1.0, abs=EDGE_TOLERANCE)
        assert segments[0].end_time == pytest.approx(2.5, abs=EDGE_TOLERANCE)

    def test_burst_shorter_than_min_speech_is_dropped(self) -> None:
        engine = SpectralVADEngine()
        segments = engine.detect_speech_segments(_call(4.0, [(1.0, 1.2), (2.0, 3.0)]))

        assert len(segments) == 1
        assert segments[0].start_time == pytest.approx(2.0, abs=EDGE_TOLERANCE)

    def test_segments_sorted_and_disjoint(self) -> None:
        engine = SpectralVADEngine(TELEPHONE)
        bursts = [(0.5, 1.5), (2.2, 2.9), (3.6, 5.0), (6.0, 7.5)]
        segments = engine.detect_speech_segments(_call(8.0, bursts))

        assert len(segments) == 4
        for current, following in zip(segments, segments[1:]):
            assert current.start_time < current.end_time <= following.start_time

    def test_segments_stay_inside_buffer(self) -> None:
        engine = SpectralVADEngine()
        segments = engine.detect_speech_segments(_call(2.0, [(1.0, 2.0)]))

        assert len(segments) == 1
        assert segments[0].end_time <= 2.0

    def test_out_of_band_tone_is_rejected(self) -> None:
        """Loud energy outside the speech band is not speech."""
        engine = SpectralVADEngine()
        samples = _call(3.0, [(0.5, 2.5)], freq=6000.0)
        assert engine.detect_speech_segments(samples) == []

    def test_low_noise_floor_is_gated(self) -> None:
        engine = SpectralVADEngine()
        samples = _call(5.0, [(1.0, 2.0), (3.0, 4.0)], noise=0.001)
        segments = engine.detect_speech_segments(samples)

        assert len(segments) == 2

    def test_noise_only_channel_has_no_speech(self) -> None:
        """Steady line hiss on a silent party is not a whole-call turn."""
        engine = SpectralVADEngine(TELEPHONE)
        assert engine.detect_speech_segments(_call(10.0, [], noise=0.005)) == []

    def test_bursts_over_line_hiss_are_found(self) -> None:
        engine = SpectralVADEngine(TELEPHONE)
        samples = _call(10.0, [(2.0, 3.5), (6.0, 7.0)], noise=0.005)
        segments = engine.detect_speech_segments(samples)

        assert len(segments) == 2
        assert segments[0].start_time == pytest.approx(2.0, abs=EDGE_TOLERANCE)
        assert segments[1].end_time == pytest.approx(7.0, abs=EDGE_TOLERANCE)

    def test_steady_in_band_tone_without_pauses_is_speech(self) -> None:
        engine = SpectralVADEngine(TELEPHONE)
        [segment] = engine.detect_speech_segments(_call(3.0, [(0.0, 3.0)]))

        assert segment.start_time == pytest.approx(0.0, abs=EDGE_TOLERANCE)
        assert segment.end_time == pytest.approx(3.0, abs=EDGE_TOLERANCE)

    def test_analyze_summarizes_speech_ratio(self) -> None:
        engine = SpectralVADEngine()
        result = engine.analyze(_call(4.0, [(1.0, 3.0)]))

        assert result.total_duration_seconds == pytest.approx(4.0)
        assert result.speech_duration_seconds == pytest.approx(2.0, abs=2 * EDGE_TOLERANCE)
        assert result.speech_ratio == pytest.approx(0.5, abs=0.05)

    def test_accepts_read_only_buffers(self) -> None:
        samples = _call(3.0, [(1.0, 2.0)])
        samples.flags.writeable = False

        assert len(SpectralVADEngine().detect_speech_segments(samples)) == 1


class TestAdaptiveThreshold:
    """Tests for the per-call energy gate and ratio threshold."""

    def test_gate_never_below_minimum(self) -> None:
        engine = SpectralVADEngine()
        gate, threshold = engine.adaptive_threshold(np.zeros(10), np.zeros(10))

        assert gate == MIN_FRAME_ENERGY
        assert threshold == DEFAULT.speech_energy_ratio

    def test_ratio_threshold_follows_median(self) -> None:
        engine = SpectralVADEngine()
        ratios = np.full(20, 0.9)
        gate, threshold = engine.adaptive_threshold(ratios, QUIET_THEN_LOUD)

        assert gate == pytest.approx(0.004)
        assert threshold == pytest.approx(0.72)

    def test_ratio_threshold_floored_at_configured_ratio(self) -> None:
        engine = SpectralVADEngine()
        _, threshold = engine.adaptive_threshold(np.full(20, 0.2), QUIET_THEN_LOUD)

        assert threshold == DEFAULT.speech_energy_ratio

    def test_steady_broadband_signal_has_no_speech(self) -> None:
        """Without a quiet floor, a white-noise-like band ratio rejects everything."""
        engine = SpectralVADEngine()
        ratios = np.full(20, engine.noise_band_ratio)
        _, threshold = engine.adaptive_threshold(ratios, np.full(20, 0.1))

        assert threshold == NO_SPEECH_RATIO

    def test_steady_in_band_signal_uses_margin_over_noise(self) -> None:
        engine = SpectralVADEngine()
        _, threshold = engine.adaptive_threshold(np.full(20, 0.98), np.full(20, 0.1))

        expected = engine.noise_band_ratio + (1.0 - engine.noise_band_ratio) * FLAT_RATIO_MARGIN
        assert threshold == pytest.approx(expected)

    def test_noise_band_ratio_matches_band_width(self) -> None:
        # 300-3400 Hz at 31.25 Hz per bin: bins 9..108 of 256
        assert SpectralVADEngine().noise_band_ratio == pytest.approx(100 / 256)

    def test_empty_input(self) -> None:
        engine = SpectralVADEngine()
        assert engine.adaptive_threshold(np.zeros(0), np.zeros(0)) == (
            MIN_FRAME_ENERGY,
            DEFAULT.speech_energy_ratio,
        )


class TestExtractAudio:
    """Tests for segment sample extraction."""

    def test_copies_segment_samples(self) -> None:
        engine = SpectralVADEngine()
        samples = np.arange(SR * 2, dtype=np.float32)
        audio = engine.extract_audio(SpeechSegment(0.5, 1.0), samples)

        assert len(audio) == SR // 2
        assert audio[0] == SR // 2
        audio[0] = -1.0
        assert samples[SR // 2] == SR // 2

    def test_clamps_to_buffer_end(self) -> None:
        engine = SpectralVADEngine()
        audio = engine.extract_audio(SpeechSegment(1.5, 3.0), np.ones(SR * 2, dtype=np.float32))

        assert len(audio) == SR // 2

    def test_segment_outside_buffer_is_empty(self) -> None:
        engine = SpectralVADEngine()
        audio = engine.extract_audio(SpeechSegment(5.0, 6.0), np.ones(SR, dtype=np.float32))

        assert audio.size == 0
        assert audio.dtype == np.float32


class TestAdaptiveVADEngine:
    """Tests for the low-quality profile variant."""

    def test_defaults_to_low_quality_profile(self) -> None:
        assert AdaptiveVADEngine().parameters is LOW_QUALITY

    def test_explicit_parameters_override_profile(self) -> None:
        assert AdaptiveVADEngine(TELEPHONE).parameters is TELEPHONE

    def test_detects_bursts(self) -> None:
        engine = AdaptiveVADEngine()
        segments = engine.detect_speech_segments(_call(5.0, [(1.0, 2.0), (3.0, 4.0)]))

        assert len(segments) == 2


class TestSegmentBoundaries:
    """Measured pauses and bursts stay close to their real lengths."""

    def test_pause_just_over_min_silence_splits(self) -> None:
        engine = SpectralVADEngine(TELEPHONE)
        pause = TELEPHONE.min_silence_duration + 0.05
        samples = _call(4.5, [(1.0, 2.0), (2.0 + pause, 3.5)])

        segments = engine.detect_speech_segments(samples)

        assert len(segments) == 2
        gap = segments[1].start_time - segments[0].end_time
        assert gap >= TELEPHONE.min_silence_duration

    def test_pause_just_under_min_silence_is_bridged(self) -> None:
        engine = SpectralVADEngine(TELEPHONE)
        pause = TELEPHONE.min_silence_duration - 0.05
        samples = _call(4.5, [(1.0, 2.0), (2.0 + pause, 3.5)])

        assert len(engine.detect_speech_segments(samples)) == 1

    def test_burst_just_under_min_speech_is_dropped(self) -> None:
        engine = SpectralVADEngine(TELEPHONE)
        burst = TELEPHONE.min_speech_duration - 0.05
        samples = _call(4.0, [(1.0, 1.0 + burst), (2.5, 3.5)])

        [segment] = engine.detect_speech_segments(samples)

        assert segment.start_time == pytest.approx(2.5, abs=EDGE_TOLERANCE)

    def test_burst_just_over_min_speech_is_kept(self) -> None:
        engine = SpectralVADEngine(TELEPHONE)
        burst = TELEPHONE.min_speech_duration + 0.05
        samples = _call(4.0, [(1.0, 1.0 + burst), (2.5, 3.5)])

        segments = engine.detect_speech_segments(samples)

        assert len(segments) == 2
        assert segments[0].duration == pytest.approx(burst, abs=2 * engine.hop_size / SR)

    def test_edges_within_one_cell(self) -> None:
        engine = SpectralVADEngine(TELEPHONE)
        cell = engine.hop_size / SR
        [segment] = engine.detect_speech_segments(_call(3.0, [(1.01, 2.01)]))

        assert segment.start_time == pytest.approx(1.01, abs=cell)
        assert segment.end_time == pytest.approx(2.01, abs=cell)
