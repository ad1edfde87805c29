"""Pluggable voice activity detection engines.

Public API:
    VADEngine         : Abstract base class for VAD implementations.
    SpeechSegment     : A contiguous segment of detected speech.
    VADResult         : Per-channel summary of a VAD pass.
    SpectralVADEngine : FFT speech-band energy ratio detector.
    SpectralParameters: Tunables and presets for the spectral detector.
    AdaptiveVADEngine : Spectral detector with the low-quality profile.
    EnergyVADEngine   : RMS + zero-crossing-rate detector.
    EnergyParameters  : Tunables and presets for the energy detector.
    StandardVADEngine : Fixed RMS threshold detector.
    StandardParameters: Tunables and presets for the fixed-threshold detector.
    get_vad_engine    : Factory to create engines by provider name.
"""

from call_timeline.audio.vad.adaptive import AdaptiveVADEngine
from call_timeline.audio.vad.energy import EnergyParameters, EnergyVADEngine
from call_timeline.audio.vad.interface import SpeechSegment, VADEngine, VADResult
from call_timeline.audio.vad.registry import get_vad_engine
from call_timeline.audio.vad.spectral import SpectralParameters, SpectralVADEngine
from call_timeline.audio.vad.standard import StandardParameters, StandardVADEngine

__all__ = [
    "VADEngine",
    "SpeechSegment",
    "VADResult",
    "SpectralVADEngine",
    "SpectralParameters",
    "AdaptiveVADEngine",
    "EnergyVADEngine",
    "EnergyParameters",
    "StandardVADEngine",
    "StandardParameters",
    "get_vad_engine",
]
