"""VAD engine registry with configuration-driven provider selection.

Maps provider name strings to engine classes and their named parameter
presets. Use get_vad_engine() to instantiate an engine by name.
"""

from call_timeline.audio.vad.adaptive import AdaptiveVADEngine
from call_timeline.audio.vad.energy import PRESETS as ENERGY_PRESETS
from call_timeline.audio.vad.energy import EnergyVADEngine
from call_timeline.audio.vad.interface import VADEngine
from call_timeline.audio.vad.spectral import PRESETS as SPECTRAL_PRESETS
from call_timeline.audio.vad.spectral import SpectralVADEngine
from call_timeline.audio.vad.standard import PRESETS as STANDARD_PRESETS
from call_timeline.audio.vad.standard import StandardVADEngine
from call_timeline.utils.errors import VADError

VAD_ENGINES: dict[str, type[VADEngine]] = {
    "spectral": SpectralVADEngine,
    "adaptive": AdaptiveVADEngine,
    "energy": EnergyVADEngine,
    "standard": StandardVADEngine,
}

VAD_PRESETS: dict[str, dict[str, object]] = {
    "spectral": SPECTRAL_PRESETS,
    "adaptive": SPECTRAL_PRESETS,
    "energy": ENERGY_PRESETS,
    "standard": STANDARD_PRESETS,
}


def get_vad_engine(
    provider: str, preset: str | None = None, **kwargs: object
) -> VADEngine:
    """Create a VAD engine instance by provider name.

    Args:
        provider: Provider name ("spectral", "adaptive", "energy", "standard").
        preset: Optional named parameter preset for that provider
            (e.g. "telephone", "wideband"). Ignored when kwargs
            already carry explicit parameters.
        **kwargs: Engine-specific configuration passed to the constructor.

    Returns:
        An initialized VADEngine instance.

    Raises:
        VADError: If the provider or preset name is not registered.
    """
    engine_cls = VAD_ENGINES.get(provider)
    if not engine_cls:
        available = ", ".join(sorted(VAD_ENGINES.keys()))
        raise VADError(
            f"Unknown VAD provider: '{provider}'. Available: {available}"
        )

    if preset is not None and "parameters" not in kwargs:
        presets = VAD_PRESETS[provider]
        if preset not in presets:
            available = ", ".join(sorted(presets.keys()))
            raise VADError(
                f"Unknown preset '{preset}' for VAD provider '{provider}'. "
                f"Available: {available}"
            )
        kwargs["parameters"] = presets[preset]

    return engine_cls(**kwargs)
