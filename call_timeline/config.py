"""Pipeline settings from constructor arguments or the environment.

Every tunable of the timeline build lives on PipelineSettings. Deployments
override defaults with CALL_TIMELINE_* environment variables, read once by
PipelineSettings.from_env().
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields
from typing import Any

from call_timeline.audio.vad.interface import DEFAULT_SAMPLE_RATE
from call_timeline.audio.vad.registry import VAD_ENGINES, VAD_PRESETS
from call_timeline.cache.audio_cache import (
    DEFAULT_MAX_AGE_SECONDS,
    DEFAULT_MAX_ENTRIES,
    DEFAULT_MAX_MEMORY_BYTES,
    AudioDecoder,
    AudioSampleCache,
)
from call_timeline.diarization.stereo import DEFAULT_MERGE_GAP_SECONDS
from call_timeline.timeline.mapper import (
    COMPRESSED_GAP_DISPLAY_DURATION,
    MIN_SILENCE_GAP_TO_COMPRESS,
)
from call_timeline.utils.errors import ConfigError

ENV_PREFIX = "CALL_TIMELINE_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"expected one of {sorted(_TRUE_VALUES | _FALSE_VALUES)}")


def _parse_optional_str(raw: str) -> str | None:
    value = raw.strip()
    return value or None


_PARSERS: dict[str, Callable[[str], Any]] = {
    "vad_provider": str.strip,
    "vad_preset": _parse_optional_str,
    "merge_gap_threshold": float,
    "min_gap_to_compress": float,
    "compressed_gap_display": float,
    "cache_max_age_seconds": float,
    "cache_max_entries": int,
    "cache_max_memory_bytes": int,
    "decode_retries": int,
    "retry_base_delay": float,
    "sample_rate": int,
    "skip_silent_turns": _parse_bool,
    "emit_metrics": _parse_bool,
}


@dataclass
class PipelineSettings:
    """Tunables for one timeline build.

    vad_preset None selects the provider's own default parameters.
    sample_rate is the rate assumed for turn audio when the decoder does
    not report one.
    """

    vad_provider: str = "spectral"
    vad_preset: str | None = "telephone"
    merge_gap_threshold: float = DEFAULT_MERGE_GAP_SECONDS
    min_gap_to_compress: float = MIN_SILENCE_GAP_TO_COMPRESS
    compressed_gap_display: float = COMPRESSED_GAP_DISPLAY_DURATION
    cache_max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS
    cache_max_entries: int = DEFAULT_MAX_ENTRIES
    cache_max_memory_bytes: int = DEFAULT_MAX_MEMORY_BYTES
    decode_retries: int = 0
    retry_base_delay: float = 0.5
    sample_rate: int = DEFAULT_SAMPLE_RATE
    skip_silent_turns: bool = True
    emit_metrics: bool = True

    def __post_init__(self) -> None:
        if self.vad_provider not in VAD_ENGINES:
            available = ", ".join(sorted(VAD_ENGINES))
            raise ConfigError(
                f"Unknown VAD provider '{self.vad_provider}'. Available: {available}",
                setting="vad_provider",
            )
        presets = VAD_PRESETS[self.vad_provider]
        if self.vad_preset is not None and self.vad_preset not in presets:
            available = ", ".join(sorted(presets))
            raise ConfigError(
                f"Unknown preset '{self.vad_preset}' for VAD provider "
                f"'{self.vad_provider}'. Available: {available}",
                setting="vad_preset",
            )
        if self.merge_gap_threshold < 0:
            raise ConfigError(
                f"merge_gap_threshold must be >= 0, got {self.merge_gap_threshold}",
                setting="merge_gap_threshold",
            )
        if not 0 <= self.compressed_gap_display < self.min_gap_to_compress:
            raise ConfigError(
                "compressed_gap_display must be >= 0 and shorter than "
                f"min_gap_to_compress, got {self.compressed_gap_display} "
                f"vs {self.min_gap_to_compress}",
                setting="compressed_gap_display",
            )
        if self.decode_retries < 0:
            raise ConfigError(
                f"decode_retries must be >= 0, got {self.decode_retries}",
                setting="decode_retries",
            )
        if self.retry_base_delay < 0:
            raise ConfigError(
                f"retry_base_delay must be >= 0, got {self.retry_base_delay}",
                setting="retry_base_delay",
            )
        if self.sample_rate <= 0:
            raise ConfigError(
                f"sample_rate must be > 0, got {self.sample_rate}",
                setting="sample_rate",
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> PipelineSettings:
        """Build settings from CALL_TIMELINE_<FIELD> variables.

        Unset variables keep their defaults. For example
        CALL_TIMELINE_VAD_PRESET=wideband or CALL_TIMELINE_DECODE_RETRIES=2.

        Raises:
            ConfigError: If a variable cannot be parsed or the resulting
                settings are invalid.
        """
        if environ is None:
            environ = os.environ

        overrides: dict[str, Any] = {}
        for field_info in fields(cls):
            env_name = ENV_PREFIX + field_info.name.upper()
            raw = environ.get(env_name)
            if raw is None:
                continue
            try:
                overrides[field_info.name] = _PARSERS[field_info.name](raw)
            except ValueError as exc:
                raise ConfigError(
                    f"Invalid value for {env_name}: {raw!r} ({exc})",
                    setting=field_info.name,
                ) from exc

        return cls(**overrides)


def create_cache(settings: PipelineSettings, decoder: AudioDecoder) -> AudioSampleCache:
    """Build the shared audio cache sized by settings."""
    return AudioSampleCache(
        decoder,
        max_age_seconds=settings.cache_max_age_seconds,
        max_entries=settings.cache_max_entries,
        max_memory_bytes=settings.cache_max_memory_bytes,
    )
