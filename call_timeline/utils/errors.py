"""Custom exception hierarchy for the call timeline pipeline.

All exceptions inherit from CallTimelineError, enabling targeted handling
at pipeline boundaries while preserving the source recording as context.
"""


class CallTimelineError(Exception):
    """Base exception for all call timeline errors."""

    def __init__(self, message: str, source: str | None = None) -> None:
        self.source = source
        super().__init__(message)

    def __str__(self) -> str:
        if self.source:
            return f"[source={self.source}] {super().__str__()}"
        return super().__str__()


class DecodeError(CallTimelineError):
    """Raised when the decode collaborator cannot produce samples."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        detail: str | None = None,
    ) -> None:
        self.detail = detail
        super().__init__(message, source)


class VADError(CallTimelineError):
    """Raised for invalid voice activity detection configuration."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        detail: str | None = None,
    ) -> None:
        self.detail = detail
        super().__init__(message, source)


class DiarizationError(CallTimelineError):
    """Raised for invalid diarizer configuration."""


class TimelineError(CallTimelineError):
    """Raised for invalid timeline compression configuration."""


class CacheError(CallTimelineError):
    """Raised for invalid audio cache configuration."""


class TranscriptionError(CallTimelineError):
    """Raised when the speech-to-text collaborator fails."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        provider: str | None = None,
    ) -> None:
        self.provider = provider
        super().__init__(message, source)


class ConfigError(CallTimelineError):
    """Raised when a pipeline setting is missing or malformed."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        setting: str | None = None,
    ) -> None:
        self.setting = setting
        super().__init__(message, source)
