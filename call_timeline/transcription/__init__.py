"""Speech-to-text port and transcript helpers.

Recognition itself is an external collaborator: callers supply a
SpeechToTextEngine implementation and this package attaches its output
to diarized turns.
"""

from call_timeline.transcription.interface import SpeechToTextEngine
from call_timeline.transcription.runner import transcribe_turns
from call_timeline.transcription.transcript import (
    build_context_prompt,
    format_dialogue,
    format_timestamp,
)

__all__ = [
    "SpeechToTextEngine",
    "build_context_prompt",
    "format_dialogue",
    "format_timestamp",
    "transcribe_turns",
]
