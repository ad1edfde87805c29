"""Tests for transcript formatting and context prompts."""

import numpy as np
import pytest

from call_timeline.diarization.stereo import Speaker, Turn
from call_timeline.transcription.transcript import (
    build_context_prompt,
    format_dialogue,
    format_timestamp,
)


def _turn(speaker: Speaker, start: float, text: str | None) -> Turn:
    return Turn(speaker, start, start + 1.0, np.zeros(0, dtype=np.float32), text)


class TestFormatTimestamp:
    """Tests for format_timestamp()."""

    @pytest.mark.parametrize(
        "seconds, expected",
        [
            (0.0, "00:00.000"),
            (5.25, "00:05.250"),
            (65.5, "01:05.500"),
            (3599.999, "59:59.999"),
            (3723.0, "62:03.000"),
            (-1.0, "00:00.000"),
        ],
    )
    def test_formats(self, seconds: float, expected: str) -> None:
        assert format_timestamp(seconds) == expected


class TestFormatDialogue:
    """Tests for format_dialogue()."""

    def test_blocks_sorted_and_separated(self) -> None:
        turns = [
            _turn(Speaker.B, 4.0, "Sure, one moment."),
            _turn(Speaker.A, 0.5, "Hi, I need to reset my password."),
        ]

        assert format_dialogue(turns) == (
            "[00:00.500] Speaker 1: Hi, I need to reset my password.\n\n"
            "[00:04.000] Speaker 2: Sure, one moment."
        )

    def test_skips_turns_without_text(self) -> None:
        turns = [_turn(Speaker.A, 0.0, None), _turn(Speaker.B, 1.0, "Hello")]
        assert format_dialogue(turns) == "[00:01.000] Speaker 2: Hello"

    def test_empty(self) -> None:
        assert format_dialogue([]) == ""


class TestBuildContextPrompt:
    """Tests for build_context_prompt()."""

    def test_none_without_text(self) -> None:
        assert build_context_prompt([]) is None
        assert build_context_prompt([_turn(Speaker.A, 0.0, None)]) is None

    def test_joins_recent_turns(self) -> None:
        turns = [_turn(Speaker.A, 0.0, "Hello"), _turn(Speaker.B, 1.0, "Hi there")]
        assert build_context_prompt(turns) == "Speaker 1: Hello Speaker 2: Hi there"

    def test_keeps_only_last_turns(self) -> None:
        turns = [_turn(Speaker.A, float(i), f"line {i}") for i in range(8)]
        prompt = build_context_prompt(turns, max_turns=2)
        assert prompt == "Speaker 1: line 6 Speaker 1: line 7"

    def test_truncates_keeping_tail(self) -> None:
        turns = [_turn(Speaker.A, 0.0, "x" * 50), _turn(Speaker.B, 1.0, "final words")]
        prompt = build_context_prompt(turns, max_length=20)

        assert prompt.startswith("...")
        assert prompt.endswith("final words")
        assert len(prompt) == 23
