"""Plain-text rendering of a diarized, transcribed call."""

from collections.abc import Sequence

from call_timeline.diarization.stereo import Turn

DEFAULT_CONTEXT_TURNS = 5
DEFAULT_CONTEXT_LENGTH = 300


def format_timestamp(seconds: float) -> str:
    """Format seconds as MM:SS.mmm (minutes are not wrapped at 60).

    >>> format_timestamp(65.5)
    '01:05.500'
    """
    total_ms = int(round(max(0.0, seconds) * 1000))
    minutes, remainder = divmod(total_ms, 60_000)
    secs, millis = divmod(remainder, 1000)
    return f"{minutes:02d}:{secs:02d}.{millis:03d}"


def format_dialogue(turns: Sequence[Turn]) -> str:
    """Render turns as '[MM:SS.mmm] Speaker N: text' blocks.

    Turns are sorted by start time; turns without text are skipped.
    Blocks are separated by a blank line.
    """
    lines = [
        f"[{format_timestamp(turn.start_time)}] "
        f"{turn.speaker.display_name}: {turn.text}"
        for turn in sorted(turns, key=lambda t: t.start_time)
        if turn.text
    ]
    return "\n\n".join(lines)


def build_context_prompt(
    turns: Sequence[Turn],
    max_turns: int = DEFAULT_CONTEXT_TURNS,
    max_length: int = DEFAULT_CONTEXT_LENGTH,
) -> str | None:
    """Join the last few transcribed turns into a recognizer prompt.

    Args:
        turns: Turns transcribed so far, in chronological order.
        max_turns: Number of most recent texted turns to include.
        max_length: Prompts longer than this keep their tail, prefixed
            with '...'.

    Returns:
        The prompt, or None when no turn has text yet.
    """
    texted = [turn for turn in turns if turn.text]
    if not texted or max_turns <= 0:
        return None

    prompt = " ".join(
        f"{turn.speaker.display_name}: {turn.text}" for turn in texted[-max_turns:]
    )
    if len(prompt) > max_length:
        prompt = "..." + prompt[-max_length:]
    return prompt
