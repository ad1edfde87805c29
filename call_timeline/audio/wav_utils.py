"""PCM WAV I/O for mono and stereo call recordings.

read_wav() is the default decode collaborator handed to the audio cache:
it turns a 16-bit (or 32-bit) PCM WAV file into float channel buffers.
Compressed formats are decoded upstream and never reach this module.
"""

import wave
from collections.abc import Sequence

import numpy as np

from call_timeline.audio.channels import downmix_to_mono, split_interleaved
from call_timeline.cache.audio_cache import DecodedAudio
from call_timeline.utils.errors import DecodeError

SAMPLE_RATE = 16000

_PCM_DTYPES: dict[int, tuple[str, float]] = {
    2: ("<i2", 32768.0),
    4: ("<i4", 2147483648.0),
}


def read_wav(wav_path: str) -> DecodedAudio:
    """Decode a PCM WAV file into float32 buffers.

    Mono files yield mono samples only. Files with two or more channels
    keep the first two as the (left, right) pair and a mono downmix.

    Args:
        wav_path: Path to the WAV file.

    Returns:
        DecodedAudio at the file's native sample rate.

    Raises:
        DecodeError: If the file cannot be read or uses an unsupported
            sample width.
    """
    try:
        with wave.open(str(wav_path), "rb") as wf:
            channels = wf.getnchannels()
            sample_width = wf.getsampwidth()
            sample_rate = wf.getframerate()
            raw_data = wf.readframes(wf.getnframes())
    except (OSError, EOFError, wave.Error) as exc:
        raise DecodeError(
            f"Failed to read WAV file: {wav_path}", source=str(wav_path), detail=str(exc)
        ) from exc

    if sample_width not in _PCM_DTYPES:
        raise DecodeError(
            f"Unsupported WAV sample width: {sample_width * 8} bits",
            source=str(wav_path),
        )

    dtype, scale = _PCM_DTYPES[sample_width]
    samples = np.frombuffer(raw_data, dtype=dtype).astype(np.float32) / scale

    if channels == 1:
        return DecodedAudio(
            mono_samples=samples,
            stereo_channels=None,
            sample_rate=sample_rate,
            is_stereo=False,
        )

    split = split_interleaved(samples, channels)
    left, right = split[0], split[1]
    return DecodedAudio(
        mono_samples=downmix_to_mono(left, right),
        stereo_channels=(left, right),
        sample_rate=sample_rate,
        is_stereo=True,
    )


def write_wav(
    output_path: str,
    channels: Sequence[np.ndarray],
    sample_rate: int = SAMPLE_RATE,
) -> None:
    """Write float channels in [-1, 1] as an interleaved 16-bit PCM WAV.

    Args:
        output_path: Path for the output WAV file.
        channels: One array per channel, all the same length.
        sample_rate: Sample rate in Hz (default 16000).
    """
    if not channels:
        raise ValueError("At least one channel is required")
    lengths = {len(ch) for ch in channels}
    if len(lengths) != 1:
        raise ValueError(f"Channels differ in length: {sorted(lengths)}")

    stacked = np.stack([np.asarray(ch, dtype=np.float32) for ch in channels], axis=1)
    pcm = (np.clip(stacked, -1.0, 1.0) * 32767.0).astype("<i2")
    with wave.open(str(output_path), "wb") as wf:
        wf.setnchannels(len(channels))
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm.tobytes())
