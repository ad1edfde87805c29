"""Channel layout helpers for decoded PCM buffers.

Telephone recorders write one party per stereo channel, interleaved
L, R, L, R, ... These helpers split that layout and build the mono mix
used for playback and single-channel transcription.
"""

import numpy as np


def split_interleaved(samples: np.ndarray, channels: int) -> list[np.ndarray]:
    """Split an interleaved buffer into one contiguous array per channel.

    Trailing samples that do not complete a frame are dropped.

    Args:
        samples: Interleaved float samples.
        channels: Number of interleaved channels (>= 1).

    Returns:
        List of float32 arrays, one per channel, all the same length.
    """
    if channels < 1:
        raise ValueError(f"channels must be >= 1, got {channels}")
    samples = np.asarray(samples, dtype=np.float32)
    frame_count = len(samples) // channels
    frames = samples[: frame_count * channels].reshape(frame_count, channels)
    return [np.ascontiguousarray(frames[:, ch]) for ch in range(channels)]


def downmix_to_mono(left: np.ndarray, right: np.ndarray) -> np.ndarray:
    """Average two channels; the longer channel's tail is kept as-is."""
    left = np.asarray(left, dtype=np.float32)
    right = np.asarray(right, dtype=np.float32)
    common = min(len(left), len(right))
    mixed = (left[:common] + right[:common]) / 2.0
    tail = left[common:] if len(left) > common else right[common:]
    return np.concatenate([mixed, tail]).astype(np.float32)
