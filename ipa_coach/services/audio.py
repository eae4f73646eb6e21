"""Audio front end: WAV I/O, resampling, pre-emphasis, framing and windowing."""

import io
import logging
from pathlib import Path
from typing import Union

import numpy as np
import soundfile as sf

logger = logging.getLogger(__name__)

# Audio processing parameters
SAMPLE_RATE = 16000
FRAME_SIZE = 512
HOP_SIZE = 256
PRE_EMPHASIS = 0.97

# int16 full scale used for both encoding and decoding
PCM_SCALE = 32767.0


class AudioDecodeError(ValueError):
    """Raised when audio bytes can't be decoded as PCM WAV."""


def as_samples(samples) -> np.ndarray:
    """Coerce any sample sequence to a 1-D float32 array."""
    return np.asarray(samples, dtype=np.float32).reshape(-1)


def resample(samples, sample_rate: int) -> np.ndarray:
    """
    Convert audio to 16 kHz by nearest-index decimation.

    This is deliberately naive (no anti-aliasing filter); it matches the
    behaviour the scoring thresholds were tuned against.
    """
    audio = as_samples(samples)
    if sample_rate == SAMPLE_RATE:
        return audio
    if sample_rate <= 0:
        raise ValueError(f"Invalid sample rate: {sample_rate}")

    ratio = sample_rate / SAMPLE_RATE
    new_length = int(len(audio) / ratio)
    src_idx = (np.arange(new_length) * ratio).astype(np.int64)
    src_idx = src_idx[src_idx < len(audio)]
    return audio[src_idx]


def pre_emphasize(samples, alpha: float = PRE_EMPHASIS) -> np.ndarray:
    """Apply the first-order pre-emphasis filter y[n] = x[n] - alpha * x[n-1]."""
    audio = as_samples(samples)
    if audio.size == 0:
        return audio
    emphasized = np.empty_like(audio)
    emphasized[0] = audio[0]
    emphasized[1:] = audio[1:] - alpha * audio[:-1]
    return emphasized


def frame_audio(samples) -> np.ndarray:
    """
    Split audio into overlapping frames.

    Frames are FRAME_SIZE long and start every HOP_SIZE samples for as long
    as a full frame fits. Trailing samples that can't fill a frame are
    dropped.

    Returns:
        Array of shape (n_frames, FRAME_SIZE); n_frames is 0 for short input
    """
    audio = as_samples(samples)
    if len(audio) < FRAME_SIZE:
        return np.empty((0, FRAME_SIZE), dtype=np.float32)

    n_frames = 1 + (len(audio) - FRAME_SIZE) // HOP_SIZE
    starts = np.arange(n_frames) * HOP_SIZE
    return audio[starts[:, None] + np.arange(FRAME_SIZE)]


def hamming_window(size: int = FRAME_SIZE) -> np.ndarray:
    """Hamming weights 0.54 - 0.46 * cos(2*pi*i / (size - 1))."""
    i = np.arange(size)
    return (0.54 - 0.46 * np.cos(2.0 * np.pi * i / (size - 1))).astype(np.float32)


def apply_window(frames: np.ndarray, window: np.ndarray) -> np.ndarray:
    """Multiply every frame by the window."""
    return frames * window


# ============== WAV I/O ==============


def decode_wav(data: bytes) -> np.ndarray:
    """
    Decode 16-bit PCM WAV bytes into 16 kHz mono float samples.

    Multi-channel audio is averaged down to mono before resampling.
    """
    try:
        pcm, sample_rate = sf.read(io.BytesIO(data), dtype="int16", always_2d=True)
    except (RuntimeError, TypeError) as e:
        # libsndfile errors are RuntimeError subclasses
        raise AudioDecodeError(f"Unable to decode audio: {e}") from e

    samples = pcm.astype(np.float32) / PCM_SCALE
    if samples.shape[1] > 1:
        samples = samples.mean(axis=1)
    return resample(samples.reshape(-1), sample_rate)


def encode_wav(samples, sample_rate: int = SAMPLE_RATE) -> bytes:
    """Encode float samples in [-1, 1] as mono 16-bit PCM WAV bytes."""
    audio = np.clip(as_samples(samples), -1.0, 1.0)
    pcm = np.round(audio * PCM_SCALE).astype(np.int16)

    buffer = io.BytesIO()
    sf.write(buffer, pcm, sample_rate, format="WAV", subtype="PCM_16")
    return buffer.getvalue()


def load_wav(path: Union[str, Path]) -> np.ndarray:
    """Load a WAV file as 16 kHz mono float samples."""
    return decode_wav(Path(path).read_bytes())


def save_wav(path: Union[str, Path], samples) -> None:
    """Save float samples as a 16 kHz mono 16-bit WAV file."""
    Path(path).write_bytes(encode_wav(samples))
    logger.debug(f"Saved {len(samples)} samples to {path}")
