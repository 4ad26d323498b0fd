import logging
import os
from typing import Iterator, Tuple

import numpy as np
import librosa
import soundfile as sf

logger = logging.getLogger(__name__)


def _ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def write_wav(path: str, data: np.ndarray, sr: int) -> None:
    """
    Save mono float32 numpy array (-1..1) to 16-bit PCM WAV.
    """
    _ensure_dir(os.path.dirname(path) or ".")
    sf.write(path, np.clip(data, -1.0, 1.0), sr, subtype="PCM_16")


def load_audio(path: str, sr: int) -> Tuple[np.ndarray, int]:
    """
    Decode any format librosa understands into a mono float32 array at `sr`.
    """
    y, sr = librosa.load(path, sr=sr, mono=True)
    logger.debug(f"Loaded {path}: {len(y)} samples, {len(y) / sr:.2f}s")
    return y.astype(np.float32), sr


def tone(freq: float, dur: float, sr: int, amp: float = 0.5) -> np.ndarray:
    t = np.arange(int(sr * dur)) / sr
    return (amp * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def iter_frames(y: np.ndarray, frame_size: int) -> Iterator[np.ndarray]:
    """
    Yield consecutive, non-overlapping frames of `frame_size` samples.
    The trailing partial frame is zero-padded to full length.
    """
    n = len(y)
    for start in range(0, n, frame_size):
        frame = np.zeros(frame_size, dtype=np.float32)
        chunk = y[start : start + frame_size]
        frame[: len(chunk)] = chunk
        yield frame


class ArrayFrames:
    """Re-iterable frame source over an in-memory signal."""

    def __init__(self, y: np.ndarray, frame_size: int):
        if frame_size <= 0:
            raise ValueError(f"frame_size must be positive, got {frame_size}")
        self.y = np.asarray(y, dtype=np.float32)
        self.frame_size = frame_size

    def __iter__(self) -> Iterator[np.ndarray]:
        return iter_frames(self.y, self.frame_size)

    def __len__(self) -> int:
        return -(-len(self.y) // self.frame_size)


class FileFrames:
    """
    Re-iterable frame source over an audio file. Every traversal decodes
    the file again, so passes never share buffers.
    """

    def __init__(self, path: str, sr: int, frame_size: int):
        if frame_size <= 0:
            raise ValueError(f"frame_size must be positive, got {frame_size}")
        self.path = path
        self.sr = sr
        self.frame_size = frame_size

    def __iter__(self) -> Iterator[np.ndarray]:
        y, _ = load_audio(self.path, self.sr)
        return iter_frames(y, self.frame_size)
