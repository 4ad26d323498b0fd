import logging
from typing import NamedTuple

import numpy as np
import librosa

logger = logging.getLogger(__name__)

# Minimum normalized correlation at the detected period for a frame to count as pitched
VOICING_THRESHOLD = 0.45


class PitchResult(NamedTuple):
    pitched: bool
    pitch: float


def periodicity(y: np.ndarray, period: int) -> float:
    """
    Normalized cross-correlation between the frame and itself shifted by `period`.
    1.0 for a perfectly periodic signal, near 0 for noise.
    """
    if period <= 0 or period >= len(y):
        return 0.0
    a, b = y[:-period], y[period:]
    den = np.sqrt(np.dot(a, a) * np.dot(b, b))
    if den <= 0:
        return 0.0
    return float(np.dot(a, b) / den)


class YinPitchDetector:
    """
    Frame-wise pitch estimation: f0 from librosa's YIN on exactly one frame
    (no centering, no padding), voicing from the frame's periodicity at that f0.

    The frame length bounds the lowest detectable pitch to roughly
    sr / (frame_size / 2); lower fundamentals are reported at that bound.
    """

    def __init__(
        self,
        sr: int,
        frame_size: int,
        fmin: float = 40.0,
        fmax: float = 640.0,
        voicing_threshold: float = VOICING_THRESHOLD,
    ):
        if not 0 < fmin < fmax <= sr / 2:
            raise ValueError(f"invalid pitch search range [{fmin}, {fmax}] for sr={sr}")
        self.sr = sr
        self.frame_size = frame_size
        self.fmin = fmin
        if frame_size <= 2:
            raise ValueError(f"frame_size must exceed 2 samples for pitch search, got {frame_size}")
        # YIN needs two periods inside the frame
        self.search_fmin = max(fmin, 2.0 * sr / (frame_size - 2))
        if self.search_fmin >= fmax:
            raise ValueError(f"frame_size={frame_size} is too short to search pitch below {fmax}Hz")
        self.fmax = fmax
        self.voicing_threshold = voicing_threshold
        logger.debug(f"YIN pitch search in [{self.search_fmin:.1f}, {fmax}]Hz, frame={frame_size}")

    def estimate(self, frame: np.ndarray) -> PitchResult:
        y = np.asarray(frame, dtype=np.float64)
        if not np.any(y):
            return PitchResult(False, float("nan"))
        f0 = librosa.yin(
            y,
            fmin=self.search_fmin,
            fmax=self.fmax,
            sr=self.sr,
            frame_length=self.frame_size,
            center=False,
        )
        if f0.size == 0 or not np.isfinite(f0[0]) or f0[0] <= 0:
            return PitchResult(False, float("nan"))
        pitch = float(f0[0])
        score = periodicity(y, int(round(self.sr / pitch)))
        return PitchResult(score >= self.voicing_threshold, pitch)
