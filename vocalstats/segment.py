import logging
from typing import Iterable, NamedTuple, Optional, Sequence

import numpy as np

from .features import smoothed_energy

logger = logging.getLogger(__name__)


class SpokenRange(NamedTuple):
    """First and last non-silent frame indices, zero-indexed, inclusive."""

    first: int
    last: int

    @classmethod
    def from_pair(cls, pair: Sequence[int]) -> "SpokenRange":
        if len(pair) != 2:
            raise ValueError(f"first-last spoken frame buffer must be of length 2, got {len(pair)}")
        first, last = int(pair[0]), int(pair[1])
        if first < 0 or first > last:
            raise ValueError(f"invalid spoken range ({first}, {last})")
        return cls(first, last)

    @property
    def block_size(self) -> int:
        return self.last - self.first


def frame_energies(frames: Iterable[np.ndarray]) -> np.ndarray:
    return np.array([smoothed_energy(f) for f in frames], dtype=np.float64)


def spoken_bounds(energies: np.ndarray, ratio: float = 0.005) -> Optional[SpokenRange]:
    """
    Index of the first and last frame whose energy exceeds ratio * max(energy).
    None when no frame does (empty or all-silent input).
    """
    if energies.size == 0:
        return None
    thr = ratio * float(np.max(energies))
    loud = np.flatnonzero(energies > thr)
    if loud.size == 0:
        return None
    return SpokenRange(int(loud[0]), int(loud[-1]))


def find_spoken_range(
    frames: Iterable[np.ndarray],
    ratio: float = 0.005,
    frame_size: int = 512,
    sr: int = 22050,
) -> Optional[SpokenRange]:
    """
    Silence pre-pass: consume every frame once and locate the spoken span.
    Callers must handle None, which means there is nothing to analyse.
    """
    energies = frame_energies(frames)
    rng = spoken_bounds(energies, ratio=ratio)
    if rng is None:
        logger.warning(f"No frame above {ratio:.3%} of max energy among {energies.size} frames")
        return None
    logger.info(
        f"Spoken range: START @ {rng.first} ({frame_to_time(rng.first, frame_size, sr):.3f}s), "
        f"END @ {rng.last} ({frame_to_time(rng.last, frame_size, sr):.3f}s)"
    )
    return rng


def frame_to_time(index: int, frame_size: int, sr: int) -> float:
    return index * frame_size / sr
