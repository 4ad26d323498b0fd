from typing import List, NamedTuple, Sequence, Tuple

import numpy as np
from scipy.signal import find_peaks as _scipy_find_peaks


class Peak(NamedTuple):
    index: int
    value: float


def find_peaks(
    values: Sequence[float],
    mean: float,
    std: float,
    threshold: float,
    min_distance: int = 2,
) -> List[Peak]:
    """
    Local maxima of `values` no lower than mean - std that are also the largest
    value within `min_distance` samples on either side, keeping only those
    farther than `threshold` from the mean. Peaks are returned in index order.
    """
    x = np.asarray(values, dtype=np.float64)
    if x.size == 0 or not np.isfinite(mean) or not np.isfinite(std):
        return []
    w = max(1, min_distance)
    idx, _ = _scipy_find_peaks(x, height=mean - std)
    # a peak dominates its whole window, ties included
    idx = [i for i in idx if x[i] >= x[max(0, i - w) : i + w + 1].max()]
    return [Peak(int(i), float(x[i])) for i in idx if abs(x[i] - mean) > threshold]


def unzip_peaks(peaks: Sequence[Peak]) -> Tuple[List[int], List[float]]:
    return [p.index for p in peaks], [p.value for p in peaks]


def peak_time_distances(indices: Sequence[int], frame_size: int, sr: int) -> List[float]:
    """Time in seconds between consecutive peak indices."""
    if len(indices) < 2:
        return []
    return [float(d) * frame_size / sr for d in np.diff(np.asarray(indices))]
