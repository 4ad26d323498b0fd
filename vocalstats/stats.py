"""
Block statistics: turn the per-frame series accumulated over one block
into a flat, ordered feature mapping.

Key layout is fixed by the configuration alone (band set, number of
cepstral coefficients, tone table presence), so every block of a run
exposes the same keys in the same order.
"""

import math
from types import MappingProxyType
from typing import Dict, List, Mapping, NamedTuple, Optional, Sequence

import numpy as np

from .config import FeatureConfig
from .labels import semitone_offset
from .peaks import find_peaks, peak_time_distances, unzip_peaks

NAN = float("nan")

SUMMARY_KEYS = ("Mean", "Median", "StdDev", "Max", "Range")
MFCC_KEYS = ("_mean", "_median", "_stdDev", "_max", "_range")


class Summary(NamedTuple):
    n: int
    mean: float
    median: float
    std: float
    max: float
    min: float

    @property
    def range(self) -> float:
        return self.max - self.min


class BlockStat(NamedTuple):
    """Immutable result for one block of frames."""

    start_id: int
    stats: Mapping[str, float]

    def __repr__(self) -> str:
        return f"BlockStat(start_id={self.start_id}, stats={dict(self.stats)})"


def describe(values: Sequence[float]) -> Summary:
    """
    Mean, median, sample standard deviation, max and min of a series.
    An empty series yields NaN everywhere; a single value has zero spread.
    """
    x = np.asarray(values, dtype=np.float64)
    if x.size == 0:
        return Summary(0, NAN, NAN, NAN, NAN, NAN)
    std = float(np.std(x, ddof=1)) if x.size > 1 else 0.0
    return Summary(
        int(x.size),
        float(np.mean(x)),
        float(np.median(x)),
        std,
        float(np.max(x)),
        float(np.min(x)),
    )


def derivatives(values: Sequence[float]) -> np.ndarray:
    x = np.asarray(values, dtype=np.float64)
    if x.size < 2:
        return np.zeros(0, dtype=np.float64)
    return np.diff(x)


def slopes(deriv: np.ndarray, up: bool) -> np.ndarray:
    """Strictly positive (up) or strictly negative (down) derivatives; zeros are neither."""
    return deriv[deriv > 0] if up else deriv[deriv < 0]


def _safe_ratio(num: float, den: float) -> float:
    if den == 0 or math.isnan(den) or math.isnan(num):
        return NAN
    return num / den


def _summary_features(prefix: str, s: Summary, keys: Sequence[str] = SUMMARY_KEYS) -> Dict[str, float]:
    values = (s.mean, s.median, s.std, s.max, s.range)
    return {prefix + k: v for k, v in zip(keys, values)}


def _slope_features(prefix: str, series: Sequence[float], block_size: int) -> Dict[str, float]:
    deriv = derivatives(series)
    up = describe(slopes(deriv, up=True))
    down = describe(slopes(deriv, up=False))
    return {
        f"{prefix}UpSlopeMedian": up.median,
        f"{prefix}UpSlopeMean": up.mean,
        f"{prefix}DownSlopeMedian": down.median,
        f"{prefix}DownSlopeMean": down.mean,
        f"{prefix}UpFramesRatio": up.n / block_size,
    }


def pitch_features(
    pitches: Sequence[float],
    block_size: int,
    config: FeatureConfig,
    tones: Optional[Mapping[str, float]] = None,
) -> Dict[str, float]:
    s = describe(pitches)
    out = _summary_features("pitch", s)
    out.update(_slope_features("pitch", pitches, block_size))
    out["pitchVoicedFramesRatio"] = len(pitches) / block_size

    # peak values analysis
    peaks = find_peaks(pitches, s.mean, s.std, config.peak_threshold)
    indices, values = unzip_peaks(peaks)
    ps = describe(values)
    out.update({
        "pitchPeaksNum": float(ps.n),
        "pitchPeaksMean": ps.mean,
        "pitchPeaksStdDev": ps.std,
        "pitchPeaksRange": ps.range,
    })

    # peak distances analysis
    ds = describe(peak_time_distances(indices, config.frame_size, config.sample_rate))
    out.update({
        "pitchPeaksDistMean": ds.mean,
        "pitchPeaksDistStdDev": ds.std,
        "pitchPeaksDistRange": ds.range,
        "pitchPeaksDistMin": ds.min,
    })

    if tones is not None:
        out["pitchMeanSemitones"] = semitone_offset(s.mean, tones)
    return out


def energy_features(energies: Sequence[float], block_size: int) -> Dict[str, float]:
    out = _summary_features("energy", describe(energies))
    out.update(_slope_features("energy", energies, block_size))
    return out


def band_features(
    band_energies: Mapping[float, Sequence[float]],
    global_mean: float,
) -> Dict[str, float]:
    out: Dict[str, float] = {}
    for center, values in band_energies.items():
        s = describe(values)
        prefix = f"band{center}_energy"
        out.update(_summary_features(prefix, s))
        out[f"{prefix}Ratio"] = _safe_ratio(s.mean, global_mean)
    return out


def cepstral_features(cepstra: Sequence[np.ndarray], n_coefficients: int) -> Dict[str, float]:
    """Per coefficient: summary over frames plus first-difference statistics."""
    if len(cepstra):
        mat = np.vstack([np.asarray(c, dtype=np.float64) for c in cepstra])
    else:
        mat = np.zeros((0, n_coefficients), dtype=np.float64)
    out: Dict[str, float] = {}
    for i in range(n_coefficients):
        col = mat[:, i]
        prefix = f"mfcc{i}"
        out.update(_summary_features(prefix, describe(col), MFCC_KEYS))
        d = describe(derivatives(col))
        out[f"{prefix}_deltaMean"] = d.mean
        out[f"{prefix}_deltaMedian"] = d.median
        out[f"{prefix}_deltaStdDev"] = d.std
    return out


def aggregate_block(
    start_id: int,
    pitches: Sequence[float],
    energies: Sequence[float],
    band_energies: Mapping[float, Sequence[float]],
    cepstra: Sequence[np.ndarray],
    block_size: int,
    config: FeatureConfig,
    tones: Optional[Mapping[str, float]] = None,
) -> BlockStat:
    if block_size <= 0:
        raise ValueError(f"block_size must be positive, got {block_size}")
    stats: Dict[str, float] = {}
    stats.update(pitch_features(pitches, block_size, config, tones))
    energy = energy_features(energies, block_size)
    stats.update(energy)
    stats.update(band_features(band_energies, energy["energyMean"]))
    stats.update(cepstral_features(cepstra, config.n_coefficients))
    return BlockStat(start_id, MappingProxyType(stats))


def feature_names(config: FeatureConfig, with_tones: bool = False) -> List[str]:
    """The feature schema for `config`, computed from an empty block."""
    bands = {b.center: [] for b in config.bands}
    tones = {"ref": 196.0} if with_tones else None
    stat = aggregate_block(0, [], [], bands, [], 1, config, tones)
    return list(stat.stats)
