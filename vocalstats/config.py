from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

SAMPLING_RATE = 22050
FRAME_SIZE = 512  # no overlap

# Allowed pitch interval (Hz)
MIN_PITCH = 40.0
MAX_PITCH = 640.0

# Band delimiters (Hz), paired into (center, width)
BAND_BOUNDARIES = (0, 500, 1000, 2000, 3000, 4000, 5000, 7000, 9000)

NUM_CEPSTRUM_COEF = 15
NUM_MEL_FILTERS = 30
MFCC_LOWER_FREQ = 133.3334

# 0.5% of the maximal frame energy
SILENCE_RATIO = 0.005

# Pitch peaks closer than this to the mean (Hz) are ignored
PEAK_THRESHOLD = 10.0


@dataclass(frozen=True)
class FrequencyBand:
    center: float
    width: float

    @property
    def low(self) -> float:
        return self.center - self.width / 2.0

    @property
    def high(self) -> float:
        return self.center + self.width / 2.0


def init_bands(boundaries: Sequence[float]) -> List[FrequencyBand]:
    """
    Transform band delimiters [a, b, c] into bands [(a+b)/2, b-a], [(b+c)/2, c-b].
    """
    if len(boundaries) < 2:
        raise ValueError(f"need at least two band boundaries, got {len(boundaries)}")
    bands = []
    for a, b in zip(boundaries[:-1], boundaries[1:]):
        a, b = float(a), float(b)
        if b <= a:
            raise ValueError(f"band boundaries must be increasing: {a} -> {b}")
        bands.append(FrequencyBand(center=(a + b) / 2.0, width=b - a))
    return bands


@dataclass(frozen=True)
class FeatureConfig:
    sample_rate: int = SAMPLING_RATE
    frame_size: int = FRAME_SIZE
    min_pitch: float = MIN_PITCH
    max_pitch: float = MAX_PITCH
    band_boundaries: Tuple[float, ...] = BAND_BOUNDARIES
    n_coefficients: int = NUM_CEPSTRUM_COEF
    n_filters: int = NUM_MEL_FILTERS
    mfcc_lower_freq: float = MFCC_LOWER_FREQ
    silence_ratio: float = SILENCE_RATIO
    peak_threshold: float = PEAK_THRESHOLD
    bands: Tuple[FrequencyBand, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.frame_size < 2:
            raise ValueError(f"frame_size must be at least 2, got {self.frame_size}")
        if not 0 <= self.min_pitch < self.max_pitch:
            raise ValueError(f"invalid pitch gate [{self.min_pitch}, {self.max_pitch}]")
        if self.n_coefficients < 1 or self.n_filters < 1:
            raise ValueError("n_coefficients and n_filters must be positive")
        if not 0 < self.mfcc_lower_freq < self.sample_rate / 2:
            raise ValueError(f"mfcc_lower_freq must lie below Nyquist, got {self.mfcc_lower_freq}")
        # frozen dataclass: derived field goes through object.__setattr__
        object.__setattr__(self, "band_boundaries", tuple(float(b) for b in self.band_boundaries))
        object.__setattr__(self, "bands", tuple(init_bands(self.band_boundaries)))

    @property
    def frame_duration(self) -> float:
        return self.frame_size / self.sample_rate
