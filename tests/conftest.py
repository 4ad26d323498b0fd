import numpy as np
import pytest

from vocalstats.audio_utils import tone
from vocalstats.config import FeatureConfig
from vocalstats.pitch import PitchResult

SR = 22050
FRAME = 512

# frame-aligned silence around the tone
LEAD_FRAMES = 20


class FixedPitchDetector:
    """Reports the same pitch for every non-silent frame."""

    def __init__(self, pitch=200.0, pitched=True):
        self.pitch = pitch
        self.pitched = pitched
        self.calls = 0

    def estimate(self, frame):
        self.calls += 1
        if not np.any(frame):
            return PitchResult(False, float("nan"))
        return PitchResult(self.pitched, self.pitch)


@pytest.fixture
def config():
    return FeatureConfig()


@pytest.fixture
def fixed_pitch():
    return FixedPitchDetector()


@pytest.fixture
def tone_signal():
    """Silence, one second of 440 Hz, silence."""
    silence = np.zeros(LEAD_FRAMES * FRAME, dtype=np.float32)
    return np.concatenate([silence, tone(440.0, 1.0, SR), silence])


@pytest.fixture
def noise_frames():
    rng = np.random.default_rng(0)
    return [(0.1 * rng.standard_normal(FRAME)).astype(np.float32) for _ in range(10)]
