"""
Voice feature extraction for emotion classification.

A recording is cut into fixed-size frames, its leading and trailing silence
is located in a first pass, and a second pass summarizes pitch, energy,
band energy and MFCCs over the spoken span into one named feature vector
per block.
"""

from .config import FeatureConfig, FrequencyBand, init_bands
from .extractor import FrameFeatureExtractor, FrameSignal, extract_block_stats
from .pipeline import FeaturePipeline
from .segment import SpokenRange, find_spoken_range
from .stats import BlockStat, feature_names

__all__ = [
    "FeatureConfig",
    "FrequencyBand",
    "init_bands",
    "FrameFeatureExtractor",
    "FrameSignal",
    "extract_block_stats",
    "FeaturePipeline",
    "SpokenRange",
    "find_spoken_range",
    "BlockStat",
    "feature_names",
]
