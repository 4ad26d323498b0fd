"""
Second pass over a recording: per-frame analysis inside the spoken range,
accumulated into blocks that are finalized into BlockStat results.
"""

import enum
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np

from .config import FeatureConfig
from .features import BandEnergyAnalyzer, CepstralExtractor, smoothed_energy
from .pitch import YinPitchDetector
from .segment import SpokenRange
from .stats import BlockStat, aggregate_block

logger = logging.getLogger(__name__)


class FrameSignal(enum.Enum):
    CONTINUE = "continue"
    STOP = "stop"
    ERROR = "error"


class FrameProcessingError(RuntimeError):
    """A frame inside the spoken range could not be analysed."""


class Block:
    """Per-frame series for one block. Finalized exactly once."""

    def __init__(self, start_id: int, band_centers: Sequence[float]):
        self.start_id = start_id
        self.pitches: List[float] = []
        self.energies: List[float] = []
        self.band_energies: Dict[float, List[float]] = {c: [] for c in band_centers}
        self.cepstra: List[np.ndarray] = []
        self._finalized = False

    def __len__(self) -> int:
        return len(self.energies)

    def add_frame(self, pitch: Optional[float], energy: float, bands, cepstrum: np.ndarray) -> None:
        if self._finalized:
            raise RuntimeError("block already finalized")
        if pitch is not None:
            self.pitches.append(pitch)
        self.energies.append(energy)
        for center, value in bands:
            self.band_energies[center].append(value)
        self.cepstra.append(cepstrum)

    def finalize(
        self,
        block_size: int,
        config: FeatureConfig,
        tones: Optional[Mapping[str, float]] = None,
    ) -> BlockStat:
        if self._finalized:
            raise RuntimeError(f"block starting at frame {self.start_id} already finalized")
        self._finalized = True
        stat = aggregate_block(
            self.start_id,
            self.pitches,
            self.energies,
            self.band_energies,
            self.cepstra,
            block_size,
            config,
            tones,
        )
        self.pitches, self.energies, self.cepstra = [], [], []
        self.band_energies = {}
        return stat


class FrameFeatureExtractor:
    """
    Frame-by-frame state machine. Frames before the spoken range are skipped,
    frames after it stop the traversal, frames inside it are analysed.

    Blocks close once they hold `block_size` frames, counted from the block
    start rather than by absolute frame index. By default the block size is
    last - first, so one spoken range gives one block; the closing frame
    `last` starts a new block that never fills up.
    Pass `block_size` to cut the range into fixed-size blocks instead.
    """

    def __init__(
        self,
        spoken_range: Union[SpokenRange, Sequence[int]],
        config: Optional[FeatureConfig] = None,
        pitch_detector=None,
        band_analyzer: Optional[BandEnergyAnalyzer] = None,
        cepstral: Optional[CepstralExtractor] = None,
        block_size: Optional[int] = None,
        tones: Optional[Mapping[str, float]] = None,
    ):
        self.range = SpokenRange.from_pair(spoken_range)
        self.config = config or FeatureConfig()
        cfg = self.config
        if block_size is None:
            block_size = max(1, self.range.block_size)
        elif block_size <= 0:
            raise ValueError(f"block_size must be positive, got {block_size}")
        self.block_size = block_size
        self.pitch_detector = pitch_detector or YinPitchDetector(
            cfg.sample_rate, cfg.frame_size, fmin=cfg.min_pitch, fmax=cfg.max_pitch
        )
        self.band_analyzer = band_analyzer or BandEnergyAnalyzer(cfg.bands, cfg.sample_rate)
        self.cepstral = cepstral or CepstralExtractor(
            cfg.sample_rate,
            cfg.frame_size,
            n_coefficients=cfg.n_coefficients,
            n_filters=cfg.n_filters,
            fmin=cfg.mfcc_lower_freq,
        )
        self.tones = tones
        self.band_centers = [b.center for b in cfg.bands]

        self.frame_number = 0
        self.blocks: List[BlockStat] = []
        self.block = Block(self.range.first, self.band_centers)

    def _gated_pitch(self, frame: np.ndarray) -> Optional[float]:
        result = self.pitch_detector.estimate(frame)
        if not result.pitched:
            return None
        if self.config.min_pitch <= result.pitch <= self.config.max_pitch:
            return float(result.pitch)
        return None

    def _analyze(self, frame: np.ndarray) -> None:
        frame = np.asarray(frame, dtype=np.float32)
        if frame.shape != (self.config.frame_size,):
            raise ValueError(f"expected {self.config.frame_size} samples, got shape {frame.shape}")
        if not np.all(np.isfinite(frame)):
            raise ValueError("frame contains non-finite samples")
        # compute everything before touching the block
        pitch = self._gated_pitch(frame)
        energy = smoothed_energy(frame)
        bands = self.band_analyzer.analyze(frame)
        cepstrum = self.cepstral.process(frame)
        self.block.add_frame(pitch, energy, bands, cepstrum)

    def process(self, frame: np.ndarray) -> FrameSignal:
        if self.frame_number < self.range.first:
            self.frame_number += 1
            return FrameSignal.CONTINUE

        if self.frame_number > self.range.last:
            self.frame_number += 1
            return FrameSignal.STOP

        try:
            self._analyze(frame)
        except Exception as e:
            logger.error(f"Frame {self.frame_number} could not be analysed: {e}", exc_info=True)
            return FrameSignal.ERROR

        self.frame_number += 1
        if len(self.block) == self.block_size:
            stat = self.block.finalize(self.block_size, self.config, self.tones)
            self.blocks.append(stat)
            logger.debug(f"BlockStat: {stat!r}")
            self.block = Block(self.frame_number, self.band_centers)
        return FrameSignal.CONTINUE


def extract_block_stats(
    frames: Iterable[np.ndarray],
    spoken_range: Union[SpokenRange, Sequence[int]],
    config: Optional[FeatureConfig] = None,
    **kwargs,
) -> List[BlockStat]:
    """
    Drive a FrameFeatureExtractor over `frames` until the spoken range is
    left or the frames run out. Raises FrameProcessingError on a bad frame.
    """
    extractor = FrameFeatureExtractor(spoken_range, config, **kwargs)
    for frame in frames:
        signal = extractor.process(frame)
        if signal is FrameSignal.STOP:
            break
        if signal is FrameSignal.ERROR:
            raise FrameProcessingError(f"frame {extractor.frame_number} could not be analysed")
    logger.info(f"Extracted {len(extractor.blocks)} block(s) from range {tuple(extractor.range)}")
    return extractor.blocks
