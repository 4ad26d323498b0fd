import csv
import logging
import os
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from .audio_utils import FileFrames
from .config import FeatureConfig
from .extractor import extract_block_stats
from .features import BandEnergyAnalyzer, CepstralExtractor
from .labels import EmotionLabel, recording_id
from .pitch import YinPitchDetector
from .segment import find_spoken_range
from .stats import BlockStat, feature_names

logger = logging.getLogger(__name__)

ID_COLUMNS = ["recording", "startId"]
LABEL_COLUMNS = ["coarseLabel", "binaryLabel"]


class FeaturePipeline:
    """
    Batch driver: silence pass, then feature pass, for one file at a time.
    Analysers are built once and shared by every file.
    """

    def __init__(
        self,
        config: Optional[FeatureConfig] = None,
        labels: Optional[Mapping[str, EmotionLabel]] = None,
        tones: Optional[Mapping[str, float]] = None,
        block_size: Optional[int] = None,
        pitch_detector=None,
    ):
        self.config = cfg = config or FeatureConfig()
        self.labels = labels
        self.tones = tones
        self.block_size = block_size
        self.pitch_detector = pitch_detector or YinPitchDetector(
            cfg.sample_rate, cfg.frame_size, fmin=cfg.min_pitch, fmax=cfg.max_pitch
        )
        self.band_analyzer = BandEnergyAnalyzer(cfg.bands, cfg.sample_rate)
        self.cepstral = CepstralExtractor(
            cfg.sample_rate,
            cfg.frame_size,
            n_coefficients=cfg.n_coefficients,
            n_filters=cfg.n_filters,
            fmin=cfg.mfcc_lower_freq,
        )

    @property
    def feature_names(self) -> List[str]:
        return feature_names(self.config, with_tones=self.tones is not None)

    @property
    def fieldnames(self) -> List[str]:
        cols = ID_COLUMNS + self.feature_names
        return cols + LABEL_COLUMNS if self.labels is not None else cols

    def process_frames(self, frames) -> List[BlockStat]:
        cfg = self.config
        rng = find_spoken_range(frames, ratio=cfg.silence_ratio, frame_size=cfg.frame_size, sr=cfg.sample_rate)
        if rng is None:
            return []
        return extract_block_stats(
            frames,
            rng,
            cfg,
            pitch_detector=self.pitch_detector,
            band_analyzer=self.band_analyzer,
            cepstral=self.cepstral,
            block_size=self.block_size,
            tones=self.tones,
        )

    def process_file(self, path: str) -> List[BlockStat]:
        if not os.path.isfile(path):
            raise FileNotFoundError(f"Audio file not found: {path}")
        logger.info(f"### Processing file {path} ###")
        frames = FileFrames(path, self.config.sample_rate, self.config.frame_size)
        return self.process_frames(frames)

    def rows(self, paths: Iterable[str]) -> Iterator[Dict[str, object]]:
        """
        One row per block, across all `paths`. A file with no label (when
        labels are configured) or that fails to process is logged and skipped.
        """
        for path in paths:
            rid = recording_id(path)
            label = None
            if self.labels is not None:
                label = self.labels.get(rid)
                if label is None:
                    logger.warning(f"No label for recording {rid!r} ({path}), skipped")
                    continue
            try:
                blocks = self.process_file(path)
            except Exception as e:
                logger.error(f"Skipping {path}: {e}", exc_info=True)
                continue
            if not blocks:
                logger.warning(f"No analyzable speech in {path}")
            for block in blocks:
                row: Dict[str, object] = {"recording": rid, "startId": block.start_id}
                row.update(block.stats)
                if label is not None:
                    row["coarseLabel"] = label.coarse
                    row["binaryLabel"] = label.binary
                yield row


def write_csv(rows: Iterable[Mapping[str, object]], path: str, fieldnames: List[str]) -> int:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    n = 0
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
            n += 1
    logger.info(f"Wrote {n} row(s) to {path}")
    return n
