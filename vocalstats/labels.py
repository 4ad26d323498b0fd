import csv
import logging
import math
import os
from typing import Dict, Mapping, NamedTuple

import numpy as np

logger = logging.getLogger(__name__)

# G3, the reference tone of the semitone scale
REFERENCE_TONE = 196.0


class EmotionLabel(NamedTuple):
    coarse: str
    binary: str


def recording_id(path: str) -> str:
    """File name without directory and extension."""
    return os.path.splitext(os.path.basename(path))[0]


def load_emotion_labels(path: str) -> Dict[str, EmotionLabel]:
    """
    Read `file,coarse_label,binary_label` rows into {recording_id: EmotionLabel}.
    Blank lines and lines starting with '#' are ignored; malformed rows are
    logged and skipped.
    """
    labels: Dict[str, EmotionLabel] = {}
    with open(path, newline="", encoding="utf-8") as f:
        for lineno, row in enumerate(csv.reader(f), start=1):
            if not row or not "".join(row).strip() or row[0].lstrip().startswith("#"):
                continue
            row = [c.strip() for c in row]
            if len(row) != 3 or not all(row):
                logger.warning(f"{path}:{lineno}: invalid label row {row!r}, skipped")
                continue
            labels[recording_id(row[0])] = EmotionLabel(row[1], row[2])
    logger.info(f"Loaded {len(labels)} labels from {path}")
    return labels


def load_tones(path: str) -> Dict[str, float]:
    """Read tab-separated `name<TAB>frequency` rows into {name: frequency}."""
    tones: Dict[str, float] = {}
    with open(path, encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            elems = line.split("\t")
            if len(elems) != 2:
                logger.warning(f"{path}:{lineno}: {line!r} was invalid, skipped")
                continue
            try:
                tones[elems[0].strip()] = float(elems[1])
            except ValueError:
                logger.warning(f"{path}:{lineno}: bad frequency {elems[1]!r}, skipped")
    logger.info(f"Loaded {len(tones)} tones from {path}")
    return tones


def semitone_offset(freq: float, tones: Mapping[str, float], reference: float = REFERENCE_TONE) -> float:
    """
    Number of table steps from the tone closest to `freq` up to the tone
    closest to `reference`. Positive below the reference, negative above.
    """
    if not tones or freq is None or not math.isfinite(freq):
        return float("nan")
    scale = np.sort(np.fromiter(tones.values(), dtype=np.float64))
    idx = int(np.argmin(np.abs(scale - freq)))
    ref = int(np.argmin(np.abs(scale - reference)))
    return float(ref - idx)
