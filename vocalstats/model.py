import csv
import json
import logging
import os
from typing import Dict, List, Mapping, Optional, Tuple

import joblib
import numpy as np
from sklearn.impute import SimpleImputer
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from .pipeline import ID_COLUMNS, LABEL_COLUMNS

logger = logging.getLogger(__name__)

MODEL_PATH = "models/emotion_clf.joblib"

TARGET_COLUMNS = {"coarse": "coarseLabel", "binary": "binaryLabel"}


def load_feature_table(path: str, target: str = "coarse") -> Tuple[np.ndarray, np.ndarray, List[str]]:
    """
    Read a feature CSV written by the extract command.
    Returns (X, y, feature_names); X shape (N, D), y shape (N,)
    """
    column = TARGET_COLUMNS[target]
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None or column not in reader.fieldnames:
            raise ValueError(f"{path} has no {column!r} column; was it extracted with --labels?")
        names = [c for c in reader.fieldnames if c not in ID_COLUMNS and c not in LABEL_COLUMNS]
        X, y = [], []
        for row in reader:
            X.append([float(row[c]) if row[c] != "" else np.nan for c in names])
            y.append(row[column])
    if not X:
        raise RuntimeError(f"No rows found in {path}")
    return np.asarray(X, dtype=np.float64), np.asarray(y), names


def build_classifier() -> Pipeline:
    # Blocks with no voiced frame carry NaN pitch features
    return Pipeline([
        ("imputer", SimpleImputer(strategy="median")),
        ("scaler", StandardScaler()),
        ("logreg", LogisticRegression(max_iter=2000)),
    ])


def train_classifier(X: np.ndarray, y: np.ndarray) -> Pipeline:
    clf = build_classifier()
    clf.fit(X, y)
    return clf


def save_model(path: str, clf: Pipeline, feature_names: List[str], target: str) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    joblib.dump(clf, path)
    meta = {
        "target": target,
        "classes": [str(c) for c in clf.classes_],
        "features": feature_names,
    }
    meta_path = os.path.splitext(path)[0] + ".meta.json"
    with open(meta_path, "w", encoding="utf-8") as f:
        json.dump(meta, f, ensure_ascii=False, indent=2)
    logger.info(f"Saved model to {path} ({len(feature_names)} features)")


def load_model(path: str = MODEL_PATH) -> Optional[Dict]:
    if not os.path.isfile(path):
        return None
    clf = joblib.load(path)
    meta_path = os.path.splitext(path)[0] + ".meta.json"
    with open(meta_path, encoding="utf-8") as f:
        meta = json.load(f)
    return {"clf": clf, **meta}


def predict_label(model: Dict, stats: Mapping[str, float]) -> str:
    names = model["features"]
    missing = [n for n in names if n not in stats]
    if missing:
        raise ValueError(f"feature schema mismatch, missing {missing[:3]}...")
    x = np.asarray([[stats[n] for n in names]], dtype=np.float64)
    return str(model["clf"].predict(x)[0])
