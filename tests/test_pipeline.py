"""
Tests for the batch pipeline and the CSV output.
"""

import csv

import numpy as np
import pytest

from vocalstats.audio_utils import write_wav
from vocalstats.labels import EmotionLabel
from vocalstats.pipeline import FeaturePipeline, write_csv

from conftest import SR, FixedPitchDetector


@pytest.fixture
def recordings(tmp_path, tone_signal):
    write_wav(str(tmp_path / "a.wav"), tone_signal, SR)
    write_wav(str(tmp_path / "b.wav"), 0.5 * tone_signal, SR)
    write_wav(str(tmp_path / "silent.wav"), np.zeros(SR, dtype=np.float32), SR)
    return tmp_path


def test_rows_one_block_per_file(config, recordings):
    pipeline = FeaturePipeline(config, pitch_detector=FixedPitchDetector())
    rows = list(pipeline.rows([str(recordings / "a.wav"), str(recordings / "b.wav")]))
    assert [r["recording"] for r in rows] == ["a", "b"]
    assert all(r["startId"] == 20 for r in rows)
    assert list(rows[0]) == ["recording", "startId"] + pipeline.feature_names


def test_missing_label_skips_file(config, recordings, caplog):
    labels = {"a": EmotionLabel("happy", "positive")}
    pipeline = FeaturePipeline(config, labels=labels, pitch_detector=FixedPitchDetector())
    rows = list(pipeline.rows([str(recordings / "a.wav"), str(recordings / "b.wav")]))
    assert [r["recording"] for r in rows] == ["a"]
    assert rows[0]["coarseLabel"] == "happy"
    assert rows[0]["binaryLabel"] == "positive"
    assert any("No label for recording 'b'" in r.message for r in caplog.records)


def test_failing_and_silent_files_are_skipped(config, recordings):
    pipeline = FeaturePipeline(config, pitch_detector=FixedPitchDetector())
    paths = [str(recordings / "missing.wav"), str(recordings / "silent.wav"), str(recordings / "a.wav")]
    rows = list(pipeline.rows(paths))
    assert [r["recording"] for r in rows] == ["a"]


def test_process_file_missing(config, tmp_path):
    with pytest.raises(FileNotFoundError):
        FeaturePipeline(config).process_file(str(tmp_path / "nope.wav"))


def test_write_csv(config, recordings, tmp_path):
    labels = {"a": EmotionLabel("happy", "positive"), "b": EmotionLabel("sad", "negative")}
    pipeline = FeaturePipeline(config, labels=labels, pitch_detector=FixedPitchDetector())
    out = tmp_path / "out" / "features.csv"

    n = write_csv(pipeline.rows([str(recordings / "a.wav"), str(recordings / "b.wav")]), str(out), pipeline.fieldnames)

    assert n == 2
    with open(out, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        assert reader.fieldnames == pipeline.fieldnames
        rows = list(reader)
    assert reader.fieldnames[-2:] == ["coarseLabel", "binaryLabel"]
    assert [r["binaryLabel"] for r in rows] == ["positive", "negative"]
    assert float(rows[0]["pitchMean"]) == 200.0
