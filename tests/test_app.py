"""
Tests for the command line entry points.
"""

import csv

from vocalstats.app import build_parser
from vocalstats.audio_utils import write_wav

from conftest import SR


def run(argv):
    args = build_parser().parse_args(argv)
    args.func(args)
    return args


def test_schema_command(capsys):
    run(["schema"])
    names = capsys.readouterr().out.split()
    assert len(names) == 197
    assert names[0] == "pitchMean"


def test_schema_command_custom_bands(capsys):
    run(["schema", "--with-tones", "--bands", "0", "1000", "4000", "--n-coefs", "5"])
    names = capsys.readouterr().out.split()
    assert len(names) == 19 + 1 + 10 + 12 + 40


def test_extract_train_predict(tmp_path, tone_signal, capsys):
    write_wav(str(tmp_path / "a.wav"), tone_signal, SR)
    write_wav(str(tmp_path / "b.wav"), 0.2 * tone_signal, SR)
    labels = tmp_path / "labels.csv"
    labels.write_text("a.wav,happy,positive\nb.wav,sad,negative\n", encoding="utf-8")
    features = tmp_path / "features.csv"
    model_path = tmp_path / "clf.joblib"

    run(["extract", str(tmp_path / "a.wav"), str(tmp_path / "b.wav"), "--labels", str(labels), "--out", str(features)])
    with open(features, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert [r["coarseLabel"] for r in rows] == ["happy", "sad"]

    run(["train", "--features", str(features), "--model-path", str(model_path)])
    assert model_path.exists()

    capsys.readouterr()
    run(["predict", str(tmp_path / "a.wav"), "--model-path", str(model_path)])
    out = capsys.readouterr().out
    assert out.startswith("a@20: ")
