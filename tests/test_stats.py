"""
Tests for block statistics and the feature schema.
"""

import math

import numpy as np
import pytest

from vocalstats.config import FeatureConfig
from vocalstats.stats import aggregate_block, derivatives, describe, feature_names, slopes


def _block(config, pitches=(), energies=(), n_frames=0, fill=1.0, block_size=4, tones=None, start_id=0):
    bands = {b.center: [fill] * n_frames for b in config.bands}
    cepstra = [np.full(config.n_coefficients, fill) for _ in range(n_frames)]
    return aggregate_block(start_id, list(pitches), list(energies), bands, cepstra, block_size, config, tones)


def test_describe():
    s = describe([1.0, 2.0, 3.0, 4.0])
    assert s.n == 4
    assert s.mean == 2.5
    assert s.median == 2.5
    assert s.std == pytest.approx(np.std([1, 2, 3, 4], ddof=1))
    assert s.max == 4.0
    assert s.range == 3.0


def test_describe_empty_and_single():
    empty = describe([])
    assert empty.n == 0
    assert all(math.isnan(v) for v in (empty.mean, empty.median, empty.std, empty.max, empty.range))
    single = describe([3.0])
    assert single.std == 0.0 and single.range == 0.0


def test_slopes_partition_derivatives():
    deriv = derivatives([1.0, 2.0, 2.0, 0.0, 3.0, 3.0])
    up, down = slopes(deriv, up=True), slopes(deriv, up=False)
    assert list(up) == [1.0, 3.0]
    assert list(down) == [-2.0]
    assert len(up) + len(down) + int(np.sum(deriv == 0)) == len(deriv)


def test_derivatives_of_short_series():
    assert derivatives([]).size == 0
    assert derivatives([5.0]).size == 0


def test_pitch_features(config):
    stat = _block(config, pitches=[100.0, 110.0, 105.0, 120.0], energies=[1, 2, 3, 4], n_frames=4)
    stats = stat.stats
    assert stats["pitchMean"] == pytest.approx(108.75)
    assert stats["pitchUpFramesRatio"] == 0.5
    assert stats["pitchUpSlopeMean"] == pytest.approx(12.5)
    assert stats["pitchDownSlopeMedian"] == pytest.approx(-5.0)
    assert stats["pitchVoicedFramesRatio"] == 1.0


def test_no_voiced_frames_gives_nan_pitch(config):
    stats = _block(config, energies=[1, 2, 3, 4], n_frames=4).stats
    assert math.isnan(stats["pitchMean"])
    assert stats["pitchVoicedFramesRatio"] == 0.0
    assert stats["pitchPeaksNum"] == 0.0
    assert math.isnan(stats["pitchPeaksDistMin"])


def test_pitch_peak_statistics(config):
    pitches = [100.0, 160.0, 100.0, 100.0, 170.0, 100.0, 100.0, 150.0, 100.0]
    stats = _block(config, pitches=pitches, block_size=9).stats
    assert stats["pitchPeaksNum"] == 3.0
    assert stats["pitchPeaksMean"] == pytest.approx(160.0)
    assert stats["pitchPeaksRange"] == pytest.approx(20.0)
    frame_time = config.frame_size / config.sample_rate
    assert stats["pitchPeaksDistMin"] == pytest.approx(3 * frame_time)
    assert stats["pitchPeaksDistMean"] == pytest.approx(3 * frame_time)


def test_band_ratio(config):
    stats = _block(config, energies=[2.0, 2.0], n_frames=2, fill=1.0).stats
    assert stats["band250.0_energyMean"] == 1.0
    assert stats["band250.0_energyRatio"] == pytest.approx(0.5)


def test_band_ratio_nan_on_zero_global_energy(config):
    stats = _block(config, energies=[0.0, 0.0], n_frames=2, fill=0.0).stats
    assert math.isnan(stats["band250.0_energyRatio"])


def test_cepstral_delta_features(config):
    bands = {b.center: [] for b in config.bands}
    cepstra = [np.arange(15) * k for k in (1.0, 2.0, 4.0)]
    stats = aggregate_block(0, [], [], bands, cepstra, 3, config).stats
    assert stats["mfcc1_mean"] == pytest.approx(7.0 / 3)
    assert stats["mfcc1_deltaMean"] == pytest.approx(1.5)
    assert stats["mfcc0_range"] == 0.0


def test_semitones_only_with_tones(config):
    tones = {"G3": 196.0, "G#3": 207.65, "A3": 220.0, "A#3": 233.08}
    with_tones = _block(config, pitches=[220.0, 221.0], tones=tones).stats
    assert with_tones["pitchMeanSemitones"] == -2.0
    assert "pitchMeanSemitones" not in _block(config, pitches=[220.0]).stats


def test_stats_are_read_only(config):
    stat = _block(config, n_frames=1)
    with pytest.raises(TypeError):
        stat.stats["pitchMean"] = 0.0


def test_rejects_non_positive_block_size(config):
    with pytest.raises(ValueError):
        _block(config, block_size=0)


def test_schema_is_stable_and_unique(config):
    names = feature_names(config)
    assert len(names) == len(set(names)) == 197
    assert names[0] == "pitchMean"
    assert "band250.0_energyRatio" in names
    assert names[-1] == "mfcc14_deltaStdDev"
    assert list(_block(config, pitches=[150.0], energies=[1.0], n_frames=1).stats) == names
    assert feature_names(config, with_tones=True) == names[:19] + ["pitchMeanSemitones"] + names[19:]


def test_schema_follows_config():
    config = FeatureConfig(band_boundaries=(0, 1000, 4000), n_coefficients=5)
    names = feature_names(config)
    assert len(names) == 19 + 10 + 2 * 6 + 5 * 8
    assert "band2500.0_energyMax" in names
