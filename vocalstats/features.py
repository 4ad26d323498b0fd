import logging
from functools import lru_cache
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy import signal

from .config import FrequencyBand

logger = logging.getLogger(__name__)

LOG_FLOOR = -50.0


@lru_cache(maxsize=8)
def _hamming(n: int) -> np.ndarray:
    return np.hamming(n)


def smoothed_energy(frame: np.ndarray) -> float:
    """
    Local (linear) energy of a frame: sum of squares after a Hamming window,
    which gives more weight to the center of the frame. The input is left intact.
    """
    frame = np.asarray(frame, dtype=np.float64)
    windowed = frame * _hamming(frame.shape[0])
    return float(np.sum(windowed * windowed))


def hz_to_mel(f: np.ndarray) -> np.ndarray:
    return 2595.0 * np.log10(1.0 + f / 700.0)


def mel_to_hz(m: np.ndarray) -> np.ndarray:
    return 700.0 * (10 ** (m / 2595.0) - 1.0)


def design_band_filter(band: FrequencyBand, sr: int, order: int = 2) -> Optional[np.ndarray]:
    """
    Butterworth second-order sections restricting a signal to `band`.
    Edges at 0 Hz or at Nyquist turn the band-pass into a low/high-pass;
    a band covering the whole spectrum needs no filter (None).
    """
    nyquist = sr / 2.0
    if band.low >= nyquist:
        raise ValueError(f"band {band.center}Hz lies above the Nyquist frequency {nyquist}Hz")
    has_low = band.low > 0
    has_high = band.high < nyquist
    if has_low and has_high:
        return signal.butter(order, [band.low, band.high], btype="bandpass", fs=sr, output="sos")
    if has_high:
        return signal.butter(order, band.high, btype="lowpass", fs=sr, output="sos")
    if has_low:
        return signal.butter(order, band.low, btype="highpass", fs=sr, output="sos")
    return None


class BandEnergyAnalyzer:
    """Energy of a frame restricted to each of a fixed set of frequency bands."""

    def __init__(self, bands: Sequence[FrequencyBand], sr: int):
        if not bands:
            raise ValueError("at least one frequency band is required")
        self.bands = list(bands)
        self.sr = sr
        self.filters = [design_band_filter(b, sr) for b in self.bands]
        logger.debug(f"BandEnergyAnalyzer: {len(self.bands)} bands at sr={sr}")

    def analyze(self, frame: np.ndarray) -> List[Tuple[float, float]]:
        """Return (band_center, band_energy) pairs in band order."""
        frame = np.asarray(frame, dtype=np.float64)
        out = []
        for band, sos in zip(self.bands, self.filters):
            # sosfilt returns a new array; `frame` is never written to
            filtered = frame.copy() if sos is None else signal.sosfilt(sos, frame)
            out.append((band.center, smoothed_energy(filtered)))
        return out


def mel_center_bins(n_filters: int, sr: int, frame_size: int, fmin: float, fmax: float) -> np.ndarray:
    """
    FFT bin index of the n_filters + 2 mel-equally-spaced filter edges/centers.
    """
    mels = np.linspace(hz_to_mel(np.float64(fmin)), hz_to_mel(np.float64(fmax)), n_filters + 2)
    bins = np.floor(mel_to_hz(mels) / sr * frame_size + 0.5).astype(int)
    return np.clip(bins, 0, frame_size // 2)


def mel_filterbank(centers: np.ndarray, frame_size: int) -> np.ndarray:
    """
    Triangular filters of shape (n_filters, frame_size), each made of two linear
    ramps between the neighbouring centers, normalized by the ramp width.
    """
    n_filters = len(centers) - 2
    fb = np.zeros((n_filters, frame_size), dtype=np.float64)
    for k in range(1, n_filters + 1):
        left, center, right = int(centers[k - 1]), int(centers[k]), int(centers[k + 1])
        # rising slope, both ends included
        idx = np.arange(left, center + 1)
        fb[k - 1, idx] = (idx - left + 1) / (center - left + 1)
        # falling slope
        idx = np.arange(center + 1, right + 1)
        fb[k - 1, idx] = 1.0 - (idx - center) / (right - center + 1)
    return fb


def dct_matrix(n_coefficients: int, n_filters: int) -> np.ndarray:
    """
    Unnormalized DCT-II matrix of shape (n_coefficients, n_filters)
    """
    n = np.arange(n_filters)
    k = np.arange(n_coefficients)[:, None]
    return np.cos(np.pi * k / n_filters * (n + 0.5))


class CepstralExtractor:
    """
    MFCC pipeline: magnitude spectrum -> mel filter bank -> log -> DCT.
    The filter bank is built once for a given sample rate and frame size.
    """

    def __init__(
        self,
        sr: int,
        frame_size: int,
        n_coefficients: int = 15,
        n_filters: int = 30,
        fmin: float = 133.3334,
        fmax: float = None,
    ):
        if fmax is None:
            fmax = sr / 2
        if n_coefficients < 1 or n_filters < 1:
            raise ValueError("n_coefficients and n_filters must be positive")
        if not 0 <= fmin < fmax <= sr / 2:
            raise ValueError(f"invalid filter bank bounds [{fmin}, {fmax}] for sr={sr}")
        self.sr = sr
        self.frame_size = frame_size
        self.n_coefficients = n_coefficients
        self.n_filters = n_filters
        self.window = np.hamming(frame_size)
        self.centers = mel_center_bins(n_filters, sr, frame_size, fmin, fmax)
        self.filterbank = mel_filterbank(self.centers, frame_size)
        self.dct = dct_matrix(n_coefficients, n_filters)

    def magnitude_spectrum(self, frame: np.ndarray) -> np.ndarray:
        """
        Modulus of the first half of the FFT, mirrored around the midpoint.
        """
        n = self.frame_size
        half = n // 2
        mod = np.abs(np.fft.rfft(np.asarray(frame, dtype=np.float64) * self.window))[:half]
        spectrum = np.zeros(n, dtype=np.float64)
        spectrum[:half] = mod
        spectrum[half : 2 * half] = mod[::-1]
        return spectrum

    def mel_filter(self, spectrum: np.ndarray) -> np.ndarray:
        return self.filterbank @ spectrum

    @staticmethod
    def log_compress(bank: np.ndarray) -> np.ndarray:
        with np.errstate(divide="ignore"):
            logged = np.log(bank)
        return np.maximum(logged, LOG_FLOOR)

    def process(self, frame: np.ndarray) -> np.ndarray:
        frame = np.asarray(frame)
        if frame.shape != (self.frame_size,):
            raise ValueError(f"expected a frame of {self.frame_size} samples, got shape {frame.shape}")
        bank = self.mel_filter(self.magnitude_spectrum(frame))
        return self.dct @ self.log_compress(bank)
