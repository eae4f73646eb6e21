"""MFCC-style feature extraction built on numpy."""

import logging

import numpy as np

from ipa_coach.services.audio import (
    FRAME_SIZE,
    apply_window,
    as_samples,
    frame_audio,
    hamming_window,
    pre_emphasize,
)

logger = logging.getLogger(__name__)

NUM_FILTERS = 26
MFCC_COEFFS = 13
LOG_FLOOR = -10.0


class TransformError(RuntimeError):
    """Raised when the spectral transform can't process a frame buffer."""


class SpectralAnalyzer:
    """
    Windowed real FFT of fixed-size frames.

    Built once per extractor: the window and the expected buffer shape are
    computed here and reused for every frame of every clip.
    """

    def __init__(self, size: int = FRAME_SIZE):
        self.size = size
        self.num_bins = size // 2 + 1
        self.window = hamming_window(size)

    def transform(self, frames: np.ndarray) -> np.ndarray:
        """
        Forward real FFT of each windowed frame.

        Args:
            frames: Array of shape (n_frames, size), already windowed

        Returns:
            Complex array of shape (n_frames, size // 2 + 1)

        Raises:
            TransformError: If the buffer length doesn't match the plan or
                the data isn't finite
        """
        buffer = np.asarray(frames, dtype=np.float64)
        if buffer.ndim == 1:
            buffer = buffer[None, :]
        if buffer.ndim != 2 or buffer.shape[1] != self.size:
            raise TransformError(
                f"FFT of size {self.size} can't process buffer of shape {buffer.shape}"
            )
        if not np.all(np.isfinite(buffer)):
            raise TransformError("FFT input contains non-finite samples")
        return np.fft.rfft(buffer, n=self.size, axis=1)

    @staticmethod
    def power(spectrum: np.ndarray) -> np.ndarray:
        """Power spectrum |X[k]|^2 per bin."""
        return np.abs(spectrum) ** 2


class FilterBank:
    """
    Triangular filters laid out on linear FFT bin indices.

    This approximates a mel filter bank without the perceptual frequency
    warp; filter i is centred at bin (i + 1) * (size // 2) // (num_filters + 1)
    with a half-width of a third of its centre.
    """

    def __init__(self, num_filters: int = NUM_FILTERS, size: int = FRAME_SIZE):
        self.num_filters = num_filters
        self.filters = self._create_filters(num_filters, size)

    @staticmethod
    def _create_filters(num_filters: int, size: int) -> np.ndarray:
        num_bins = size // 2 + 1
        bins = np.arange(num_bins)
        filters = np.zeros((num_filters, num_bins), dtype=np.float64)

        for i in range(num_filters):
            center = (i + 1) * (size // 2) // (num_filters + 1)
            width = center // 3
            if width == 0:
                filters[i, center] = 1.0
                continue
            distance = np.abs(bins - center)
            inside = distance <= width
            filters[i, inside] = 1.0 - distance[inside] / width

        return filters

    def aggregate(self, power_spectrum: np.ndarray) -> np.ndarray:
        """Band energies: dot product of each filter with the power spectrum."""
        return np.asarray(power_spectrum) @ self.filters.T


def log_compress(band_energies: np.ndarray) -> np.ndarray:
    """Natural log of positive energies; LOG_FLOOR where energy is not positive."""
    energies = np.asarray(band_energies, dtype=np.float64)
    positive = energies > 0
    return np.where(positive, np.log(np.where(positive, energies, 1.0)), LOG_FLOOR)


def dct_matrix(num_coeffs: int = MFCC_COEFFS, num_filters: int = NUM_FILTERS) -> np.ndarray:
    """Basis sqrt(2/N) * cos(pi * i * (2j + 1) / (2N)) of shape (num_coeffs, N)."""
    i = np.arange(num_coeffs)[:, None]
    j = np.arange(num_filters)[None, :]
    return np.sqrt(2.0 / num_filters) * np.cos(np.pi * i * (2 * j + 1) / (2.0 * num_filters))


def dct(log_energies: np.ndarray, basis: np.ndarray | None = None) -> np.ndarray:
    """Cepstral coefficients of log band energies (last axis)."""
    log_energies = np.asarray(log_energies, dtype=np.float64)
    if basis is None:
        basis = dct_matrix(MFCC_COEFFS, log_energies.shape[-1])
    return log_energies @ basis.T


class MFCCExtractor:
    """Turns raw 16 kHz samples into a (n_frames, MFCC_COEFFS) feature sequence."""

    def __init__(self):
        self.analyzer = SpectralAnalyzer(FRAME_SIZE)
        self.filter_bank = FilterBank(NUM_FILTERS, FRAME_SIZE)
        self._dct_basis = dct_matrix(MFCC_COEFFS, NUM_FILTERS)

    def extract_features(self, samples) -> np.ndarray:
        """
        Extract cepstral features for every full frame of the clip.

        Empty input, or input shorter than one frame, yields an empty
        (0, MFCC_COEFFS) sequence.

        Raises:
            TransformError: If any frame can't be transformed; no partial
                result is returned
        """
        audio = as_samples(samples)
        frames = frame_audio(pre_emphasize(audio))
        if len(frames) == 0:
            return np.empty((0, MFCC_COEFFS), dtype=np.float64)

        windowed = apply_window(frames, self.analyzer.window)
        spectrum = self.analyzer.transform(windowed)
        power_spectrum = self.analyzer.power(spectrum)
        band_energies = self.filter_bank.aggregate(power_spectrum)
        features = dct(log_compress(band_energies), self._dct_basis)

        logger.debug(f"Extracted {len(features)} feature frames from {len(audio)} samples")
        return features
