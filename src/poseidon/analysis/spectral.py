"""
Spectral analysis of water-level series.

Computes Hann-windowed power spectra used to infer the dominant tidal
frequency before harmonic fitting, to check the tidal component after
detrending, and to characterise the local frequency content of flagged
intervals during event classification.  Frequencies are in cycles per hour.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from scipy.signal import find_peaks, periodogram

from .errors import InsufficientDataError, NumericalFailureError
from .models import TimeSeries
from .preprocessing import is_equal_interval, to_equal_interval

logger = logging.getLogger(__name__)

MIN_SPECTRAL_SAMPLES = 8


@dataclass(frozen=True)
class Spectrum:
    """
    One-sided power spectrum.

    Attributes
    ----------
    frequencies : np.ndarray
        Frequencies in cycles per hour, ascending, from the record
        resolution up to the Nyquist frequency.
    power : np.ndarray
        Power at each frequency.
    resolution : float
        Native frequency resolution ``1 / (N * dt)`` of the record.
    """

    frequencies: np.ndarray
    power: np.ndarray
    resolution: float

    def __len__(self) -> int:
        return len(self.frequencies)

    @property
    def periods_hours(self) -> np.ndarray:
        return 1.0 / self.frequencies

    @property
    def total_power(self) -> float:
        return float(np.sum(self.power))

    def band_power(self, fmin: float, fmax: float) -> float:
        mask = (self.frequencies >= fmin) & (self.frequencies <= fmax)
        return float(np.sum(self.power[mask]))

    def pairs(self) -> list[tuple[float, float]]:
        return [(float(f), float(p))
                for f, p in zip(self.frequencies, self.power)]


def analyze_spectrum(
    series: TimeSeries,
    oversample: int = 1,
    logger: logging.Logger | None = None,
) -> Spectrum:
    """
    Compute the Hann-windowed power spectrum of *series*.

    Irregularly sampled series are first resampled onto an equally-spaced
    grid at their median interval.

    Parameters
    ----------
    series : TimeSeries
        Input series.
    oversample : int, optional
        Zero-padding factor; ``nfft = oversample * N`` (default 1, i.e.
        the native resolution).
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.

    Returns
    -------
    Spectrum
        Power at frequencies from ``1 / (N * dt)`` to ``1 / (2 * dt)``.

    Raises
    ------
    InsufficientDataError
        If the series has fewer than 8 samples.
    NumericalFailureError
        If the series or the resulting power contains non-finite values.
    """
    _log = logger or logging.getLogger(__name__)

    if len(series) < MIN_SPECTRAL_SAMPLES:
        raise InsufficientDataError(
            f"Spectral analysis needs at least {MIN_SPECTRAL_SAMPLES} "
            f"samples, got {len(series)}."
        )

    dt_hours = series.dt_hours
    if is_equal_interval(series.time):
        values = np.asarray(series.values, dtype=float)
    else:
        _, values = to_equal_interval(series.time, series.values, logger=_log)

    if not np.all(np.isfinite(values)):
        raise NumericalFailureError(
            'Spectral analysis input contains NaN or infinite values.'
        )

    n = len(values)
    freqs, power = periodogram(
        values,
        fs=1.0 / dt_hours,
        window='hann',
        nfft=max(1, int(oversample)) * n,
        detrend='constant',
        scaling='spectrum',
    )
    if not np.all(np.isfinite(power)):
        raise NumericalFailureError('Spectral power contains non-finite values.')

    resolution = 1.0 / (n * dt_hours)
    keep = freqs >= resolution * (1.0 - 1e-9)

    _log.info(
        'Spectrum: %d samples, dt=%.3f h, %d bins from %.4f to %.4f cph.',
        n, dt_hours, int(np.sum(keep)), resolution, freqs[-1],
    )
    return Spectrum(
        frequencies=freqs[keep], power=power[keep], resolution=resolution,
    )


def dominant_frequencies(
    spectrum: Spectrum,
    k: int = 3,
    fmin: float | None = None,
    fmax: float | None = None,
) -> np.ndarray:
    """
    Return the *k* strongest spectral peaks, strongest first.

    Peaks are local maxima of the power (:func:`scipy.signal.find_peaks`)
    plus the global maximum bin, so a spectrum that is largest at a band
    edge still reports that edge.  The search may be restricted to
    ``fmin <= f <= fmax``.

    Parameters
    ----------
    spectrum : Spectrum
        Spectrum to search.
    k : int, optional
        Number of frequencies to return (default 3).
    fmin, fmax : float, optional
        Band limits in cycles per hour.

    Returns
    -------
    np.ndarray
        Up to *k* frequencies in cycles per hour, in descending power.
    """
    mask = np.ones(len(spectrum), dtype=bool)
    if fmin is not None:
        mask &= spectrum.frequencies >= fmin
    if fmax is not None:
        mask &= spectrum.frequencies <= fmax
    freqs = spectrum.frequencies[mask]
    power = spectrum.power[mask]
    if len(freqs) == 0:
        return np.array([], dtype=float)

    peaks, _ = find_peaks(power)
    candidates = np.union1d(peaks, [int(np.argmax(power))])
    order = candidates[np.argsort(-power[candidates], kind='stable')]
    return freqs[order[:k]]


def spectral_concentration(
    spectrum: Spectrum,
    frequency: float,
    half_width: float,
) -> float:
    """Share of total power within ``frequency +/- half_width``."""
    total = spectrum.total_power
    if total <= 0.0:
        return 0.0
    band = np.abs(spectrum.frequencies - frequency) <= half_width
    return float(np.sum(spectrum.power[band]) / total)


def local_spectrum(
    series: TimeSeries,
    start,
    end,
    oversample: int = 8,
    logger: logging.Logger | None = None,
) -> Spectrum:
    """Spectrum of the inclusive sub-series between *start* and *end*."""
    return analyze_spectrum(
        series.between(start, end), oversample=oversample, logger=logger,
    )
