"""
Envelope and extreme detection on the non-tidal residual.

The residual's amplitude envelope (magnitude of the analytic signal) is
compared with a cutoff derived from ``extreme_threshold``; contiguous runs
of samples above the cutoff become :class:`CandidateInterval` objects.
High- and low-water extraction of the tidal component, used to place
events in the tidal cycle, also lives here.
"""
from __future__ import annotations

import logging

import numpy as np
from scipy.signal import argrelextrema, hilbert

from .errors import InsufficientDataError, InvalidConfigError
from .models import CandidateInterval, TimeSeries

logger = logging.getLogger(__name__)

BASE_PERCENTILE = 70.0
PERCENTILE_SPAN = 0.3
MAD_MULTIPLIER = 3.0
MAD_SCALE = 1.4826  # MAD to standard deviation for Gaussian noise
FLOOR_FRACTION = 0.15
MERGE_GAP_SAMPLES = 6


def compute_envelope(
    residual: TimeSeries,
    logger: logging.Logger | None = None,
) -> TimeSeries:
    """
    Amplitude envelope ``|hilbert(x - mean(x))|`` of *residual*.

    The envelope is non-negative and independent of the oscillation phase,
    so a one-signed pulse and an oscillating burst of the same amplitude
    produce comparable values.  The centred residual is mirrored by half its
    length at each end before the transform, so the record ends do not
    ring against each other through the FFT's periodic wrap.
    """
    _log = logger or logging.getLogger(__name__)

    values = np.asarray(residual.values, dtype=float)
    centred = values - np.mean(values)
    pad = len(centred) // 2
    analytic = hilbert(np.pad(centred, pad, mode='reflect'))
    envelope = np.abs(analytic[pad:pad + len(centred)])
    _log.info(
        'Envelope: %d samples, max=%.4f, median=%.4f.',
        len(envelope), np.max(envelope), np.median(envelope),
    )
    return residual.with_values(envelope, name='envelope')


def envelope_percentile(threshold: float) -> float:
    """
    Map ``extreme_threshold`` (``0 < t <= 100``) to an envelope percentile.

    ``p = 70 + 0.3 * t``: t=10 gives the 73rd percentile, the default 30
    the 79th and 100 the maximum.
    """
    if not 0.0 < threshold <= 100.0:
        raise InvalidConfigError(
            f"extreme_threshold must be in (0, 100], got {threshold}."
        )
    return BASE_PERCENTILE + PERCENTILE_SPAN * threshold


def noise_floor(
    residual: np.ndarray,
    reference: np.ndarray | None = None,
) -> float:
    """
    Smallest cutoff allowed, whatever the percentile.

    ``max(3 * 1.4826 * MAD(residual), 0.15 * std(reference))``; the
    reference defaults to the residual itself.
    """
    residual = np.asarray(residual, dtype=float)
    mad = np.median(np.abs(residual - np.median(residual)))
    reference = residual if reference is None else np.asarray(reference, dtype=float)
    return float(max(MAD_MULTIPLIER * MAD_SCALE * mad,
                     FLOOR_FRACTION * np.std(reference)))


def envelope_cutoff(
    envelope: np.ndarray,
    residual: np.ndarray,
    threshold: float,
    reference: np.ndarray | None = None,
) -> float:
    """Envelope level a sample must strictly exceed to be flagged."""
    percentile = np.percentile(envelope, envelope_percentile(threshold))
    return float(max(percentile, noise_floor(residual, reference)))


def _runs(mask: np.ndarray) -> list[tuple[int, int]]:
    """Half-open ``(start, stop)`` index pairs of the True runs in *mask*."""
    if not np.any(mask):
        return []
    diff = np.diff(mask.astype(int))
    starts = np.where(diff == 1)[0] + 1
    stops = np.where(diff == -1)[0] + 1
    if mask[0]:
        starts = np.concatenate(([0], starts))
    if mask[-1]:
        stops = np.concatenate((stops, [len(mask)]))
    return [(int(s), int(e)) for s, e in zip(starts, stops)]


def _merge_runs(
    runs: list[tuple[int, int]],
    hours: np.ndarray,
    max_gap_hours: float,
) -> list[tuple[int, int]]:
    merged: list[tuple[int, int]] = []
    for start, stop in runs:
        if merged and hours[start] - hours[merged[-1][1] - 1] < max_gap_hours:
            merged[-1] = (merged[-1][0], stop)
        else:
            merged.append((start, stop))
    return merged


def detect_extremes(
    residual: TimeSeries,
    threshold: float,
    reference: TimeSeries | None = None,
    logger: logging.Logger | None = None,
) -> list[CandidateInterval]:
    """
    Flag intervals where the residual envelope exceeds the cutoff.

    Parameters
    ----------
    residual : TimeSeries
        Non-tidal residual.
    threshold : float
        ``extreme_threshold`` in ``(0, 100]``; higher is more conservative.
    reference : TimeSeries, optional
        Series whose spread sets part of the noise floor, normally the
        original water level.
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.

    Returns
    -------
    list of CandidateInterval
        Time-ordered, non-overlapping intervals; empty when nothing
        exceeds the cutoff.

    Raises
    ------
    InsufficientDataError
        If the residual has fewer than 2 samples.
    InvalidConfigError
        If *threshold* is outside ``(0, 100]``.
    """
    _log = logger or logging.getLogger(__name__)

    if len(residual) < 2:
        raise InsufficientDataError(
            'Extreme detection needs at least 2 residual samples.'
        )

    envelope = compute_envelope(residual, logger=_log).values
    ref_values = None if reference is None else reference.values
    cutoff = envelope_cutoff(envelope, residual.values, threshold, ref_values)

    hours = residual.elapsed_hours()
    max_gap = MERGE_GAP_SAMPLES * residual.dt_hours
    runs = _merge_runs(_runs(envelope > cutoff), hours, max_gap)

    intervals = []
    for start, stop in runs:
        peak = start + int(np.argmax(envelope[start:stop]))
        intervals.append(CandidateInterval(
            start_time=residual.time[start],
            end_time=residual.time[stop - 1],
            peak_magnitude=float(envelope[peak]),
            peak_time=residual.time[peak],
            cutoff=cutoff,
            start_index=start,
            end_index=stop - 1,
        ))

    _log.info(
        'Extreme detection: threshold=%.1f (p%.1f), cutoff=%.4f, '
        '%d interval(s).',
        threshold, envelope_percentile(threshold), cutoff, len(intervals),
    )
    return intervals


def find_tidal_extrema(
    series: TimeSeries,
    min_separation_hours: float = 4.0,
    logger: logging.Logger | None = None,
) -> dict:
    """
    Extract high-water and low-water extrema from a tidal series.

    Uses :func:`scipy.signal.argrelextrema` with a minimum separation
    constraint to avoid detecting spurious local peaks.

    Parameters
    ----------
    series : TimeSeries
        Tidal (detrended) water level.
    min_separation_hours : float, optional
        Minimum time between consecutive extrema of the same type
        (default 4.0 hours).
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.

    Returns
    -------
    dict
        ``"high_water_times"`` : pd.DatetimeIndex of HW timestamps.
        ``"high_water_levels"`` : np.ndarray of water levels at HW.
        ``"low_water_times"`` : pd.DatetimeIndex of LW timestamps.
        ``"low_water_levels"`` : np.ndarray of water levels at LW.

    Raises
    ------
    InsufficientDataError
        If the series has fewer than 3 points.
    """
    _log = logger or logging.getLogger(__name__)

    if len(series) < 3:
        raise InsufficientDataError('At least 3 data points are required.')

    values = np.asarray(series.values, dtype=float)
    dt_hours = series.dt_hours
    order = max(1, int(min_separation_hours / dt_hours))

    hw_idx = argrelextrema(values, np.greater, order=order)[0]
    lw_idx = argrelextrema(values, np.less, order=order)[0]

    _log.info(
        'Extrema extraction: %d HW, %d LW (order=%d samples, dt=%.3f h).',
        len(hw_idx), len(lw_idx), order, dt_hours,
    )

    return {
        'high_water_times': series.time[hw_idx],
        'high_water_levels': values[hw_idx],
        'low_water_times': series.time[lw_idx],
        'low_water_levels': values[lw_idx],
    }
