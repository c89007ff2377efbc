"""
Signal filtering for separating tidal and non-tidal components.

Provides the zero-phase Butterworth low-pass used by the ``Lowpass`` tide
removal method and the residual computation shared by every method.
"""
from __future__ import annotations

import logging

import numpy as np
from scipy.signal import butter, filtfilt

from .constituents import M2_PERIOD_HOURS
from .errors import InsufficientDataError, NumericalFailureError

logger = logging.getLogger(__name__)

DEFAULT_CUTOFF_HOURS = 6.0
"""Default low-pass cutoff period; semidiurnal and longer periods pass."""

EDGE_PAD_HOURS = M2_PERIOD_HOURS
"""Length of the odd extension added at each record end before filtering."""


def butterworth_lowpass(
    data: np.ndarray,
    dt_hours: float,
    cutoff_hours: float = DEFAULT_CUTOFF_HOURS,
    order: int = 4,
    logger: logging.Logger | None = None,
) -> np.ndarray:
    """
    Zero-phase Butterworth low-pass filter.

    Uses :func:`scipy.signal.butter` and :func:`scipy.signal.filtfilt` for
    forward-backward (zero-phase) filtering, so the filtered series has no
    net time shift relative to *data*.  Each end is extended by an odd
    reflection one M2 period long (or the whole record, if shorter) so the
    filter start-up transient falls outside the returned samples.

    Parameters
    ----------
    data : np.ndarray
        Equally-spaced, gap-free time series.
    dt_hours : float
        Sample interval in hours.
    cutoff_hours : float, optional
        Low-pass cutoff period in hours (default 6.0).  Content with
        shorter periods is removed.
    order : int, optional
        Filter order (default 4).
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.

    Returns
    -------
    np.ndarray
        Filtered (low-passed) time series, same length as *data*.

    Raises
    ------
    InsufficientDataError
        If *data* has fewer than ``3 * order + 1`` points or the sampling
        interval is too coarse to resolve the cutoff.
    NumericalFailureError
        If *data* contains NaN or infinite values.
    """
    _log = logger or logging.getLogger(__name__)

    min_length = 3 * order + 1
    if len(data) < min_length:
        raise InsufficientDataError(
            f"data must have at least {min_length} points for a Butterworth "
            f"filter of order {order}."
        )
    if not np.all(np.isfinite(data)):
        raise NumericalFailureError(
            'data must not contain NaN or infinite values for Butterworth '
            'filtering.'
        )

    # Nyquist frequency in cycles per hour
    nyquist = 1.0 / (2.0 * dt_hours)
    cutoff_freq = 1.0 / cutoff_hours

    # Normalized cutoff (0 to 1 where 1 = Nyquist)
    wn = cutoff_freq / nyquist
    if not 0.0 < wn < 1.0:
        raise InsufficientDataError(
            f"Sampling interval {dt_hours:.3f} h is too coarse for a "
            f"{cutoff_hours:.1f} h low-pass cutoff (Wn={wn:.3f})."
        )

    b, a = butter(order, wn, btype='low')
    padlen = min(
        len(data) - 1,
        max(3 * (order + 1), int(np.ceil(EDGE_PAD_HOURS / dt_hours))),
    )
    filtered = filtfilt(b, a, data, padtype='odd', padlen=padlen)

    _log.info(
        'Butterworth low-pass: order=%d, cutoff=%.1f h (Wn=%.4f), '
        '%d-sample edge padding.',
        order, cutoff_hours, wn, padlen,
    )
    return filtered


def compute_nontidal_residual(
    observed: np.ndarray,
    predicted_tide: np.ndarray,
    logger: logging.Logger | None = None,
) -> np.ndarray:
    """
    Compute the non-tidal residual by subtracting the tidal/trend component.

    Parameters
    ----------
    observed : np.ndarray
        Observed water levels.
    predicted_tide : np.ndarray
        Tidal/trend component (same length as *observed*).
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.

    Returns
    -------
    np.ndarray
        Non-tidal residual (``observed - predicted_tide``).

    Raises
    ------
    ValueError
        If *observed* and *predicted_tide* have different lengths.
    """
    _log = logger or logging.getLogger(__name__)

    if len(observed) != len(predicted_tide):
        raise ValueError(
            f"observed ({len(observed)}) and predicted_tide "
            f"({len(predicted_tide)}) must have the same length."
        )

    residual = np.asarray(observed, dtype=float) - np.asarray(
        predicted_tide, dtype=float
    )
    _log.info(
        'Non-tidal residual: mean=%.4f, std=%.4f.',
        np.nanmean(residual), np.nanstd(residual),
    )
    return residual
