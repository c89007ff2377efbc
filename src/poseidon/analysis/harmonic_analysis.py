"""
Harmonic analysis of water-level series.

Two solvers are provided:

* :func:`harmonic_analysis` wraps UTide with NOS conventions for records
  long enough (15 days or more) to resolve the standard constituents with
  nodal corrections.
* :func:`fit_harmonic_model` is a direct least-squares fit of a mean, a
  linear trend and one sinusoid per frequency against elapsed time, for
  the short records (days) the event detector typically receives.  It is
  iteratively re-weighted with Cauchy weights, like UTide's robust solver,
  so short-lived anomalies such as surge pulses stay out of the tidal
  model.

References
----------
- Codiga, D.L. (2011). Unified Tidal Analysis and Prediction Using the
  UTide Matlab Functions.  Technical Report 2011-01, URI-GSO.
- Zhang et al. (2006). NOAA Technical Report NOS CS 24.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy.optimize import minimize_scalar
from utide import solve

from .constituents import NOS_37_CONSTITUENTS, TIDAL_BAND_HOURS
from .errors import InsufficientDataError, NumericalFailureError
from .models import TimeSeries
from .spectral import analyze_spectrum, dominant_frequencies

logger = logging.getLogger(__name__)

CAUCHY_TUNE = 2.385
"""Cauchy weight tuning constant (UTide / MATLAB robustfit default)."""

DOMINANT_NAME = 'DOMINANT'
"""Model term name for the tidal frequency inferred from the spectrum."""


@dataclass(frozen=True)
class HarmonicFit:
    """
    Result of :func:`fit_harmonic_model`.

    ``h(t) = mean + slope * t + sum A_k cos(2 pi f_k t - g_k)`` with *t* in
    hours since *reference_time* and phases *g_k* in degrees.
    """

    names: tuple[str, ...]
    frequencies: np.ndarray
    amplitudes: np.ndarray
    phases: np.ndarray
    mean: float
    slope: float
    reference_time: pd.Timestamp
    iterations: int

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            'Name': list(self.names),
            'Frequency': self.frequencies,
            'Period': 1.0 / self.frequencies,
            'Amplitude': self.amplitudes,
            'Phase': self.phases,
        })


def harmonic_analysis(
    time: pd.DatetimeIndex,
    values: np.ndarray,
    latitude: float,
    constit: list[str] | None = None,
    min_duration_days: float = 15.0,
    logger: logging.Logger | None = None,
) -> dict:
    """
    Perform harmonic analysis on a water level time series with UTide.

    Parameters
    ----------
    time : pd.DatetimeIndex
        Timestamps of observations (UTC).
    values : np.ndarray
        Observed water levels in metres.
    latitude : float
        Station latitude in decimal degrees (needed for nodal corrections).
    constit : list of str or ``"auto"``, optional
        Constituent names to resolve.  Defaults to the NOS standard 37;
        ``"auto"`` lets UTide choose from its own table by the Rayleigh
        criterion.
    min_duration_days : float, optional
        Minimum record length required (default 15.0 days).
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.

    Returns
    -------
    dict
        ``"coef"`` : UTide coefficient structure (Bunch).
        ``"constituents"`` : :class:`pandas.DataFrame` --
            columns ``Name``, ``Amplitude``, ``Phase``, ``SNR``.
        ``"mean"`` : float -- mean water level H0.
        ``"method_used"`` : str -- description of effective method class.

    Raises
    ------
    ValueError
        If *time* and *values* differ in length.
    NumericalFailureError
        If *values* contains no finite data.
    InsufficientDataError
        If the record is shorter than *min_duration_days*.
    """
    _log = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Input validation
    # ------------------------------------------------------------------
    if len(time) != len(values):
        raise ValueError(
            f"time ({len(time)}) and values ({len(values)}) must have the "
            f"same length."
        )

    finite_mask = np.isfinite(values)
    if not np.any(finite_mask):
        raise NumericalFailureError('values contains no finite data.')

    duration_days = (time[-1] - time[0]).total_seconds() / 86400.0
    if duration_days < min_duration_days:
        raise InsufficientDataError(
            f"Record length {duration_days:.1f} days is less than the "
            f"minimum {min_duration_days} days required for harmonic analysis."
        )

    if constit is None:
        constit = list(NOS_37_CONSTITUENTS)

    method_label = _classify_method(duration_days)
    _log.info(
        "Running harmonic analysis: %.1f-day record, constituents %s, "
        "method class '%s'.",
        duration_days,
        constit if isinstance(constit, str) else f"{len(constit)} requested",
        method_label,
    )

    # ------------------------------------------------------------------
    # Call UTide solver
    # ------------------------------------------------------------------
    coef = solve(
        t=time,
        u=values,
        lat=latitude,
        constit=constit,
        method='ols',           # ordinary least squares (closest to legacy)
        conf_int='linear',      # linear confidence intervals
        Rayleigh_min=0.9,       # constituent separation criterion
    )

    # SNR proxy: amplitude / half-width of 95 % confidence interval
    snr = coef.A / np.where(coef.A_ci > 0, coef.A_ci, np.inf)

    results_df = pd.DataFrame({
        'Name': coef.name,
        'Amplitude': coef.A,
        'Phase': coef.g,
        'SNR': snr,
    })

    mean_level = float(coef.mean) if hasattr(coef, 'mean') else np.nan
    _log.info(
        'Harmonic analysis complete. Mean=%.4f, %d constituents resolved.',
        mean_level, len(results_df),
    )

    return {
        'coef': coef,
        'constituents': results_df,
        'mean': mean_level,
        'method_used': method_label,
    }


def _classify_method(duration_days: float) -> str:
    """Return a human-readable label for the effective HA method class."""
    if duration_days < 20:
        return 'short_record'
    elif duration_days < 180:
        return 'standard'
    else:
        return 'long_record_lsq'


def design_matrix(
    hours: np.ndarray,
    frequencies: np.ndarray,
    include_trend: bool = True,
) -> np.ndarray:
    """Columns: 1, [t], then cos/sin pairs for each frequency (cph)."""
    columns = [np.ones_like(hours)]
    if include_trend:
        columns.append(hours)
    for freq in frequencies:
        arg = 2.0 * np.pi * freq * hours
        columns.append(np.cos(arg))
        columns.append(np.sin(arg))
    return np.column_stack(columns)


def infer_tidal_frequency(
    series: TimeSeries,
    logger: logging.Logger | None = None,
) -> float | None:
    """
    Infer the dominant tidal frequency (cph) of *series* from its spectrum.

    Searches an 8x oversampled Hann spectrum for the strongest peak with a
    period inside :data:`TIDAL_BAND_HOURS`, then refines it with
    :func:`refine_frequency`.  Returns ``None`` when no such peak exists or
    its period exceeds half the record span.
    """
    _log = logger or logging.getLogger(__name__)

    spectrum = analyze_spectrum(series, oversample=8, logger=_log)
    band = dominant_frequencies(
        spectrum, k=1,
        fmin=1.0 / TIDAL_BAND_HOURS[1], fmax=1.0 / TIDAL_BAND_HOURS[0],
    )
    duration = series.duration_hours
    if len(band) == 0 or 1.0 / band[0] > duration / 2.0:
        _log.info('No resolvable tidal-band peak in a %.1f h record.', duration)
        return None

    refined = refine_frequency(
        series.elapsed_hours(), np.asarray(series.values, dtype=float),
        float(band[0]), 0.5 / duration,
    )
    _log.info(
        'Dominant tidal period: %.3f h (spectral peak %.3f h).',
        1.0 / refined, 1.0 / band[0],
    )
    return refined


def refine_frequency(
    hours: np.ndarray,
    values: np.ndarray,
    initial: float,
    half_width: float,
) -> float:
    """
    Refine a frequency estimate by least squares.

    Minimises the residual sum of squares of a mean + trend + single
    sinusoid model over ``initial +/- half_width`` with bounded Brent
    minimisation.
    """
    def rss(freq):
        x = design_matrix(hours, np.array([freq]))
        coef, *_ = np.linalg.lstsq(x, values, rcond=None)
        return float(np.sum((values - x @ coef) ** 2))

    lower = max(initial - half_width, 1e-12)
    result = minimize_scalar(
        rss, bounds=(lower, initial + half_width), method='bounded',
        options={'xatol': 1e-10},
    )
    return float(result.x)


def fit_harmonic_model(
    series: TimeSeries,
    constituents: dict[str, float],
    include_trend: bool = True,
    robust: bool = True,
    max_iter: int = 10,
    logger: logging.Logger | None = None,
) -> HarmonicFit:
    """
    Least-squares fit of mean, trend and sinusoids at fixed frequencies.

    Parameters
    ----------
    series : TimeSeries
        Observed water levels (need not be equally spaced).
    constituents : dict
        ``{name: frequency}`` with frequencies in cycles per hour.
    include_trend : bool, optional
        Fit a linear trend (default True).
    robust : bool, optional
        Iteratively re-weight with Cauchy weights (default True).  With
        ``False`` a single ordinary least-squares pass is made.
    max_iter : int, optional
        Maximum number of re-weighting iterations (default 10).
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.

    Returns
    -------
    HarmonicFit

    Raises
    ------
    InsufficientDataError
        If there are fewer samples than model parameters.
    NumericalFailureError
        If the fit produces non-finite coefficients.
    """
    _log = logger or logging.getLogger(__name__)

    names = tuple(constituents)
    freqs = np.array([constituents[n] for n in names], dtype=float)
    hours = series.elapsed_hours()
    values = np.asarray(series.values, dtype=float)
    x = design_matrix(hours, freqs, include_trend=include_trend)
    if len(values) <= x.shape[1]:
        raise InsufficientDataError(
            f"{len(values)} samples cannot determine {x.shape[1]} harmonic "
            f"model parameters."
        )

    weights = np.ones(len(values))
    floor = 1e-9 * max(1.0, float(np.std(values)))
    iterations = 0
    for iterations in range(1, (max_iter if robust else 1) + 1):
        sw = np.sqrt(weights)
        coef, *_ = np.linalg.lstsq(x * sw[:, None], values * sw, rcond=None)
        if not robust:
            break
        resid = values - x @ coef
        scale = np.median(np.abs(resid - np.median(resid))) / 0.6745
        if scale <= floor:
            break
        new_weights = 1.0 / (1.0 + (resid / (CAUCHY_TUNE * scale)) ** 2)
        converged = np.max(np.abs(new_weights - weights)) < 1e-6
        weights = new_weights
        if converged:
            break

    if not np.all(np.isfinite(coef)):
        raise NumericalFailureError('Harmonic fit produced non-finite values.')

    offset = 2 if include_trend else 1
    cos_coef = coef[offset::2]
    sin_coef = coef[offset + 1::2]
    amplitudes = np.hypot(cos_coef, sin_coef)
    phases = np.degrees(np.arctan2(sin_coef, cos_coef)) % 360.0

    fit = HarmonicFit(
        names=names,
        frequencies=freqs,
        amplitudes=amplitudes,
        phases=phases,
        mean=float(coef[0]),
        slope=float(coef[1]) if include_trend else 0.0,
        reference_time=series.start,
        iterations=iterations,
    )
    _log.info(
        'Harmonic fit: %d terms (%s), %d iteration(s), mean=%.4f.',
        len(names), ', '.join(names), iterations, fit.mean,
    )
    return fit
