"""
Tide removal: separate the tidal/trend component from a raw series.

:func:`remove_tide` returns the ``detrended`` component (tide plus trend)
on the input timestamps; the residual analysed for anomalies is the raw
series minus that component.

``lowpass``
    The robust harmonic fit below is taken out, the remainder is passed
    through a zero-phase Butterworth low-pass on an equally-spaced grid at
    the series' dominant interval, and the fit is added back on the input
    timestamps.  The residual is therefore the short-period part of
    whatever the tidal fit does not explain.
``harmonic``
    Harmonic model subtracted from the raw series.  Records of 15 days or
    more with a known latitude go through UTide; shorter records use a
    robust least-squares fit at the spectrally inferred tidal frequency
    plus every NOS constituent the record can resolve.
"""
from __future__ import annotations

import logging

import numpy as np

from .config import TideRemovalMethod
from .constituents import (
    M2_PERIOD_HOURS,
    constituent_frequency,
    select_resolvable_constituents,
)
from .errors import (
    DegenerateSignalError,
    InsufficientDataError,
    NumericalFailureError,
)
from .filtering import DEFAULT_CUTOFF_HOURS, butterworth_lowpass
from .harmonic_analysis import (
    DOMINANT_NAME,
    HarmonicFit,
    fit_harmonic_model,
    harmonic_analysis,
    infer_tidal_frequency,
)
from .models import TimeSeries
from .preprocessing import from_equal_interval, to_equal_interval
from .tidal_prediction import predict_from_fit, predict_tide

logger = logging.getLogger(__name__)

MIN_SAMPLES = 16
"""Fewest samples any tide removal method accepts."""

MIN_SPAN_HOURS = 2.0 * M2_PERIOD_HOURS
"""Records must cover two periods of the principal semidiurnal tide."""

DEGENERATE_TOLERANCE = 1e-9
"""Peak-to-peak range, relative to ``max(1, |mean|)``, treated as constant."""

UTIDE_MIN_DURATION_DAYS = 15.0


def validate_series(
    series: TimeSeries,
    logger: logging.Logger | None = None,
) -> None:
    """
    Check that *series* can be detrended.

    Raises
    ------
    InsufficientDataError
        If the series has fewer than :data:`MIN_SAMPLES` samples or spans
        less than two M2 periods.
    NumericalFailureError
        If any value is NaN or infinite.
    DegenerateSignalError
        If the series is constant.
    """
    _log = logger or logging.getLogger(__name__)

    if len(series) < MIN_SAMPLES:
        raise InsufficientDataError(
            f"At least {MIN_SAMPLES} samples are required, got {len(series)}."
        )
    values = np.asarray(series.values, dtype=float)
    if not np.all(np.isfinite(values)):
        raise NumericalFailureError(
            f"Series contains {int(np.sum(~np.isfinite(values)))} NaN or "
            f"infinite value(s)."
        )
    if series.duration_hours < MIN_SPAN_HOURS:
        raise InsufficientDataError(
            f"Record span {series.duration_hours:.2f} h is shorter than the "
            f"{MIN_SPAN_HOURS:.2f} h (two M2 periods) needed for tide removal."
        )
    scale = max(1.0, abs(float(np.mean(values))))
    if np.ptp(values) <= DEGENERATE_TOLERANCE * scale:
        raise DegenerateSignalError(
            'Series is constant; there is no tidal signal to remove.'
        )
    _log.info(
        'Series %s: %d samples over %.2f h (dt=%.3f h).',
        series.name, len(series), series.duration_hours, series.dt_hours,
    )


def remove_tide(
    series: TimeSeries,
    method: TideRemovalMethod | str,
    cutoff_hours: float = DEFAULT_CUTOFF_HOURS,
    latitude: float | None = None,
    logger: logging.Logger | None = None,
) -> TimeSeries:
    """
    Compute the tidal/trend component of *series*.

    Parameters
    ----------
    series : TimeSeries
        Raw water-level series.
    method : TideRemovalMethod or str
        ``"lowpass"`` or ``"harmonic"``.
    cutoff_hours : float, optional
        Low-pass cutoff period (default 6.0 h); ignored by the harmonic
        method.
    latitude : float, optional
        Station latitude; enables the UTide path for long records.
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.

    Returns
    -------
    TimeSeries
        Detrended (tidal + trend) component on the input timestamps.

    Raises
    ------
    InsufficientDataError, NumericalFailureError, DegenerateSignalError
        See :func:`validate_series`; also raised when the chosen method
        cannot be applied to the record or produces non-finite values.
    """
    _log = logger or logging.getLogger(__name__)

    method = TideRemovalMethod.parse(method)
    validate_series(series, logger=_log)

    if method is TideRemovalMethod.LOWPASS:
        detrended = _lowpass_component(series, cutoff_hours, _log)
    else:
        detrended = _harmonic_component(series, latitude, _log)

    if not np.all(np.isfinite(detrended)):
        raise NumericalFailureError(
            f"Tide removal ({method.value}) produced non-finite values."
        )

    _log.info(
        'Tide removal (%s): detrended std=%.4f, residual std=%.4f.',
        method.value, np.std(detrended), np.std(series.values - detrended),
    )
    return series.with_values(detrended, name='detrended')


def _lowpass_component(
    series: TimeSeries,
    cutoff_hours: float,
    logger: logging.Logger,
) -> np.ndarray:
    # Only the remainder after the fitted tide meets the filter, so the
    # record ends carry no tidal-amplitude start-up transient.
    try:
        tide = predict_from_fit(
            series.time, _tidal_fit(series, logger), logger=logger,
        )
    except InsufficientDataError as exc:
        logger.warning('No tidal fit before low-pass filtering: %s', exc)
        tide = np.zeros(len(series))

    grid_time, grid_values = to_equal_interval(
        series.time, series.values - tide, logger=logger,
    )
    filtered = butterworth_lowpass(
        grid_values, series.dt_hours, cutoff_hours=cutoff_hours, logger=logger,
    )
    return tide + from_equal_interval(grid_time, filtered, series.time)


def _tidal_fit(series: TimeSeries, logger: logging.Logger) -> HarmonicFit:
    """Robust fit at the inferred tidal frequency plus resolvable constituents."""
    terms: dict[str, float] = {}
    dominant = infer_tidal_frequency(series, logger=logger)
    if dominant is not None:
        terms[DOMINANT_NAME] = dominant
    for name in select_resolvable_constituents(
        series.duration_hours, series.dt_hours,
        fixed_frequencies=list(terms.values()),
    ):
        terms[name] = constituent_frequency(name)
    return fit_harmonic_model(series, terms, logger=logger)


def _harmonic_component(
    series: TimeSeries,
    latitude: float | None,
    logger: logging.Logger,
) -> np.ndarray:
    if (latitude is not None
            and series.duration_hours >= UTIDE_MIN_DURATION_DAYS * 24.0):
        # UTide applies its own Rayleigh selection over its constituent table
        result = harmonic_analysis(
            series.time, np.asarray(series.values), latitude,
            constit='auto', min_duration_days=UTIDE_MIN_DURATION_DAYS,
            logger=logger,
        )
        strongest = result['constituents'].nlargest(3, 'Amplitude')
        logger.info(
            'UTide %s fit, mean=%.4f, strongest constituents: %s.',
            result['method_used'], result['mean'],
            ', '.join(
                f"{row.Name} {row.Amplitude:.3f} m (SNR {row.SNR:.1f})"
                for row in strongest.itertuples()
            ),
        )
        return predict_tide(series.time, result['coef'], logger=logger)

    fit = _tidal_fit(series, logger)
    return predict_from_fit(series.time, fit, logger=logger)
