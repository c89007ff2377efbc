"""
Data preprocessing: equal-interval resampling and back-projection.

The engine accepts series whose timestamps are not exactly uniform and
assumes a dominant sampling interval (the median gap).  Filters and
spectral estimates run on an equally-spaced grid at that interval; their
results are interpolated back onto the original timestamps.
"""
from __future__ import annotations

import logging

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# Relative deviation of any gap from the median gap tolerated as "uniform".
UNIFORM_TOLERANCE = 0.01

ONE_HOUR = pd.Timedelta(hours=1)


def as_nanoseconds(time) -> pd.DatetimeIndex:
    """
    Return *time* as a nanosecond-resolution :class:`pandas.DatetimeIndex`.

    pandas may build indexes in seconds, milli- or microseconds; integer
    views (``asi8``) are only comparable once the unit is fixed.
    """
    return pd.DatetimeIndex(time).as_unit('ns')


def hours_since(time, reference) -> np.ndarray:
    """Signed hours from *reference* to each timestamp in *time*."""
    offsets = pd.DatetimeIndex(time) - pd.Timestamp(reference)
    return np.asarray(offsets / ONE_HOUR, dtype=float)


def is_equal_interval(time: pd.DatetimeIndex) -> bool:
    """Return True if every gap is within 1 % of the median gap."""
    if len(time) < 3:
        return True
    diffs = np.diff(np.asarray(as_nanoseconds(time).asi8, dtype=float))
    median = np.median(diffs)
    return bool(np.all(np.abs(diffs - median) <= UNIFORM_TOLERANCE * median))


def to_equal_interval(
    time: pd.DatetimeIndex,
    values: np.ndarray,
    target_interval: str | pd.Timedelta | None = None,
    max_gap_hours: float | None = None,
    method: str = 'time',
    logger: logging.Logger | None = None,
) -> tuple[pd.DatetimeIndex, np.ndarray]:
    """
    Convert a time series to an equally-spaced grid with gap-aware filling.

    Parameters
    ----------
    time : pd.DatetimeIndex
        Timestamps of the input observations (need not be equally spaced).
    values : np.ndarray
        Observed values corresponding to *time*.
    target_interval : str or pd.Timedelta, optional
        Target output interval.  Defaults to the median gap of *time*.
    max_gap_hours : float, optional
        Maximum gap size (in hours) that will be interpolated.  Gaps larger
        than this are left as NaN.  ``None`` (default) fills every gap.
    method : str, optional
        Interpolation method passed to :meth:`pandas.Series.interpolate`
        (default ``"time"``).
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.

    Returns
    -------
    new_index : pd.DatetimeIndex
        Equally-spaced time index.
    filled_values : np.ndarray
        Values on the new grid.

    Raises
    ------
    ValueError
        If *time* and *values* have different lengths, or if *time* has
        fewer than two points.
    """
    if len(time) != len(values):
        raise ValueError(
            f"time ({len(time)}) and values ({len(values)}) must have the "
            f"same length."
        )
    if len(time) < 2:
        raise ValueError('At least two data points are required.')

    _log = logger or logging.getLogger(__name__)

    time = as_nanoseconds(time)
    if target_interval is None:
        step = pd.Timedelta(np.median(np.diff(time.asi8)), unit='ns')
    else:
        step = pd.Timedelta(target_interval)

    # Build a regular grid spanning the input range
    new_index = as_nanoseconds(
        pd.date_range(start=time[0], end=time[-1], freq=step)
    )
    _log.info(
        'Reindexing %d points to %d-point regular grid (%s interval).',
        len(time), len(new_index), step,
    )

    # Interpolate on the union of both indexes so off-grid samples are used
    series = pd.Series(np.asarray(values, dtype=float), index=time)
    union = series.reindex(series.index.union(new_index))
    limit = None
    if max_gap_hours is not None:
        limit = max(1, int(max_gap_hours * 3600.0 / step.total_seconds()))
    filled = union.interpolate(
        method=method, limit=limit, limit_area='inside',
    ).reindex(new_index)

    n_remaining_gaps = int(filled.isna().sum())
    _log.info('%d NaN samples remain on the regular grid.', n_remaining_gaps)

    return filled.index, filled.to_numpy(dtype=float)


def from_equal_interval(
    grid_time: pd.DatetimeIndex,
    grid_values: np.ndarray,
    time: pd.DatetimeIndex,
) -> np.ndarray:
    """Linearly interpolate regular-grid values back onto *time*."""
    return np.interp(
        hours_since(time, grid_time[0]),
        hours_since(grid_time, grid_time[0]),
        np.asarray(grid_values, dtype=float),
    )
