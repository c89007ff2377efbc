"""
Tidal prediction from fitted harmonic models.

Two entry points are provided, one per solver in
:mod:`~poseidon.analysis.harmonic_analysis`:

* :func:`predict_tide` -- predict from a UTide coefficient structure via
  :func:`utide.reconstruct` (nodal corrections applied by UTide).
* :func:`predict_from_fit` -- evaluate a :class:`HarmonicFit` at arbitrary
  timestamps.
"""
from __future__ import annotations

import logging

import numpy as np
import pandas as pd
from utide import reconstruct

from .harmonic_analysis import HarmonicFit
from .preprocessing import hours_since

logger = logging.getLogger(__name__)


def predict_tide(
    time: pd.DatetimeIndex,
    coef: object,
    constit: list[str] | None = None,
    logger: logging.Logger | None = None,
) -> np.ndarray:
    """
    Generate tidal predictions from a UTide coefficient structure.

    Parameters
    ----------
    time : pd.DatetimeIndex
        Prediction times (UTC).
    coef : utide Bunch
        Coefficient structure from
        :func:`~poseidon.analysis.harmonic_analysis.harmonic_analysis`
        (the ``"coef"`` key of the returned dict).
    constit : list of str, optional
        Subset of constituents to include in prediction.  If ``None``,
        all constituents present in *coef* are used.
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.

    Returns
    -------
    np.ndarray
        Predicted water levels (mean + trend + tide).
    """
    _log = logger or logging.getLogger(__name__)
    _log.info('Generating tidal predictions for %d time steps.', len(time))

    result = reconstruct(t=time, coef=coef, constit=constit)
    return np.asarray(result.h, dtype=float)


def predict_from_fit(
    time: pd.DatetimeIndex,
    fit: HarmonicFit,
    logger: logging.Logger | None = None,
) -> np.ndarray:
    """
    Evaluate a least-squares harmonic model at *time*.

    Parameters
    ----------
    time : pd.DatetimeIndex
        Prediction times.
    fit : HarmonicFit
        Model from :func:`~poseidon.analysis.harmonic_analysis.fit_harmonic_model`.
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.

    Returns
    -------
    np.ndarray
        ``mean + slope * t + sum A_k cos(2 pi f_k t - g_k)``.
    """
    _log = logger or logging.getLogger(__name__)

    time = pd.DatetimeIndex(time)
    hours = hours_since(time, fit.reference_time)
    prediction = fit.mean + fit.slope * hours
    for freq, amp, phase in zip(fit.frequencies, fit.amplitudes, fit.phases):
        prediction = prediction + amp * np.cos(
            2.0 * np.pi * freq * hours - np.radians(phase)
        )

    _log.info(
        'Predicted %d time steps from %d harmonic terms.',
        len(time), len(fit.names),
    )
    return np.asarray(prediction, dtype=float)
