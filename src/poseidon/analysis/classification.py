"""
Event classification of flagged residual intervals.

Each :class:`~poseidon.analysis.models.CandidateInterval` is described by a
small set of features (duration, peak-to-cutoff ratio, local spectral
content, polarity) and assigned an :class:`EventType` by an ordered list of
rules; the first rule that matches wins.  Confidence is a composite of the
peak-to-cutoff ratio and how concentrated the local spectrum is.

Rule order and cut points
-------------------------
1. ``Seiche`` -- dominant local period <= ``SEICHE_MAX_PERIOD_HOURS``.
2. ``StormSurge`` -- longer (or undefined) period, duration
   >= ``SURGE_MIN_DURATION_HOURS``, ratio >= ``SURGE_MIN_THRESHOLD_RATIO``
   and either a one-signed excursion (polarity >= ``SURGE_MIN_POLARITY``)
   or a period outside the tidal bands.
3. ``TidalPhase`` -- dominant period within ``TIDAL_BAND_TOLERANCE`` of a
   semidiurnal/diurnal constituent or of the series' own tidal period.
4. ``AnomalousWave`` -- anything else.
"""
from __future__ import annotations

import logging
import math
from typing import Callable, Iterable

import numpy as np
import pandas as pd

from .config import AnalysisConfig
from .constituents import TIDAL_BAND_HOURS, tidal_band_periods
from .errors import InsufficientDataError
from .extremes import find_tidal_extrema
from .models import (
    CandidateInterval,
    Confidence,
    DetectedEvent,
    EventType,
    TimeSeries,
)
from .preprocessing import hours_since
from .spectral import (
    Spectrum,
    dominant_frequencies,
    local_spectrum,
    spectral_concentration,
)

logger = logging.getLogger(__name__)

SEICHE_MAX_PERIOD_HOURS = 2.0
SURGE_MIN_DURATION_HOURS = 1.5
SURGE_MIN_THRESHOLD_RATIO = 2.0
SURGE_MIN_POLARITY = 0.5
TIDAL_BAND_TOLERANCE = 0.15

# Local spectrum window: interval widened by max(duration / 2, 1 h) a side.
WINDOW_PAD_FRACTION = 0.5
WINDOW_PAD_MIN_HOURS = 1.0
LOCAL_OVERSAMPLE = 8

# Confidence score = 0.6 * magnitude + 0.4 * concentration.
MAGNITUDE_WEIGHT = 0.6
CONCENTRATION_WEIGHT = 0.4
RATIO_FULL_SCORE = 4.0
HIGH_SCORE = 0.7
MEDIUM_SCORE = 0.4


# ----------------------------------------------------------------------
# Features
# ----------------------------------------------------------------------

def polarity(values: np.ndarray) -> float:
    """
    ``|sum r|r|| / sum r**2``: 1 for a one-signed excursion, near 0 for a
    balanced oscillation.
    """
    values = np.asarray(values, dtype=float)
    energy = float(np.sum(values ** 2))
    if energy == 0.0:
        return 0.0
    return float(abs(np.sum(values * np.abs(values))) / energy)


def series_tidal_periods(spectrum: Spectrum | None, k: int = 3) -> list[float]:
    """Periods (hours) of the strongest tidal-band peaks of a whole-series spectrum."""
    if spectrum is None or len(spectrum) == 0:
        return []
    freqs = dominant_frequencies(
        spectrum, k=k,
        fmin=1.0 / TIDAL_BAND_HOURS[1], fmax=1.0 / TIDAL_BAND_HOURS[0],
    )
    return [float(1.0 / f) for f in freqs]


def extract_features(
    interval: CandidateInterval,
    residual: TimeSeries,
    spectrum: Spectrum | None = None,
    high_water_times=None,
    logger: logging.Logger | None = None,
) -> dict[str, float]:
    """
    Describe one flagged interval.

    Parameters
    ----------
    interval : CandidateInterval
        Interval from :func:`~poseidon.analysis.extremes.detect_extremes`.
    residual : TimeSeries
        Residual series the interval was detected on.
    spectrum : Spectrum, optional
        Whole-series spectrum; supplies ``series_dominant_period_hours``.
    high_water_times : pd.DatetimeIndex, optional
        High-water times of the tidal component; supplies
        ``hours_from_high_water``.
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.

    Returns
    -------
    dict
        ``duration_hours``, ``peak_magnitude``, ``threshold_ratio``,
        ``dominant_period_hours``, ``dominant_frequency_cph``,
        ``spectral_concentration``, ``polarity``,
        ``series_dominant_period_hours`` and, when high waters are known,
        ``hours_from_high_water``.
    """
    _log = logger or logging.getLogger(__name__)

    duration = interval.duration_hours
    pad = pd.Timedelta(hours=max(WINDOW_PAD_FRACTION * duration,
                                 WINDOW_PAD_MIN_HOURS))
    try:
        local = local_spectrum(
            residual, interval.start_time - pad, interval.end_time + pad,
            oversample=LOCAL_OVERSAMPLE, logger=_log,
        )
    except InsufficientDataError:
        # too few samples around the interval for a spectrum
        local = None

    period = frequency = math.nan
    concentration = 0.0
    peaks = dominant_frequencies(local, k=1) if local is not None else []
    if len(peaks):
        frequency = float(peaks[0])
        period = 1.0 / frequency
        concentration = spectral_concentration(
            local, frequency, local.resolution,
        )

    values = residual.values[interval.start_index:interval.end_index + 1]
    features = {
        'duration_hours': duration,
        'peak_magnitude': float(interval.peak_magnitude),
        'threshold_ratio': float(interval.peak_magnitude / interval.cutoff)
        if interval.cutoff > 0 else math.inf,
        'dominant_period_hours': period,
        'dominant_frequency_cph': frequency,
        'spectral_concentration': concentration,
        'polarity': polarity(values),
        'series_dominant_period_hours': math.nan,
    }

    if spectrum is not None and len(spectrum):
        overall = dominant_frequencies(spectrum, k=1)
        if len(overall):
            features['series_dominant_period_hours'] = float(1.0 / overall[0])

    if high_water_times is not None and len(high_water_times):
        offsets = -hours_since(high_water_times, interval.peak_time)
        features['hours_from_high_water'] = float(
            offsets[int(np.argmin(np.abs(offsets)))]
        )

    return features


# ----------------------------------------------------------------------
# Type rules
# ----------------------------------------------------------------------

def in_tidal_band(
    period_hours: float,
    tidal_periods: Iterable[float],
    tolerance: float = TIDAL_BAND_TOLERANCE,
) -> bool:
    """True if *period_hours* is within ``tolerance`` of any tidal period."""
    if not math.isfinite(period_hours):
        return False
    return any(abs(period_hours - p) <= tolerance * p for p in tidal_periods)


def is_seiche(features: dict, tidal_periods: list[float]) -> bool:
    period = features['dominant_period_hours']
    return math.isfinite(period) and period <= SEICHE_MAX_PERIOD_HOURS


def is_storm_surge(features: dict, tidal_periods: list[float]) -> bool:
    period = features['dominant_period_hours']
    if math.isfinite(period) and period <= SEICHE_MAX_PERIOD_HOURS:
        return False
    return (
        features['duration_hours'] >= SURGE_MIN_DURATION_HOURS
        and features['threshold_ratio'] >= SURGE_MIN_THRESHOLD_RATIO
        and (features['polarity'] >= SURGE_MIN_POLARITY
             or not in_tidal_band(period, tidal_periods))
    )


def is_tidal_phase(features: dict, tidal_periods: list[float]) -> bool:
    return in_tidal_band(features['dominant_period_hours'], tidal_periods)


RULES: tuple[tuple[EventType, Callable[[dict, list[float]], bool]], ...] = (
    (EventType.SEICHE, is_seiche),
    (EventType.STORM_SURGE, is_storm_surge),
    (EventType.TIDAL_PHASE, is_tidal_phase),
)


def assign_event_type(
    features: dict,
    tidal_periods: list[float] | None = None,
) -> EventType:
    """Apply :data:`RULES` in order; ``AnomalousWave`` if none match."""
    if tidal_periods is None:
        tidal_periods = tidal_band_periods()
    for event_type, rule in RULES:
        if rule(features, tidal_periods):
            return event_type
    return EventType.ANOMALOUS_WAVE


# ----------------------------------------------------------------------
# Confidence
# ----------------------------------------------------------------------

def confidence_score(threshold_ratio: float, concentration: float) -> float:
    """Composite score in ``[0, 1]``."""
    magnitude = float(np.clip(
        (threshold_ratio - 1.0) / (RATIO_FULL_SCORE - 1.0), 0.0, 1.0,
    ))
    concentration = float(np.clip(concentration, 0.0, 1.0))
    return MAGNITUDE_WEIGHT * magnitude + CONCENTRATION_WEIGHT * concentration


def score_to_confidence(score: float) -> Confidence:
    if score >= HIGH_SCORE:
        return Confidence.HIGH
    if score >= MEDIUM_SCORE:
        return Confidence.MEDIUM
    return Confidence.LOW


# ----------------------------------------------------------------------
# Entry point
# ----------------------------------------------------------------------

def classify_events(
    intervals: list[CandidateInterval],
    spectrum: Spectrum | None,
    config: AnalysisConfig,
    residual: TimeSeries,
    detrended: TimeSeries | None = None,
    logger: logging.Logger | None = None,
) -> list[DetectedEvent]:
    """
    Type, score and filter flagged intervals.

    Parameters
    ----------
    intervals : list of CandidateInterval
        Output of :func:`~poseidon.analysis.extremes.detect_extremes`.
    spectrum : Spectrum or None
        Whole-series spectrum of the tidal component.  Its tidal-band
        peaks extend the constituent periods used by the ``TidalPhase``
        rule.
    config : AnalysisConfig
        Supplies ``confidence_threshold``.
    residual : TimeSeries
        Residual the intervals were detected on.
    detrended : TimeSeries, optional
        Tidal component; when given, events carry their offset from the
        nearest high water.
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.

    Returns
    -------
    list of DetectedEvent
        Events at or above ``config.confidence_threshold``, in time order.
    """
    _log = logger or logging.getLogger(__name__)

    tidal_periods = tidal_band_periods() + series_tidal_periods(spectrum)
    high_waters = None
    if detrended is not None and len(detrended) >= 3:
        high_waters = find_tidal_extrema(detrended, logger=_log)['high_water_times']

    events = []
    dropped = 0
    for interval in sorted(intervals, key=lambda iv: iv.start_time):
        features = extract_features(
            interval, residual, spectrum=spectrum,
            high_water_times=high_waters, logger=_log,
        )
        event_type = assign_event_type(features, tidal_periods)
        score = confidence_score(
            features['threshold_ratio'], features['spectral_concentration'],
        )
        features['confidence_score'] = score
        confidence = score_to_confidence(score)
        if confidence < config.confidence_threshold:
            dropped += 1
            continue
        events.append(DetectedEvent(
            event_type=event_type,
            start_time=interval.start_time,
            end_time=interval.end_time,
            peak_magnitude=interval.peak_magnitude,
            confidence=confidence,
            supporting_features=features,
        ))

    _log.info(
        'Classified %d interval(s): %d event(s) kept, %d below %s confidence.',
        len(intervals), len(events), dropped, config.confidence_threshold.label,
    )
    return events
