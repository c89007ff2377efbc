"""
Series model and result types for the analysis engine.

A :class:`TimeSeries` is an immutable, strictly time-ordered sequence of
water-level samples.  Every stage builds new series from its input instead
of modifying it; :class:`ProcessedData` bundles the original series with its
tidal/trend (``detrended``) and ``residual`` components, and
:class:`DetectedEvent` describes one classified oceanographic event.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Iterable, Iterator

import numpy as np
import pandas as pd

from .errors import InsufficientDataError, InvalidSeriesError
from .filtering import compute_nontidal_residual
from .preprocessing import as_nanoseconds, hours_since

# Relative tolerance for the residual identity check in ProcessedData.
RESIDUAL_TOLERANCE = 1e-9


def median_dt_hours(time) -> float:
    """Estimate the median sampling interval in hours."""
    time = pd.DatetimeIndex(time)
    if len(time) < 2:
        raise InsufficientDataError(
            'At least two samples are required to infer a sampling interval.'
        )
    return float(np.median(np.diff(hours_since(time, time[0]))))


@dataclass(frozen=True)
class Sample:
    """A single (timestamp, value) observation."""

    time: pd.Timestamp
    value: float


@dataclass(frozen=True)
class TimeSeries:
    """
    Immutable univariate time series.

    Parameters
    ----------
    time : pd.DatetimeIndex
        Strictly increasing timestamps.
    values : np.ndarray
        Sample values (metres for water level); copied and made read-only.
    name : str, optional
        Label carried through to derived series (default ``"water_level"``).

    Raises
    ------
    InvalidSeriesError
        If the series is empty, *time* and *values* differ in length, the
        values are not one-dimensional, or timestamps are not strictly
        increasing.
    """

    time: pd.DatetimeIndex
    values: np.ndarray
    name: str = 'water_level'

    def __post_init__(self):
        try:
            time = as_nanoseconds(self.time)
        except (TypeError, ValueError) as exc:
            raise InvalidSeriesError(f"time must be datetime-like: {exc}") from exc
        try:
            values = np.array(self.values, dtype=float)
        except (TypeError, ValueError) as exc:
            raise InvalidSeriesError(f"values must be numeric: {exc}") from exc

        if values.ndim != 1:
            raise InvalidSeriesError(
                f"values must be one-dimensional, got shape {values.shape}."
            )
        if len(time) != len(values):
            raise InvalidSeriesError(
                f"time ({len(time)}) and values ({len(values)}) must have the "
                f"same length."
            )
        if len(time) == 0:
            raise InvalidSeriesError('A time series needs at least one sample.')
        if len(time) > 1 and not (np.diff(time.asi8) > 0).all():
            raise InvalidSeriesError(
                'Timestamps must be unique and strictly increasing.'
            )

        values.setflags(write=False)
        object.__setattr__(self, 'time', time)
        object.__setattr__(self, 'values', values)

    def __len__(self) -> int:
        return len(self.values)

    @property
    def dt_hours(self) -> float:
        """Dominant sampling interval (median gap) in hours."""
        return median_dt_hours(self.time)

    @property
    def duration_hours(self) -> float:
        """Time span between the first and last sample in hours."""
        return (self.time[-1] - self.time[0]).total_seconds() / 3600.0

    @property
    def start(self) -> pd.Timestamp:
        return self.time[0]

    @property
    def end(self) -> pd.Timestamp:
        return self.time[-1]

    def elapsed_hours(self) -> np.ndarray:
        """Hours elapsed since the first sample, per sample."""
        return hours_since(self.time, self.time[0])

    def samples(self) -> Iterator[Sample]:
        for t, v in zip(self.time, self.values):
            yield Sample(time=t, value=float(v))

    def with_values(self, values, name: str | None = None) -> TimeSeries:
        """Return a new series on the same timestamps with other values."""
        return TimeSeries(
            time=self.time, values=values, name=name or self.name,
        )

    def between(self, start, end) -> TimeSeries:
        """Return the inclusive sub-series ``start <= time <= end``."""
        mask = (self.time >= pd.Timestamp(start)) & (self.time <= pd.Timestamp(end))
        if not mask.any():
            raise InsufficientDataError(
                f"No samples between {start} and {end}."
            )
        return TimeSeries(
            time=self.time[mask], values=self.values[mask], name=self.name,
        )

    def to_series(self) -> pd.Series:
        return pd.Series(np.array(self.values), index=self.time, name=self.name)

    @classmethod
    def from_series(cls, series: pd.Series, name: str | None = None) -> TimeSeries:
        return cls(
            time=pd.DatetimeIndex(series.index),
            values=series.to_numpy(dtype=float),
            name=name or (series.name if series.name is not None else 'water_level'),
        )

    @classmethod
    def from_samples(cls, samples: Iterable[Sample], name: str = 'water_level') -> TimeSeries:
        samples = list(samples)
        return cls(
            time=pd.DatetimeIndex([s.time for s in samples]),
            values=np.array([s.value for s in samples], dtype=float),
            name=name,
        )


@dataclass(frozen=True)
class ProcessedData:
    """
    Decomposition of a series into tidal/trend and residual components.

    All three series share identical timestamps and
    ``residual.values == original.values - detrended.values``.
    """

    original: TimeSeries
    detrended: TimeSeries
    residual: TimeSeries

    def __post_init__(self):
        for label, other in (('detrended', self.detrended),
                             ('residual', self.residual)):
            if not self.original.time.equals(other.time):
                raise InvalidSeriesError(
                    f"{label} series must share the original timestamps."
                )
        expected = self.original.values - self.detrended.values
        scale = max(1.0, float(np.max(np.abs(self.original.values))))
        if not np.allclose(self.residual.values, expected,
                           rtol=0.0, atol=RESIDUAL_TOLERANCE * scale):
            raise InvalidSeriesError(
                'residual must equal original minus detrended.'
            )

    @classmethod
    def from_detrended(
        cls,
        original: TimeSeries,
        detrended: TimeSeries,
        logger: logging.Logger | None = None,
    ) -> ProcessedData:
        """Build the bundle, deriving ``residual = original - detrended``."""
        residual = compute_nontidal_residual(
            original.values, detrended.values, logger=logger,
        )
        return cls(
            original=original,
            detrended=detrended,
            residual=original.with_values(residual, name='residual'),
        )

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                'original': np.array(self.original.values),
                'detrended': np.array(self.detrended.values),
                'residual': np.array(self.residual.values),
            },
            index=self.original.time,
        )


class EventType(str, Enum):
    TIDAL_PHASE = 'TidalPhase'
    STORM_SURGE = 'StormSurge'
    SEICHE = 'Seiche'
    ANOMALOUS_WAVE = 'AnomalousWave'


class Confidence(IntEnum):
    """Ordered confidence scale: ``LOW < MEDIUM < HIGH``."""

    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @classmethod
    def parse(cls, value) -> Confidence:
        """Accept a Confidence, its integer level, or a name in any case."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(
                    f"Unknown confidence level '{value}'; expected one of "
                    f"Low, Medium, High."
                ) from None
        return cls(value)

    @property
    def label(self) -> str:
        return self.name.capitalize()


@dataclass(frozen=True)
class CandidateInterval:
    """A flagged stretch of the residual envelope."""

    start_time: pd.Timestamp
    end_time: pd.Timestamp
    peak_magnitude: float
    peak_time: pd.Timestamp
    cutoff: float
    start_index: int
    end_index: int

    @property
    def duration_hours(self) -> float:
        return (self.end_time - self.start_time).total_seconds() / 3600.0


@dataclass(frozen=True)
class DetectedEvent:
    """A classified oceanographic event."""

    event_type: EventType
    start_time: pd.Timestamp
    end_time: pd.Timestamp
    peak_magnitude: float
    confidence: Confidence
    supporting_features: dict[str, float] = field(default_factory=dict)

    def __post_init__(self):
        if self.end_time < self.start_time:
            raise InvalidSeriesError(
                f"Event end {self.end_time} precedes its start "
                f"{self.start_time}."
            )

    @property
    def duration_hours(self) -> float:
        return (self.end_time - self.start_time).total_seconds() / 3600.0

    def to_dict(self) -> dict[str, Any]:
        return {
            'type': self.event_type.value,
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat(),
            'peak_magnitude': float(self.peak_magnitude),
            'confidence': self.confidence.label,
            'supporting_features': {
                k: float(v) for k, v in self.supporting_features.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DetectedEvent:
        return cls(
            event_type=EventType(data['type']),
            start_time=pd.Timestamp(data['start_time']),
            end_time=pd.Timestamp(data['end_time']),
            peak_magnitude=float(data['peak_magnitude']),
            confidence=Confidence.parse(data['confidence']),
            supporting_features={
                k: float(v)
                for k, v in data.get('supporting_features', {}).items()
            },
        )


@dataclass(frozen=True)
class AnalysisResult:
    """Output of a complete analysis run."""

    processed_data: ProcessedData
    events: tuple[DetectedEvent, ...]

    def summary(self) -> dict[str, int]:
        """Event counts per type plus ``"total"``."""
        counts = {event_type.value: 0 for event_type in EventType}
        for event in self.events:
            counts[event.event_type.value] += 1
        counts['total'] = len(self.events)
        return counts

    def events_to_frame(self) -> pd.DataFrame:
        columns = ['type', 'start_time', 'end_time', 'peak_magnitude',
                   'confidence']
        rows = [
            {
                'type': e.event_type.value,
                'start_time': e.start_time,
                'end_time': e.end_time,
                'peak_magnitude': e.peak_magnitude,
                'confidence': e.confidence.label,
            }
            for e in self.events
        ]
        return pd.DataFrame(rows, columns=columns)
