"""
Analysis configuration.

:class:`AnalysisConfig` is an immutable value threaded explicitly through
every stage of a run.  It can be built directly, from the option mapping a
user interface supplies (:meth:`AnalysisConfig.from_dict`), or from a
section of an INI configuration file (:func:`load_config`).
"""
from __future__ import annotations

import configparser
import logging
import math
import numbers
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any

from .errors import InvalidConfigError
from .filtering import DEFAULT_CUTOFF_HOURS
from .models import Confidence

logger = logging.getLogger(__name__)


class TideRemovalMethod(str, Enum):
    LOWPASS = 'lowpass'
    HARMONIC_MODEL = 'harmonic'

    @classmethod
    def parse(cls, value) -> TideRemovalMethod:
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace('_', '').replace('-', '')
        aliases = {
            'lowpass': cls.LOWPASS,
            'harmonic': cls.HARMONIC_MODEL,
            'harmonicmodel': cls.HARMONIC_MODEL,
        }
        if key not in aliases:
            raise InvalidConfigError(
                f"Unknown tide removal method '{value}'; expected "
                f"'lowpass' or 'harmonic'."
            )
        return aliases[key]


# UI option names (camelCase) mapped to AnalysisConfig fields.
_OPTION_ALIASES = {
    'tideRemovalMethod': 'tide_removal_method',
    'extremeThreshold': 'extreme_threshold',
    'confidenceThreshold': 'confidence_threshold',
    'lowpassCutoffHours': 'lowpass_cutoff_hours',
}


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Options for one analysis run.

    Attributes
    ----------
    tide_removal_method : TideRemovalMethod
        ``LOWPASS`` (zero-phase Butterworth) or ``HARMONIC_MODEL``.
    extreme_threshold : float
        Envelope threshold, ``0 < t <= 100``; higher is more conservative.
        The envelope percentile used is ``70 + 0.3 * t``.
    confidence_threshold : Confidence
        Events below this confidence are discarded.
    lowpass_cutoff_hours : float
        Cutoff period of the low-pass filter.
    latitude : float or None
        Station latitude.  When given, harmonic removal of records of 15
        days or more uses UTide with nodal corrections.
    """

    tide_removal_method: TideRemovalMethod = TideRemovalMethod.LOWPASS
    extreme_threshold: float = 30.0
    confidence_threshold: Confidence = Confidence.MEDIUM
    lowpass_cutoff_hours: float = DEFAULT_CUTOFF_HOURS
    latitude: float | None = None

    def __post_init__(self):
        object.__setattr__(
            self, 'tide_removal_method',
            TideRemovalMethod.parse(self.tide_removal_method),
        )
        try:
            confidence = Confidence.parse(self.confidence_threshold)
        except ValueError as exc:
            raise InvalidConfigError(str(exc)) from exc
        object.__setattr__(self, 'confidence_threshold', confidence)

    def validate(self) -> AnalysisConfig:
        """
        Check numeric options are within their domains.

        Raises
        ------
        InvalidConfigError
            If ``extreme_threshold`` is not in ``(0, 100]``, the low-pass
            cutoff is not positive, or the latitude is not in ``[-90, 90]``.
        """
        threshold = _finite_number('extreme_threshold', self.extreme_threshold)
        if not 0.0 < threshold <= 100.0:
            raise InvalidConfigError(
                f"extreme_threshold must be in (0, 100], got {threshold}."
            )
        cutoff = _finite_number('lowpass_cutoff_hours', self.lowpass_cutoff_hours)
        if not cutoff > 0.0:
            raise InvalidConfigError(
                f"lowpass_cutoff_hours must be positive, got "
                f"{self.lowpass_cutoff_hours}."
            )
        if self.latitude is None:
            return self
        latitude = _finite_number('latitude', self.latitude)
        if not -90.0 <= latitude <= 90.0:
            raise InvalidConfigError(
                f"latitude must be in [-90, 90], got {self.latitude}."
            )
        return self

    @classmethod
    def from_dict(cls, options: dict[str, Any]) -> AnalysisConfig:
        """
        Build a config from UI options (camelCase or snake_case keys).

        Unknown keys raise :class:`InvalidConfigError`.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in options.items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in known:
                raise InvalidConfigError(f"Unknown analysis option '{key}'.")
            kwargs[name] = value
        for name in ('extreme_threshold', 'lowpass_cutoff_hours', 'latitude'):
            if name in kwargs and kwargs[name] is not None:
                if isinstance(kwargs[name], bool):
                    raise InvalidConfigError(
                        f"{name} must be numeric, got {kwargs[name]!r}."
                    )
                try:
                    kwargs[name] = float(kwargs[name])
                except (TypeError, ValueError) as exc:
                    raise InvalidConfigError(
                        f"{name} must be numeric, got {kwargs[name]!r}."
                    ) from exc
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        return {
            'tideRemovalMethod': self.tide_removal_method.value,
            'extremeThreshold': self.extreme_threshold,
            'confidenceThreshold': self.confidence_threshold.label,
            'lowpassCutoffHours': self.lowpass_cutoff_hours,
            'latitude': self.latitude,
        }


def _finite_number(name: str, value) -> float:
    """Return *value* as a float; booleans and non-numbers are rejected."""
    if (isinstance(value, bool) or not isinstance(value, numbers.Real)
            or not math.isfinite(value)):
        raise InvalidConfigError(
            f"{name} must be a finite number, got {value!r}."
        )
    return float(value)


def read_config_section(
    path: str | Path,
    section: str,
    logger: logging.Logger | None = None,
) -> dict[str, str]:
    """
    Read one section of an INI configuration file.

    Parameters
    ----------
    path : str or Path
        Configuration file.
    section : str
        Section name.
    logger : logging.Logger, optional
        Logger instance.

    Returns
    -------
    dict
        Raw string values of the section.

    Raises
    ------
    InvalidConfigError
        If the file cannot be read or lacks *section*.
    """
    _log = logger or logging.getLogger(__name__)

    parser = configparser.ConfigParser()
    parser.optionxform = str  # keep camelCase option names
    if not parser.read(path):
        raise InvalidConfigError(f"Cannot read configuration file {path}.")
    if not parser.has_section(section):
        raise InvalidConfigError(
            f"Configuration file {path} has no [{section}] section."
        )
    values = dict(parser.items(section))
    _log.info('Read %d option(s) from [%s] in %s.', len(values), section, path)
    return values


def load_config(
    path: str | Path,
    section: str = 'analysis',
    logger: logging.Logger | None = None,
) -> AnalysisConfig:
    """Build a validated :class:`AnalysisConfig` from an INI file section."""
    options = read_config_section(path, section, logger=logger)
    if options.get('latitude', '').strip() == '':
        options.pop('latitude', None)
    return AnalysisConfig.from_dict(options).validate()
