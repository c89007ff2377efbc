"""
Full analysis run: detrending, spectral check, extreme detection and event
classification in sequence.

:func:`run_full_analysis` is the single entry point.  It holds no state
between calls; the configuration is snapshotted at the start of a run and
passed explicitly to every stage, so runs with different configurations
may execute concurrently.  The first stage failure aborts the run with one
:class:`~poseidon.analysis.errors.AnalysisFailed` naming the stage.
"""
from __future__ import annotations

import asyncio
import dataclasses
import functools
import logging
from enum import Enum

import numpy as np

from .classification import classify_events
from .config import AnalysisConfig
from .constituents import TIDAL_BAND_HOURS
from .errors import (
    AnalysisCancelledError,
    AnalysisError,
    AnalysisFailed,
    ErrorKind,
)
from .extremes import detect_extremes
from .models import AnalysisResult, ProcessedData, TimeSeries
from .spectral import analyze_spectrum, dominant_frequencies
from .tide_removal import remove_tide

logger = logging.getLogger(__name__)


class AnalysisStage(str, Enum):
    IDLE = 'Idle'
    DETRENDING = 'Detrending'
    SPECTRAL_ANALYSIS = 'SpectralAnalysis'
    EXTREME_DETECTION = 'ExtremeDetection'
    CLASSIFICATION = 'Classification'
    COMPLETE = 'Complete'
    FAILED = 'Failed'


class _Run:
    """Stage bookkeeping for one call of :func:`run_full_analysis`."""

    def __init__(self, cancel_event, logger: logging.Logger):
        self.stage = AnalysisStage.IDLE
        self.cancel_event = cancel_event
        self.log = logger

    def enter(self, stage: AnalysisStage) -> None:
        cancelled = self.cancel_event is not None and self.cancel_event.is_set()
        if cancelled and stage is not AnalysisStage.COMPLETE:
            self.fail(
                AnalysisCancelledError(f"Run cancelled before {stage.value}."),
                stage=stage,
            )
        self.log.info('Analysis stage: %s -> %s.', self.stage.value, stage.value)
        self.stage = stage

    def fail(self, exc: Exception, stage: AnalysisStage | None = None):
        stage = stage or self.stage
        if isinstance(exc, AnalysisError):
            kind = exc.kind
        elif stage is AnalysisStage.IDLE:
            kind = ErrorKind.INVALID_CONFIG
        else:
            kind = ErrorKind.NUMERICAL_FAILURE
        self.log.error(
            'Analysis stage: %s -> %s (%s: %s).',
            stage.value, AnalysisStage.FAILED.value, kind.value, exc,
        )
        self.stage = AnalysisStage.FAILED
        raise AnalysisFailed(kind, stage, exc) from exc


def run_full_analysis(
    series: TimeSeries,
    config: AnalysisConfig | None = None,
    cancel_event=None,
    logger: logging.Logger | None = None,
) -> AnalysisResult:
    """
    Run the complete analysis pipeline on *series*.

    Parameters
    ----------
    series : TimeSeries
        Raw water-level series.
    config : AnalysisConfig, optional
        Run options; defaults to ``AnalysisConfig()``.
    cancel_event : threading.Event, optional
        Checked before each stage; when set the run stops with a
        ``Cancelled`` failure.  A stage in progress is never interrupted.
    logger : logging.Logger, optional
        Logger instance for diagnostic messages.

    Returns
    -------
    AnalysisResult
        Decomposed series and the detected events in time order.

    Raises
    ------
    AnalysisFailed
        On the first stage failure, with the error kind, the stage and the
        original exception as ``cause``.
    """
    _log = logger or logging.getLogger(__name__)
    run = _Run(cancel_event, _log)

    try:
        config = dataclasses.replace(config or AnalysisConfig()).validate()
    except (AnalysisError, TypeError, ValueError) as exc:
        run.fail(exc)
    _log.info(
        'Starting analysis of %s (%d samples): method=%s, threshold=%.1f, '
        'confidence>=%s.',
        series.name, len(series), config.tide_removal_method.value,
        config.extreme_threshold, config.confidence_threshold.label,
    )

    try:
        run.enter(AnalysisStage.DETRENDING)
        detrended = remove_tide(
            series,
            config.tide_removal_method,
            cutoff_hours=config.lowpass_cutoff_hours,
            latitude=config.latitude,
            logger=_log,
        )
        processed = ProcessedData.from_detrended(series, detrended, logger=_log)

        run.enter(AnalysisStage.SPECTRAL_ANALYSIS)
        spectrum = analyze_spectrum(processed.detrended, logger=_log)
        tidal = dominant_frequencies(
            spectrum, k=1,
            fmin=1.0 / TIDAL_BAND_HOURS[1], fmax=1.0 / TIDAL_BAND_HOURS[0],
        )
        if len(tidal):
            _log.info('Detrended component tidal period: %.3f h.', 1.0 / tidal[0])
        else:
            _log.warning('Detrended component has no tidal-band peak.')

        run.enter(AnalysisStage.EXTREME_DETECTION)
        intervals = detect_extremes(
            processed.residual,
            config.extreme_threshold,
            reference=processed.original,
            logger=_log,
        )

        run.enter(AnalysisStage.CLASSIFICATION)
        events = classify_events(
            intervals,
            spectrum,
            config,
            processed.residual,
            detrended=processed.detrended,
            logger=_log,
        )
    except (
        AnalysisError, np.linalg.LinAlgError, FloatingPointError,
        TypeError, ValueError,
    ) as exc:
        # library errors inside a stage count as numerical failures
        run.fail(exc)

    run.enter(AnalysisStage.COMPLETE)
    result = AnalysisResult(processed_data=processed, events=tuple(events))
    _log.info('Analysis complete: %s.', result.summary())
    return result


async def run_full_analysis_async(
    series: TimeSeries,
    config: AnalysisConfig | None = None,
    cancel_event=None,
    logger: logging.Logger | None = None,
    executor=None,
) -> AnalysisResult:
    """Run :func:`run_full_analysis` in *executor* (default: the loop's)."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        executor,
        functools.partial(
            run_full_analysis, series, config,
            cancel_event=cancel_event, logger=logger,
        ),
    )
