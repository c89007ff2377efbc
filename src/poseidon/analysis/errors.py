"""
Error kinds raised by the analysis stages.

Stage functions fail fast with a subclass of :class:`AnalysisError`.  The
orchestrator wraps the first failure of a run into a single
:class:`AnalysisFailed` that records the error kind and the stage in which
it happened.
"""
from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Kinds of analysis failure reported to callers."""

    INSUFFICIENT_DATA = 'InsufficientData'
    DEGENERATE_SIGNAL = 'DegenerateSignal'
    INVALID_CONFIG = 'InvalidConfig'
    NUMERICAL_FAILURE = 'NumericalFailure'
    INVALID_SERIES = 'InvalidSeries'
    CANCELLED = 'Cancelled'


class AnalysisError(Exception):
    """Base class for stage-level analysis errors."""

    kind: ErrorKind = ErrorKind.NUMERICAL_FAILURE


class InsufficientDataError(AnalysisError, ValueError):
    """Series too short for the requested computation."""

    kind = ErrorKind.INSUFFICIENT_DATA


class DegenerateSignalError(AnalysisError, ValueError):
    """Series has zero (or numerically zero) variance."""

    kind = ErrorKind.DEGENERATE_SIGNAL


class InvalidConfigError(AnalysisError, ValueError):
    """Configuration value outside its domain."""

    kind = ErrorKind.INVALID_CONFIG


class NumericalFailureError(AnalysisError, ValueError):
    """Non-finite values in the input or produced by a fit/transform."""

    kind = ErrorKind.NUMERICAL_FAILURE


class InvalidSeriesError(AnalysisError, ValueError):
    """Malformed time series (length mismatch, unordered timestamps)."""

    kind = ErrorKind.INVALID_SERIES


class AnalysisCancelledError(AnalysisError):
    """Run cancelled at a stage boundary."""

    kind = ErrorKind.CANCELLED


class AnalysisFailed(Exception):
    """
    Aggregated failure of a full analysis run.

    Attributes
    ----------
    kind : ErrorKind
        Kind of the first error raised during the run.
    stage : AnalysisStage
        Stage that was running (or about to run) when the error occurred.
    cause : Exception
        The original stage-level exception.
    """

    def __init__(self, kind: ErrorKind, stage, cause: Exception):
        self.kind = kind
        self.stage = stage
        self.cause = cause
        stage_name = getattr(stage, 'value', stage)
        super().__init__(
            f"Analysis failed during {stage_name}: {kind.value}: {cause}"
        )
