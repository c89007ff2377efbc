"""
Analysis Subpackage

Provides functionality for:
- Tide removal (zero-phase low-pass filter or harmonic model)
- Harmonic analysis (UTide for long records, robust least squares for short)
- Spectral analysis of whole series and flagged intervals
- Envelope-based extreme detection on the non-tidal residual
- Rule-based event classification with confidence scoring
- The staged analysis run tying these together
"""

from poseidon.analysis.classification import (
    assign_event_type,
    classify_events,
    confidence_score,
    extract_features,
    score_to_confidence,
)
from poseidon.analysis.config import (
    AnalysisConfig,
    TideRemovalMethod,
    load_config,
)
from poseidon.analysis.constituents import (
    CONSTITUENT_SPEEDS,
    NOS_37_CONSTITUENTS,
    select_resolvable_constituents,
)
from poseidon.analysis.errors import (
    AnalysisCancelledError,
    AnalysisError,
    AnalysisFailed,
    DegenerateSignalError,
    ErrorKind,
    InsufficientDataError,
    InvalidConfigError,
    InvalidSeriesError,
    NumericalFailureError,
)
from poseidon.analysis.extremes import (
    compute_envelope,
    detect_extremes,
    find_tidal_extrema,
)
from poseidon.analysis.filtering import (
    butterworth_lowpass,
    compute_nontidal_residual,
)
from poseidon.analysis.harmonic_analysis import (
    fit_harmonic_model,
    harmonic_analysis,
)
from poseidon.analysis.models import (
    AnalysisResult,
    CandidateInterval,
    Confidence,
    DetectedEvent,
    EventType,
    ProcessedData,
    Sample,
    TimeSeries,
)
from poseidon.analysis.orchestrator import (
    AnalysisStage,
    run_full_analysis,
    run_full_analysis_async,
)
from poseidon.analysis.preprocessing import to_equal_interval
from poseidon.analysis.spectral import Spectrum, analyze_spectrum
from poseidon.analysis.tidal_prediction import predict_from_fit, predict_tide
from poseidon.analysis.tide_removal import remove_tide

__all__ = [
    # Data model
    'Sample',
    'TimeSeries',
    'ProcessedData',
    'CandidateInterval',
    'DetectedEvent',
    'EventType',
    'Confidence',
    'AnalysisResult',
    # Configuration
    'AnalysisConfig',
    'TideRemovalMethod',
    'load_config',
    # Errors
    'ErrorKind',
    'AnalysisError',
    'InsufficientDataError',
    'DegenerateSignalError',
    'InvalidConfigError',
    'NumericalFailureError',
    'InvalidSeriesError',
    'AnalysisCancelledError',
    'AnalysisFailed',
    # Constituent definitions
    'NOS_37_CONSTITUENTS',
    'CONSTITUENT_SPEEDS',
    'select_resolvable_constituents',
    # Preprocessing
    'to_equal_interval',
    # Filtering
    'butterworth_lowpass',
    'compute_nontidal_residual',
    # Harmonic analysis
    'harmonic_analysis',
    'fit_harmonic_model',
    # Tidal prediction
    'predict_tide',
    'predict_from_fit',
    # Tide removal
    'remove_tide',
    # Spectral analysis
    'Spectrum',
    'analyze_spectrum',
    # Extreme detection
    'compute_envelope',
    'detect_extremes',
    'find_tidal_extrema',
    # Event classification
    'extract_features',
    'assign_event_type',
    'confidence_score',
    'score_to_confidence',
    'classify_events',
    # Orchestration
    'AnalysisStage',
    'run_full_analysis',
    'run_full_analysis_async',
]
