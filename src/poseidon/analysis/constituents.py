"""
NOS standard 37 tidal constituent definitions and speeds.

Defines the 37 tidal constituents used by NOS for harmonic analysis,
matching the ordering in Appendix C of NOAA Technical Report NOS CS 24
(Zhang et al. 2006), together with the helpers the engine uses to pick the
constituents a record can resolve and to recognise tidal-band periods.

Constituent speeds are from Schureman (1958) Special Publication No. 98.
Names use UTide-compatible conventions.
"""
from __future__ import annotations

# ---------------------------------------------------------------------------
# The 37 NOS standard tidal constituents, grouped by type.
# Ordering follows Appendix C of NOS CS 24.
# ---------------------------------------------------------------------------

# -- Semidiurnal (period ~ 12 h) --
SEMIDIURNAL = [
    'M2', 'S2', 'N2', 'K2', '2N2', 'MU2', 'NU2', 'L2', 'T2', 'R2', 'LDA2',
]

# -- Diurnal (period ~ 24 h) --
DIURNAL = [
    'K1', 'O1', 'P1', 'Q1', 'J1', 'M1', 'OO1', '2Q1', 'RHO1',
]

# -- Long-period (period > 1 day) --
LONG_PERIOD = [
    'MF', 'MM', 'SSA', 'SA', 'MSM', 'MSF',
]

# -- Shallow-water / overtides --
SHALLOW_WATER = [
    'M4', 'M6', 'M8', 'MS4', 'MN4', 'MK3', 'S4', 'S6', '2MK3', '2SM2', 'MO3',
]

NOS_37_CONSTITUENTS: list[str] = (
    SEMIDIURNAL + DIURNAL + LONG_PERIOD + SHALLOW_WATER
)
"""List of the 37 NOS standard tidal constituents in Appendix C order."""

# ---------------------------------------------------------------------------
# Constituent angular speeds in degrees per hour.
# Source: Schureman (1958) SP98, Table 2.
# ---------------------------------------------------------------------------

CONSTITUENT_SPEEDS: dict[str, float] = {
    # Semidiurnal
    'M2':   28.9841042,
    'S2':   30.0000000,
    'N2':   28.4397295,
    'K2':   30.0821373,
    '2N2':  27.8953548,
    'MU2':  27.9682084,
    'NU2':  28.5125831,
    'L2':   29.5284789,
    'T2':   29.9589333,
    'R2':   30.0410667,
    'LDA2': 29.4556253,
    # Diurnal
    'K1':   15.0410686,
    'O1':   13.9430356,
    'P1':   14.9589314,
    'Q1':   13.3986609,
    'J1':   15.5854433,
    'M1':   14.4966939,
    'OO1':  16.1391017,
    '2Q1':  12.8542862,
    'RHO1': 13.4715145,
    # Long-period
    'MF':    1.0980331,
    'MM':    0.5443747,
    'SSA':   0.0821373,
    'SA':    0.0410686,
    'MSM':   0.4715211,
    'MSF':   1.0158958,
    # Shallow-water / overtides
    'M4':   57.9682084,
    'M6':   86.9523127,
    'M8':  115.9364169,
    'MS4':  58.9841042,
    'MN4':  57.4238337,
    'MK3':  44.0251729,
    'S4':   60.0000000,
    'S6':   90.0000000,
    '2MK3': 42.9271398,
    '2SM2': 31.0158958,
    'MO3':  42.9271398,
}
"""Angular speeds (degrees/hour) for the 37 NOS standard constituents."""

M2_PERIOD_HOURS = 360.0 / CONSTITUENT_SPEEDS['M2']
"""Principal lunar semidiurnal period (~12.42 h)."""

TIDAL_BAND_HOURS = (10.0, 30.0)
"""Period range searched for the dominant semidiurnal/diurnal tide."""


def constituent_frequency(name: str) -> float:
    """Return the frequency of constituent *name* in cycles per hour."""
    return CONSTITUENT_SPEEDS[name] / 360.0


def constituent_period(name: str) -> float:
    """Return the period of constituent *name* in hours."""
    return 360.0 / CONSTITUENT_SPEEDS[name]


def tidal_band_periods() -> list[float]:
    """Periods (hours) of the semidiurnal and diurnal constituents."""
    return [constituent_period(name) for name in SEMIDIURNAL + DIURNAL]


def select_resolvable_constituents(
    duration_hours: float,
    dt_hours: float,
    fixed_frequencies: list[float] | None = None,
    constit: list[str] | None = None,
    rayleigh_min: float = 1.0,
) -> list[str]:
    """
    Choose the constituents a record can separate (Rayleigh criterion).

    Constituents are taken in NOS priority order and kept when their
    period is at most half the record span, their frequency is below the
    Nyquist frequency, and ``|f - g| * duration >= rayleigh_min`` for every
    frequency *g* already kept (including *fixed_frequencies*).

    Parameters
    ----------
    duration_hours : float
        Record span in hours.
    dt_hours : float
        Sampling interval in hours.
    fixed_frequencies : list of float, optional
        Frequencies (cycles/hour) already in the model, e.g. a tidal
        frequency inferred from the spectrum.
    constit : list of str, optional
        Candidate constituents; defaults to :data:`NOS_37_CONSTITUENTS`.
    rayleigh_min : float, optional
        Rayleigh separation factor (default 1.0).

    Returns
    -------
    list of str
        Selected constituent names, in priority order.
    """
    if constit is None:
        constit = NOS_37_CONSTITUENTS
    nyquist = 1.0 / (2.0 * dt_hours)
    chosen_freqs = list(fixed_frequencies or [])
    selected: list[str] = []

    for name in constit:
        freq = constituent_frequency(name)
        if 1.0 / freq > duration_hours / 2.0 or freq >= nyquist:
            continue
        if any(abs(freq - g) * duration_hours < rayleigh_min
               for g in chosen_freqs):
            continue
        chosen_freqs.append(freq)
        selected.append(name)
    return selected
