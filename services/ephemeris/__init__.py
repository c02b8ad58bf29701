"""
HOSHIYOMI Ephemeris Core

Moon rise/set and age calculations: lunar and solar position series,
topocentric altitude, horizon-crossing solver and phase calculator.
"""

from .engine import (
    MoonEngine,
    get_engine,
    make_instant,
    make_local_instant,
    make_geo,
    parse_utc_offset,
    parse_time_of_day,
    compute_rise_set,
    compute_age,
)

from .models import (
    GeoCoordinate,
    EclipticPosition,
    EquatorialPosition,
    AltitudeSample,
    EventType,
    DayClassification,
    CrossingEvent,
    RiseSetResult,
    PhaseResult,
)

from .riseset import RiseSetParameters, RiseSetSolver
from .timescale import Instant, TimeArgument, to_time_argument

__all__ = [
    "MoonEngine",
    "get_engine",
    "make_instant",
    "make_local_instant",
    "make_geo",
    "parse_utc_offset",
    "parse_time_of_day",
    "compute_rise_set",
    "compute_age",
    "GeoCoordinate",
    "EclipticPosition",
    "EquatorialPosition",
    "AltitudeSample",
    "EventType",
    "DayClassification",
    "CrossingEvent",
    "RiseSetResult",
    "PhaseResult",
    "RiseSetParameters",
    "RiseSetSolver",
    "Instant",
    "TimeArgument",
    "to_time_argument",
]
