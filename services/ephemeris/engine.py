"""
HOSHIYOMI Moon Engine

Boundary of the computation core. Both adapters (the network service and
the command line) go through this module only:

- make_instant / make_local_instant / make_geo: validated input constructors
- MoonEngine.compute_rise_set: rise/set events for the civil day of an instant
- MoonEngine.compute_age: Moon age and elongation at an instant
- MoonEngine.compute_previous_new_moon: most recent new Moon

The engine holds only immutable parameters, so one instance can serve any
number of concurrent requests.

Usage:
    from services.ephemeris.engine import get_engine, make_geo, make_instant

    engine = get_engine()
    instant = make_instant("2022-07-17T00:00:00.000Z")
    geo = make_geo("34.861972", "133.833990")
    print(engine.compute_rise_set(instant, geo).rise_time)
    print(engine.compute_age(instant).age_days)
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

from hoshiyomi.exceptions import InvalidInputError
from services.ephemeris.constants import SYNODIC_PERIOD_DAYS
from services.ephemeris.models import GeoCoordinate, PhaseResult, RiseSetResult
from services.ephemeris.phase import find_previous_new_moon, phase
from services.ephemeris.riseset import RiseSetParameters, RiseSetSolver
from services.ephemeris.timescale import Instant, to_time_argument

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
]

CoordinateInput = Union[str, int, float]

_UTC_OFFSET_PATTERN = re.compile(r"^([+-])(\d{2}):?(\d{2})$")
_TIME_OF_DAY_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


# =============================================================================
# Input constructors
# =============================================================================


def make_instant(value: Union[str, datetime]) -> Instant:
    """
    Build an Instant from an ISO-8601 timestamp with an explicit UTC offset.

    Args:
        value: Timestamp string (e.g. "2022-07-17T00:00:00.000Z") or an
            aware datetime

    Returns:
        Instant carrying the timestamp's UTC offset

    Raises:
        InvalidInputError: Unparseable text, invalid calendar fields, or a
            timestamp without offset.
    """
    if isinstance(value, datetime):
        return Instant.from_datetime(value)
    if not isinstance(value, str):
        raise InvalidInputError(f"Date must be a string, got {type(value).__name__}", field="date")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError as e:
        raise InvalidInputError(f"Invalid date {value!r}: {e}", field="date") from e
    return Instant.from_datetime(dt)


def parse_utc_offset(value: str) -> timedelta:
    """
    Parse a UTC offset of the form +HH:MM, -HHMM or Z.

    Raises:
        InvalidInputError: Malformed offset or one of 24 hours or more.
    """
    text = value.strip()
    if text.upper() in ("Z", "UTC"):
        return timedelta(0)
    match = _UTC_OFFSET_PATTERN.match(text)
    if not match:
        raise InvalidInputError(f"Invalid UTC offset {value!r}, expected ±HH:MM", field="utc_offset")
    sign, hours, minutes = match.groups()
    if int(minutes) >= 60:
        raise InvalidInputError(f"Invalid UTC offset {value!r}", field="utc_offset")
    offset = timedelta(hours=int(hours), minutes=int(minutes))
    if offset >= timedelta(hours=24):
        raise InvalidInputError(f"UTC offset {value!r} out of range", field="utc_offset")
    return -offset if sign == "-" else offset


def parse_time_of_day(value: str) -> time:
    """Parse a wall-clock time HH:MM."""
    match = _TIME_OF_DAY_PATTERN.match(value.strip())
    if not match:
        raise InvalidInputError(f"Invalid time {value!r}, expected HH:MM", field="time")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise InvalidInputError(f"Invalid time {value!r}", field="time")
    return time(hours, minutes)


def make_local_instant(day: str, time_of_day: str = "12:00", utc_offset: str = "+00:00") -> Instant:
    """
    Build an Instant from a calendar date, a wall-clock time and an offset.

    Args:
        day: Date as YYYY-MM-DD
        time_of_day: Wall-clock time as HH:MM
        utc_offset: Offset as ±HH:MM

    Raises:
        InvalidInputError: If any of the three fields is invalid.
    """
    try:
        calendar_day = date.fromisoformat(day.strip())
    except ValueError as e:
        raise InvalidInputError(f"Invalid date {day!r}: {e}", field="date") from e

    tz = timezone(parse_utc_offset(utc_offset))
    return Instant.from_datetime(datetime.combine(calendar_day, parse_time_of_day(time_of_day), tzinfo=tz))


def _parse_coordinate(value: CoordinateInput, field: str) -> float:
    # bool is an int subclass; True must not read as 1 degree
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise InvalidInputError(f"{field.capitalize()} must be a decimal number", field=field)
    try:
        number = float(value)
    except ValueError as e:
        raise InvalidInputError(f"Invalid {field} {value!r}", field=field) from e
    if not math.isfinite(number):
        raise InvalidInputError(f"{field.capitalize()} must be finite, got {value!r}", field=field)
    return number


def make_geo(latitude: CoordinateInput, longitude: CoordinateInput) -> GeoCoordinate:
    """
    Build a GeoCoordinate from decimal-degree strings or numbers.

    Raises:
        InvalidInputError: Unparseable, non-finite or out-of-range value.
    """
    return GeoCoordinate(
        latitude=_parse_coordinate(latitude, "latitude"),
        longitude=_parse_coordinate(longitude, "longitude"),
    )


# =============================================================================
# Engine
# =============================================================================


class MoonEngine:
    """
    Moon rise/set and age calculations.

    Stateless apart from its immutable parameters.
    """

    def __init__(
        self,
        parameters: Optional[RiseSetParameters] = None,
        synodic_period_days: float = SYNODIC_PERIOD_DAYS,
        timescale=None,
    ):
        """
        Initialize the engine.

        Args:
            parameters: Rise/set search parameters (default constants)
            synodic_period_days: Mean synodic month used for the age
            timescale: Skyfield timescale (default: built-in tables)
        """
        self._solver = RiseSetSolver(parameters, timescale)
        self._synodic_period_days = synodic_period_days
        self._timescale = timescale

    @property
    def parameters(self) -> RiseSetParameters:
        return self._solver.params

    @property
    def synodic_period_days(self) -> float:
        return self._synodic_period_days

    def compute_rise_set(self, instant: Instant, geo: GeoCoordinate) -> RiseSetResult:
        """Rise/set events for the civil day containing `instant`."""
        return self._solver.solve(instant, geo)

    def compute_age(self, instant: Instant) -> PhaseResult:
        """Moon age at `instant`."""
        return phase(to_time_argument(instant, self._timescale), self._synodic_period_days)

    def compute_previous_new_moon(self, instant: Instant) -> Instant:
        """Most recent new Moon at or before `instant`."""
        return find_previous_new_moon(instant, self._timescale)


_default_engine: Optional[MoonEngine] = None


def get_engine() -> MoonEngine:
    """Get the engine built from default constants."""
    global _default_engine
    if _default_engine is None:
        _default_engine = MoonEngine()
    return _default_engine


def compute_rise_set(instant: Instant, geo: GeoCoordinate) -> RiseSetResult:
    """Rise/set events with default parameters."""
    return get_engine().compute_rise_set(instant, geo)


def compute_age(instant: Instant) -> PhaseResult:
    """Moon age with the default synodic period."""
    return get_engine().compute_age(instant)
