"""
HOSHIYOMI TimeScale Conversion

Converts civil timestamps into the time scales used by the position series:

- Instant: absolute point in time as fractional days since J2000.0 (UT),
  carrying the UTC offset of the civil input for day windowing and display.
- TimeArgument: the Julian Day in UT (for sidereal time) and in Terrestrial
  Time, plus the Julian-century argument of the series.

TT - UT (delta T) comes from the tables built into Skyfield's timescale.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

from skyfield.api import load

from hoshiyomi.exceptions import InvalidInputError
from services.ephemeris.constants import (
    DAYS_PER_JULIAN_CENTURY,
    EARLIEST_SUPPORTED_UTC,
    J2000_JD,
    J2000_UTC,
    LATEST_SUPPORTED_UTC,
    SECONDS_PER_DAY,
)

__all__ = [
    "Instant",
    "TimeArgument",
    "default_timescale",
    "to_time_argument",
]

_ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class Instant:
    """Absolute point in time."""

    days: float                                # Days since 2000-01-01T12:00 UTC
    utc_offset: timedelta = timedelta(0)       # Offset of the civil input

    def __post_init__(self) -> None:
        if not math.isfinite(self.days):
            raise InvalidInputError(f"Instant must be finite, got {self.days!r}", field="date")

    @classmethod
    def from_datetime(cls, dt: datetime) -> Instant:
        """Create an Instant from a timezone-aware datetime.

        Raises:
            InvalidInputError: If the datetime carries no UTC offset or lies
                outside the supported range.
        """
        offset = dt.utcoffset()
        if offset is None:
            raise InvalidInputError(
                f"Timestamp {dt.isoformat()} has no UTC offset", field="date"
            )
        # Aware comparison works on the UTC moment without building a datetime
        if not EARLIEST_SUPPORTED_UTC <= dt <= LATEST_SUPPORTED_UTC:
            raise InvalidInputError(
                f"Timestamp {dt.isoformat()} is outside the supported range "
                f"{EARLIEST_SUPPORTED_UTC.date()} to {LATEST_SUPPORTED_UTC.date()}",
                field="date",
            )
        return cls(days=(dt - J2000_UTC) / _ONE_DAY, utc_offset=offset)

    @property
    def jd(self) -> float:
        """Julian Day (UT)."""
        return J2000_JD + self.days

    def to_datetime(self) -> datetime:
        """Civil datetime in the offset of the original input."""
        return (J2000_UTC + timedelta(days=self.days)).astimezone(timezone(self.utc_offset))

    def plus_days(self, days: float) -> Instant:
        return Instant(days=self.days + days, utc_offset=self.utc_offset)

    def plus_seconds(self, seconds: float) -> Instant:
        return self.plus_days(seconds / SECONDS_PER_DAY)

    def day_start(self, zone: Optional[timedelta] = None) -> Instant:
        """Midnight opening the civil day of this instant's calendar date.

        Args:
            zone: UTC offset in which the date's day is taken (default: the
                instant's own offset)

        Returns:
            Instant reported in this instant's offset
        """
        local = self.to_datetime()
        tz = timezone(self.utc_offset if zone is None else zone)
        midnight = datetime(local.year, local.month, local.day, tzinfo=tz)
        return Instant(days=(midnight - J2000_UTC) / _ONE_DAY, utc_offset=self.utc_offset)

    def seconds_until(self, other: Instant) -> float:
        return (other.days - self.days) * SECONDS_PER_DAY

    def isoformat(self) -> str:
        return self.to_datetime().isoformat(timespec="seconds")


@dataclass(frozen=True)
class TimeArgument:
    """Time argument of the position series for one Instant."""

    jd_ut: float   # Julian Day, Universal Time
    jd_tt: float   # Julian Day, Terrestrial Time

    @property
    def centuries(self) -> float:
        """Julian centuries of TT since J2000.0."""
        return (self.jd_tt - J2000_JD) / DAYS_PER_JULIAN_CENTURY

    @property
    def delta_t_seconds(self) -> float:
        return (self.jd_tt - self.jd_ut) * SECONDS_PER_DAY


@lru_cache(maxsize=1)
def default_timescale():
    """Skyfield timescale backed by its built-in delta T tables.

    Loaded once per process; the tables are read-only reference data.
    """
    return load.timescale(builtin=True)


def to_time_argument(instant: Instant, timescale=None) -> TimeArgument:
    """Convert an Instant to the time argument of the position series.

    Args:
        instant: Point in time (UT)
        timescale: Skyfield Timescale (default: built-in tables)

    Returns:
        TimeArgument with UT and TT Julian Days

    Raises:
        InvalidInputError: If the resulting time is not finite.
    """
    ts = timescale or default_timescale()
    # UTC and UT1 differ by under a second, well inside the solver tolerance
    t = ts.ut1_jd(instant.jd)
    jd_tt = float(t.tt)
    if not math.isfinite(jd_tt):
        raise InvalidInputError(f"Time {instant.jd} is outside the supported range", field="date")
    return TimeArgument(jd_ut=instant.jd, jd_tt=jd_tt)
