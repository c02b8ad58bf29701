"""
HOSHIYOMI Ephemeris Data Model

Value types exchanged between the components of the computation core.
All of them are immutable and created fresh for every request.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from hoshiyomi.exceptions import InvalidInputError
from services.ephemeris.constants import EARTH_EQUATORIAL_RADIUS_KM
from services.ephemeris.timescale import Instant


@dataclass(frozen=True)
class GeoCoordinate:
    """Observer's location on Earth."""

    latitude: float   # Degrees, positive North
    longitude: float  # Degrees, positive East

    def __post_init__(self) -> None:
        if not math.isfinite(self.latitude) or not -90.0 <= self.latitude <= 90.0:
            raise InvalidInputError(
                f"Latitude must be within [-90, 90], got {self.latitude!r}", field="latitude"
            )
        if not math.isfinite(self.longitude) or not -180.0 <= self.longitude <= 180.0:
            raise InvalidInputError(
                f"Longitude must be within [-180, 180], got {self.longitude!r}", field="longitude"
            )

    @property
    def is_pole(self) -> bool:
        return abs(self.latitude) == 90.0


@dataclass(frozen=True)
class EclipticPosition:
    """Geocentric ecliptic coordinates, mean equinox of date."""

    longitude_deg: float
    latitude_deg: float
    distance_km: float


@dataclass(frozen=True)
class EquatorialPosition:
    """Geocentric equatorial coordinates, mean equinox of date."""

    ra_deg: float                        # Right ascension (degrees, 0-360)
    dec_deg: float                       # Declination (degrees, -90 to +90)
    distance_km: Optional[float] = None  # Needed for parallax; None ignores it

    @property
    def ra_hours(self) -> float:
        return self.ra_deg / 15.0

    @property
    def horizontal_parallax_deg(self) -> float:
        """Equatorial horizontal parallax (0 when distance is unknown)."""
        if not self.distance_km:
            return 0.0
        return math.degrees(math.asin(EARTH_EQUATORIAL_RADIUS_KM / self.distance_km))


@dataclass(frozen=True)
class AltitudeSample:
    """Topocentric altitude of the Moon at one instant."""

    instant: Instant
    altitude_deg: float


class EventType(Enum):
    """Horizon crossing direction."""
    RISE = "rise"
    SET = "set"


class DayClassification(Enum):
    """Outcome of a rise/set search over one civil day."""
    NORMAL = "normal"            # At least one crossing
    CIRCUMPOLAR = "circumpolar"  # Above the threshold all day
    NEVER_RISES = "never_rises"  # Below the threshold all day


@dataclass(frozen=True)
class CrossingEvent:
    """A refined horizon crossing."""

    type: EventType
    instant: Instant


@dataclass(frozen=True)
class RiseSetResult:
    """Moon rise/set outcome for one civil day."""

    classification: DayClassification
    events: tuple[CrossingEvent, ...]
    window_start: Instant
    window_end: Instant

    def _first(self, event_type: EventType) -> Optional[Instant]:
        for event in self.events:
            if event.type is event_type:
                return event.instant
        return None

    @property
    def rise_time(self) -> Optional[Instant]:
        """First moonrise of the day, if any."""
        return self._first(EventType.RISE)

    @property
    def set_time(self) -> Optional[Instant]:
        """First moonset of the day, if any."""
        return self._first(EventType.SET)

    @property
    def circumpolar(self) -> bool:
        return self.classification is DayClassification.CIRCUMPOLAR

    @property
    def never_rises(self) -> bool:
        return self.classification is DayClassification.NEVER_RISES


@dataclass(frozen=True)
class PhaseResult:
    """Moon age derived from the Sun-Moon elongation."""

    age_days: float         # Days since new Moon, 0 <= age < synodic period
    elongation_deg: float   # Moon minus Sun ecliptic longitude, [0, 360)

    @property
    def illuminated_fraction(self) -> float:
        """Illuminated fraction of the disk, 0.0 (new) to 1.0 (full)."""
        return (1 - math.cos(math.radians(self.elongation_deg))) / 2

    @property
    def is_waxing(self) -> bool:
        return self.elongation_deg < 180.0
