"""
HOSHIYOMI Solar Position Model

Low-order geocentric position of the Sun: geometric mean longitude plus the
equation of the centre, corrected for annual aberration (Meeus ch. 25, low
accuracy method, about 0.01 deg). Only the phase/age calculation uses it.
"""

from __future__ import annotations

from math import cos, radians, sin

from services.ephemeris.constants import AU_KM
from services.ephemeris.coordinates import (
    ecliptic_to_equatorial,
    mean_obliquity_deg,
    wrap_angle_deg,
)
from services.ephemeris.models import EclipticPosition, EquatorialPosition
from services.ephemeris.timescale import TimeArgument

__all__ = ["solar_position", "solar_equatorial"]

# Annual aberration at 1 AU
_ABERRATION_DEG = 20.4898 / 3600.0


def solar_position(time: TimeArgument) -> EclipticPosition:
    """
    Geocentric ecliptic position of the Sun.

    Args:
        time: Time argument of the series

    Returns:
        EclipticPosition (apparent longitude, latitude 0; distance in km)
    """
    t = time.centuries

    L0 = 280.46646 + 36000.76983 * t + 0.0003032 * t**2
    M = radians(357.52911 + 35999.05029 * t - 0.0001537 * t**2)
    e = 0.016708634 - 0.000042037 * t - 0.0000001267 * t**2

    C = (
        (1.914602 - 0.004817 * t - 0.000014 * t**2) * sin(M)
        + (0.019993 - 0.000101 * t) * sin(2 * M)
        + 0.000289 * sin(3 * M)
    )

    true_longitude = L0 + C
    true_anomaly = M + radians(C)
    radius_au = 1.000001018 * (1 - e**2) / (1 + e * cos(true_anomaly))

    return EclipticPosition(
        longitude_deg=wrap_angle_deg(true_longitude - _ABERRATION_DEG / radius_au),
        latitude_deg=0.0,
        distance_km=radius_au * AU_KM,
    )


def solar_equatorial(time: TimeArgument) -> EquatorialPosition:
    """Geocentric equatorial position of the Sun, mean equinox of date.

    No distance is attached: solar parallax is not applied to altitudes.
    """
    ecliptic = solar_position(time)
    ra, dec = ecliptic_to_equatorial(
        ecliptic.longitude_deg,
        ecliptic.latitude_deg,
        mean_obliquity_deg(time.centuries),
    )
    return EquatorialPosition(ra_deg=ra, dec_deg=dec)
