"""
HOSHIYOMI Topocentric Altitude Function

Converts an equatorial position into the altitude above the observer's
horizon. For a body with a known distance (the Moon) the parallax in
altitude is subtracted, which lowers the Moon by up to about one degree
near the horizon and shifts rise/set by several minutes.

Refraction is not applied here; the rise/set solver compares this
altitude with a fixed threshold that accounts for it.
"""

from __future__ import annotations

from math import asin, cos, degrees, radians, sin

from services.ephemeris.coordinates import clamp_unit, hour_angle, local_sidereal_time
from services.ephemeris.lunar import lunar_equatorial
from services.ephemeris.models import EquatorialPosition, GeoCoordinate
from services.ephemeris.timescale import Instant, TimeArgument, to_time_argument

__all__ = [
    "geocentric_altitude",
    "parallax_in_altitude",
    "altitude",
    "moon_altitude",
]


def geocentric_altitude(position: EquatorialPosition, geo: GeoCoordinate, time: TimeArgument) -> float:
    """
    Altitude of a position as seen from the observer, ignoring parallax.

    Args:
        position: Equatorial coordinates of the body
        geo: Observer location
        time: Time argument (its UT Julian Day drives sidereal time)

    Returns:
        Altitude in degrees (-90 to +90)
    """
    lst = local_sidereal_time(time.jd_ut, geo.longitude)
    ha = radians(hour_angle(lst, position.ra_deg))
    dec = radians(position.dec_deg)
    lat = radians(geo.latitude)

    return degrees(asin(clamp_unit(
        sin(dec) * sin(lat) + cos(dec) * cos(lat) * cos(ha)
    )))


def parallax_in_altitude(geocentric_alt_deg: float, horizontal_parallax_deg: float) -> float:
    """
    Parallax in altitude for a spherical Earth.

    The full horizontal parallax applies on the horizon and vanishes at the
    zenith.
    """
    return degrees(asin(clamp_unit(
        sin(radians(horizontal_parallax_deg)) * cos(radians(geocentric_alt_deg))
    )))


def altitude(position: EquatorialPosition, geo: GeoCoordinate, time: TimeArgument) -> float:
    """
    Topocentric altitude in degrees.

    Parallax is applied only when the position carries a distance.
    """
    h = geocentric_altitude(position, geo, time)
    if position.distance_km:
        h -= parallax_in_altitude(h, position.horizontal_parallax_deg)
    return h


def moon_altitude(instant: Instant, geo: GeoCoordinate, timescale=None) -> float:
    """Topocentric altitude of the Moon's centre at an instant."""
    time = to_time_argument(instant, timescale)
    return altitude(lunar_equatorial(time), geo, time)
