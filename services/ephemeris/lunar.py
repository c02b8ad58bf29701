"""
HOSHIYOMI Lunar Position Model

Geocentric position of the Moon from a truncated periodic series in the
fundamental arguments:

- L'  mean longitude of the Moon
- D   mean elongation of the Moon from the Sun
- M   mean anomaly of the Sun
- M'  mean anomaly of the Moon
- F   argument of latitude of the Moon

The series keeps the largest terms of the abridged ELP-2000/82 theory
(Meeus, Astronomical Algorithms ch. 47): about 10" in longitude and
4" in latitude for the retained terms, well inside what rise/set timing
to the minute needs.
"""

from __future__ import annotations

from dataclasses import dataclass
from math import radians, sin, cos

from services.ephemeris.constants import MOON_MEAN_DISTANCE_KM
from services.ephemeris.coordinates import (
    ecliptic_to_equatorial,
    mean_obliquity_deg,
    wrap_angle_deg,
)
from services.ephemeris.models import EclipticPosition, EquatorialPosition
from services.ephemeris.timescale import TimeArgument

__all__ = [
    "FundamentalArguments",
    "fundamental_arguments",
    "lunar_position",
    "lunar_equatorial",
]


# Periodic terms for longitude (1e-6 deg, sine) and distance (1e-3 km, cosine).
# Columns: D, M, M', F, longitude coefficient, distance coefficient
_LONGITUDE_DISTANCE_TERMS = (
    (0, 0, 1, 0, 6288774, -20905355),
    (2, 0, -1, 0, 1274027, -3699111),
    (2, 0, 0, 0, 658314, -2955968),
    (0, 0, 2, 0, 213618, -569925),
    (0, 1, 0, 0, -185116, 48888),
    (0, 0, 0, 2, -114332, -3149),
    (2, 0, -2, 0, 58793, 246158),
    (2, -1, -1, 0, 57066, -152138),
    (2, 0, 1, 0, 53322, -170733),
    (2, -1, 0, 0, 45758, -204586),
    (0, 1, -1, 0, -40923, -129620),
    (1, 0, 0, 0, -34720, 108743),
    (0, 1, 1, 0, -30383, 104755),
    (2, 0, 0, -2, 15327, 10321),
    (0, 0, 1, 2, -12528, 0),
    (0, 0, 1, -2, 10980, 79661),
    (4, 0, -1, 0, 10675, -34782),
    (0, 0, 3, 0, 10034, -23210),
    (4, 0, -2, 0, 8548, -21636),
    (2, 1, -1, 0, -7888, 24208),
    (2, 1, 0, 0, -6766, 30824),
    (1, 0, -1, 0, -5163, -8379),
    (1, 1, 0, 0, 4987, -16675),
    (2, -1, 1, 0, 4036, -12831),
    (2, 0, 2, 0, 3994, -10445),
    (4, 0, 0, 0, 3861, -11650),
    (2, 0, -3, 0, 3665, 14403),
    (0, 1, -2, 0, -2689, -7003),
    (2, 0, -1, 2, -2602, 0),
    (2, -1, -2, 0, 2390, 10056),
    (1, 0, 1, 0, -2348, 6322),
    (2, -2, 0, 0, 2236, -9884),
)

# Periodic terms for latitude (1e-6 deg, sine).
# Columns: D, M, M', F, latitude coefficient
_LATITUDE_TERMS = (
    (0, 0, 0, 1, 5128122),
    (0, 0, 1, 1, 280602),
    (0, 0, 1, -1, 277693),
    (2, 0, 0, -1, 173237),
    (2, 0, -1, 1, 55413),
    (2, 0, -1, -1, 46271),
    (2, 0, 0, 1, 32573),
    (0, 0, 2, 1, 17198),
    (2, 0, 1, -1, 9266),
    (0, 0, 2, -1, 8822),
    (2, -1, 0, -1, 8216),
    (2, 0, -2, -1, 4324),
    (2, 0, 1, 1, 4200),
    (2, 1, 0, -1, -3359),
    (2, -1, -1, 1, 2463),
    (2, -1, 0, 1, 2211),
    (2, -1, -1, -1, 2065),
    (0, 1, -1, -1, -1870),
    (4, 0, -1, -1, 1828),
    (0, 1, 0, 1, -1794),
)


@dataclass(frozen=True)
class FundamentalArguments:
    """Fundamental lunar arguments in degrees, plus the eccentricity factor."""

    mean_longitude: float        # L'
    mean_elongation: float       # D
    sun_mean_anomaly: float      # M
    moon_mean_anomaly: float     # M'
    argument_of_latitude: float  # F
    eccentricity_factor: float   # E, scales terms containing M


def fundamental_arguments(t: float) -> FundamentalArguments:
    """
    Fundamental arguments of the lunar theory.

    Args:
        t: Julian centuries of TT since J2000.0

    Returns:
        FundamentalArguments with angles wrapped to [0, 360)
    """
    return FundamentalArguments(
        mean_longitude=wrap_angle_deg(
            218.3164477 + 481267.88123421 * t - 0.0015786 * t**2
            + t**3 / 538841.0 - t**4 / 65194000.0
        ),
        mean_elongation=wrap_angle_deg(
            297.8501921 + 445267.1114034 * t - 0.0018819 * t**2
            + t**3 / 545868.0 - t**4 / 113065000.0
        ),
        sun_mean_anomaly=wrap_angle_deg(
            357.5291092 + 35999.0502909 * t - 0.0001536 * t**2
            + t**3 / 24490000.0
        ),
        moon_mean_anomaly=wrap_angle_deg(
            134.9633964 + 477198.8675055 * t + 0.0087414 * t**2
            + t**3 / 69699.0 - t**4 / 14712000.0
        ),
        argument_of_latitude=wrap_angle_deg(
            93.2720950 + 483202.0175233 * t - 0.0036539 * t**2
            - t**3 / 3526000.0 + t**4 / 863310000.0
        ),
        eccentricity_factor=1.0 - 0.002516 * t - 0.0000074 * t**2,
    )


def lunar_position(time: TimeArgument) -> EclipticPosition:
    """
    Geocentric ecliptic position of the Moon.

    Args:
        time: Time argument of the series

    Returns:
        EclipticPosition (longitude, latitude in degrees; distance in km)
    """
    t = time.centuries
    args = fundamental_arguments(t)

    D = radians(args.mean_elongation)
    M = radians(args.sun_mean_anomaly)
    Mdash = radians(args.moon_mean_anomaly)
    F = radians(args.argument_of_latitude)
    Ldash = radians(args.mean_longitude)
    E = args.eccentricity_factor

    sigma_l = 0.0
    sigma_r = 0.0
    for d, m, mdash, f, coef_l, coef_r in _LONGITUDE_DISTANCE_TERMS:
        arg = d * D + m * M + mdash * Mdash + f * F
        factor = E ** abs(m)
        sigma_l += factor * coef_l * sin(arg)
        sigma_r += factor * coef_r * cos(arg)

    sigma_b = 0.0
    for d, m, mdash, f, coef_b in _LATITUDE_TERMS:
        arg = d * D + m * M + mdash * Mdash + f * F
        sigma_b += E ** abs(m) * coef_b * sin(arg)

    # Additive terms: Venus (A1), Jupiter (A2) and the flattening of the Earth (A3)
    A1 = radians(119.75 + 131.849 * t)
    A2 = radians(53.09 + 479264.290 * t)
    A3 = radians(313.45 + 481266.484 * t)
    sigma_l += 3958.0 * sin(A1) + 1962.0 * sin(Ldash - F) + 318.0 * sin(A2)
    sigma_b += (
        -2235.0 * sin(Ldash)
        + 382.0 * sin(A3)
        + 175.0 * sin(A1 - F)
        + 175.0 * sin(A1 + F)
        + 127.0 * sin(Ldash - Mdash)
        - 115.0 * sin(Ldash + Mdash)
    )

    return EclipticPosition(
        longitude_deg=wrap_angle_deg(args.mean_longitude + sigma_l / 1e6),
        latitude_deg=sigma_b / 1e6,
        distance_km=MOON_MEAN_DISTANCE_KM + sigma_r / 1000.0,
    )


def lunar_equatorial(time: TimeArgument) -> EquatorialPosition:
    """
    Geocentric equatorial position of the Moon, mean equinox of date.

    The distance is carried through so the altitude function can apply
    lunar parallax.
    """
    ecliptic = lunar_position(time)
    ra, dec = ecliptic_to_equatorial(
        ecliptic.longitude_deg,
        ecliptic.latitude_deg,
        mean_obliquity_deg(time.centuries),
    )
    return EquatorialPosition(ra_deg=ra, dec_deg=dec, distance_km=ecliptic.distance_km)
