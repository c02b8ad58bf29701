"""
coordinates.py
Angle and coordinate-frame utilities shared by the position models.

All angles are in degrees unless otherwise stated.

Conventions:
- Longitude: positive East of Greenwich
- Latitude: positive North
- Ecliptic and equatorial frames: mean equinox of date
"""

from math import asin, atan2, cos, degrees, radians, sin, tan

from services.ephemeris.constants import DAYS_PER_JULIAN_CENTURY, J2000_JD

# -----------------------------------------------------------------------------
# UTILITY FUNCTIONS
# -----------------------------------------------------------------------------


def wrap_angle_deg(angle):
    """
    Wrap an angle to the range [0, 360).

    Args:
        angle (float): Angle in degrees.

    Returns:
        float: Wrapped angle in degrees.
    """
    wrapped = angle % 360.0
    # -1e-17 % 360.0 rounds to 360.0
    return 0.0 if wrapped == 360.0 else wrapped


def wrap_angle_pm180(angle):
    """
    Wrap an angle to the range [-180, +180).

    Args:
        angle (float): Angle in degrees.

    Returns:
        float: Wrapped angle in degrees.
    """
    a = wrap_angle_deg(angle)
    return a - 360.0 if a >= 180.0 else a


def clamp_unit(x):
    """Clamp x to [-1, 1] before an inverse trigonometric call."""
    return max(-1.0, min(1.0, x))


# -----------------------------------------------------------------------------
# ECLIPTIC <-> EQUATORIAL
# -----------------------------------------------------------------------------


def mean_obliquity_deg(t):
    """
    Mean obliquity of the ecliptic (IAU 1980 polynomial).

    Args:
        t (float): Julian centuries of TT since J2000.0.

    Returns:
        float: Obliquity in degrees.
    """
    seconds = 21.448 - 46.8150 * t - 0.00059 * t**2 + 0.001813 * t**3
    return 23.0 + 26.0 / 60.0 + seconds / 3600.0


def ecliptic_to_equatorial(lon_deg, lat_deg, obliquity_deg):
    """
    Convert ecliptic coordinates to equatorial coordinates.

    Args:
        lon_deg (float): Ecliptic longitude in degrees.
        lat_deg (float): Ecliptic latitude in degrees.
        obliquity_deg (float): Obliquity of the ecliptic in degrees.

    Returns:
        tuple:
            ra_deg (float): Right ascension in degrees [0, 360).
            dec_deg (float): Declination in degrees.
    """
    lam = radians(lon_deg)
    beta = radians(lat_deg)
    eps = radians(obliquity_deg)

    ra = atan2(sin(lam) * cos(eps) - tan(beta) * sin(eps), cos(lam))
    dec = asin(clamp_unit(sin(beta) * cos(eps) + cos(beta) * sin(eps) * sin(lam)))

    return wrap_angle_deg(degrees(ra)), degrees(dec)


# -----------------------------------------------------------------------------
# SIDEREAL TIME
# -----------------------------------------------------------------------------


def greenwich_mean_sidereal_time(jd_ut):
    """
    Greenwich Mean Sidereal Time (IAU 1982 expression).

    Args:
        jd_ut (float): Julian Day (UT).

    Returns:
        float: GMST in degrees [0, 360).
    """
    d = jd_ut - J2000_JD
    T = d / DAYS_PER_JULIAN_CENTURY
    gmst = (
        280.46061837 +
        360.98564736629 * d +
        0.000387933 * T**2 -
        T**3 / 38710000.0
    )
    return wrap_angle_deg(gmst)


def local_sidereal_time(jd_ut, longitude_deg):
    """
    Local Mean Sidereal Time.

    Args:
        jd_ut (float): Julian Day (UT).
        longitude_deg (float): Observer longitude in degrees
            (positive East of Greenwich).

    Returns:
        float: Local Sidereal Time in degrees [0, 360).
    """
    return wrap_angle_deg(greenwich_mean_sidereal_time(jd_ut) + longitude_deg)


def hour_angle(lst_deg, ra_deg):
    """Hour angle in degrees [-180, +180); negative east of the meridian."""
    return wrap_angle_pm180(lst_deg - ra_deg)
