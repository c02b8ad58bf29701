"""
HOSHIYOMI Ephemeris Constants

Named astronomical constants and solver defaults used by the computation
core. Everything the rise/set solver depends on is collected here and
bundled into RiseSetParameters, so callers (and tests) can substitute
values without touching module state.
"""

from datetime import datetime, timedelta, timezone
from typing import Final

# =============================================================================
# Time Scales
# =============================================================================

J2000_JD: Final[float] = 2451545.0
J2000_UTC: Final[datetime] = datetime(2000, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
DAYS_PER_JULIAN_CENTURY: Final[float] = 36525.0
SECONDS_PER_DAY: Final[float] = 86400.0
MINUTES_PER_DAY: Final[float] = 1440.0

# Timestamps accepted as input. The margin of two months inside the limits of
# datetime leaves room for the day window and the new Moon search.
EARLIEST_SUPPORTED_UTC: Final[datetime] = datetime(1, 3, 1, tzinfo=timezone.utc)
LATEST_SUPPORTED_UTC: Final[datetime] = datetime(9999, 11, 1, tzinfo=timezone.utc)

# =============================================================================
# Earth and Moon
# =============================================================================

EARTH_EQUATORIAL_RADIUS_KM: Final[float] = 6378.14
MOON_MEAN_DISTANCE_KM: Final[float] = 385000.56
AU_KM: Final[float] = 149597870.7

# =============================================================================
# Horizon
# =============================================================================

# Mean horizontal refraction, 34 arcmin
MEAN_HORIZONTAL_REFRACTION_DEG: Final[float] = 34.0 / 60.0

# Topocentric altitude of the Moon's centre at rise/set
RISE_SET_THRESHOLD_DEG: Final[float] = -MEAN_HORIZONTAL_REFRACTION_DEG

# =============================================================================
# Lunar Phase
# =============================================================================

SYNODIC_PERIOD_DAYS: Final[float] = 29.530588853

# Mean daily growth of the Moon-Sun elongation (360 / synodic period)
MEAN_ELONGATION_RATE_DEG_PER_DAY: Final[float] = 12.1908

NEW_MOON_TOLERANCE_DEG: Final[float] = 1e-4
MAX_NEW_MOON_ITERATIONS: Final[int] = 20

# =============================================================================
# Rise/Set Solver
# =============================================================================

SAMPLE_INTERVAL_MINUTES: Final[float] = 60.0
REFINEMENT_TOLERANCE_SEC: Final[float] = 1.0
MAX_REFINEMENT_ITERATIONS: Final[int] = 60

# Intervals without a sign change are split when an endpoint lies this close
# to the threshold; covers grazing double crossings near the poles
AMBIGUITY_MARGIN_DEG: Final[float] = 1.0
MAX_SUBDIVISION_DEPTH: Final[int] = 4

# A UTC timestamp names a calendar date; its civil day is taken in this zone
UTC_DAY_OFFSET: Final[timedelta] = timedelta(hours=9)
