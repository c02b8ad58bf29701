"""
HOSHIYOMI Phase/Age Calculator

The Moon's age is read off the Sun-Moon elongation along the ecliptic:
0 deg at new Moon, 180 deg at full Moon. Age scales linearly with it over
one mean synodic month.

The instant of the previous new Moon is found by stepping back by the
elongation divided by its mean daily rate and repeating until the residual
elongation vanishes.
"""

from __future__ import annotations

import logging

from hoshiyomi.exceptions import InternalError
from services.ephemeris.constants import (
    MAX_NEW_MOON_ITERATIONS,
    MEAN_ELONGATION_RATE_DEG_PER_DAY,
    NEW_MOON_TOLERANCE_DEG,
    SYNODIC_PERIOD_DAYS,
)
from services.ephemeris.coordinates import wrap_angle_deg, wrap_angle_pm180
from services.ephemeris.lunar import lunar_position
from services.ephemeris.models import PhaseResult
from services.ephemeris.solar import solar_position
from services.ephemeris.timescale import Instant, TimeArgument, to_time_argument

__all__ = [
    "elongation_deg",
    "phase",
    "find_previous_new_moon",
]

logger = logging.getLogger("hoshiyomi.ephemeris.phase")


def elongation_deg(time: TimeArgument) -> float:
    """Ecliptic longitude of the Moon minus that of the Sun, in [0, 360)."""
    return wrap_angle_deg(lunar_position(time).longitude_deg - solar_position(time).longitude_deg)


def phase(time: TimeArgument, synodic_period_days: float = SYNODIC_PERIOD_DAYS) -> PhaseResult:
    """
    Moon age at a time argument.

    Args:
        time: Time argument of the position series
        synodic_period_days: Length of the mean synodic month

    Returns:
        PhaseResult with 0 <= age_days < synodic_period_days
    """
    elongation = elongation_deg(time)
    age = elongation / 360.0 * synodic_period_days
    # elongation just below 360 can round the product up to the period itself
    if age >= synodic_period_days:
        age = 0.0
    return PhaseResult(age_days=age, elongation_deg=elongation)


def find_previous_new_moon(
    instant: Instant,
    timescale=None,
    tolerance_deg: float = NEW_MOON_TOLERANCE_DEG,
    max_iterations: int = MAX_NEW_MOON_ITERATIONS,
) -> Instant:
    """
    Most recent new Moon at or before an instant.

    Args:
        instant: Starting point of the search
        timescale: Skyfield timescale (default: built-in tables)
        tolerance_deg: Residual elongation accepted as conjunction
        max_iterations: Step budget

    Returns:
        Instant of the new Moon, in the offset of `instant`

    Raises:
        InternalError: If the residual does not drop below the tolerance
            within the step budget.
    """
    current = instant
    # The first step always goes backwards, by the full elongation
    delta = elongation_deg(to_time_argument(current, timescale))

    for iteration in range(max_iterations):
        current = current.plus_days(-delta / MEAN_ELONGATION_RATE_DEG_PER_DAY)
        delta = wrap_angle_pm180(elongation_deg(to_time_argument(current, timescale)))
        if abs(delta) < tolerance_deg:
            logger.debug(f"New Moon at {current.isoformat()} after {iteration + 1} step(s)")
            return current

    raise InternalError(
        f"New Moon search did not converge within {max_iterations} steps "
        f"(residual {delta:.6f} deg)"
    )
