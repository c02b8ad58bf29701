"""
HOSHIYOMI Rise/Set Solver

Finds moonrise and moonset within one civil day.

The Moon's altitude is sampled at a fixed interval across the day window.
A change of sign of (altitude - threshold) between two samples brackets a
crossing, which is then refined by bisection. Intervals without a sign change
whose ends lie close to the threshold are split recursively, so a short
excursion above or below the horizon (a grazing Moon near the poles) is not
stepped over. Sample count, subdivision depth and bisection steps are all
bounded, so every call does a fixed, small amount of work.

Usage:
    from services.ephemeris.riseset import RiseSetSolver

    solver = RiseSetSolver()
    result = solver.solve(instant, geo)
    if result.rise_time:
        print(result.rise_time.isoformat())
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional

from hoshiyomi.exceptions import InternalError
from services.ephemeris import constants
from services.ephemeris.altitude import moon_altitude
from services.ephemeris.models import (
    AltitudeSample,
    CrossingEvent,
    DayClassification,
    EventType,
    GeoCoordinate,
    RiseSetResult,
)
from services.ephemeris.timescale import Instant, default_timescale

__all__ = [
    "RiseSetParameters",
    "RiseSetSolver",
    "find_crossings",
]

logger = logging.getLogger("hoshiyomi.ephemeris.riseset")

AltitudeFunction = Callable[[Instant], float]


@dataclass(frozen=True)
class RiseSetParameters:
    """Tunable constants of the rise/set search."""

    threshold_altitude_deg: float = constants.RISE_SET_THRESHOLD_DEG
    sample_interval_minutes: float = constants.SAMPLE_INTERVAL_MINUTES
    refinement_tolerance_sec: float = constants.REFINEMENT_TOLERANCE_SEC
    max_refinement_iterations: int = constants.MAX_REFINEMENT_ITERATIONS
    ambiguity_margin_deg: float = constants.AMBIGUITY_MARGIN_DEG
    max_subdivision_depth: int = constants.MAX_SUBDIVISION_DEPTH
    utc_day_offset: timedelta = constants.UTC_DAY_OFFSET


DEFAULT_PARAMETERS = RiseSetParameters()


class _CrossingSearch:
    """Bracketing and refinement over one window for one altitude function."""

    def __init__(self, altitude_fn: AltitudeFunction, params: RiseSetParameters):
        self._altitude_fn = altitude_fn
        self._params = params

    def sample(self, instant: Instant) -> AltitudeSample:
        return AltitudeSample(instant=instant, altitude_deg=self._altitude_fn(instant))

    def offset(self, sample: AltitudeSample) -> float:
        """Signed distance from the threshold; >= 0 counts as above."""
        return sample.altitude_deg - self._params.threshold_altitude_deg

    def scan(self, a: AltitudeSample, b: AltitudeSample, depth: int = 0) -> list[CrossingEvent]:
        """Find crossings between two consecutive samples."""
        fa = self.offset(a)
        fb = self.offset(b)

        if (fa < 0) != (fb < 0):
            event_type = EventType.RISE if fa < 0 else EventType.SET
            return [CrossingEvent(type=event_type, instant=self.refine(a, b))]

        if depth >= self._params.max_subdivision_depth:
            return []
        if min(abs(fa), abs(fb)) >= self._params.ambiguity_margin_deg:
            return []

        middle = self.sample(a.instant.plus_days((b.instant.days - a.instant.days) / 2))
        return self.scan(a, middle, depth + 1) + self.scan(middle, b, depth + 1)

    def refine(self, lo: AltitudeSample, hi: AltitudeSample) -> Instant:
        """Bisect a bracketed crossing down to the refinement tolerance.

        Raises:
            InternalError: If the bracket does not shrink below the tolerance
                within the iteration budget.
        """
        lo_below = self.offset(lo) < 0
        lo_days = lo.instant.days
        hi_days = hi.instant.days
        tolerance_days = self._params.refinement_tolerance_sec / constants.SECONDS_PER_DAY

        for _ in range(self._params.max_refinement_iterations):
            if hi_days - lo_days <= tolerance_days:
                return lo.instant.plus_days((lo_days + hi_days) / 2 - lo.instant.days)
            mid = lo.instant.plus_days((lo_days + hi_days) / 2 - lo.instant.days)
            mid_below = self.offset(self.sample(mid)) < 0
            if mid_below == lo_below:
                lo_days = mid.days
            else:
                hi_days = mid.days

        raise InternalError(
            f"Crossing refinement did not converge within "
            f"{self._params.max_refinement_iterations} iterations "
            f"(bracket {(hi_days - lo_days) * constants.SECONDS_PER_DAY:.1f}s wide)"
        )


def _sample_instants(start: Instant, end: Instant, interval_minutes: float) -> list[Instant]:
    """Evenly spaced instants covering [start, end], both ends included."""
    span_days = end.days - start.days
    step_days = interval_minutes / constants.MINUTES_PER_DAY
    count = max(1, math.ceil(span_days / step_days - 1e-9))
    return [start.plus_days(min(i * step_days, span_days)) for i in range(count + 1)]


def find_crossings(
    altitude_fn: AltitudeFunction,
    start: Instant,
    end: Instant,
    params: RiseSetParameters = DEFAULT_PARAMETERS,
) -> tuple[list[CrossingEvent], list[AltitudeSample]]:
    """
    Locate every threshold crossing of an altitude curve within a window.

    Args:
        altitude_fn: Altitude in degrees as a function of Instant
        start: Window start
        end: Window end
        params: Search parameters

    Returns:
        (events in chronological order, the regular samples taken)
    """
    search = _CrossingSearch(altitude_fn, params)
    samples = [search.sample(i) for i in _sample_instants(start, end, params.sample_interval_minutes)]

    events: list[CrossingEvent] = []
    for a, b in zip(samples, samples[1:]):
        events.extend(search.scan(a, b))

    # Stable sort keeps distinct events from one interval in bracket order
    events.sort(key=lambda event: event.instant.days)
    return events, samples


class RiseSetSolver:
    """
    Moonrise/moonset search over the civil day of an instant.

    The day is midnight-to-midnight in the UTC offset of the given instant.
    A UTC timestamp names a calendar date only: its day is taken in
    `params.utc_day_offset` (+09:00 unless configured otherwise).
    """

    def __init__(self, params: Optional[RiseSetParameters] = None, timescale=None):
        """
        Initialize the solver.

        Args:
            params: Search parameters (defaults from services.ephemeris.constants)
            timescale: Skyfield timescale (default: built-in tables)
        """
        self.params = params or DEFAULT_PARAMETERS
        self._timescale = timescale

    def solve(self, instant: Instant, geo: GeoCoordinate) -> RiseSetResult:
        """
        Compute rise and set events for the civil day containing `instant`.

        Args:
            instant: Any instant within the day of interest
            geo: Observer location

        Returns:
            RiseSetResult with chronologically ordered events, or a
            circumpolar / never-rises classification and no events
        """
        timescale = self._timescale or default_timescale()
        zone = self.params.utc_day_offset if instant.utc_offset == timedelta(0) else None
        start = instant.day_start(zone)

        def altitude_fn(t: Instant) -> float:
            return moon_altitude(t, geo, timescale)

        result = self.solve_window(altitude_fn, start, start.plus_days(1.0), pole=geo.is_pole)
        logger.debug(
            f"Rise/set for {start.isoformat()} at ({geo.latitude}, {geo.longitude}): "
            f"{result.classification.value}, {len(result.events)} event(s)"
        )
        return result

    def solve_window(
        self,
        altitude_fn: AltitudeFunction,
        start: Instant,
        end: Instant,
        pole: bool = False,
    ) -> RiseSetResult:
        """
        Search an arbitrary altitude curve over [start, end].

        Args:
            altitude_fn: Altitude in degrees as a function of Instant
            start: Window start
            end: Window end
            pole: Observer at a geographic pole; the window is classified
                and no crossings are reported

        Returns:
            RiseSetResult for the window
        """
        threshold = self.params.threshold_altitude_deg

        if pole:
            # The hour angle drops out at the poles; altitude follows declination only
            middle = start.plus_days((end.days - start.days) / 2)
            above = altitude_fn(middle) >= threshold
            return RiseSetResult(
                classification=DayClassification.CIRCUMPOLAR if above else DayClassification.NEVER_RISES,
                events=(),
                window_start=start,
                window_end=end,
            )

        events, samples = find_crossings(altitude_fn, start, end, self.params)

        if events:
            classification = DayClassification.NORMAL
        elif samples[0].altitude_deg >= threshold:
            classification = DayClassification.CIRCUMPOLAR
        else:
            classification = DayClassification.NEVER_RISES

        return RiseSetResult(
            classification=classification,
            events=tuple(events),
            window_start=start,
            window_end=end,
        )
