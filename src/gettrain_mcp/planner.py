"""Door-to-door journey planning on top of a route source.

Every planning mode runs the same pipeline: enumerate candidate stations,
fetch each station's routes for the day, keep the routes inside a forward or
backward time window, turn the survivors into JourneyOptions and sort the
whole set.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from .errors import ConfigurationError, PlanningInputError
from .locations import DEFAULT_REGISTRY, LocationRegistry
from .models import JourneyOption, JourneyPlan, Office, RawRoute, TrainStation
from .route_source import RouteSource

logger = logging.getLogger(__name__)

ARRIVE_BY_WINDOW_HOURS = 3
DEPART_AFTER_WINDOW_HOURS = 12
RETURN_HOME_WINDOW_HOURS = 3

# Extra slack before a train when leaving home "now".
DEPART_AFTER_BUFFER_MINUTES = 15
# Time to get out of the office before walking to the station.
RETURN_HOME_BUFFER_MINUTES = 10


class WindowDirection(str, Enum):
    """Which end of the window the reference time sits on."""

    FORWARD = "forward"  # departures in [reference, reference + window]
    BACKWARD = "backward"  # arrivals in [reference - window, reference]


class SortBy(str, Enum):
    ARRIVAL_TIME = "arrival_time"
    LEAVE_TIME = "leave_time"


def filter_window(
    routes: Sequence[RawRoute],
    reference: datetime,
    window: timedelta,
    direction: WindowDirection,
) -> list[RawRoute]:
    """Keep the routes that fall inside a closed time window."""
    if direction is WindowDirection.BACKWARD:
        start, end = reference - window, reference
        kept = [r for r in routes if start <= r.arrival_time <= end]
    else:
        start, end = reference, reference + window
        kept = [r for r in routes if start <= r.departure_time <= end]
    logger.debug(
        "%s window %s..%s kept %d of %d routes",
        direction.value,
        start.strftime("%H:%M"),
        end.strftime("%H:%M"),
        len(kept),
        len(routes),
    )
    return kept


def sort_options(
    options: Sequence[JourneyOption],
    sort_by: SortBy,
    arrival_descending: bool,
    rank: Callable[[str], int],
) -> list[JourneyOption]:
    """Order options deterministically.

    ARRIVAL_TIME sorts by final arrival (descending when
    ``arrival_descending``), LEAVE_TIME by leave time, latest first. Ties
    fall back to station rank, then train departure, then train number.
    """

    def key(option: JourneyOption):
        if sort_by is SortBy.LEAVE_TIME:
            primary = -(option.leave_time - datetime.min)
        elif arrival_descending:
            primary = -(option.final_arrival - datetime.min)
        else:
            primary = option.final_arrival - datetime.min
        return (
            primary,
            rank(option.departure_station),
            option.train_departure,
            option.train_number or "",
        )

    return sorted(options, key=key)


def _minutes(delta: timedelta) -> int:
    return int(delta.total_seconds() // 60)


@dataclass(frozen=True)
class _Leg:
    """One station's share of a planning request."""

    station: TrainStation
    from_station: str
    to_station: str
    reference: datetime
    # Minutes between leaving and the train departing, and between the
    # train arriving and the final destination.
    before_train: int
    after_train: int
    drive_minutes: int
    final_transport: int
    # Departure-time plans drop trains that cannot be reached from now.
    usable: Callable[[RawRoute], bool] | None = None


class JourneyPlanner:
    """Plans commutes between home and the offices of a LocationRegistry."""

    def __init__(self, route_source: RouteSource, registry: LocationRegistry = DEFAULT_REGISTRY):
        self.route_source = route_source
        self.registry = registry

    def _office(self, office: Office | str) -> Office:
        return office if isinstance(office, Office) else self.registry.office(office)

    async def plan_arrive_by(
        self,
        office: Office | str,
        deadline: datetime | None,
        window_hours: float = ARRIVE_BY_WINDOW_HOURS,
        sort_by: SortBy = SortBy.ARRIVAL_TIME,
    ) -> JourneyPlan:
        """Plan home to office so that the user arrives by ``deadline``.

        Searches backward from the latest usable train arrival, so the best
        option (latest safe train) comes first by default.
        """
        if deadline is None:
            raise PlanningInputError("An arrival deadline is required for arrive-by planning")
        office = self._office(office)

        required_train_arrival = deadline - timedelta(minutes=office.walk_minutes)
        legs = [
            _Leg(
                station=station,
                from_station=station.name,
                to_station=office.train_station,
                reference=required_train_arrival,
                before_train=station.access_minutes,
                after_train=office.walk_minutes,
                drive_minutes=station.drive_minutes,
                final_transport=office.walk_minutes,
            )
            for station in self.registry.stations
        ]
        options = await self._plan(legs, timedelta(hours=window_hours), WindowDirection.BACKWARD)
        # The window is inclusive; never offer an option that lands late.
        options = [o for o in options if o.final_arrival <= deadline]

        return JourneyPlan(
            reference_time=deadline,
            destination=office.id,
            options=sort_options(
                options, sort_by, arrival_descending=True, rank=self.registry.station_rank
            ),
        )

    async def plan_depart_after(
        self,
        office: Office | str,
        start_time: datetime | None,
        window_hours: float = DEPART_AFTER_WINDOW_HOURS,
        sort_by: SortBy = SortBy.ARRIVAL_TIME,
    ) -> JourneyPlan:
        """Plan home to office leaving at or after ``start_time``."""
        if start_time is None:
            raise PlanningInputError("A start time is required for depart-after planning")
        office = self._office(office)

        legs = []
        for station in self.registry.stations:
            slack = timedelta(minutes=station.access_minutes + DEPART_AFTER_BUFFER_MINUTES)

            def reachable(route: RawRoute, slack: timedelta = slack) -> bool:
                return route.departure_time - slack >= start_time

            legs.append(
                _Leg(
                    station=station,
                    from_station=station.name,
                    to_station=office.train_station,
                    reference=start_time,
                    before_train=station.access_minutes,
                    after_train=office.walk_minutes,
                    drive_minutes=station.drive_minutes,
                    final_transport=office.walk_minutes,
                    usable=reachable,
                )
            )
        options = await self._plan(legs, timedelta(hours=window_hours), WindowDirection.FORWARD)

        return JourneyPlan(
            reference_time=start_time,
            destination=office.id,
            options=sort_options(
                options, sort_by, arrival_descending=False, rank=self.registry.station_rank
            ),
        )

    async def plan_return_home(
        self,
        office: Office | str,
        parked_station: TrainStation | str,
        depart_time: datetime | None,
        window_hours: float = RETURN_HOME_WINDOW_HOURS,
        sort_by: SortBy = SortBy.ARRIVAL_TIME,
    ) -> JourneyPlan:
        """Plan office to home via the station where the car is parked."""
        if depart_time is None:
            raise PlanningInputError("A departure time is required for return-home planning")
        office = self._office(office)
        if not isinstance(parked_station, TrainStation):
            parked_station = self.registry.station(parked_station)

        leg = _Leg(
            station=parked_station,
            from_station=office.train_station,
            to_station=parked_station.name,
            reference=depart_time,
            before_train=office.walk_minutes + RETURN_HOME_BUFFER_MINUTES,
            after_train=parked_station.drive_minutes,
            drive_minutes=parked_station.drive_minutes,
            final_transport=office.walk_minutes,
        )
        options = await self._plan([leg], timedelta(hours=window_hours), WindowDirection.FORWARD)

        return JourneyPlan(
            reference_time=depart_time,
            from_location=office.id,
            parked_station=parked_station.name,
            options=sort_options(
                options, sort_by, arrival_descending=False, rank=self.registry.station_rank
            ),
        )

    async def _plan(
        self,
        legs: Sequence[_Leg],
        window: timedelta,
        direction: WindowDirection,
    ) -> list[JourneyOption]:
        fetched = await asyncio.gather(
            *(self.route_source.fetch_routes(leg.from_station, leg.to_station, leg.reference) for leg in legs),
            return_exceptions=True,
        )

        # Bad input fails the whole request; anything else only costs that station.
        for result in fetched:
            if isinstance(result, (ConfigurationError, PlanningInputError)):
                raise result

        options = []
        for leg, routes in zip(legs, fetched):
            if isinstance(routes, BaseException):
                if not isinstance(routes, Exception):
                    raise routes
                logger.warning(
                    "Fetching routes %s -> %s failed, skipping station: %s",
                    leg.from_station,
                    leg.to_station,
                    routes,
                )
                continue
            for route in filter_window(routes, leg.reference, window, direction):
                if leg.usable is not None and not leg.usable(route):
                    continue
                options.append(build_option(leg, route))
            logger.debug("%s -> %s: %d routes fetched", leg.from_station, leg.to_station, len(routes))

        logger.info("Planned %d journey options across %d station(s)", len(options), len(legs))
        return options


def build_option(leg: _Leg, route: RawRoute) -> JourneyOption:
    """Wrap a train route in the transfers on either side of it."""
    leave_time = route.departure_time - timedelta(minutes=leg.before_train)
    final_arrival = route.arrival_time + timedelta(minutes=leg.after_train)
    return JourneyOption(
        departure_station=leg.station.name,
        leave_time=leave_time,
        train_departure=route.departure_time,
        train_arrival=route.arrival_time,
        final_arrival=final_arrival,
        total_duration_minutes=_minutes(final_arrival - leave_time),
        drive_time_minutes=leg.drive_minutes,
        train_duration_minutes=route.duration_minutes,
        final_transport_minutes=leg.final_transport,
        is_direct=route.is_direct,
        train_number=route.train_number,
        departure_platform=route.departure_platform,
    )
