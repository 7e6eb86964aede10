"""Raw train routes for a station pair and travel day."""

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from .models import RawRoute
from .rail_client import RailClient
from .station_search import station_id_for_name, station_name_for_id

logger = logging.getLogger(__name__)

SUSPICIOUS_DURATION_MINUTES = 20


class RouteSource(Protocol):
    """Anything that can list a day's train routes between two stations."""

    async def fetch_routes(
        self, from_station: str, to_station: str, reference: datetime
    ) -> list[RawRoute]:
        """Return every route on the calendar day of ``reference``.

        Routes are not filtered by time of day. Station names are canonical
        registry names; an unknown name raises StationLookupError.
        """
        ...


def extract_travels(payload: Any) -> list[dict]:
    """Find the list of travel records in a timetable payload."""
    if not isinstance(payload, dict):
        return []
    result = payload.get("result")
    if isinstance(result, dict) and result.get("travels"):
        travels = result["travels"]
    else:
        travels = payload.get("travels") or payload.get("routes") or payload.get("Routes") or []
    if not isinstance(travels, list):
        travels = [travels] if travels else []
    return travels


def _parse_clock(text: str) -> time | None:
    try:
        return datetime.strptime(text, "%H:%M").time()
    except ValueError:
        return None


def _parse_iso(text: str) -> datetime:
    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        # Local wall-clock time only
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def parse_times(departure_text: str, arrival_text: str, day: date) -> tuple[datetime, datetime]:
    """Parse a departure/arrival pair.

    Bare HH:MM values are placed on ``day``; an HH:MM arrival before its
    departure is taken to be after midnight. Anything else must be ISO-8601.

    Raises:
        ValueError: Either value cannot be parsed.
    """
    departure_clock = _parse_clock(departure_text)
    arrival_clock = _parse_clock(arrival_text)
    if departure_clock and arrival_clock:
        departure = datetime.combine(day, departure_clock)
        arrival = datetime.combine(day, arrival_clock)
        if arrival < departure:
            arrival += timedelta(days=1)
        return departure, arrival
    return _parse_iso(departure_text), _parse_iso(arrival_text)


def parse_route(
    data: dict, from_station: str, to_station: str, day: date
) -> RawRoute | None:
    """Build a RawRoute from one travel record, or None if it is unusable."""
    departure_text = data.get("departureTime")
    arrival_text = data.get("arrivalTime")
    if not departure_text or not arrival_text:
        logger.debug("Travel record without departure/arrival time: %s", data)
        return None

    try:
        departure, arrival = parse_times(str(departure_text), str(arrival_text), day)
    except ValueError:
        logger.debug("Unparseable times %r -> %r", departure_text, arrival_text)
        return None

    trains = data.get("trains") or []
    if not isinstance(trains, list) or not all(isinstance(t, dict) for t in trains):
        logger.debug("Travel record with malformed train legs: %s", data)
        return None

    departure_station = from_station
    arrival_station = to_station
    train_number = None
    platform = None

    if trains:
        first, last = trains[0], trains[-1]
        origin_id = first.get("orignStation") or first.get("originStation") or first.get("fromStationId")
        if origin_id:
            departure_station = station_name_for_id(origin_id)
        destination_id = (
            last.get("destinationStation") or last.get("arrivalStation") or last.get("toStationId")
        )
        if destination_id:
            arrival_station = station_name_for_id(destination_id)
        if first.get("trainNumber") is not None:
            train_number = str(first["trainNumber"])
        if first.get("platform") is not None:
            platform = str(first["platform"])

    duration = int((arrival - departure).total_seconds() // 60)
    try:
        route = RawRoute(
            departure_station=departure_station,
            arrival_station=arrival_station,
            departure_time=departure,
            arrival_time=arrival,
            duration_minutes=duration,
            is_direct=len(trains) == 1,
            train_number=train_number,
            departure_platform=platform,
        )
    except ValidationError:
        logger.debug("Discarding travel record with arrival not after departure: %s", data)
        return None

    if duration < SUSPICIOUS_DURATION_MINUTES:
        logger.warning(
            "Suspiciously short train duration: %dm from %s to %s",
            duration,
            departure_station,
            arrival_station,
        )
    return route


class RailRouteSource:
    """RouteSource backed by the Israel Railways timetable API."""

    def __init__(self, client: RailClient):
        self.client = client
        self.dropped_records = 0

    async def fetch_routes(
        self, from_station: str, to_station: str, reference: datetime
    ) -> list[RawRoute]:
        from_id = station_id_for_name(from_station)
        to_id = station_id_for_name(to_station)
        day = reference.date()

        try:
            payload = await self.client.search_train_luz(
                from_id, to_id, datetime.combine(day, time.min)
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(
                "Timetable request %s -> %s on %s failed: %s", from_station, to_station, day, e
            )
            return []

        travels = extract_travels(payload)
        routes = []
        for record in travels:
            route = parse_route(record, from_station, to_station, day) if isinstance(record, dict) else None
            if route is None:
                self.dropped_records += 1
                continue
            routes.append(route)

        if len(routes) < len(travels):
            logger.info(
                "Dropped %d of %d travel records %s -> %s on %s",
                len(travels) - len(routes),
                len(travels),
                from_station,
                to_station,
                day,
            )
        logger.debug("Parsed %d routes %s -> %s on %s", len(routes), from_station, to_station, day)
        return routes

