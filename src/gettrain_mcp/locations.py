"""Fixed places the planner knows about, and classification of a position against them."""

from dataclasses import dataclass

from .errors import PlanningInputError
from .geo import is_at_location
from .models import Coordinate, Home, LocationContext, Office, TrainStation

HOME = Home(
    name="Home",
    coordinate=Coordinate(latitude=31.445083, longitude=34.673111),
)

TLV_OFFICE = Office(
    id="TLV",
    name="TLV Office",
    coordinate=Coordinate(latitude=32.080028, longitude=34.799806),
    train_station="Tel Aviv-Savidor Center",
    walk_minutes=10,
)

HAIFA_OFFICE = Office(
    id="Haifa",
    name="Haifa Office",
    coordinate=Coordinate(latitude=32.765122, longitude=35.015306),
    train_station="Haifa-Hof HaKarmel (Razi`el)",
    walk_minutes=30,  # taxi
)

TRAIN_STATIONS = (
    TrainStation(
        name="Netivot",
        coordinate=Coordinate(latitude=31.411306, longitude=34.571861),
        drive_minutes=20,
        park_minutes=15,
    ),
    TrainStation(
        name="Kiryat Gat",
        coordinate=Coordinate(latitude=31.603444, longitude=34.776472),
        drive_minutes=30,
        park_minutes=15,
    ),
    TrainStation(
        name="Lehavim-Rahat",
        coordinate=Coordinate(latitude=31.369750, longitude=34.798167),
        drive_minutes=20,
        park_minutes=15,
    ),
)

# User-facing labels that differ from the canonical station name.
STATION_ALIASES = {
    "Lehavim": "Lehavim-Rahat",
}

UNKNOWN = "unknown"


@dataclass(frozen=True)
class LocationRegistry:
    """Home, offices and candidate stations, in declaration order."""

    home: Home
    offices: tuple[Office, ...]
    stations: tuple[TrainStation, ...]

    def office(self, office_id: str) -> Office:
        for office in self.offices:
            if office.id == office_id:
                return office
        known = ", ".join(o.id for o in self.offices)
        raise PlanningInputError(f"Unknown office '{office_id}' (expected one of: {known})")

    def station(self, name: str) -> TrainStation:
        canonical = canonical_station_name(name)
        for station in self.stations:
            if station.name == canonical:
                return station
        known = ", ".join(s.name for s in self.stations)
        raise PlanningInputError(f"Unknown station '{name}' (expected one of: {known})")

    def station_rank(self, name: str) -> int:
        """Declaration index of a station; stations not in the registry sort last."""
        for index, station in enumerate(self.stations):
            if station.name == name:
                return index
        return len(self.stations)


DEFAULT_REGISTRY = LocationRegistry(
    home=HOME,
    offices=(TLV_OFFICE, HAIFA_OFFICE),
    stations=TRAIN_STATIONS,
)


def canonical_station_name(label: str) -> str:
    """Map a user-facing station label to its canonical name."""
    return STATION_ALIASES.get(label, label)


def station_labels(registry: LocationRegistry = DEFAULT_REGISTRY) -> list[dict]:
    """User-facing station names with their drive times from home."""
    display = {canonical: label for label, canonical in STATION_ALIASES.items()}
    return [
        {"name": display.get(s.name, s.name), "drive_time": s.drive_minutes}
        for s in registry.stations
    ]


def classify(current: Coordinate, registry: LocationRegistry = DEFAULT_REGISTRY) -> str:
    """Return "home", "office:<id>" or "unknown" for a position.

    Home is tested first, then offices in declaration order; the first place
    within the proximity threshold wins.
    """
    if is_at_location(current, registry.home):
        return "home"
    for office in registry.offices:
        if is_at_location(current, office):
            return f"office:{office.id}"
    return UNKNOWN


def describe_location(
    current: Coordinate, registry: LocationRegistry = DEFAULT_REGISTRY
) -> LocationContext:
    """Classify a position and say whether to offer destinations or a way home."""
    place = classify(current, registry)
    if place.startswith("office:"):
        return LocationContext(
            location=place,
            show_destinations=False,
            return_destination=place.split(":", 1)[1],
        )
    return LocationContext(location=place, show_destinations=True)
