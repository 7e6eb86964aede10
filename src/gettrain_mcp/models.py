"""Data models for places, train routes, journey options and reminders."""

from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, model_validator


class Coordinate(BaseModel):
    """A WGS84 latitude/longitude pair in degrees."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class Place(BaseModel):
    """A named point of interest."""

    model_config = ConfigDict(frozen=True)

    name: str
    coordinate: Coordinate


class Home(Place):
    """Where the commute starts and ends. No transfer time of its own."""


class Office(Place):
    """An office with the train station that serves it."""

    id: str
    train_station: str
    walk_minutes: int = Field(ge=0)  # station to office, walking or taxi


class TrainStation(Place):
    """A departure station near home, reached by car."""

    drive_minutes: int = Field(ge=0)
    park_minutes: int = Field(ge=0)  # parking plus walk to the platform

    @property
    def access_minutes(self) -> int:
        return self.drive_minutes + self.park_minutes


class RawRoute(BaseModel):
    """One train connection for a single travel day."""

    model_config = ConfigDict(frozen=True)

    departure_station: str
    arrival_station: str
    departure_time: datetime
    arrival_time: datetime
    duration_minutes: int
    is_direct: bool
    train_number: str | None = None
    departure_platform: str | None = None

    @model_validator(mode="after")
    def _arrival_after_departure(self) -> "RawRoute":
        if self.arrival_time <= self.departure_time:
            raise ValueError("arrival_time must be after departure_time")
        return self


class JourneyOption(BaseModel):
    """A door-to-door plan: transfer, train, transfer."""

    model_config = ConfigDict(frozen=True)

    departure_station: str
    leave_time: datetime
    train_departure: datetime
    train_arrival: datetime
    final_arrival: datetime
    total_duration_minutes: int
    drive_time_minutes: int
    train_duration_minutes: int
    final_transport_minutes: int
    is_direct: bool
    train_number: str | None = None
    departure_platform: str | None = None

    @model_validator(mode="after")
    def _ordered_timestamps(self) -> "JourneyOption":
        if not (
            self.leave_time
            <= self.train_departure
            <= self.train_arrival
            <= self.final_arrival
        ):
            raise ValueError(
                "expected leave_time <= train_departure <= train_arrival <= final_arrival"
            )
        return self


class JourneyPlan(BaseModel):
    """Ordered options for one planning request plus an echo of the request."""

    reference_time: datetime
    destination: str | None = None
    from_location: str | None = None
    parked_station: str | None = None
    options: list[JourneyOption] = Field(default_factory=list)


class ReminderRequest(BaseModel):
    """What the notifier needs to tell the user it is time to go."""

    model_config = ConfigDict(frozen=True)

    train_number: str | None = None
    departure_station: str
    departure_time: datetime
    leave_time: datetime

    @classmethod
    def for_option(cls, option: JourneyOption) -> "ReminderRequest":
        return cls(
            train_number=option.train_number,
            departure_station=option.departure_station,
            departure_time=option.train_departure,
            leave_time=option.leave_time,
        )


class Reminder(ReminderRequest):
    """The single active reminder, as stored between runs."""

    notification_id: str
    notification_time: datetime


class LocationContext(BaseModel):
    """Where the user is and what the next screen should offer."""

    location: str  # "home", "office:<id>" or "unknown"
    show_destinations: bool
    return_destination: str | None = None
