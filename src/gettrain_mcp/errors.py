"""Exceptions raised by the planner and its collaborators."""


class GetTrainError(Exception):
    """Base class for all gettrain errors."""


class ConfigurationError(GetTrainError):
    """Static configuration cannot be used as-is."""


class StationLookupError(ConfigurationError):
    """A canonical station name has no id in the station catalogue."""

    def __init__(self, station_name: str):
        super().__init__(f"Station '{station_name}' is not in the station catalogue")
        self.station_name = station_name


class PlanningInputError(GetTrainError, ValueError):
    """A planning call is missing a required argument or names something unknown."""


class LocationUnavailable(GetTrainError):
    """A location provider has no position to report."""
