"""GetTrain MCP server: commute planning between home and the offices."""

import logging
from datetime import datetime, timedelta
from functools import lru_cache

from mcp.server import Server
from mcp.types import Tool, TextContent

from .config import get_settings
from .errors import GetTrainError, PlanningInputError
from .locate import COARSE_TIMEOUT, LastKnownLocation, acquire_location
from .locations import DEFAULT_REGISTRY, canonical_station_name, describe_location, station_labels
from .models import Coordinate, JourneyOption, JourneyPlan, Reminder, ReminderRequest
from .planner import JourneyPlanner, SortBy
from .rail_client import RailClient
from .reminders import AsyncioNotifier, ReminderCoordinator
from .route_source import RailRouteSource
from .station_search import search_stations as offline_search_stations
from .storage import JsonFileStore, StationMemory

logger = logging.getLogger(__name__)

# Create MCP server
app = Server("gettrain-mcp")

OFFICE_IDS = [office.id for office in DEFAULT_REGISTRY.offices]
MAX_OPTIONS = 10


class _State:
    """Long-lived collaborators shared by every tool call."""

    def __init__(self):
        settings = get_settings()
        self.store = JsonFileStore(settings.state_file)
        self.reminders = ReminderCoordinator(AsyncioNotifier(), self.store)
        self.station_memory = StationMemory(self.store)
        self.last_known = LastKnownLocation(self.store)
        self.default_location = settings.default_location


@lru_cache(maxsize=1)
def _state() -> _State:
    return _State()


def parse_datetime(date_str: str | None, time_str: str | None) -> datetime:
    """Parse date and time strings into a datetime object.

    Supports various formats:
    - Date: "2024-02-07", "07/02/2024", "today", "tomorrow", "+2 days"
    - Time: "14:30", "2:30 PM", "14:30:00"

    Raises:
        PlanningInputError: A date or time string is not understood.
    """
    now = datetime.now()
    if date_str is None or date_str.lower() == "today":
        target_date = now
    elif date_str.lower() == "tomorrow":
        target_date = now + timedelta(days=1)
    elif date_str.startswith("+"):
        # "+2 days" format
        try:
            days = int(date_str.split()[0][1:])
        except ValueError:
            raise PlanningInputError(f"Unrecognised relative date '{date_str}'")
        target_date = now + timedelta(days=days)
    else:
        for fmt in ["%Y-%m-%d", "%d/%m/%Y", "%d.%m.%Y"]:
            try:
                target_date = datetime.strptime(date_str, fmt)
                break
            except ValueError:
                continue
        else:
            raise PlanningInputError(f"Unrecognised date '{date_str}'")

    if time_str is None:
        return target_date.replace(second=0, microsecond=0)

    for fmt in ["%H:%M", "%H:%M:%S", "%I:%M %p", "%I:%M:%S %p"]:
        try:
            time_obj = datetime.strptime(time_str, fmt)
            return target_date.replace(
                hour=time_obj.hour, minute=time_obj.minute, second=0, microsecond=0
            )
        except ValueError:
            continue

    raise PlanningInputError(f"Unrecognised time '{time_str}'")


def format_option(option: JourneyOption) -> str:
    """Format a journey option for display."""
    leave = option.leave_time.strftime("%H:%M")
    dept = option.train_departure.strftime("%H:%M")
    arrv = option.train_arrival.strftime("%H:%M")
    final = option.final_arrival.strftime("%H:%M")
    transfer_str = "Direct" if option.is_direct else "With transfers"
    platform = option.departure_platform or "?"
    train = f", train {option.train_number}" if option.train_number else ""

    return (
        f"Leave {leave} via {option.departure_station}: "
        f"train {dept}→{arrv} ({option.train_duration_minutes}min, {transfer_str}, "
        f"Platform {platform}{train}), arrive {final} "
        f"({option.total_duration_minutes}min door to door)"
    )


def format_plan(plan: JourneyPlan) -> str:
    """Format a planning result, echoing the request."""
    ref = plan.reference_time.strftime("%Y-%m-%d %H:%M")
    if plan.destination:
        header = f"Journeys from home to {plan.destination} office (reference {ref}):\n"
    else:
        header = (
            f"Journeys from {plan.from_location} office home via "
            f"{plan.parked_station} (reference {ref}):\n"
        )

    lines = [header]
    if not plan.options:
        lines.append("No journey options found.")
        return "\n".join(lines)

    for i, option in enumerate(plan.options[:MAX_OPTIONS], start=1):
        lines.append(f"  {i}. {format_option(option)}")

    if len(plan.options) > MAX_OPTIONS:
        lines.append(f"\n  ... and {len(plan.options) - MAX_OPTIONS} more")

    return "\n".join(lines)


def format_reminder(reminder: Reminder) -> str:
    """Format the active reminder for display."""
    train = f"train {reminder.train_number}" if reminder.train_number else "train"
    return (
        f"Reminder set: {train} from {reminder.departure_station} at "
        f"{reminder.departure_time.strftime('%H:%M')}. Leave at "
        f"{reminder.leave_time.strftime('%H:%M')}; alert at "
        f"{reminder.notification_time.strftime('%H:%M')}."
    )


_TIMING_PROPERTIES = {
    "timing": {
        "type": "string",
        "enum": ["now", "later"],
        "description": "'now' to leave as soon as possible, 'later' to plan around a given time",
        "default": "now",
    },
    "date": {
        "type": "string",
        "description": "Date in format YYYY-MM-DD or relative (today, tomorrow, +2 days)",
    },
    "sort_by": {
        "type": "string",
        "enum": [s.value for s in SortBy],
        "description": "Order by arrival time (default) or latest leave time first",
        "default": SortBy.ARRIVAL_TIME.value,
    },
}


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="detect_location",
            description="Tell whether the user is at home, at an office or somewhere else",
            inputSchema={
                "type": "object",
                "properties": {
                    "latitude": {"type": "number", "description": "Current latitude in degrees"},
                    "longitude": {"type": "number", "description": "Current longitude in degrees"},
                },
            },
        ),
        Tool(
            name="list_stations",
            description="List the stations near home with their drive times",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="search_stations",
            description="Search for Israel Railways stations by name",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "Station name or partial name (e.g., 'Tel Aviv', 'Haifa')",
                    },
                },
                "required": ["query"],
            },
        ),
        Tool(
            name="plan_journey",
            description="Plan the trip from home to an office",
            inputSchema={
                "type": "object",
                "properties": {
                    "destination": {
                        "type": "string",
                        "enum": OFFICE_IDS,
                        "description": "Office to travel to",
                    },
                    "arrival_time": {
                        "type": "string",
                        "description": "Arrive-by time in 24-hour format, required when timing is 'later'",
                    },
                    **_TIMING_PROPERTIES,
                },
                "required": ["destination"],
            },
        ),
        Tool(
            name="plan_return_journey",
            description="Plan the trip from an office back home via the station where the car is parked",
            inputSchema={
                "type": "object",
                "properties": {
                    "from_location": {
                        "type": "string",
                        "enum": OFFICE_IDS,
                        "description": "Office the user is leaving from",
                    },
                    "parked_station": {
                        "type": "string",
                        "description": "Station where the car is parked (default: this morning's station)",
                    },
                    "departure_time": {
                        "type": "string",
                        "description": "Earliest departure in 24-hour format, required when timing is 'later'",
                    },
                    **_TIMING_PROPERTIES,
                },
                "required": ["from_location"],
            },
        ),
        Tool(
            name="set_reminder",
            description="Get a notification 15 minutes before it is time to leave for a train",
            inputSchema={
                "type": "object",
                "properties": {
                    "departure_station": {"type": "string", "description": "Station the train leaves from"},
                    "train_departure": {"type": "string", "description": "Train departure time (HH:MM)"},
                    "leave_time": {"type": "string", "description": "Time to leave (HH:MM)"},
                    "train_number": {"type": "string", "description": "Train number, if known"},
                    "date": {
                        "type": "string",
                        "description": "Date in format YYYY-MM-DD or relative (default: today)",
                    },
                },
                "required": ["departure_station", "train_departure", "leave_time"],
            },
        ),
        Tool(
            name="get_reminder",
            description="Show the active train reminder",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="cancel_reminder",
            description="Cancel the active train reminder",
            inputSchema={"type": "object", "properties": {}},
        ),
    ]


@app.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls."""
    try:
        state = _state()
        if name == "detect_location":
            result = await _detect_location(state, arguments)
        elif name == "list_stations":
            result = _list_stations()
        elif name == "search_stations":
            result = _search_stations(arguments)
        elif name == "set_reminder":
            result = await _set_reminder(state.reminders, state.station_memory, arguments)
        elif name == "get_reminder":
            result = await _get_reminder(state.reminders)
        elif name == "cancel_reminder":
            result = await _cancel_reminder(state.reminders)
        else:
            async with RailClient() as client:
                planner = JourneyPlanner(RailRouteSource(client))
                if name == "plan_journey":
                    result = await _plan_journey(planner, arguments)
                elif name == "plan_return_journey":
                    result = await _plan_return_journey(planner, state.station_memory, arguments)
                else:
                    result = f"Unknown tool: {name}"

        return [TextContent(type="text", text=result)]
    except Exception as e:
        error_msg = f"Error: {str(e)}"
        logger.error(error_msg, exc_info=True)
        return [TextContent(type="text", text=error_msg)]


async def _detect_location(state: _State, arguments: dict) -> str:
    """Classify the caller's position, falling back to the last known one."""
    latitude = arguments.get("latitude")
    longitude = arguments.get("longitude")

    if latitude is not None and longitude is not None:
        current = Coordinate(latitude=latitude, longitude=longitude)
        await state.last_known.record(current)
    else:
        current = await acquire_location(
            [(state.last_known, COARSE_TIMEOUT)], default=state.default_location
        )

    if current is None:
        return "Location unknown. Choose a destination: " + ", ".join(OFFICE_IDS)

    context = describe_location(current)
    if context.location == "home":
        return "You are at home. Choose a destination: " + ", ".join(OFFICE_IDS)
    if context.return_destination:
        return (
            f"You are at the {context.return_destination} office. "
            "Plan your return journey home."
        )
    return "Location unknown. Choose a destination: " + ", ".join(OFFICE_IDS)


def _list_stations() -> str:
    """List candidate departure stations."""
    lines = ["Stations near home:\n"]
    for station in station_labels():
        lines.append(f"• {station['name']} ({station['drive_time']} min drive)")
    return "\n".join(lines)


def _search_stations(arguments: dict) -> str:
    """Search for stations using bundled offline data."""
    query = arguments.get("query", "")

    if not query:
        return "Error: 'query' parameter is required"

    stations = offline_search_stations(query)

    if not stations:
        return f"No stations found matching '{query}'"

    lines = [f"Found {len(stations)} station(s) matching '{query}':\n"]
    for station in stations[:10]:  # Limit to 10 results
        names = station.get("Eng", [])
        name = names[0] if names else "Unknown"
        heb = ", ".join(station.get("Heb", []))
        display_alt = f" ({heb})" if heb else ""
        lines.append(f"• {name}{display_alt} - id {station.get('Id', '?')}")

    if len(stations) > 10:
        lines.append(f"\n... and {len(stations) - 10} more")

    return "\n".join(lines)


def _sort_by(arguments: dict) -> SortBy:
    return SortBy(arguments.get("sort_by") or SortBy.ARRIVAL_TIME.value)


async def _plan_journey(
    planner: JourneyPlanner, arguments: dict, now: datetime | None = None
) -> str:
    """Plan from home to an office."""
    destination = arguments.get("destination", "")
    timing = arguments.get("timing", "now")

    if not destination:
        return "Error: 'destination' parameter is required"

    try:
        if timing == "now":
            start = now or datetime.now()
            plan = await planner.plan_depart_after(destination, start, sort_by=_sort_by(arguments))
        else:
            arrival_time = arguments.get("arrival_time")
            if not arrival_time:
                return "Error: 'arrival_time' is required when timing is 'later'"
            deadline = parse_datetime(arguments.get("date"), arrival_time)
            plan = await planner.plan_arrive_by(destination, deadline, sort_by=_sort_by(arguments))
    except (GetTrainError, ValueError) as e:
        return f"Error planning journey: {str(e)}"

    return format_plan(plan)


async def _plan_return_journey(
    planner: JourneyPlanner,
    memory: StationMemory,
    arguments: dict,
    now: datetime | None = None,
) -> str:
    """Plan from an office back home."""
    from_location = arguments.get("from_location", "")
    timing = arguments.get("timing", "now")

    if not from_location:
        return "Error: 'from_location' parameter is required"

    parked_station = arguments.get("parked_station") or await memory.recall()
    if not parked_station:
        return "Error: 'parked_station' is required (no station remembered from this morning)"

    try:
        if timing == "now":
            depart = now or datetime.now()
        else:
            departure_time = arguments.get("departure_time")
            if not departure_time:
                return "Error: 'departure_time' is required when timing is 'later'"
            depart = parse_datetime(arguments.get("date"), departure_time)
        plan = await planner.plan_return_home(
            from_location,
            canonical_station_name(parked_station),
            depart,
            sort_by=_sort_by(arguments),
        )
    except (GetTrainError, ValueError) as e:
        return f"Error planning return journey: {str(e)}"

    return format_plan(plan)


async def _set_reminder(
    coordinator: ReminderCoordinator, memory: StationMemory, arguments: dict
) -> str:
    """Arm the single reminder for a chosen train."""
    station = arguments.get("departure_station", "")
    if not station or not arguments.get("train_departure") or not arguments.get("leave_time"):
        return "Error: 'departure_station', 'train_departure' and 'leave_time' are required"

    try:
        date_str = arguments.get("date")
        request = ReminderRequest(
            train_number=arguments.get("train_number"),
            departure_station=canonical_station_name(station),
            departure_time=parse_datetime(date_str, arguments["train_departure"]),
            leave_time=parse_datetime(date_str, arguments["leave_time"]),
        )
    except (GetTrainError, ValueError) as e:
        return f"Error setting reminder: {str(e)}"

    reminder = await coordinator.schedule_request(request)
    if request.departure_station in {s.name for s in DEFAULT_REGISTRY.stations}:
        await memory.remember(request.departure_station)

    if reminder is None:
        return "Too late to set a reminder: it would fire in the past. Leave now!"
    return format_reminder(reminder)


async def _get_reminder(coordinator: ReminderCoordinator) -> str:
    reminder = await coordinator.get_active()
    if reminder is None:
        return "No active reminder."
    return format_reminder(reminder)


async def _cancel_reminder(coordinator: ReminderCoordinator) -> str:
    await coordinator.cancel_active()
    return "Reminder cancelled."


async def main():
    """Run the MCP server."""
    from mcp.server.stdio import stdio_server

    logging.basicConfig(level=get_settings().log_level.upper())

    async with stdio_server() as (read_stream, write_stream):
        init_options = app.create_initialization_options()
        await app.run(read_stream, write_stream, init_options)


def cli():
    """Entry point for console script."""
    import asyncio
    asyncio.run(main())


if __name__ == "__main__":
    cli()
