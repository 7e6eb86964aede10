"""Tests for timetable parsing and the rail route source."""

from datetime import date, datetime

import httpx
import pytest

from gettrain_mcp.config import Settings
from gettrain_mcp.errors import StationLookupError
from gettrain_mcp.rail_client import RailClient
from gettrain_mcp.route_source import RailRouteSource, extract_travels, parse_route, parse_times

DAY = date(2025, 3, 2)
NETIVOT = "Netivot"
SAVIDOR = "Tel Aviv-Savidor Center"


def travel(departure, arrival, trains=None):
    if trains is None:
        trains = [{"orignStation": 9650, "destinationStation": 3700, "trainNumber": 123, "platform": 2}]
    return {"departureTime": departure, "arrivalTime": arrival, "trains": trains}


class TestParseTimes:
    def test_iso(self):
        dep, arr = parse_times("2025-03-02T07:30:00", "2025-03-02T08:20:00", DAY)
        assert dep == datetime(2025, 3, 2, 7, 30)
        assert arr == datetime(2025, 3, 2, 8, 20)

    def test_clock_on_reference_day(self):
        dep, arr = parse_times("07:30", "08:20", DAY)
        assert dep == datetime(2025, 3, 2, 7, 30)
        assert arr == datetime(2025, 3, 2, 8, 20)

    def test_clock_after_midnight(self):
        dep, arr = parse_times("23:40", "00:30", DAY)
        assert dep == datetime(2025, 3, 2, 23, 40)
        assert arr == datetime(2025, 3, 3, 0, 30)

    def test_aware_values_become_naive(self):
        dep, arr = parse_times("2025-03-02T05:30:00Z", "2025-03-02T06:20:00Z", DAY)
        assert dep.tzinfo is None
        assert (arr - dep).total_seconds() == 50 * 60

    def test_garbage(self):
        with pytest.raises(ValueError):
            parse_times("soon", "later", DAY)


class TestParseRoute:
    def test_direct_route(self):
        route = parse_route(travel("2025-03-02T07:30:00", "2025-03-02T08:20:00"), NETIVOT, SAVIDOR, DAY)
        assert route.departure_station == "Netivot"
        assert route.arrival_station == "Tel Aviv-Savidor Center"
        assert route.duration_minutes == 50
        assert route.is_direct
        assert route.train_number == "123"
        assert route.departure_platform == "2"

    def test_route_with_transfer(self):
        trains = [
            {"orignStation": 9650, "destinationStation": 5000, "trainNumber": 7, "platform": 1},
            {"orignStation": 5000, "destinationStation": 2300, "trainNumber": 8, "platform": 3},
        ]
        route = parse_route(
            travel("2025-03-02T07:00:00", "2025-03-02T09:10:00", trains),
            NETIVOT,
            "Haifa-Hof HaKarmel (Razi`el)",
            DAY,
        )
        assert not route.is_direct
        assert route.arrival_station == "Haifa-Hof HaKarmel (Razi`el)"
        assert route.train_number == "7"
        assert route.departure_platform == "1"

    def test_alternative_station_keys(self):
        trains = [{"fromStationId": "8550", "toStationId": "3700"}]
        route = parse_route(travel("07:00", "08:00", trains), "x", "y", DAY)
        assert route.departure_station == "Lehavim-Rahat"
        assert route.arrival_station == SAVIDOR
        assert route.train_number is None
        assert route.departure_platform is None

    def test_without_trains_uses_queried_names(self):
        route = parse_route(travel("07:00", "08:00", trains=[]), NETIVOT, SAVIDOR, DAY)
        assert route.departure_station == NETIVOT
        assert route.arrival_station == SAVIDOR

    def test_missing_time(self):
        assert parse_route({"departureTime": "07:30"}, NETIVOT, SAVIDOR, DAY) is None

    def test_unparseable_time(self):
        assert parse_route(travel("7.30am", "8.20am"), NETIVOT, SAVIDOR, DAY) is None

    def test_arrival_not_after_departure(self):
        data = travel("2025-03-02T08:20:00", "2025-03-02T08:20:00")
        assert parse_route(data, NETIVOT, SAVIDOR, DAY) is None
        data = travel("2025-03-02T08:20:00", "2025-03-02T07:30:00")
        assert parse_route(data, NETIVOT, SAVIDOR, DAY) is None

    def test_malformed_trains(self):
        assert parse_route(travel("07:00", "08:00", trains=["oops"]), NETIVOT, SAVIDOR, DAY) is None

    def test_short_duration_is_kept_and_logged(self, caplog):
        route = parse_route(travel("07:00", "07:10"), NETIVOT, SAVIDOR, DAY)
        assert route.duration_minutes == 10
        assert "Suspiciously short" in caplog.text


class TestExtractTravels:
    def test_result_travels(self):
        assert extract_travels({"result": {"travels": [1, 2]}}) == [1, 2]

    def test_fallback_keys(self):
        assert extract_travels({"travels": [1]}) == [1]
        assert extract_travels({"routes": [2]}) == [2]
        assert extract_travels({"Routes": [3]}) == [3]

    def test_nothing_usable(self):
        assert extract_travels({"result": {}}) == []
        assert extract_travels(["not", "a", "dict"]) == []


def _client(handler) -> RailClient:
    settings = Settings(requests_per_second=1000, rail_api_base="https://rail.test/api")
    return RailClient(settings=settings, transport=httpx.MockTransport(handler))


class TestRailRouteSource:
    @pytest.mark.asyncio
    async def test_fetches_whole_day(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.url.params)
            return httpx.Response(
                200,
                json={
                    "result": {
                        "travels": [
                            travel("2025-03-02T07:30:00", "2025-03-02T08:20:00"),
                            travel("2025-03-02T21:30:00", "2025-03-02T22:20:00"),
                            {"departureTime": None},
                        ]
                    }
                },
            )

        async with _client(handler) as client:
            source = RailRouteSource(client)
            routes = await source.fetch_routes(NETIVOT, SAVIDOR, datetime(2025, 3, 2, 17, 45))

        assert seen["fromStation"] == "9650"
        assert seen["toStation"] == "3700"
        assert seen["date"] == "2025-03-02"
        assert seen["hour"] == "00:00"
        assert [r.departure_time.hour for r in routes] == [7, 21]
        assert source.dropped_records == 1

    @pytest.mark.asyncio
    async def test_server_error_yields_no_routes(self):
        async with _client(lambda request: httpx.Response(503)) as client:
            routes = await RailRouteSource(client).fetch_routes(NETIVOT, SAVIDOR, datetime(2025, 3, 2))
        assert routes == []

    @pytest.mark.asyncio
    async def test_network_error_yields_no_routes(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            routes = await RailRouteSource(client).fetch_routes(NETIVOT, SAVIDOR, datetime(2025, 3, 2))
        assert routes == []

    @pytest.mark.asyncio
    async def test_bad_json_yields_no_routes(self):
        async with _client(lambda request: httpx.Response(200, text="<html>")) as client:
            routes = await RailRouteSource(client).fetch_routes(NETIVOT, SAVIDOR, datetime(2025, 3, 2))
        assert routes == []

    @pytest.mark.asyncio
    async def test_unknown_station_is_fatal(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        async with _client(handler) as client:
            with pytest.raises(StationLookupError):
                await RailRouteSource(client).fetch_routes("Atlantis", SAVIDOR, datetime(2025, 3, 2))
        assert calls == []
