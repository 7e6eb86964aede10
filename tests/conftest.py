"""Shared fakes for planner, reminder and server tests."""

import asyncio
from datetime import datetime, timedelta

import pytest

from gettrain_mcp.models import RawRoute, ReminderRequest

DAY = datetime(2025, 3, 2)


def at(hhmm: str, day: datetime = DAY) -> datetime:
    """2025-03-02 at the given HH:MM."""
    hours, minutes = (int(part) for part in hhmm.split(":"))
    return day.replace(hour=hours, minute=minutes)


def make_route(
    departure: str,
    arrival: str,
    from_station: str = "Netivot",
    to_station: str = "Tel Aviv-Savidor Center",
    is_direct: bool = True,
    train_number: str | None = "101",
    platform: str | None = "1",
) -> RawRoute:
    dep, arr = at(departure), at(arrival)
    return RawRoute(
        departure_station=from_station,
        arrival_station=to_station,
        departure_time=dep,
        arrival_time=arr,
        duration_minutes=int((arr - dep).total_seconds() // 60),
        is_direct=is_direct,
        train_number=train_number,
        departure_platform=platform,
    )


class FakeRouteSource:
    """RouteSource serving canned routes per (from, to) station pair."""

    def __init__(self, routes=None, delays=None, errors=None):
        self.routes = routes or {}
        self.delays = delays or {}
        self.errors = errors or {}
        self.calls = []

    async def fetch_routes(self, from_station, to_station, reference):
        self.calls.append((from_station, to_station, reference))
        await asyncio.sleep(self.delays.get(from_station, 0))
        if (from_station, to_station) in self.errors:
            raise self.errors[(from_station, to_station)]
        return list(self.routes.get((from_station, to_station), []))


class FakeNotifier:
    """Notifier that records what it was asked to do."""

    def __init__(self, fail_cancel: bool = False):
        self.scheduled: list[tuple[str, datetime, ReminderRequest]] = []
        self.cancelled: list[str] = []
        self.fail_cancel = fail_cancel

    async def schedule(self, fire_at, request):
        notification_id = f"n{len(self.scheduled) + 1}"
        self.scheduled.append((notification_id, fire_at, request))
        return notification_id

    async def cancel(self, notification_id):
        if self.fail_cancel:
            raise RuntimeError("notification service unavailable")
        self.cancelled.append(notification_id)


class Clock:
    """Settable stand-in for datetime.now."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return Clock(at("06:00"))


@pytest.fixture
def notifier():
    return FakeNotifier()
