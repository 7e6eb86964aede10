"""Tests for location acquisition with fallbacks."""

import asyncio

import pytest

from gettrain_mcp.errors import LocationUnavailable
from gettrain_mcp.locate import (
    LAST_KNOWN_LOCATION_KEY,
    FixedLocation,
    LastKnownLocation,
    acquire_location,
)
from gettrain_mcp.locations import HOME, TLV_OFFICE
from gettrain_mcp.storage import MemoryStore


class SlowProvider:
    async def current_position(self):
        await asyncio.sleep(1)
        return TLV_OFFICE.coordinate


class NoFixProvider:
    async def current_position(self):
        raise LocationUnavailable("no satellites")


@pytest.mark.asyncio
async def test_first_provider_wins():
    result = await acquire_location([(FixedLocation(HOME.coordinate), 1.0), (FixedLocation(TLV_OFFICE.coordinate), 1.0)])
    assert result == HOME.coordinate


@pytest.mark.asyncio
async def test_timeout_falls_through():
    result = await acquire_location([(SlowProvider(), 0.01), (FixedLocation(HOME.coordinate), 1.0)])
    assert result == HOME.coordinate


@pytest.mark.asyncio
async def test_no_fix_falls_through_to_default():
    result = await acquire_location([(NoFixProvider(), 1.0)], default=TLV_OFFICE.coordinate)
    assert result == TLV_OFFICE.coordinate


@pytest.mark.asyncio
async def test_nothing_available():
    assert await acquire_location([(NoFixProvider(), 1.0), (SlowProvider(), 0.01)]) is None


@pytest.mark.asyncio
async def test_last_known_location():
    last_known = LastKnownLocation(MemoryStore())
    with pytest.raises(LocationUnavailable):
        await last_known.current_position()

    await last_known.record(TLV_OFFICE.coordinate)
    assert await last_known.current_position() == TLV_OFFICE.coordinate
    assert await acquire_location([(last_known, 1.0)]) == TLV_OFFICE.coordinate


@pytest.mark.asyncio
async def test_unreadable_last_known_falls_back_to_default():
    store = MemoryStore()
    await store.set(LAST_KNOWN_LOCATION_KEY, {"latitude": "x"})
    last_known = LastKnownLocation(store)

    with pytest.raises(LocationUnavailable):
        await last_known.current_position()
    assert await store.get(LAST_KNOWN_LOCATION_KEY) is None

    await store.set(LAST_KNOWN_LOCATION_KEY, {"latitude": "x"})
    assert await acquire_location([(last_known, 1.0)], default=HOME.coordinate) == HOME.coordinate
