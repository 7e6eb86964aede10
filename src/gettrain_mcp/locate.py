"""Best-effort acquisition of the user's position."""

import asyncio
import logging
from collections.abc import Sequence
from typing import Protocol

from pydantic import ValidationError

from .errors import LocationUnavailable
from .models import Coordinate
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

LAST_KNOWN_LOCATION_KEY = "last_known_location"

COARSE_TIMEOUT = 10.0


class LocationProvider(Protocol):
    async def current_position(self) -> Coordinate: ...


class FixedLocation:
    """Always reports the same position."""

    def __init__(self, coordinate: Coordinate):
        self.coordinate = coordinate

    async def current_position(self) -> Coordinate:
        return self.coordinate


class LastKnownLocation:
    """Replays the most recent position a caller reported."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def record(self, coordinate: Coordinate) -> None:
        await self.store.set(LAST_KNOWN_LOCATION_KEY, coordinate.model_dump())

    async def current_position(self) -> Coordinate:
        stored = await self.store.get(LAST_KNOWN_LOCATION_KEY)
        if not stored:
            raise LocationUnavailable("No last known location")
        try:
            return Coordinate.model_validate(stored)
        except ValidationError:
            logger.warning("Discarding unreadable last known location: %s", stored)
            await self.store.delete(LAST_KNOWN_LOCATION_KEY)
            raise LocationUnavailable("Last known location is unreadable")


async def acquire_location(
    attempts: Sequence[tuple[LocationProvider, float]],
    default: Coordinate | None = None,
) -> Coordinate | None:
    """Ask each provider in turn, most accurate first.

    Args:
        attempts: (provider, timeout in seconds) pairs, tried in order
        default: Returned when every attempt times out or has no fix

    Returns:
        The first position obtained, else ``default``.
    """
    for provider, timeout in attempts:
        try:
            return await asyncio.wait_for(provider.current_position(), timeout)
        except asyncio.TimeoutError:
            logger.info("%s timed out after %.0fs", type(provider).__name__, timeout)
        except LocationUnavailable as e:
            logger.info("%s has no position: %s", type(provider).__name__, e)
    logger.info("Falling back to default location %s", default)
    return default
