"""Registry of connected worker units and how requests are handed to them."""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

_log = logging.getLogger(__name__)


def _new_future() -> asyncio.Future:
    return asyncio.get_running_loop().create_future()


@dataclass
class UnitRequest:
    """A command for a unit and the future its response is delivered through."""

    id: UUID
    command: Any
    response: asyncio.Future = field(default_factory=_new_future)


@dataclass
class Unit:
    """A connected worker unit; requests for it go into ``requests``."""

    id: UUID
    requests: asyncio.Queue = field(default_factory=asyncio.Queue)
    available: bool = True


class UnitRegistry:
    """The units currently connected, keyed by their id."""

    def __init__(self) -> None:
        self.units: dict[UUID, Unit] = {}
        self._changed = asyncio.Condition()

    def _available(self) -> list[Unit]:
        return [unit for unit in self.units.values() if unit.available]

    async def get_unit(self) -> Unit:
        """A random available unit, waiting until one is registered if needed."""
        async with self._changed:
            await self._changed.wait_for(lambda: bool(self._available()))
            return random.choice(self._available())

    async def register_unit(self, unit: Unit) -> None:
        """Add a unit and wake everyone waiting for one."""
        _log.info("Registered unit %s", unit.id)
        async with self._changed:
            self.units[unit.id] = unit
            self._changed.notify_all()

    async def deregister_unit(self, unit_id: UUID) -> bool:
        """Remove a unit; False when no such unit was registered."""
        async with self._changed:
            removed = self.units.pop(unit_id, None)
        if removed is None:
            _log.info("Failed to deregister unit, no unit found! (id: %s)", unit_id)
            return False
        _log.info("Deregistered unit %s", unit_id)
        return True

    async def is_registered(self, unit_id: UUID) -> bool:
        """Whether a unit with this id is registered."""
        return unit_id in self.units