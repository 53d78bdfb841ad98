import asyncio
from uuid import uuid4

import pytest

from mtinet.messages import AsnCommand, AsnResponse
from mtinet.units import Unit, UnitRegistry, UnitRequest


@pytest.mark.asyncio
async def test_register_and_get():
    registry = UnitRegistry()
    unit = Unit(uuid4())
    await registry.register_unit(unit)
    assert await registry.is_registered(unit.id) is True
    assert await registry.get_unit() is unit


@pytest.mark.asyncio
async def test_deregister():
    registry = UnitRegistry()
    unit = Unit(uuid4())
    await registry.register_unit(unit)
    assert await registry.deregister_unit(unit.id) is True
    assert await registry.deregister_unit(unit.id) is False
    assert await registry.is_registered(unit.id) is False


@pytest.mark.asyncio
async def test_unavailable_units_are_never_chosen():
    registry = UnitRegistry()
    busy = Unit(uuid4(), available=False)
    free = Unit(uuid4())
    await registry.register_unit(busy)
    await registry.register_unit(free)
    chosen = {(await registry.get_unit()).id for _ in range(20)}
    assert chosen == {free.id}


@pytest.mark.asyncio
async def test_get_unit_waits_for_registration():
    registry = UnitRegistry()
    waiter = asyncio.create_task(registry.get_unit())
    await asyncio.sleep(0.01)
    assert waiter.done() is False
    unit = Unit(uuid4())
    await registry.register_unit(unit)
    assert await asyncio.wait_for(waiter, 1) is unit


@pytest.mark.asyncio
async def test_request_round_trip_through_unit():
    unit = Unit(uuid4())
    cid = uuid4()
    request = UnitRequest(cid, AsnCommand(cid, "192.0.2.1"))
    await unit.requests.put(request)

    received = await unit.requests.get()
    received.response.set_result(AsnResponse(received.id, 3320))

    assert await request.response == AsnResponse(cid, 3320)