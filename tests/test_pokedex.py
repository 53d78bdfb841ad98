import uuid

import httpx
import pytest

from mtinet.config import PokedexConfig, PokedexUnitConfig
from mtinet.pokedex import LoginResponse, Pokedex, PokedexError, Service, ServiceUnit


def _config(address=None, port=None):
    password = "password"
    unit = PokedexUnitConfig("pidgey", password, address, port)
    return PokedexConfig(unit, "http://pokedex.example.com")


def _pokedex(handler, config=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return Pokedex(config or _config(), client)


@pytest.mark.asyncio
async def test_login_success_stores_token():
    unit_uuid = uuid.uuid4()
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"token": "token", "uuid": str(unit_uuid)})

    pokedex = _pokedex(handler)
    result = await pokedex.login()
    assert result == LoginResponse("token", unit_uuid)
    assert pokedex.token == "token"
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/auth/login"
    assert request.url.params["username"] == "pidgey"
    assert "address" not in request.url.params


@pytest.mark.asyncio
async def test_login_sends_address_and_port():
    unit_uuid = uuid.uuid4()
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"token": "token", "uuid": str(unit_uuid)})

    pokedex = _pokedex(handler, _config("10.0.0.5", 8080))
    result = await pokedex.login()
    assert result == LoginResponse("token", unit_uuid)
    params = seen[0].url.params
    assert params["address"] == "10.0.0.5"
    assert params["port"] == "8080"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, message",
    [
        (400, "Invalid IP address and/or port in Pokedex login!"),
        (401, "Wrong unit username and/or password in Pokedex login!"),
        (403, "Service unit count limit exceeded!"),
        (404, "Incorrect Pokedex URL"),
        (500, "Unknown error while logging into Pokedex!"),
    ],
)
async def test_login_errors(status, message):
    pokedex = _pokedex(lambda request: httpx.Response(status))
    with pytest.raises(PokedexError) as info:
        await pokedex.login()
    assert str(info.value) == message
    assert info.value.status == status
    assert pokedex.token is None


@pytest.mark.asyncio
async def test_login_transport_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(PokedexError, match="Unknown error while logging into Pokedex!"):
        await _pokedex(handler).login()


@pytest.mark.asyncio
async def test_logout_requires_login():
    pokedex = _pokedex(lambda request: httpx.Response(200))
    with pytest.raises(PokedexError, match="Can't logout if never logged in!"):
        await pokedex.logout()


@pytest.mark.asyncio
async def test_logout_uses_bearer_token():
    unit_uuid = uuid.uuid4()
    seen = []

    def handler(request):
        seen.append(request)
        if request.url.path == "/auth/login":
            return httpx.Response(200, json={"token": "token", "uuid": str(unit_uuid)})
        return httpx.Response(200)

    pokedex = _pokedex(handler)
    result = await pokedex.login()
    assert result.uuid == unit_uuid
    await pokedex.logout()
    assert len(seen) == 2
    assert seen[-1].method == "POST"
    assert seen[-1].url.path == "/auth/logout"
    assert seen[-1].headers["authorization"] == "Bearer token"


@pytest.mark.asyncio
async def test_services_require_login():
    pokedex = _pokedex(lambda request: httpx.Response(200, json=[]))
    with pytest.raises(PokedexError):
        await pokedex.get_services()


@pytest.mark.asyncio
async def test_get_services_and_units():
    def handler(request):
        path = request.url.path
        if path == "/auth/login":
            return httpx.Response(200, json={"token": "token", "uuid": str(uuid.uuid4())})
        assert request.headers["authorization"] == "Bearer token"
        if path == "/services":
            return httpx.Response(200, json=[{"id": 3, "name": "diglett"}])
        if path == "/services/3/units":
            return httpx.Response(
                200,
                json=[{"id": "unit-a", "service_id": 3, "address": "http://10.0.0.9", "port": None}],
            )
        return httpx.Response(404)

    pokedex = _pokedex(handler)
    await pokedex.login()
    services = await pokedex.get_services()
    assert services == [Service(3, "diglett")]
    units = await pokedex.get_service_units(services[0].id)
    assert units == [ServiceUnit("unit-a", 3, "http://10.0.0.9", None)]


@pytest.mark.asyncio
async def test_get_services_error_status():
    def handler(request):
        if request.url.path == "/auth/login":
            return httpx.Response(200, json={"token": "token", "uuid": str(uuid.uuid4())})
        return httpx.Response(401)

    pokedex = _pokedex(handler)
    await pokedex.login()
    with pytest.raises(PokedexError) as info:
        await pokedex.get_services()
    assert info.value.status == 401