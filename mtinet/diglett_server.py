"""HTTP API that answers registry lookups for single IPv4 addresses."""

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any
from uuid import UUID

from aiohttp import web

from mtinet.config import ConfigError, lookup
from mtinet.lookup import Providers

DEFAULT_VERSION = "0.1.0"

_log = logging.getLogger(__name__)

_PROVIDERS = web.AppKey("providers", Providers)
_UNIT_UUID = web.AppKey("unit_uuid", UUID)
_VERSION = web.AppKey("version", str)


def _resolve(request: web.Request, query: Callable[[str], Any]) -> Any:
    try:
        return query(request.match_info["address"])
    except ValueError:
        raise web.HTTPBadRequest() from None


def _top(request: web.Request) -> bool:
    value = request.query.get("top")
    if value is None or value == "false":
        return False
    if value == "true":
        return True
    raise web.HTTPBadRequest(text=f"invalid value for top: {value!r}")


async def _index(request: web.Request) -> web.Response:
    return web.Response(text=f"Diglett API, v{request.app[_VERSION]}")


async def _unit(request: web.Request) -> web.Response:
    return web.json_response({"uuid": str(request.app[_UNIT_UUID])})


async def _health(request: web.Request) -> web.Response:
    return web.Response(status=200)


async def _allocation(request: web.Request) -> web.Response:
    state = _resolve(request, request.app[_PROVIDERS].allocation)
    return web.json_response({"value": state.id()})


async def _rir(request: web.Request) -> web.Response:
    top = _top(request)
    providers = request.app[_PROVIDERS]
    rir = _resolve(request, lambda address: providers.rir(address, top))
    return web.json_response({"value": None if rir is None else rir.id()})


async def _asn(request: web.Request) -> web.Response:
    return web.json_response({"value": _resolve(request, request.app[_PROVIDERS].asn)})


async def _country(request: web.Request) -> web.Response:
    return web.json_response({"value": _resolve(request, request.app[_PROVIDERS].country)})


def create_app(
    providers: Providers, unit_uuid: UUID, version: str = DEFAULT_VERSION
) -> web.Application:
    """Build the lookup application over the given providers."""
    app = web.Application()
    app[_PROVIDERS] = providers
    app[_UNIT_UUID] = unit_uuid
    app[_VERSION] = version
    app.router.add_get("/", _index)
    app.router.add_get("/_unit", _unit)
    app.router.add_get("/_health", _health)
    app.router.add_get("/{address}/allocation", _allocation)
    app.router.add_get("/{address}/rir", _rir)
    app.router.add_get("/{address}/asn", _asn)
    app.router.add_get("/{address}/country", _country)
    return app


async def run(config: Mapping[str, Any], providers: Providers, unit_uuid: UUID) -> None:
    """Serve the API on all interfaces at ``api.port`` until cancelled."""
    port = lookup(config, "api.port", None)
    if isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= 0xFFFF:
        raise ConfigError("api.port must be set to a valid port number!")

    runner = web.AppRunner(create_app(providers, unit_uuid))
    await runner.setup()
    try:
        await web.TCPSite(runner, "0.0.0.0", port).start()
        _log.info("Listening on port %s!", port)
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()