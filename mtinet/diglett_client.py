"""Client for the registry lookup API."""

import logging
import random
from collections.abc import Mapping
from ipaddress import IPv4Address
from typing import Any

import httpx

from mtinet.config import lookup
from mtinet.pokedex import Pokedex
from mtinet.types import AllocationState, AllocationStateParseError, Rir, RirParseError

BAD_REQUEST = 400
INTERNAL_SERVER_ERROR = 500

_log = logging.getLogger(__name__)


class DiglettError(Exception):
    """Raised when a lookup fails; ``status`` is 400 for bad requests, else 500."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


def _build_url(address: Any, port: Any) -> str | None:
    if not isinstance(address, str):
        return None
    try:
        url = httpx.URL(address)
        if not url.scheme or not url.host:
            return None
        if port is not None:
            if isinstance(port, bool) or not isinstance(port, int):
                return None
            url = url.copy_with(port=port)
    except (httpx.InvalidURL, ValueError, TypeError):
        return None
    return str(url)


async def _reachable(client: httpx.AsyncClient, url: str) -> bool:
    try:
        await client.get(url)
    except httpx.HTTPError:
        return False
    return True


class DiglettClient:
    """Asks a lookup instance about the allocation, registry, AS and country of addresses."""

    def __init__(self, base_url: str, client: httpx.AsyncClient | None = None) -> None:
        base = str(base_url)
        self.base_url = base if base.endswith("/") else base + "/"
        self._client = client if client is not None else httpx.AsyncClient()
        self._owns_client = client is None

    async def __aenter__(self) -> "DiglettClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this object owns it."""
        if self._owns_client:
            await self._client.aclose()

    @classmethod
    async def connect(
        cls,
        config: Mapping[str, Any],
        pokedex: Pokedex | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> "DiglettClient":
        """Use the configured instance if it answers, else a reachable unit from Pokedex."""
        http = client if client is not None else httpx.AsyncClient()
        try:
            url = await cls._find(config, pokedex, http)
        except BaseException:
            if client is None:
                await http.aclose()
            raise
        instance = cls(url, http)
        instance._owns_client = client is None
        return instance

    @staticmethod
    async def _find(
        config: Mapping[str, Any], pokedex: Pokedex | None, http: httpx.AsyncClient
    ) -> str:
        address = lookup(config, "diglett.address", None)
        if address is not None:
            _log.info("diglett.address set, trying to connect...")
            url = _build_url(address, lookup(config, "diglett.port", None))
            if url is None:
                _log.error(
                    "Failed to parse configured diglett address, trying units from Pokedex..."
                )
            elif await _reachable(http, url):
                _log.info("Successfully connected to the configured diglett instance!")
                return url
            else:
                _log.error(
                    "Failed to connect to the configured diglett instance, "
                    "trying units from Pokedex..."
                )

        if pokedex is None:
            raise DiglettError("No reachable diglett instance configured and no Pokedex given!")

        services = await pokedex.get_services()
        service = next((item for item in services if item.name == "diglett"), None)
        if service is None:
            raise DiglettError("Failed to find the diglett service!")

        units = list(await pokedex.get_service_units(service.id))
        random.shuffle(units)
        for unit in units:
            if unit.address is None:
                continue
            url = _build_url(unit.address, unit.port)
            if url is None:
                _log.error("Failed to parse diglett address, trying another...")
            elif await _reachable(http, url):
                _log.info("Successfully connected to a diglett instance!")
                return url
            else:
                _log.error("Error while connecting to diglett, trying another...")

        raise DiglettError(
            "Failed to create Diglett client, no running or correctly configured instances found!"
        )

    async def _value(
        self, address: str | IPv4Address, endpoint: str, params: dict[str, str] | None = None
    ) -> Any:
        url = f"{self.base_url}{IPv4Address(address)}/{endpoint}"
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as error:
            raise DiglettError(f"request to {url} failed: {error}", INTERNAL_SERVER_ERROR) from error
        if response.status_code == BAD_REQUEST:
            raise DiglettError(f"diglett rejected {url}", BAD_REQUEST)
        if response.status_code != 200:
            raise DiglettError(
                f"diglett answered {url} with status {response.status_code}",
                INTERNAL_SERVER_ERROR,
            )
        try:
            data = response.json()
        except ValueError as error:
            raise DiglettError("diglett returned invalid JSON", INTERNAL_SERVER_ERROR) from error
        if not isinstance(data, dict) or "value" not in data:
            raise DiglettError("diglett returned an unexpected response", INTERNAL_SERVER_ERROR)
        return data["value"]

    async def allocation_state(self, address: str | IPv4Address) -> AllocationState:
        """Allocation state of the address."""
        value = await self._value(address, "allocation")
        if not isinstance(value, str):
            raise DiglettError(f"invalid allocation state {value!r}", INTERNAL_SERVER_ERROR)
        try:
            return AllocationState.from_str(value)
        except AllocationStateParseError as error:
            raise DiglettError(str(error), INTERNAL_SERVER_ERROR) from error

    async def rir(self, address: str | IPv4Address, top: bool = False) -> Rir | None:
        """Responsible registry, or the top-level one when ``top`` is set."""
        value = await self._value(address, "rir", {"top": "true"} if top else None)
        if value is None:
            return None
        if not isinstance(value, str):
            raise DiglettError(f"invalid RIR {value!r}", INTERNAL_SERVER_ERROR)
        try:
            return Rir.from_str(value)
        except RirParseError as error:
            raise DiglettError(str(error), INTERNAL_SERVER_ERROR) from error

    async def asn(self, address: str | IPv4Address) -> int | None:
        """Origin AS number, if the address is routed."""
        value = await self._value(address, "asn")
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 0xFFFFFFFF:
            raise DiglettError(f"invalid AS number {value!r}", INTERNAL_SERVER_ERROR)
        return value

    async def country(self, address: str | IPv4Address) -> str | None:
        """Country code of the delegation, if allocated."""
        value = await self._value(address, "country")
        if value is not None and not isinstance(value, str):
            raise DiglettError(f"invalid country {value!r}", INTERNAL_SERVER_ERROR)
        return value