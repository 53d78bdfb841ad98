"""Client for the Pokedex service registry."""

from dataclasses import dataclass
from typing import Any
from uuid import UUID

import httpx

from mtinet.config import PokedexConfig

_UNKNOWN_LOGIN_ERROR = "Unknown error while logging into Pokedex!"
_LOGIN_ERRORS = {
    400: "Invalid IP address and/or port in Pokedex login!",
    401: "Wrong unit username and/or password in Pokedex login!",
    403: "Service unit count limit exceeded!",
    404: "Incorrect Pokedex URL",
}
_NOT_LOGGED_IN = "Client must be logged in before attempting to send authenticated requests!"


class PokedexError(Exception):
    """Raised when a Pokedex request fails; ``status`` holds the HTTP status if any."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


@dataclass(frozen=True)
class Service:
    id: int
    name: str


@dataclass(frozen=True)
class ServiceUnit:
    id: str
    service_id: int
    address: str | None
    port: int | None


@dataclass(frozen=True)
class LoginResponse:
    token: str
    uuid: UUID


def _json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as error:
        raise PokedexError("Pokedex returned invalid JSON", response.status_code) from error


def _typed(data: Any, key: str, kind: type | tuple[type, ...], nullable: bool = False) -> Any:
    if not isinstance(data, dict):
        raise PokedexError("Pokedex returned an unexpected response")
    value = data.get(key)
    if value is None and nullable:
        return None
    if isinstance(value, bool) or not isinstance(value, kind):
        raise PokedexError(f"Pokedex response has an invalid {key!r} field")
    return value


class Pokedex:
    """Logs this unit into the registry and queries services and their units."""

    def __init__(self, config: PokedexConfig, client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self._client = client if client is not None else httpx.AsyncClient()
        self._owns_client = client is None
        self.token: str | None = None

    async def __aenter__(self) -> "Pokedex":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this object created it."""
        if self._owns_client:
            await self._client.aclose()

    def _url(self, path: str) -> httpx.URL:
        return httpx.URL(self.config.address).copy_with(path="/" + path)

    def _auth_headers(self, message: str) -> dict[str, str]:
        if self.token is None:
            raise PokedexError(message)
        return {"Authorization": f"Bearer {self.token}"}

    async def login(self) -> LoginResponse:
        """Register this unit and keep the issued token for later requests."""
        unit = self.config.unit
        params = [("username", unit.username), ("password", unit.password)]
        if unit.address is not None:
            params.append(("address", unit.address))
        if unit.port is not None:
            params.append(("port", str(unit.port)))

        try:
            response = await self._client.post(self._url("auth/login"), params=params)
        except httpx.HTTPError as error:
            raise PokedexError(_UNKNOWN_LOGIN_ERROR) from error

        status = response.status_code
        if status != 200:
            raise PokedexError(_LOGIN_ERRORS.get(status, _UNKNOWN_LOGIN_ERROR), status)

        data = _json(response)
        token = _typed(data, "token", str)
        try:
            unit_uuid = UUID(_typed(data, "uuid", str))
        except ValueError as error:
            raise PokedexError("Pokedex returned an invalid unit UUID", status) from error
        self.token = token
        return LoginResponse(token, unit_uuid)

    async def logout(self) -> None:
        """Deregister this unit."""
        headers = self._auth_headers("Can't logout if never logged in!")
        try:
            await self._client.post(self._url("auth/logout"), headers=headers)
        except httpx.HTTPError as error:
            raise PokedexError("Failed to log out of Pokedex!") from error

    async def _get(self, path: str) -> Any:
        headers = self._auth_headers(_NOT_LOGGED_IN)
        try:
            response = await self._client.get(self._url(path), headers=headers)
        except httpx.HTTPError as error:
            raise PokedexError(f"Pokedex request to {path} failed: {error}") from error
        if response.status_code != 200:
            raise PokedexError(
                f"Pokedex request to {path} failed with status {response.status_code}",
                response.status_code,
            )
        data = _json(response)
        if not isinstance(data, list):
            raise PokedexError("Pokedex returned an unexpected response", response.status_code)
        return data

    async def get_services(self) -> list[Service]:
        """List every registered service."""
        return [
            Service(_typed(item, "id", int), _typed(item, "name", str))
            for item in await self._get("services")
        ]

    async def get_service_units(self, service_id: int) -> list[ServiceUnit]:
        """List the running units of one service."""
        return [
            ServiceUnit(
                _typed(item, "id", str),
                _typed(item, "service_id", int),
                _typed(item, "address", str, nullable=True),
                _typed(item, "port", int, nullable=True),
            )
            for item in await self._get(f"services/{service_id}/units")
        ]