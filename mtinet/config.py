"""TOML configuration loading and the Pokedex connection settings."""

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit


class ConfigError(Exception):
    """Raised when configuration is missing, malformed or of the wrong type."""


_MISSING = object()

_TRUE_WORDS = {"true", "t", "1", "yes", "y", "on"}
_FALSE_WORDS = {"false", "f", "0", "no", "n", "off"}


def load_config(path: str = "config.toml") -> dict[str, Any]:
    """Read a TOML configuration file into a nested dictionary."""
    with open(path, "rb") as handle:
        try:
            return tomllib.load(handle)
        except tomllib.TOMLDecodeError as error:
            raise ConfigError(f"invalid configuration file {path}: {error}") from error


def lookup(config: Mapping[str, Any], key: str, default: Any = _MISSING) -> Any:
    """Fetch a dotted key such as ``api.port``; return ``default`` when absent."""
    node: Any = config
    for part in key.split("."):
        if isinstance(node, Mapping) and part in node:
            node = node[part]
        elif default is _MISSING:
            raise ConfigError(f"{key} is not set")
        else:
            return default
    return node


def _as_str(value: Any, key: str) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ConfigError(f"{key} must be a string")


def _as_int(value: Any, key: str) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ConfigError(f"{key} must be an integer")


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise ConfigError(f"{key} must be a boolean")


def _as_port(value: Any, key: str) -> int:
    port = _as_int(value, key)
    if not 0 <= port <= 0xFFFF:
        raise ConfigError(f"{key} must be a valid port number")
    return port


def _required(config: Mapping[str, Any], key: str) -> Any:
    value = lookup(config, key, None)
    if value is None:
        raise ConfigError(f"{key} must be set!")
    return value


def _unit_string(config: Mapping[str, Any], field: str) -> str:
    key = f"unit.{field}"
    return _as_str(_required(config, key), key)


@dataclass
class PokedexUnitConfig:
    """Credentials and announced endpoint of this service unit."""

    username: str
    password: str
    address: str | None = None
    port: int | None = None


@dataclass
class PokedexConfig:
    """Where the Pokedex registry lives and how this unit logs in."""

    unit: PokedexUnitConfig
    address: str
    port: int | None = None

    def __post_init__(self) -> None:
        parts = urlsplit(self.address)
        if not parts.scheme or not parts.netloc:
            raise ConfigError("Failed to parse pokedex address!")

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "PokedexConfig":
        """Build the settings from a loaded configuration dictionary."""
        credentials = {
            field: _unit_string(config, field) for field in ("username", "password")
        }

        unit_address = lookup(config, "unit.address", None)
        if unit_address is not None:
            unit_address = _as_str(unit_address, "unit.address")

        unit_port = None
        if _as_bool(lookup(config, "unit.announce_port", False), "unit.announce_port"):
            api_port = lookup(config, "api.port", None)
            if api_port is None:
                raise ConfigError("api.port must be set when unit.announce_port is set to true!")
            unit_port = _as_port(api_port, "api.port")

        pokedex_address = _as_str(_required(config, "pokedex.address"), "pokedex.address")
        pokedex_port = lookup(config, "pokedex.port", None)
        if pokedex_port is not None:
            pokedex_port = _as_port(pokedex_port, "pokedex.port")

        return cls(
            unit=PokedexUnitConfig(
                credentials["username"], credentials["password"], unit_address, unit_port
            ),
            address=pokedex_address,
            port=pokedex_port,
        )