"""Data files that back the registry providers, kept fresh by downloading them."""

import logging
import re
import time
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

from mtinet.config import ConfigError, lookup

DEFAULT_MAX_TIME = 2592000  # one month, in seconds
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/14.0.3 Safari/605.1.15"
)

_log = logging.getLogger(__name__)
_INTEGER = re.compile(r"[+-]?[0-9]+")


@asynccontextmanager
async def _client_scope(client: httpx.AsyncClient | None) -> AsyncIterator[httpx.AsyncClient]:
    if client is not None:
        yield client
    else:
        async with httpx.AsyncClient() as own_client:
            yield own_client


@dataclass
class ProviderSource:
    """A local file and the URL it is refreshed from once older than ``max_time`` seconds."""

    filepath: str
    url: str
    max_time: int = DEFAULT_MAX_TIME

    def check(self) -> bool:
        """Whether the local file exists and is not stale."""
        path = Path(self.filepath)
        try:
            modified = path.stat().st_mtime
        except FileNotFoundError:
            _log.debug("File %s missing!", self.filepath)
            return False
        if time.time() - modified > self.max_time:
            _log.debug("File %s stale!", self.filepath)
            return False
        _log.debug("File %s OK!", self.filepath)
        return True

    async def download(self, client: httpx.AsyncClient | None = None) -> None:
        """Fetch the URL and overwrite the local file with the body."""
        path = Path(self.filepath)
        if not path.exists():
            path.parent.mkdir(parents=True, exist_ok=True)

        async with _client_scope(client) as http:
            try:
                response = await http.get(
                    self.url, headers={"User-Agent": USER_AGENT}, follow_redirects=True
                )
            except httpx.HTTPError as error:
                raise OSError(f"Failed to download file {self.filepath}!") from error

        try:
            path.write_bytes(response.content)
        except OSError as error:
            raise OSError(f"Failed to write file {self.filepath}!") from error

    async def check_and_download(self, client: httpx.AsyncClient | None = None) -> None:
        """Download the file only when it is missing or stale."""
        if not self.check():
            await self.download(client)


async def check_and_download_all(
    sources: Iterable[ProviderSource], client: httpx.AsyncClient | None = None
) -> None:
    """Refresh each source in turn."""
    for source in sources:
        await source.check_and_download(client)


def _source_text(entry: Mapping[str, Any], key: str) -> str:
    if key not in entry:
        raise ConfigError(f"Invalid config (provider source must have a {key} set)!")
    value = entry[key]
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ConfigError(f"Invalid config ({key} of a provider source must be a string)!")


def _source_max_time(entry: Mapping[str, Any]) -> int:
    value = entry.get("max_time", DEFAULT_MAX_TIME)
    invalid = ConfigError("Invalid config (max_time for provider source must be a valid integer)!")
    if isinstance(value, bool):
        raise invalid
    if isinstance(value, str):
        if not _INTEGER.fullmatch(value.strip()):
            raise invalid
        value = int(value.strip())
    if not isinstance(value, int) or not 0 <= value <= 0xFFFFFFFF:
        raise invalid
    return value


def load_provider_sources(
    config: Mapping[str, Any], provider: str
) -> list[ProviderSource] | None:
    """Read ``providers.<provider>.sources``; ``None`` when it is not a list."""
    entries = lookup(config, f"providers.{provider}.sources", None)
    if not isinstance(entries, list):
        return None

    sources = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            raise ConfigError("Invalid config (provider source must be a TOML table)!")
        sources.append(
            ProviderSource(
                filepath=_source_text(entry, "filepath"),
                url=_source_text(entry, "url"),
                max_time=_source_max_time(entry),
            )
        )
    return sources