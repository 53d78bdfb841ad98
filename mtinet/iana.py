"""Providers for the IANA reserved and recovered IPv4 address registries."""

import csv
import io
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from ipaddress import IPv4Address
from pathlib import Path
from typing import Any

from mtinet.cidr import CIDR
from mtinet.config import ConfigError
from mtinet.sources import ProviderSource, check_and_download_all, load_provider_sources
from mtinet.types import Rir

MULTICAST_BLOCK = "224.0.0.0/4"

_log = logging.getLogger(__name__)


def _records(text: str) -> Iterator[list[str]]:
    """Yield the data rows of a CSV document, skipping its header and blank lines."""
    rows = (row for row in csv.reader(io.StringIO(text, newline="")) if row)
    header = next(rows, None)
    if header is None:
        return
    for number, row in enumerate(rows, start=2):
        if len(row) != len(header):
            raise ValueError(
                f"CSV record {number} has {len(row)} fields, the header has {len(header)}"
            )
        yield row


@dataclass(frozen=True)
class RecoveredEntry:
    """An inclusive range of recovered addresses and the registry it went to."""

    start: IPv4Address
    end: IPv4Address
    rir: Rir

    def __str__(self) -> str:
        return f"start: {self.start}, end: {self.end}, rir: {self.rir}"


def parse_recovered(text: str) -> list[RecoveredEntry]:
    """Parse the recovered address space CSV: start, end and registry columns."""
    entries = []
    for row in _records(text):
        if len(row) < 3:
            raise ValueError(f"recovered address record needs three fields: {row!r}")
        entries.append(RecoveredEntry(IPv4Address(row[0]), IPv4Address(row[1]), Rir.from_str(row[2])))
    return entries


def parse_reserved(text: str) -> list[CIDR]:
    """Parse the special-purpose registry CSV; the first column lists the blocks."""
    blocks = []
    for row in _records(text):
        for address in (part.strip() for part in row[0].split(",")):
            blocks.append(CIDR.parse(address.split(" ")[0]))
    return blocks


@dataclass
class RecoveredProvider:
    """Recovered address ranges from every configured file."""

    values: list[RecoveredEntry] = field(default_factory=list)
    sources: list[ProviderSource] = field(default_factory=list)

    @classmethod
    async def load(cls, config: Mapping[str, Any]) -> "RecoveredProvider":
        """Refresh the configured files and parse them in order."""
        _log.info("Loading IANA recovered addresses...")
        sources = load_provider_sources(config, "iana.recovered")
        if sources is None:
            raise ConfigError("Failed to load sources for IANA recovered addresses!")
        await check_and_download_all(sources)

        entries: list[RecoveredEntry] = []
        for source in sources:
            entries.extend(parse_recovered(Path(source.filepath).read_text(encoding="utf-8")))

        _log.info("Loaded IANA recovered addresses!")
        return cls(entries, sources)


@dataclass
class ReservedProvider:
    """Reserved blocks from every configured file plus multicast, widest first."""

    values: list[CIDR] = field(default_factory=list)
    sources: list[ProviderSource] = field(default_factory=list)

    @classmethod
    async def load(cls, config: Mapping[str, Any]) -> "ReservedProvider":
        """Refresh the configured files, parse them and add the multicast block."""
        _log.info("Loading IANA reserved addresses...")
        sources = load_provider_sources(config, "iana.reserved")
        if sources is None:
            raise ConfigError("Failed to load sources for IANA reserved addresses!")
        await check_and_download_all(sources)

        blocks: list[CIDR] = []
        for source in sources:
            blocks.extend(parse_reserved(Path(source.filepath).read_text(encoding="utf-8")))
        blocks.append(CIDR.parse(MULTICAST_BLOCK))

        _log.info("Loaded IANA reserved addresses!")
        blocks.sort()
        return cls(blocks, sources)