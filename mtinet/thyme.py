"""Providers for routed ASN prefixes and top-level RIR allocations."""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from mtinet.cidr import CIDR
from mtinet.config import ConfigError
from mtinet.sources import ProviderSource, check_and_download_all, load_provider_sources
from mtinet.types import Rir

_log = logging.getLogger(__name__)

_ASN_PREFIX = re.compile(r"([\d\.]+/\d{1,2})[\t ]+(\d+)")
_RIR_ALLOCATION = re.compile(r"[\t ]+(\d+/\d)[\t ]+(.+)")


@dataclass(frozen=True)
class AsnPrefixEntry:
    """A routed prefix and its origin AS; the most specific prefixes sort first."""

    cidr: CIDR
    asn: int

    def __str__(self) -> str:
        return f"address: {self.cidr.prefix}, mask: {self.cidr.mask}, asn: {self.asn}"

    def __lt__(self, other: "AsnPrefixEntry") -> bool:
        if not isinstance(other, AsnPrefixEntry):
            return NotImplemented
        return other.cidr < self.cidr


@dataclass(frozen=True)
class RirAllocationEntry:
    """A top-level block and the registry it is allocated to; most specific first."""

    cidr: CIDR
    rir: Rir

    def __str__(self) -> str:
        return f"address: {self.cidr.prefix}, mask: {self.cidr.mask}, rir: {self.rir}"

    def __lt__(self, other: "RirAllocationEntry") -> bool:
        if not isinstance(other, RirAllocationEntry):
            return NotImplemented
        return other.cidr < self.cidr


def parse_asn_prefixes(text: str) -> list[AsnPrefixEntry]:
    """Extract ``prefix/len  asn`` pairs in file order."""
    entries = []
    for match in _ASN_PREFIX.finditer(text):
        prefix, asn_text = match.groups()
        asn = int(asn_text)
        if asn > 0xFFFFFFFF:
            raise ValueError(f"AS number out of range: {asn_text}")
        entries.append(AsnPrefixEntry(CIDR.parse(prefix), asn))
    return entries


def parse_rir_allocations(text: str) -> list[RirAllocationEntry]:
    """Extract indented ``n/len  registry`` pairs in file order."""
    return [
        RirAllocationEntry(CIDR.parse(prefix), Rir.from_str(rir))
        for prefix, rir in (match.groups() for match in _RIR_ALLOCATION.finditer(text))
    ]


@dataclass
class AsnPrefixesProvider:
    """Routed prefixes from every configured file, most specific first."""

    values: list[AsnPrefixEntry] = field(default_factory=list)
    sources: list[ProviderSource] = field(default_factory=list)

    @classmethod
    async def load(cls, config: Mapping[str, Any]) -> "AsnPrefixesProvider":
        """Refresh the configured files and parse them."""
        _log.info("Loading ASN prefixes...")
        sources = load_provider_sources(config, "thyme.asn_prefixes")
        if sources is None:
            raise ConfigError("Failed to load sources for Thyme's ASN prefixes")
        await check_and_download_all(sources)

        entries: list[AsnPrefixEntry] = []
        for source in sources:
            entries.extend(parse_asn_prefixes(Path(source.filepath).read_text(encoding="utf-8")))

        _log.info("Loaded ASN prefixes!")
        entries.sort()
        return cls(entries, sources)


@dataclass
class RirAllocationsProvider:
    """Top-level RIR allocations from every configured file, most specific first."""

    values: list[RirAllocationEntry] = field(default_factory=list)
    sources: list[ProviderSource] = field(default_factory=list)

    @classmethod
    async def load(cls, config: Mapping[str, Any]) -> "RirAllocationsProvider":
        """Refresh the configured files and parse them."""
        _log.info("Loading RIR allocations...")
        sources = load_provider_sources(config, "thyme.rir_allocations")
        if sources is None:
            raise ConfigError("Failed to load sources for Thyme's RIR allocations!")
        await check_and_download_all(sources)

        entries: list[RirAllocationEntry] = []
        for source in sources:
            entries.extend(
                parse_rir_allocations(Path(source.filepath).read_text(encoding="utf-8"))
            )

        _log.info("Loaded RIR allocations!")
        entries.sort()
        return cls(entries, sources)