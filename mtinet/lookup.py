"""Address lookups over the loaded registry data providers."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from ipaddress import IPv4Address
from typing import Any

from mtinet.cidr import address_to_int
from mtinet.iana import RecoveredProvider, ReservedProvider
from mtinet.stats import StatsProvider
from mtinet.thyme import AsnPrefixesProvider, RirAllocationsProvider
from mtinet.types import AllocationState, Rir

Address = str | int | IPv4Address


def _bits(address: Address) -> int:
    """Turn an address given as text, integer or IPv4Address into its 32-bit value."""
    if isinstance(address, IPv4Address):
        return int(address)
    if isinstance(address, bool):
        raise TypeError(f"expected an IPv4 address, got {address!r}")
    if isinstance(address, int):
        if not 0 <= address <= 0xFFFFFFFF:
            raise ValueError(f"IPv4 address out of range: {address}")
        return address
    if isinstance(address, str):
        return address_to_int(address.strip())
    raise TypeError(f"expected an IPv4 address, got {address!r}")


@dataclass
class Providers:
    """Every registry data set the lookup service answers from."""

    stats: StatsProvider = field(default_factory=StatsProvider)
    reserved: ReservedProvider = field(default_factory=ReservedProvider)
    recovered: RecoveredProvider = field(default_factory=RecoveredProvider)
    asn_prefixes: AsnPrefixesProvider = field(default_factory=AsnPrefixesProvider)
    rir_allocations: RirAllocationsProvider = field(default_factory=RirAllocationsProvider)

    @classmethod
    async def load(cls, config: Mapping[str, Any]) -> "Providers":
        """Refresh and parse every configured data source."""
        stats = await StatsProvider.load(config)
        reserved = await ReservedProvider.load(config)
        recovered = await RecoveredProvider.load(config)
        asn_prefixes = await AsnPrefixesProvider.load(config)
        rir_allocations = await RirAllocationsProvider.load(config)
        return cls(stats, reserved, recovered, asn_prefixes, rir_allocations)

    def allocation(self, address: Address) -> AllocationState:
        """Reserved blocks win; otherwise the most specific delegation record decides."""
        bits = _bits(address)
        if any(block.contains(bits) for block in self.reserved.values):
            return AllocationState.RESERVED
        for entry in self.stats.values:
            if entry.cidr.contains(bits):
                return entry.allocation_state
        return AllocationState.UNKNOWN

    def rir(self, address: Address, top: bool = False) -> Rir | None:
        """The registry responsible for an address.

        With ``top`` the top-level allocation is used; otherwise recovered
        ranges are consulted before the delegation records.
        """
        bits = _bits(address)
        if top:
            for allocation in self.rir_allocations.values:
                if allocation.cidr.contains(bits):
                    return allocation.rir
            return None

        for recovered in self.recovered.values:
            if int(recovered.start) <= bits <= int(recovered.end):
                return recovered.rir
        for entry in self.stats.values:
            if entry.cidr.contains(bits):
                return entry.rir
        return None

    def asn(self, address: Address) -> int | None:
        """Origin AS of the most specific routed prefix holding the address."""
        bits = _bits(address)
        for entry in self.asn_prefixes.values:
            if entry.cidr.contains(bits):
                return entry.asn
        return None

    def country(self, address: Address) -> str | None:
        """Country of the most specific delegation record holding the address."""
        bits = _bits(address)
        for entry in self.stats.values:
            if entry.cidr.contains(bits):
                return entry.country
        return None