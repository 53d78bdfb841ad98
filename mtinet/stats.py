"""Parser and provider for RIR delegation statistics files."""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from mtinet.cidr import CIDR, address_to_int
from mtinet.config import ConfigError
from mtinet.sources import ProviderSource, check_and_download_all, load_provider_sources
from mtinet.types import AllocationState, Rir

HEADER_SIZE = 4

_log = logging.getLogger(__name__)
_U32 = re.compile(r"\+?[0-9]+")


@dataclass(frozen=True)
class StatsEntry:
    """One IPv4 delegation record; the most specific blocks sort first."""

    cidr: CIDR
    allocation_state: AllocationState
    rir: Rir
    country: str | None = None

    def __str__(self) -> str:
        country = self.country if self.country is not None else "-"
        return (
            f"cidr: {self.cidr}, allocation_state: {self.allocation_state}, "
            f"rir: {self.rir}, country: {country}"
        )

    def __lt__(self, other: "StatsEntry") -> bool:
        if not isinstance(other, StatsEntry):
            return NotImplemented
        return other.cidr < self.cidr


def _field(parts: list[str], index: int, line_number: int) -> str:
    try:
        return parts[index]
    except IndexError:
        raise ValueError(f"line {line_number + 1}: missing field {index + 1}") from None


def _count(text: str, line_number: int) -> int:
    if not _U32.fullmatch(text) or int(text) > 0xFFFFFFFF:
        raise ValueError(f"line {line_number + 1}: invalid count {text!r}")
    return int(text)


def _parse_record(parts: list[str], line_number: int) -> StatsEntry:
    state = AllocationState.from_str(_field(parts, 6, line_number))
    country = _field(parts, 1, line_number) if state is AllocationState.ALLOCATED else None
    prefix = address_to_int(_field(parts, 3, line_number))
    size = _count(_field(parts, 4, line_number), line_number)
    if size == 0:
        raise ValueError(f"line {line_number + 1}: a block cannot hold zero addresses")
    mask = (0xFFFFFFFF & ~(size - 1)).bit_count()
    rir = Rir.from_str(_field(parts, 0, line_number))
    return StatsEntry(CIDR(prefix, mask), state, rir, country)


def parse_stats(text: str) -> list[StatsEntry]:
    """Parse the IPv4 records of a delegation statistics file, in file order."""
    lines = text.split("\n")
    entries: list[StatsEntry] = []
    index = 0
    header_done = False
    header_sections = 0
    ipv4_offset = 0
    ipv4_count = 0

    while index < len(lines):
        line = lines[index]
        if line.startswith("#"):
            index += 1
            continue

        parts = line.split("|")
        if header_done:
            if len(entries) >= ipv4_count:
                break
            entries.append(_parse_record(parts, index))
            index += 1
            continue

        header_sections += 1
        kind = _field(parts, 2, index)
        if kind == "ipv4":
            if header_sections > HEADER_SIZE:
                raise ValueError(f"line {index + 1}: header longer than {HEADER_SIZE} lines")
            ipv4_count = _count(_field(parts, 4, index), index)
            header_done = True
            # Skip the rest of the header and the records listed before IPv4.
            index += ipv4_offset + (HEADER_SIZE - header_sections) + 1
        elif kind in ("ipv6", "asn"):
            ipv4_offset += _count(_field(parts, 4, index), index)
            index += 1
        else:
            index += 1

    return entries


@dataclass
class StatsProvider:
    """IPv4 delegation records from every configured statistics file."""

    values: list[StatsEntry] = field(default_factory=list)
    sources: list[ProviderSource] = field(default_factory=list)

    @classmethod
    async def load(cls, config: Mapping[str, Any]) -> "StatsProvider":
        """Refresh the configured files and parse them, most specific blocks first."""
        _log.info("Loading ARIN stats...")
        sources = load_provider_sources(config, "arin.stats")
        if sources is None:
            raise ConfigError("Failed to load sources for ARIN stats!")
        await check_and_download_all(sources)

        entries: list[StatsEntry] = []
        for source in sources:
            entries.extend(parse_stats(Path(source.filepath).read_text(encoding="utf-8")))

        _log.info("Loaded ARIN stats!")
        entries.sort()
        return cls(entries, sources)