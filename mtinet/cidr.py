"""IPv4 CIDR blocks as used by the registry data providers."""

import re
from dataclasses import dataclass
from ipaddress import IPv4Address

_ALL_BITS = 0xFFFFFFFF
_MASK_PATTERN = re.compile(r"\+?[0-9]+")


def address_to_int(text: str) -> int:
    """Parse a dotted-quad IPv4 address into its 32-bit integer value."""
    if not isinstance(text, str):
        raise TypeError(f"expected an address string, got {text!r}")
    try:
        return int(IPv4Address(text))
    except ValueError as error:
        raise ValueError(f"invalid IPv4 address: {text!r}") from error


@dataclass(frozen=True)
class CIDR:
    """An IPv4 prefix and mask length; ordered by mask length only."""

    prefix: int
    mask: int

    def __post_init__(self) -> None:
        if not 0 <= self.prefix <= _ALL_BITS:
            raise ValueError(f"prefix out of range: {self.prefix}")
        if not 0 <= self.mask <= 0xFFFF:
            raise ValueError(f"mask out of range: {self.mask}")

    @classmethod
    def parse(cls, text: str) -> "CIDR":
        """Parse ``a.b.c.d/n``; missing trailing octets are taken as zero."""
        parts = text.split("/")
        address = parts[0]
        while len(address.split(".")) < 4:
            address += ".0"
        try:
            prefix = int(IPv4Address(address))
        except ValueError:
            raise ValueError("Failed to convert address to u32!") from None
        if len(parts) < 2 or not _MASK_PATTERN.fullmatch(parts[1]) or int(parts[1]) > 0xFFFF:
            raise ValueError("Failed to convert mask to u16!")
        return cls(prefix, int(parts[1]))

    def contains(self, address: int | str) -> bool:
        """Whether an address (integer or dotted quad) lies inside this block."""
        if isinstance(address, str):
            address = address_to_int(address)
        if self.mask > 32:
            raise ValueError(f"mask too long for IPv4: {self.mask}")
        netmask = (_ALL_BITS << (32 - self.mask)) & _ALL_BITS
        return (self.prefix & netmask) == (address & netmask)

    def __contains__(self, address: int | str) -> bool:
        return self.contains(address)

    def __str__(self) -> str:
        return f"{IPv4Address(self.prefix)}/{self.mask}"

    def __lt__(self, other: "CIDR") -> bool:
        if not isinstance(other, CIDR):
            return NotImplemented
        return self.mask < other.mask

    def __le__(self, other: "CIDR") -> bool:
        if not isinstance(other, CIDR):
            return NotImplemented
        return self.mask <= other.mask

    def __gt__(self, other: "CIDR") -> bool:
        if not isinstance(other, CIDR):
            return NotImplemented
        return self.mask > other.mask

    def __ge__(self, other: "CIDR") -> bool:
        if not isinstance(other, CIDR):
            return NotImplemented
        return self.mask >= other.mask