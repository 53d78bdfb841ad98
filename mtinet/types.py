"""Shared value types: address allocation states and regional internet registries."""

from enum import Enum


class AllocationStateParseError(ValueError):
    """Raised when a string names no known allocation state."""

    def __init__(self, text: str) -> None:
        super().__init__(f"unknown allocation state: {text!r}")
        self.text = text


class RirParseError(ValueError):
    """Raised when a string names no known regional internet registry."""

    def __init__(self, text: str) -> None:
        super().__init__(f"unknown RIR: {text!r}")
        self.text = text


class AllocationState(Enum):
    """Allocation state of an IPv4 address; the value is its wire name."""

    UNKNOWN = "Unknown"
    RESERVED = "Reserved"
    UNALLOCATED = "Unallocated"
    ALLOCATED = "Allocated"

    @classmethod
    def from_str(cls, text: str) -> "AllocationState":
        """Parse a state name as found in registry files, ignoring case."""
        try:
            return _ALLOCATION_NAMES[text.lower()]
        except KeyError:
            raise AllocationStateParseError(text) from None

    def id(self) -> str:
        """Short lower-case identifier used by the HTTP APIs and the database."""
        return self.value.lower()

    def __str__(self) -> str:
        return self.value


class Rir(Enum):
    """Regional internet registry; the value is its wire name."""

    ARIN = "Arin"
    RIPENCC = "Ripencc"
    APNIC = "Apnic"
    LACNIC = "Lacnic"
    AFRINIC = "Afrinic"
    OTHER = "Other"

    @classmethod
    def from_str(cls, text: str) -> "Rir":
        """Parse a registry name, ignoring case."""
        try:
            return _RIR_NAMES[text.lower()]
        except KeyError:
            raise RirParseError(text) from None

    def id(self) -> str:
        """Short lower-case identifier used by the HTTP APIs and the database."""
        return self.value.lower()

    def __str__(self) -> str:
        return _RIR_DISPLAY[self]


_ALLOCATION_NAMES = {
    "reserved": AllocationState.RESERVED,
    "available": AllocationState.UNALLOCATED,
    "allocated": AllocationState.ALLOCATED,
    "assigned": AllocationState.ALLOCATED,
    "unknown": AllocationState.UNKNOWN,
}

_RIR_NAMES = {
    "arin": Rir.ARIN,
    "ripencc": Rir.RIPENCC,
    "ripe ncc": Rir.RIPENCC,
    "apnic": Rir.APNIC,
    "lacnic": Rir.LACNIC,
    "afrinic": Rir.AFRINIC,
}

_RIR_DISPLAY = {
    Rir.ARIN: "ARIN",
    Rir.RIPENCC: "RIPE NCC",
    Rir.APNIC: "APNIC",
    Rir.LACNIC: "LACNIC",
    Rir.AFRINIC: "AfriNIC",
    Rir.OTHER: "Other",
}