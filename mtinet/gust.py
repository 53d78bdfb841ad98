"""TCP port probing of a single IPv4 host."""

import asyncio
import contextlib
from ipaddress import IPv4Address


def _check_port(port: int) -> int:
    if isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= 0xFFFF:
        raise ValueError(f"invalid port: {port!r}")
    return port


class Gust:
    """Probes TCP ports of one host by attempting to connect."""

    def __init__(self, address: str | IPv4Address) -> None:
        self.address = address if isinstance(address, IPv4Address) else IPv4Address(address)

    async def attack(self, port: int, timeout: float) -> bool:
        """Whether a TCP connection to the port succeeds within ``timeout`` seconds."""
        _check_port(port)
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(str(self.address), port), timeout
            )
        except (OSError, asyncio.TimeoutError):
            return False
        writer.close()
        with contextlib.suppress(OSError):
            await writer.wait_closed()
        return True

    async def attack_range(self, start: int, end: int, timeout: float) -> dict[int, bool]:
        """Probe every port from ``start`` to ``end`` inclusive at once; map the open ones to True."""
        ports = range(_check_port(start), _check_port(end) + 1)
        results = await asyncio.gather(*(self.attack(port, timeout) for port in ports))
        return {port: True for port, is_open in zip(ports, results) if is_open}