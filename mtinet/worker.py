"""Worker unit that answers scan commands received from the coordinator."""

import asyncio
import logging
import random
import socket
import struct
from collections.abc import Awaitable, Callable, Mapping
from ipaddress import IPv4Address
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from websockets.asyncio.client import connect
from websockets.exceptions import WebSocketException

from mtinet.config import ConfigError, lookup
from mtinet.diglett_client import DiglettClient
from mtinet.gust import Gust
from mtinet.messages import (
    AllocationStateCommand,
    AllocationStateResponse,
    AsnCommand,
    AsnResponse,
    CountryCommand,
    CountryResponse,
    Deregister,
    MessageError,
    OnlineCommand,
    OnlineResponse,
    PortCommand,
    PortRangeCommand,
    PortRangeResponse,
    PortResponse,
    QueryCommand,
    QueryResponse,
    Register,
    RirCommand,
    RirResponse,
    decode_command,
    encode_response,
)
from mtinet.types import AllocationState

MAX_WORKERS = 64
PING_TIMEOUT = 2.0
DEFAULT_PORT_TIMEOUT = 5
DEFAULT_RANGE_TIMEOUT = 10
DEFAULT_RANGE_START = 1
DEFAULT_RANGE_END = 999

_ICMP_ECHO_REQUEST = 8
_ICMP_ECHO_REPLY = 0
_PAYLOAD = bytes(8)

_log = logging.getLogger(__name__)

Pinger = Callable[[IPv4Address, float], Awaitable[None]]


class PingError(Exception):
    """Raised when an echo request fails for a reason other than a timeout."""


class PingTimeout(PingError):
    """Raised when no echo reply arrives in time."""


def _checksum(data: bytes) -> int:
    if len(data) % 2:
        data += b"\x00"
    total = sum(word for (word,) in struct.iter_unpack("!H", data))
    while total >> 16:
        total = (total & 0xFFFF) + (total >> 16)
    return ~total & 0xFFFF


def _open_icmp_socket() -> tuple[socket.socket, bool]:
    """Open an ICMP socket; the flag tells whether replies carry an IP header."""
    try:
        return socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_ICMP), False
    except OSError:
        pass
    try:
        return socket.socket(socket.AF_INET, socket.SOCK_RAW, socket.IPPROTO_ICMP), True
    except OSError as error:
        raise PingError(f"cannot open an ICMP socket: {error}") from error


async def ping(address: str | IPv4Address, timeout: float = PING_TIMEOUT) -> None:
    """Send one ICMP echo request and wait for the reply; raise on failure."""
    target = str(IPv4Address(address))
    identifier = random.getrandbits(16)
    header = struct.pack("!BBHHH", _ICMP_ECHO_REQUEST, 0, 0, identifier, 0)
    checksum = _checksum(header + _PAYLOAD)
    packet = struct.pack("!BBHHH", _ICMP_ECHO_REQUEST, 0, checksum, identifier, 0) + _PAYLOAD

    sock, raw = _open_icmp_socket()
    loop = asyncio.get_running_loop()
    with sock:
        sock.setblocking(False)
        try:
            await loop.sock_sendto(sock, packet, (target, 0))
            async with asyncio.timeout(timeout):
                while True:
                    data, origin = await loop.sock_recvfrom(sock, 1024)
                    if raw:
                        if origin[0] != target or not data:
                            continue
                        data = data[(data[0] & 0x0F) * 4 :]
                    if len(data) < 8:
                        continue
                    kind, _, _, reply_id, sequence = struct.unpack("!BBHHH", data[:8])
                    if kind != _ICMP_ECHO_REPLY or sequence != 0:
                        continue
                    if raw and reply_id != identifier:
                        continue
                    return
        except TimeoutError:
            raise PingTimeout(f"no echo reply from {target} within {timeout}s") from None
        except OSError as error:
            raise PingError(f"ping to {target} failed: {error}") from error


def _setting_int(config: Mapping[str, Any], key: str, default: int) -> int:
    value = lookup(config, key, default)
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    return default


def _setting_bool(config: Mapping[str, Any], key: str, default: bool) -> bool:
    value = lookup(config, key, default)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        word = value.strip().lower()
        if word in ("true", "t", "1", "yes", "on"):
            return True
        if word in ("false", "f", "0", "no", "off"):
            return False
    return default


def connect_url(config: Mapping[str, Any]) -> str:
    """The coordinator's websocket URL from ``pidgeotto.address`` and ``pidgeotto.port``."""
    address = lookup(config, "pidgeotto.address", None)
    if not isinstance(address, str):
        raise ConfigError("pidgeotto.address must be set!")
    parts = urlsplit(address)
    if not parts.scheme or not parts.hostname:
        raise ConfigError("Failed to parse configured pidgeotto address!")

    netloc = parts.netloc
    port = lookup(config, "pidgeotto.port", None)
    if port is not None:
        if isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= 0xFFFF:
            raise ConfigError("pidgeotto.port must be a valid port number!")
        host = parts.hostname
        if ":" in host:
            host = f"[{host}]"
        userinfo, at, _ = netloc.rpartition("@")
        netloc = f"{userinfo}{at}{host}:{port}"

    return urlunsplit((parts.scheme, netloc, "/ws", parts.query, parts.fragment))


class Worker:
    """Answers commands with lookups, pings and port probes, a bounded number at a time."""

    def __init__(
        self,
        config: Mapping[str, Any],
        diglett: DiglettClient,
        max_workers: int | None = None,
        pinger: Pinger = ping,
    ) -> None:
        self.config = config
        self.diglett = diglett
        if max_workers is None:
            max_workers = _setting_int(config, "settings.max_workers", MAX_WORKERS)
        if max_workers < 1:
            raise ValueError(f"max_workers must be positive, got {max_workers}")
        self.max_workers = max_workers
        self._permits = asyncio.Semaphore(max_workers)
        self._pinger = pinger

    async def _is_online(self, address: IPv4Address) -> bool:
        try:
            await self._pinger(address, PING_TIMEOUT)
        except PingError:
            return False
        return True

    async def _query(self, command: QueryCommand) -> QueryResponse:
        address = command.address
        state = await self.diglett.allocation_state(address)
        top_rir = await self.diglett.rir(address, True)
        rir = await self.diglett.rir(address, False)
        asn = await self.diglett.asn(address)
        country = await self.diglett.country(address)

        if state in (AllocationState.RESERVED, AllocationState.UNALLOCATED):
            return QueryResponse(
                id=command.id,
                allocation_state=state,
                top_rir=top_rir,
                rir=rir,
                asn=asn,
                country=country,
                online=False,
                ports=None,
            )

        online = await self._is_online(address)
        return QueryResponse(
            id=command.id,
            # An address that answers must be allocated.
            allocation_state=AllocationState.ALLOCATED if online else state,
            top_rir=top_rir,
            rir=rir,
            asn=asn,
            country=country,
            online=online,
            ports={},
        )

    async def _online(self, command: OnlineCommand) -> OnlineResponse:
        try:
            await self._pinger(command.address, PING_TIMEOUT)
        except PingTimeout:
            return OnlineResponse(command.id, False, "timeout")
        except PingError:
            return OnlineResponse(command.id, False, "unknown")
        return OnlineResponse(command.id, True, None)

    async def _port_range(self, command: PortRangeCommand) -> PortRangeResponse:
        start = command.start
        if start is None:
            start = _setting_int(self.config, "settings.gust.range.start", DEFAULT_RANGE_START)
        end = command.end
        if end is None:
            end = _setting_int(self.config, "settings.gust.range.end", DEFAULT_RANGE_END)
        timeout = _setting_int(self.config, "settings.gust.timeout", DEFAULT_RANGE_TIMEOUT)
        ports = await Gust(command.address).attack_range(start, end, timeout)
        return PortRangeResponse(command.id, ports)

    async def handle(self, command: Any) -> Any:
        """Carry out one command; return its response, or None when it has none."""
        if isinstance(command, (Register, Deregister)):
            return None

        async with self._permits:
            match command:
                case QueryCommand():
                    return await self._query(command)
                case AllocationStateCommand(id=cid, address=address):
                    state = await self.diglett.allocation_state(address)
                    return AllocationStateResponse(cid, state)
                case RirCommand(id=cid, address=address, top=top):
                    return RirResponse(cid, await self.diglett.rir(address, top))
                case AsnCommand(id=cid, address=address):
                    return AsnResponse(cid, await self.diglett.asn(address))
                case CountryCommand(id=cid, address=address):
                    return CountryResponse(cid, await self.diglett.country(address))
                case OnlineCommand():
                    return await self._online(command)
                case PortCommand(id=cid, address=address, port=port):
                    timeout = _setting_int(
                        self.config, "settings.gust.timeout", DEFAULT_PORT_TIMEOUT
                    )
                    return PortResponse(cid, await Gust(address).attack(port, timeout))
                case PortRangeCommand():
                    return await self._port_range(command)
        raise TypeError(f"not a command: {command!r}")

    async def handle_text(self, text: str | bytes) -> str | None:
        """Decode a JSON command, carry it out and encode the response."""
        _log.debug("Received message %s", text)
        try:
            command = decode_command(text)
        except MessageError as error:
            _log.error("%s", error)
            return None
        response = await self.handle(command)
        return None if response is None else encode_response(response)


async def run(config: Mapping[str, Any], jwt: str, diglett: DiglettClient) -> None:
    """Connect to the coordinator, register and answer its commands until it disconnects."""
    if not _setting_bool(config, "pidgeotto.connect", True):
        _log.info("pidgeotto.connect set to false, not connecting!")
        return

    url = connect_url(config)
    worker = Worker(config, diglett)
    try:
        connection = await connect(url, additional_headers={"Authorization": f"Bearer {jwt}"})
    except (OSError, WebSocketException) as error:
        raise ConnectionError(
            f"Failed to establish a websocket connection to Pidgeotto! ({error})"
        ) from error
    _log.info("Successfully established a websocket connection to a Pidgeotto instance!")

    async with connection:
        await connection.send(encode_response(Register()))
        outgoing: asyncio.Queue[str] = asyncio.Queue(maxsize=worker.max_workers)
        tasks: set[asyncio.Task[None]] = set()

        # Only one task writes to the socket; the others hand replies over the queue.
        async def write() -> None:
            while True:
                await connection.send(await outgoing.get())

        async def serve(text: str) -> None:
            try:
                reply = await worker.handle_text(text)
            except Exception:
                _log.exception("Failed to handle message %s", text)
                return
            if reply is not None:
                await outgoing.put(reply)

        writer = asyncio.create_task(write())
        try:
            async for message in connection:
                if isinstance(message, str):
                    task = asyncio.create_task(serve(message))
                    tasks.add(task)
                    task.add_done_callback(tasks.discard)
        finally:
            pending = [writer, *tasks]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)