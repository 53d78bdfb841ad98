"""JSON messages exchanged between the scan coordinator and its worker units."""

import json
from dataclasses import MISSING, dataclass, field, fields
from ipaddress import IPv4Address
from typing import Any, Callable, ClassVar
from uuid import UUID

from mtinet.types import AllocationState, Rir


class MessageError(ValueError):
    """Raised when a message cannot be decoded."""


@dataclass(frozen=True)
class _Codec:
    encode: Callable[[Any], Any]
    decode: Callable[[Any], Any]
    optional: bool = False


def _identity(value: Any) -> Any:
    return value


def _decode_uuid(value: Any) -> UUID:
    if not isinstance(value, str):
        raise MessageError(f"expected a UUID string, got {value!r}")
    try:
        return UUID(value)
    except ValueError as error:
        raise MessageError(f"invalid UUID: {value!r}") from error


def _decode_ipv4(value: Any) -> IPv4Address:
    if not isinstance(value, str):
        raise MessageError(f"expected an IPv4 address string, got {value!r}")
    try:
        return IPv4Address(value)
    except ValueError as error:
        raise MessageError(f"invalid IPv4 address: {value!r}") from error


def _check_uint(value: Any, bits: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < (1 << bits):
        raise MessageError(f"expected an unsigned {bits}-bit integer, got {value!r}")
    return value


def _decode_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise MessageError(f"expected a boolean, got {value!r}")
    return value


def _decode_str(value: Any) -> str:
    if not isinstance(value, str):
        raise MessageError(f"expected a string, got {value!r}")
    return value


def _decode_allocation(value: Any) -> AllocationState:
    try:
        return AllocationState(value)
    except ValueError as error:
        raise MessageError(f"unknown allocation state: {value!r}") from error


def _decode_rir(value: Any) -> Rir:
    try:
        return Rir(value)
    except ValueError as error:
        raise MessageError(f"unknown RIR: {value!r}") from error


def _encode_ports(ports: dict[int, bool]) -> dict[str, bool]:
    return {str(port): bool(is_open) for port, is_open in sorted(ports.items())}


def _decode_ports(value: Any) -> dict[int, bool]:
    if not isinstance(value, dict):
        raise MessageError(f"expected a port map, got {value!r}")
    ports = {}
    for key, is_open in value.items():
        if not (isinstance(key, str) and key.isdigit()):
            raise MessageError(f"invalid port number: {key!r}")
        ports[_check_uint(int(key), 16)] = _decode_bool(is_open)
    return ports


def _optional(codec: _Codec) -> _Codec:
    return _Codec(
        lambda value: None if value is None else codec.encode(value),
        lambda value: None if value is None else codec.decode(value),
        optional=True,
    )


_UUID = _Codec(str, _decode_uuid)
_IPV4 = _Codec(str, _decode_ipv4)
_U16 = _Codec(_identity, lambda value: _check_uint(value, 16))
_U32 = _Codec(_identity, lambda value: _check_uint(value, 32))
_BOOL = _Codec(_identity, _decode_bool)
_STR = _Codec(_identity, _decode_str)
_ALLOCATION = _Codec(lambda state: state.value, _decode_allocation)
_RIR = _Codec(lambda rir: rir.value, _decode_rir)
_PORTS = _Codec(_encode_ports, _decode_ports)


def _field(codec: _Codec, default: Any = MISSING) -> Any:
    if default is MISSING:
        return field(metadata={"codec": codec})
    return field(default=default, metadata={"codec": codec})


@dataclass(frozen=True)
class Register:
    """A unit announcing itself; used both as command and as response."""

    TAG: ClassVar[str] = "Register"


@dataclass(frozen=True)
class Deregister:
    """A unit withdrawing itself; used both as command and as response."""

    TAG: ClassVar[str] = "Deregister"


@dataclass(frozen=True)
class QueryCommand:
    TAG: ClassVar[str] = "Query"
    id: UUID = _field(_UUID)
    address: IPv4Address = _field(_IPV4)
    ports_start: int | None = _field(_optional(_U16), None)
    ports_end: int | None = _field(_optional(_U16), None)


@dataclass(frozen=True)
class AllocationStateCommand:
    TAG: ClassVar[str] = "AllocationState"
    id: UUID = _field(_UUID)
    address: IPv4Address = _field(_IPV4)


@dataclass(frozen=True)
class RirCommand:
    TAG: ClassVar[str] = "Rir"
    id: UUID = _field(_UUID)
    address: IPv4Address = _field(_IPV4)
    top: bool = _field(_BOOL)


@dataclass(frozen=True)
class AsnCommand:
    TAG: ClassVar[str] = "Asn"
    id: UUID = _field(_UUID)
    address: IPv4Address = _field(_IPV4)


@dataclass(frozen=True)
class CountryCommand:
    TAG: ClassVar[str] = "Country"
    id: UUID = _field(_UUID)
    address: IPv4Address = _field(_IPV4)


@dataclass(frozen=True)
class OnlineCommand:
    TAG: ClassVar[str] = "Online"
    id: UUID = _field(_UUID)
    address: IPv4Address = _field(_IPV4)


@dataclass(frozen=True)
class PortCommand:
    TAG: ClassVar[str] = "Port"
    id: UUID = _field(_UUID)
    address: IPv4Address = _field(_IPV4)
    port: int = _field(_U16)


@dataclass(frozen=True)
class PortRangeCommand:
    TAG: ClassVar[str] = "PortRange"
    id: UUID = _field(_UUID)
    address: IPv4Address = _field(_IPV4)
    start: int | None = _field(_optional(_U16), None)
    end: int | None = _field(_optional(_U16), None)


@dataclass(frozen=True)
class QueryResponse:
    TAG: ClassVar[str] = "Query"
    id: UUID = _field(_UUID)
    allocation_state: AllocationState = _field(_ALLOCATION)
    top_rir: Rir | None = _field(_optional(_RIR))
    rir: Rir | None = _field(_optional(_RIR))
    asn: int | None = _field(_optional(_U32))
    country: str | None = _field(_optional(_STR))
    online: bool = _field(_BOOL)
    ports: dict[int, bool] | None = _field(_optional(_PORTS), None)


@dataclass(frozen=True)
class AllocationStateResponse:
    TAG: ClassVar[str] = "AllocationState"
    id: UUID = _field(_UUID)
    value: AllocationState = _field(_ALLOCATION)


@dataclass(frozen=True)
class RirResponse:
    TAG: ClassVar[str] = "Rir"
    id: UUID = _field(_UUID)
    value: Rir | None = _field(_optional(_RIR), None)


@dataclass(frozen=True)
class AsnResponse:
    TAG: ClassVar[str] = "Asn"
    id: UUID = _field(_UUID)
    value: int | None = _field(_optional(_U32), None)


@dataclass(frozen=True)
class CountryResponse:
    TAG: ClassVar[str] = "Country"
    id: UUID = _field(_UUID)
    value: str | None = _field(_optional(_STR), None)


@dataclass(frozen=True)
class OnlineResponse:
    TAG: ClassVar[str] = "Online"
    id: UUID = _field(_UUID)
    value: bool = _field(_BOOL)
    reason: str | None = _field(_optional(_STR), None)


@dataclass(frozen=True)
class PortResponse:
    TAG: ClassVar[str] = "Port"
    id: UUID = _field(_UUID)
    value: bool = _field(_BOOL)


@dataclass(frozen=True)
class PortRangeResponse:
    TAG: ClassVar[str] = "PortRange"
    id: UUID = _field(_UUID)
    value: dict[int, bool] = _field(_PORTS)


_UNIT_MESSAGES = (Register, Deregister)

_COMMAND_TYPES = (
    Register,
    Deregister,
    QueryCommand,
    AllocationStateCommand,
    RirCommand,
    AsnCommand,
    CountryCommand,
    OnlineCommand,
    PortCommand,
    PortRangeCommand,
)

_RESPONSE_TYPES = (
    Register,
    Deregister,
    QueryResponse,
    AllocationStateResponse,
    RirResponse,
    AsnResponse,
    CountryResponse,
    OnlineResponse,
    PortResponse,
    PortRangeResponse,
)

_COMMANDS = {kind.TAG: kind for kind in _COMMAND_TYPES}
_RESPONSES = {kind.TAG: kind for kind in _RESPONSE_TYPES}


def _encode(message: Any, allowed: tuple[type, ...], what: str) -> str:
    if not isinstance(message, allowed):
        raise TypeError(f"not a {what}: {message!r}")
    if isinstance(message, _UNIT_MESSAGES):
        payload: Any = message.TAG
    else:
        body = {
            item.name: item.metadata["codec"].encode(getattr(message, item.name))
            for item in fields(message)
        }
        payload = {message.TAG: body}
    return json.dumps(payload, separators=(",", ":"))


def _decode(text: str | bytes, table: dict[str, type], what: str) -> Any:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as error:
        raise MessageError(f"invalid JSON in {what}: {error}") from error

    if isinstance(data, str):
        kind = table.get(data)
        if kind is None or kind not in _UNIT_MESSAGES:
            raise MessageError(f"unknown {what} variant: {data!r}")
        return kind()

    if not isinstance(data, dict) or len(data) != 1:
        raise MessageError(f"a {what} must be a string or a single-key object")

    ((tag, body),) = data.items()
    kind = table.get(tag)
    if kind is None:
        raise MessageError(f"unknown {what} variant: {tag!r}")
    if kind in _UNIT_MESSAGES:
        if body is not None:
            raise MessageError(f"{tag} carries no fields")
        return kind()
    if not isinstance(body, dict):
        raise MessageError(f"fields of {tag} must be an object")

    values = {}
    for item in fields(kind):
        codec = item.metadata["codec"]
        if item.name in body:
            values[item.name] = codec.decode(body[item.name])
        elif codec.optional:
            values[item.name] = None
        else:
            raise MessageError(f"missing field {item.name!r} in {tag}")
    return kind(**values)


def encode_command(command: Any) -> str:
    """Serialise a command sent to a worker unit as JSON text."""
    return _encode(command, _COMMAND_TYPES, "command")


def decode_command(text: str | bytes) -> Any:
    """Parse JSON text into one of the command classes."""
    return _decode(text, _COMMANDS, "command")


def encode_response(response: Any) -> str:
    """Serialise a worker unit's response as JSON text."""
    return _encode(response, _RESPONSE_TYPES, "response")


def decode_response(text: str | bytes) -> Any:
    """Parse JSON text into one of the response classes."""
    return _decode(text, _RESPONSES, "response")