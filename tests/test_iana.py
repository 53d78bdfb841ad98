from ipaddress import IPv4Address

import pytest

from mtinet.cidr import CIDR
from mtinet.config import ConfigError
from mtinet.iana import (
    RecoveredEntry,
    RecoveredProvider,
    ReservedProvider,
    parse_recovered,
    parse_reserved,
)
from mtinet.types import Rir, RirParseError

RECOVERED = (
    "Start address,End address,Designation,Date\n"
    "41.0.0.0,41.255.255.255,AfriNIC,2011-01-01\n"
    "\n"
    "5.0.0.0,5.0.0.255,RIPE NCC,2012-01-01\n"
)

RESERVED = (
    "Address Block,Name,RFC\n"
    '0.0.0.0/8,"This network",RFC791\n'
    '"192.0.0.170/32, 192.0.0.171/32",NAT64,RFC7050\n'
    "192.88.99.0/24 [2],Deprecated,RFC7526\n"
)


def _config(name, path):
    return {
        "providers": {
            "iana": {name: {"sources": [{"filepath": str(path), "url": "http://localhost/x"}]}}
        }
    }


def test_parse_recovered():
    assert parse_recovered(RECOVERED) == [
        RecoveredEntry(IPv4Address("41.0.0.0"), IPv4Address("41.255.255.255"), Rir.AFRINIC),
        RecoveredEntry(IPv4Address("5.0.0.0"), IPv4Address("5.0.0.255"), Rir.RIPENCC),
    ]


def test_recovered_str():
    entry = RecoveredEntry(IPv4Address("41.0.0.0"), IPv4Address("41.255.255.255"), Rir.AFRINIC)
    assert str(entry) == "start: 41.0.0.0, end: 41.255.255.255, rir: AfriNIC"


def test_parse_recovered_unknown_rir():
    with pytest.raises(RirParseError):
        parse_recovered("a,b,c\n1.0.0.0,1.0.0.255,NOWHERE\n")


def test_parse_recovered_bad_address():
    with pytest.raises(ValueError):
        parse_recovered("a,b,c\n1.0.0,1.0.0.255,ARIN\n")


def test_parse_recovered_unequal_fields():
    with pytest.raises(ValueError):
        parse_recovered("a,b,c,d\n1.0.0.0,1.0.0.255,ARIN\n")


def test_parse_recovered_header_only():
    assert parse_recovered("a,b,c\n") == []


def test_parse_reserved():
    assert parse_reserved(RESERVED) == [
        CIDR.parse("0.0.0.0/8"),
        CIDR.parse("192.0.0.170/32"),
        CIDR.parse("192.0.0.171/32"),
        CIDR.parse("192.88.99.0/24"),
    ]


def test_parse_reserved_malformed():
    with pytest.raises(ValueError):
        parse_reserved("Address Block,Name\nnot-a-block,Broken\n")


@pytest.mark.asyncio
async def test_recovered_provider_load(tmp_path):
    path = tmp_path / "recovered.csv"
    path.write_text(RECOVERED)
    provider = await RecoveredProvider.load(_config("recovered", path))
    assert provider.values == parse_recovered(RECOVERED)
    assert len(provider.sources) == 1


@pytest.mark.asyncio
async def test_reserved_provider_load_adds_multicast(tmp_path):
    path = tmp_path / "reserved.csv"
    path.write_text(RESERVED)
    provider = await ReservedProvider.load(_config("reserved", path))
    assert CIDR.parse("224.0.0.0/4") in provider.values
    assert len(provider.values) == len(parse_reserved(RESERVED)) + 1
    masks = [block.mask for block in provider.values]
    assert masks == sorted(masks)


@pytest.mark.asyncio
async def test_providers_without_sources():
    with pytest.raises(ConfigError):
        await RecoveredProvider.load({})
    with pytest.raises(ConfigError):
        await ReservedProvider.load({})