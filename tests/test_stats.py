import pytest

from mtinet.cidr import CIDR
from mtinet.config import ConfigError
from mtinet.sources import ProviderSource
from mtinet.stats import StatsEntry, StatsProvider, parse_stats
from mtinet.types import AllocationState, Rir

SAMPLE = "\n".join(
    [
        "2|arin|20240101|7|19830101|20240101|-0500",
        "arin|*|asn|*|2|summary",
        "arin|*|ipv4|*|3|summary",
        "arin|*|ipv6|*|1|summary",
        "arin|US|asn|1|1|20000101|allocated|abc",
        "arin|US|asn|2|1|20000101|allocated|abc",
        "arin|US|ipv4|8.8.8.0|256|20000101|allocated|abc",
        "arin||ipv4|23.0.0.0|65536||available|",
        "arin|CA|ipv4|24.0.0.0|512|20000101|assigned|abc",
        "arin|US|ipv6|2001:db8::|32|20000101|allocated|abc",
        "",
    ]
)


def test_parse_sample():
    assert parse_stats(SAMPLE) == [
        StatsEntry(CIDR.parse("8.8.8.0/24"), AllocationState.ALLOCATED, Rir.ARIN, "US"),
        StatsEntry(CIDR.parse("23.0.0.0/16"), AllocationState.UNALLOCATED, Rir.ARIN, None),
        StatsEntry(CIDR.parse("24.0.0.0/23"), AllocationState.ALLOCATED, Rir.ARIN, "CA"),
    ]


def test_comment_lines_are_skipped():
    assert parse_stats("# generated file\n" + SAMPLE) == parse_stats(SAMPLE)


def test_block_covers_its_addresses():
    entry = parse_stats(SAMPLE)[0]
    assert entry.cidr.contains("8.8.8.255")
    assert not entry.cidr.contains("8.8.9.0")


def test_country_only_for_allocated():
    for entry in parse_stats(SAMPLE):
        assert (entry.country is not None) == (entry.allocation_state is AllocationState.ALLOCATED)


def test_str_format():
    entry = StatsEntry(CIDR.parse("8.8.8.0/24"), AllocationState.ALLOCATED, Rir.ARIN, "US")
    assert str(entry) == "cidr: 8.8.8.0/24, allocation_state: Allocated, rir: ARIN, country: US"


def test_str_without_country():
    entry = StatsEntry(CIDR.parse("23.0.0.0/16"), AllocationState.UNALLOCATED, Rir.ARIN)
    assert str(entry) == "cidr: 23.0.0.0/16, allocation_state: Unallocated, rir: ARIN, country: -"


def test_more_specific_sorts_first():
    narrow = StatsEntry(CIDR.parse("1.1.1.1/32"), AllocationState.ALLOCATED, Rir.ARIN, "US")
    wide = StatsEntry(CIDR.parse("1.0.0.0/8"), AllocationState.ALLOCATED, Rir.ARIN, "US")
    assert narrow < wide
    assert not wide < narrow
    assert sorted([wide, narrow]) == [narrow, wide]


def test_unknown_state_raises():
    text = SAMPLE.replace("|available|", "|bogus|")
    with pytest.raises(ValueError):
        parse_stats(text)


def test_zero_sized_block_raises():
    text = SAMPLE.replace("|256|", "|0|")
    with pytest.raises(ValueError):
        parse_stats(text)


def test_truncated_record_raises():
    text = SAMPLE.replace("arin|CA|ipv4|24.0.0.0|512|20000101|assigned|abc", "arin|CA|ipv4")
    with pytest.raises(ValueError):
        parse_stats(text)


@pytest.mark.asyncio
async def test_provider_load(tmp_path):
    path = tmp_path / "stats.txt"
    path.write_text(SAMPLE)
    config = {
        "providers": {
            "arin": {"stats": {"sources": [{"filepath": str(path), "url": "http://localhost/s"}]}}
        }
    }
    provider = await StatsProvider.load(config)
    assert provider.sources == [ProviderSource(str(path), "http://localhost/s")]
    assert sorted(provider.values, key=str) == sorted(parse_stats(SAMPLE), key=str)
    masks = [entry.cidr.mask for entry in provider.values]
    assert masks == sorted(masks, reverse=True)


@pytest.mark.asyncio
async def test_provider_load_without_sources():
    with pytest.raises(ConfigError):
        await StatsProvider.load({})