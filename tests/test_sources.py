import os
import time

import httpx
import pytest
import respx

from mtinet.config import ConfigError
from mtinet.sources import (
    DEFAULT_MAX_TIME,
    USER_AGENT,
    ProviderSource,
    check_and_download_all,
    load_provider_sources,
)

URL = "http://localhost/data.txt"


def _config(sources):
    return {"providers": {"arin": {"stats": {"sources": sources}}}}


def test_load_sources_with_default_max_time():
    config = _config([{"filepath": "data/a.txt", "url": URL}])
    sources = load_provider_sources(config, "arin.stats")
    assert sources == [ProviderSource("data/a.txt", URL, 2592000)]


def test_load_sources_explicit_max_time():
    config = _config([{"filepath": "a", "url": URL, "max_time": 60}])
    assert load_provider_sources(config, "arin.stats")[0].max_time == 60


def test_load_sources_missing_returns_none():
    assert load_provider_sources({}, "arin.stats") is None
    assert load_provider_sources(_config("not a list"), "arin.stats") is None


def test_load_sources_entry_must_be_table():
    with pytest.raises(ConfigError):
        load_provider_sources(_config(["a"]), "arin.stats")


@pytest.mark.parametrize("entry", [{"url": URL}, {"filepath": "a"}])
def test_load_sources_required_keys(entry):
    with pytest.raises(ConfigError):
        load_provider_sources(_config([entry]), "arin.stats")


@pytest.mark.parametrize("max_time", ["soon", -5, True, 1.5])
def test_load_sources_invalid_max_time(max_time):
    entry = {"filepath": "a", "url": URL, "max_time": max_time}
    with pytest.raises(ConfigError):
        load_provider_sources(_config([entry]), "arin.stats")


def test_check_missing_file(tmp_path):
    assert ProviderSource(str(tmp_path / "none.txt"), URL).check() is False


def test_check_fresh_and_stale(tmp_path):
    path = tmp_path / "file.txt"
    path.write_text("x")
    old = time.time() - 100
    os.utime(path, (old, old))
    assert ProviderSource(str(path), URL, max_time=1000).check() is True
    assert ProviderSource(str(path), URL, max_time=10).check() is False


def test_default_max_time_is_one_month():
    assert ProviderSource("a", URL).max_time == DEFAULT_MAX_TIME == 2592000


@pytest.mark.asyncio
async def test_download_writes_file_and_sends_user_agent(tmp_path):
    path = tmp_path / "nested" / "dir" / "data.txt"
    source = ProviderSource(str(path), URL)
    with respx.mock() as router:
        route = router.get(URL).mock(return_value=httpx.Response(200, content=b"payload"))
        async with httpx.AsyncClient() as client:
            await source.download(client)
    assert path.read_bytes() == b"payload"
    assert route.calls.last.request.headers["User-Agent"] == USER_AGENT


@pytest.mark.asyncio
async def test_download_failure_raises(tmp_path):
    source = ProviderSource(str(tmp_path / "data.txt"), URL)
    with respx.mock() as router:
        router.get(URL).mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(OSError):
            await source.download(None)


@pytest.mark.asyncio
async def test_check_and_download_skips_fresh_file(tmp_path):
    path = tmp_path / "data.txt"
    path.write_bytes(b"old")
    source = ProviderSource(str(path), URL)
    with respx.mock(assert_all_called=False) as router:
        route = router.get(URL).mock(return_value=httpx.Response(200, content=b"new"))
        await source.check_and_download(None)
    assert route.call_count == 0
    assert path.read_bytes() == b"old"


@pytest.mark.asyncio
async def test_check_and_download_all_fetches_missing(tmp_path):
    fresh = tmp_path / "fresh.txt"
    fresh.write_bytes(b"kept")
    missing = tmp_path / "missing.txt"
    sources = [ProviderSource(str(fresh), URL), ProviderSource(str(missing), URL)]
    with respx.mock() as router:
        route = router.get(URL).mock(return_value=httpx.Response(200, content=b"fetched"))
        await check_and_download_all(sources)
    assert route.call_count == 1
    assert fresh.read_bytes() == b"kept"
    assert missing.read_bytes() == b"fetched"