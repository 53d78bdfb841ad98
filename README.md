# mtinet

Tools for answering questions about IPv4 addresses: how they are allocated,
which regional internet registry (RIR) they belong to, which autonomous
system announces them and which country they are registered to. It also
has the pieces for spreading that work across worker units.

## What is in the package

- `mtinet.types`: `AllocationState` and `Rir` enums with parsing
  (`from_str`), short identifiers (`id()`) and display names.
- `mtinet.cidr`: the `CIDR` block type and `address_to_int`.
- `mtinet.config`: `load_config` for TOML files, `lookup` for dotted keys,
  and `PokedexConfig` / `PokedexUnitConfig` for the service registry login.
- `mtinet.sources`: `ProviderSource`, a local data file refreshed from a URL
  once it is older than `max_time` seconds, and `load_provider_sources`.
- `mtinet.stats`, `mtinet.iana`, `mtinet.thyme`: parsers and providers for
  RIR delegation statistics files, the IANA reserved and recovered address
  lists (CSV), and ASN-prefix and RIR-allocation tables.
- `mtinet.lookup`: `Providers`, which loads all of the above and answers
  `allocation`, `rir`, `asn` and `country` for one address.
- `mtinet.diglett_server`: an aiohttp application serving those lookups.
- `mtinet.diglett_client`: `DiglettClient`, an HTTP client for that API.
- `mtinet.pokedex`: `Pokedex`, a client for the service registry (login,
  logout, services and their units).
- `mtinet.messages`: the JSON commands and responses exchanged with worker
  units (`encode_command`, `decode_command`, `encode_response`,
  `decode_response`).
- `mtinet.gust`: `Gust`, TCP connect probing of one host's ports.
- `mtinet.worker`: `Worker`, which answers commands using a
  `DiglettClient`, ICMP `ping` and `Gust`; and `run`, which connects to a
  coordinator over a websocket and serves its commands.
- `mtinet.units`: `UnitRegistry`, the set of connected worker units.
- `mtinet.healthcheck`: the `mtinet-healthcheck` command.

## Working with addresses

```python
from mtinet.cidr import CIDR, address_to_int

block = CIDR.parse("1.1.1.0/25")
block.contains(address_to_int("1.1.1.127"))   # True
"1.1.1.127" in block                            # True
str(block)                                      # "1.1.1.0/25"

# Short prefixes are padded with zero octets.
str(CIDR.parse("10/8"))                         # "10.0.0.0/8"
```

CIDR blocks order by mask length only, so sorting a list of them puts the
broadest blocks first. The provider entries (`StatsEntry`, `AsnPrefixEntry`,
`RirAllocationEntry`) order the other way round, so a sorted list is
searched most specific block first.

## Registries and allocation states

```python
from mtinet.types import AllocationState, Rir

AllocationState.from_str("assigned")   # AllocationState.ALLOCATED
AllocationState.from_str("available")  # AllocationState.UNALLOCATED
AllocationState.RESERVED.id()          # "reserved"

rir = Rir.from_str("RIPE NCC")
rir.id()   # "ripencc"
str(rir)   # "RIPE NCC"
```

Unknown names raise `AllocationStateParseError` or `RirParseError`, both
subclasses of `ValueError`.

## Configuration

Settings are read from a TOML file with `mtinet.config.load_config`, and
dotted keys are fetched with `lookup(config, "api.port", default)`; without
a default a missing key raises `ConfigError`.

Each lookup data set lists its files under `providers.<name>.sources`,
where `<name>` is one of `arin.stats`, `iana.reserved`, `iana.recovered`,
`thyme.asn_prefixes` and `thyme.rir_allocations`:

```toml
[api]
port = 8080

[[providers.arin.stats.sources]]
filepath = "data/delegated-arin-extended-latest"
url = "https://stats.example.com/delegated-arin-extended-latest"
max_time = 2592000   # seconds before the file is fetched again; defaults to one month
```

Each source needs a `filepath` and a `url`; a missing one, or a `max_time`
that is not an integer, raises `ConfigError`.

Other keys the package reads:

- `unit.username`, `unit.password`, `unit.address`, `unit.announce_port`,
  `pokedex.address`, `pokedex.port`: `PokedexConfig.from_config`. With
  `unit.announce_port` true, `api.port` is announced as the unit's port.
- `diglett.address`, `diglett.port`: `DiglettClient.connect`.
- `pidgeotto.address`, `pidgeotto.port`, `pidgeotto.connect`: `worker.run`.
- `settings.max_workers` (default 64), `settings.gust.timeout`,
  `settings.gust.range.start` (default 1), `settings.gust.range.end`
  (default 999): `Worker`.

## Serving lookups

```python
import asyncio
import uuid

from mtinet.config import load_config
from mtinet.diglett_server import run
from mtinet.lookup import Providers


async def serve() -> None:
    config = load_config("config.toml")
    providers = await Providers.load(config)   # downloads missing or stale files
    await run(config, providers, uuid.uuid4())

asyncio.run(serve())
```

The server listens on all interfaces at `api.port` and answers:

- `GET /`: a version line; `GET /_health`: status 200;
  `GET /_unit`: `{"uuid": ...}`.
- `GET /{address}/allocation`, `/{address}/rir`, `/{address}/asn`,
  `/{address}/country`: `{"value": ...}`, with `null` when nothing is
  known. `/rir?top=true` uses the top-level RIR allocations instead of the
  recovered ranges and delegation records. An invalid address gives 400.

Reserved blocks (including multicast, `224.0.0.0/4`, which is always added)
take precedence for the allocation state.

## Health checks

```sh
mtinet-healthcheck http://localhost:8080/_health
```

It takes exactly one URL and follows redirects. It exits with status 0 when
the endpoint answers with a status code of 299 or below; otherwise it prints
the status code, or the connection error, and exits with status 1.

## Pinging

`mtinet.worker.ping` sends one ICMP echo request and raises `PingTimeout`
or `PingError` on failure. It needs an unprivileged ICMP socket or the right
to open a raw one; without either, every ping fails with `PingError`.

## What the package does not do

- There is no coordinator: nothing accepts worker connections over a
  websocket, schedules scans or stores results in a database.
  `UnitRegistry` only tracks units and hands out a random available one.
- There is no service registry server; `Pokedex` is a client only.
- The lookup API has no authentication.
- Data files are refreshed only when providers are loaded, not on a timer.
- Only `mtinet-healthcheck` is installed as a command; the lookup server and
  the worker are started from your own code as shown above.

## Running the tests

Install the `test` extra and run `pytest` from the project directory.