"""Command that probes an HTTP endpoint and reports health via its exit status."""

import sys
from collections.abc import Sequence

import httpx


def check(endpoint: str) -> int:
    """GET the endpoint and return its HTTP status code."""
    return httpx.get(endpoint, follow_redirects=True).status_code


def main(argv: Sequence[str] | None = None) -> int:
    """Exit 0 when the endpoint answers with a status below 300, else 1."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) < 1:
        raise SystemExit("Too few arguments!")
    if len(args) > 1:
        raise SystemExit("Too many arguments!")

    try:
        code = check(args[0])
    except (httpx.HTTPError, httpx.InvalidURL) as error:
        print(error)
        return 1

    if code > 299:
        print(code)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())