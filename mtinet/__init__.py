"""IPv4 address lookups, a lookup HTTP service, scanning workers and registry clients."""

__version__ = "0.1.0"