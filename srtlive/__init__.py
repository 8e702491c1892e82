"""Building blocks of a live stream relay server: logging, locks, ring buffers, an HTTP client, publisher and relay maps, and worker groups."""

__version__ = "0.1.0"