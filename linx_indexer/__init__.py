"""SQLite storage, points calculation and an HTTP API for swaps, transfers and lending."""

__version__ = "0.1.0"