"""Storage backends (in-memory, JSON file, SQLite) and a server client for a Webcash HD wallet."""

__version__ = "0.3.19"