"""Concurrent message pipeline over a transactional SQLite store."""

__version__ = "0.1.0"
