"""Embeddable in-memory key-value database with strings, sets, sorted sets, expiry and transactions."""

__version__ = "1.2.8"