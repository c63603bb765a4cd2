"""Common utilities and helpers used across the authorization core."""

__all__ = [
    "logging",
    "schema",
]
