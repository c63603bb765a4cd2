"""Role, permission and ownership authorization core for the learning platform."""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
