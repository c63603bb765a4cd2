"""Security helpers (credential hashing)."""

from .hashing import generate_password, hash_password

__all__ = ["generate_password", "hash_password"]
