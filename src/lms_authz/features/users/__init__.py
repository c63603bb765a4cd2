"""User identities consumed by the authorization core."""

from .models import User
from .repository import UsersRepository

__all__ = ["User", "UsersRepository"]
