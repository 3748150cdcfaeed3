"""Persistence port and its implementations."""

from accountgate.store.base import (
    AccountRecord,
    AuthStore,
    DuplicateRecord,
    RefreshTokenRecord,
    UserRecord,
)
from accountgate.store.memory import InMemoryAuthStore

__all__ = [
    "AccountRecord",
    "AuthStore",
    "DuplicateRecord",
    "InMemoryAuthStore",
    "RefreshTokenRecord",
    "UserRecord",
]
