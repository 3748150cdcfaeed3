"""Persistence port — what the auth services need from storage.

Learn: Services never import SQLAlchemy. They talk to an AuthStore, which
hands back plain dataclasses. Two implementations ship:

- InMemoryAuthStore (store/memory.py) — tests and local experiments
- SqlAuthStore (store/sql.py) — async SQLAlchemy against Postgres/SQLite

A refresh token is valid for refresh/switch iff a RefreshTokenRecord with
that exact token string exists. ``delete_refresh_record`` reports whether
it actually removed something, so two requests racing on the same stale
token can't both believe they won.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional


class DuplicateRecord(ValueError):
    """A write hit a uniqueness rule (``field`` is "email" or "username").

    Raised even after a prior lookup said the value was free, when a
    concurrent request claimed it first.
    """

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"{field} {value!r} already exists")


@dataclass
class UserRecord:
    id: str
    username: str
    roles: str
    account_id: str


@dataclass
class AccountRecord:
    id: str
    email: str
    password_hash: str
    salt: str = ""
    users: list[UserRecord] = field(default_factory=list)

    def find_user(self, username: str) -> Optional[UserRecord]:
        """Return the User on this Account with ``username``, if any."""
        for user in self.users:
            if user.username == username:
                return user
        return None


@dataclass(frozen=True)
class RefreshTokenRecord:
    token: str
    account_id: str


class AuthStore(ABC):
    """Abstract store for Accounts, Users and outstanding refresh tokens."""

    # ─── Accounts ───────────────────────────────────────

    @abstractmethod
    async def find_account_by_email(self, email: str) -> Optional[AccountRecord]:
        """Look up an Account by email, Users included."""

    @abstractmethod
    async def find_account_by_id(self, account_id: str) -> Optional[AccountRecord]:
        """Look up an Account by id, Users included."""

    @abstractmethod
    async def create_account(
        self, account_id: str, email: str, password_hash: str, salt: str = ""
    ) -> AccountRecord: ...

    # ─── Users ──────────────────────────────────────────

    @abstractmethod
    async def find_user_by_username(
        self, username: str
    ) -> Optional[tuple[UserRecord, AccountRecord]]: ...

    @abstractmethod
    async def find_user_by_id(
        self, user_id: str
    ) -> Optional[tuple[UserRecord, AccountRecord]]: ...

    @abstractmethod
    async def create_user(
        self, user_id: str, username: str, roles: str, account_id: str
    ) -> UserRecord: ...

    # ─── Refresh tokens ─────────────────────────────────

    @abstractmethod
    async def create_refresh_record(self, token: str, account_id: str) -> None: ...

    @abstractmethod
    async def delete_refresh_record(self, token: str) -> bool:
        """Delete the record for ``token``. Returns False if it was already gone."""

    @abstractmethod
    async def find_refresh_record(self, token: str) -> Optional[RefreshTokenRecord]: ...

    @abstractmethod
    async def list_refresh_records_for_account(
        self, account_id: str
    ) -> list[RefreshTokenRecord]: ...

    # ─── Unit of work ───────────────────────────────────

    async def commit(self) -> None:
        """Make the current operation's writes durable. No-op by default."""
