"""In-memory AuthStore.

Learn: A dict-backed store for tests and local runs. Uniqueness rules
(email, username, token) match the SQL schema so tests exercise the same
failure paths. Lookups hand back copies so callers can't mutate stored
state by accident.
"""

import copy
from typing import Optional

from accountgate.store.base import (
    AccountRecord,
    AuthStore,
    DuplicateRecord,
    RefreshTokenRecord,
    UserRecord,
)


class InMemoryAuthStore(AuthStore):
    def __init__(self):
        self.accounts: dict[str, AccountRecord] = {}
        self.users: dict[str, UserRecord] = {}
        self.refresh_records: dict[str, RefreshTokenRecord] = {}

    def _account_with_users(self, account_id: str) -> Optional[AccountRecord]:
        account = self.accounts.get(account_id)
        if account is None:
            return None
        result = copy.copy(account)
        result.users = [
            copy.copy(u) for u in self.users.values() if u.account_id == account_id
        ]
        return result

    # ─── Accounts ───────────────────────────────────────

    async def find_account_by_email(self, email: str) -> Optional[AccountRecord]:
        for account in self.accounts.values():
            if account.email == email:
                return self._account_with_users(account.id)
        return None

    async def find_account_by_id(self, account_id: str) -> Optional[AccountRecord]:
        return self._account_with_users(account_id)

    async def create_account(
        self, account_id: str, email: str, password_hash: str, salt: str = ""
    ) -> AccountRecord:
        if account_id in self.accounts:
            raise ValueError(f"Account {account_id} already exists")
        if any(a.email == email for a in self.accounts.values()):
            raise DuplicateRecord("email", email)
        account = AccountRecord(
            id=account_id, email=email, password_hash=password_hash, salt=salt
        )
        self.accounts[account_id] = account
        return self._account_with_users(account_id)

    # ─── Users ──────────────────────────────────────────

    async def find_user_by_username(
        self, username: str
    ) -> Optional[tuple[UserRecord, AccountRecord]]:
        for user in self.users.values():
            if user.username == username:
                return copy.copy(user), self._account_with_users(user.account_id)
        return None

    async def find_user_by_id(
        self, user_id: str
    ) -> Optional[tuple[UserRecord, AccountRecord]]:
        user = self.users.get(user_id)
        if user is None:
            return None
        return copy.copy(user), self._account_with_users(user.account_id)

    async def create_user(
        self, user_id: str, username: str, roles: str, account_id: str
    ) -> UserRecord:
        if account_id not in self.accounts:
            raise ValueError(f"Account {account_id} not found")
        if user_id in self.users:
            raise ValueError(f"User {user_id} already exists")
        if any(u.username == username for u in self.users.values()):
            raise DuplicateRecord("username", username)
        user = UserRecord(
            id=user_id, username=username, roles=roles, account_id=account_id
        )
        self.users[user_id] = user
        return copy.copy(user)

    # ─── Refresh tokens ─────────────────────────────────

    async def create_refresh_record(self, token: str, account_id: str) -> None:
        if token in self.refresh_records:
            raise ValueError("Refresh token already recorded")
        self.refresh_records[token] = RefreshTokenRecord(token=token, account_id=account_id)

    async def delete_refresh_record(self, token: str) -> bool:
        return self.refresh_records.pop(token, None) is not None

    async def find_refresh_record(self, token: str) -> Optional[RefreshTokenRecord]:
        return self.refresh_records.get(token)

    async def list_refresh_records_for_account(
        self, account_id: str
    ) -> list[RefreshTokenRecord]:
        return [r for r in self.refresh_records.values() if r.account_id == account_id]
