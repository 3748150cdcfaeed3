"""SQLAlchemy-backed AuthStore.

Learn: Wraps one AsyncSession (one per request). Writes are flushed so
later reads in the same operation see them, but nothing is durable until
the service calls ``commit()``. If an operation raises halfway, the
session closes without a commit and the database rolls the partial work
back.

Users are always loaded with ``selectinload``: async sessions can't lazy
load, and every caller that fetches an Account wants its Users anyway.
"""

from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from accountgate.db.models import Account, RefreshToken, User
from accountgate.store.base import (
    AccountRecord,
    AuthStore,
    DuplicateRecord,
    RefreshTokenRecord,
    UserRecord,
)


def _user_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id, username=user.username, roles=user.roles, account_id=user.account_id
    )


def _account_record(account: Account) -> AccountRecord:
    return AccountRecord(
        id=account.id,
        email=account.email,
        password_hash=account.hashed_password,
        salt=account.salt,
        users=[_user_record(u) for u in account.users],
    )


class SqlAuthStore(AuthStore):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _load_account(self, *criteria) -> Optional[Account]:
        result = await self.db.execute(
            select(Account)
            .where(*criteria)
            .options(selectinload(Account.users))
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def _load_user(
        self, *criteria
    ) -> Optional[tuple[UserRecord, AccountRecord]]:
        result = await self.db.execute(select(User).where(*criteria))
        user = result.scalars().first()
        if not user:
            return None
        # Owning Account comes from its own query; never touch user.account.
        account = await self._load_account(Account.id == user.account_id)
        return _user_record(user), _account_record(account)

    async def _flush_unique(self, field: str, value: str) -> None:
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            raise DuplicateRecord(field, value) from e

    # ─── Accounts ───────────────────────────────────────

    async def find_account_by_email(self, email: str) -> Optional[AccountRecord]:
        account = await self._load_account(Account.email == email)
        return _account_record(account) if account else None

    async def find_account_by_id(self, account_id: str) -> Optional[AccountRecord]:
        account = await self._load_account(Account.id == account_id)
        return _account_record(account) if account else None

    async def create_account(
        self, account_id: str, email: str, password_hash: str, salt: str = ""
    ) -> AccountRecord:
        account = Account(
            id=account_id, email=email, hashed_password=password_hash, salt=salt
        )
        self.db.add(account)
        await self._flush_unique("email", email)
        return AccountRecord(
            id=account.id, email=account.email, password_hash=password_hash, salt=salt
        )

    # ─── Users ──────────────────────────────────────────

    async def find_user_by_username(
        self, username: str
    ) -> Optional[tuple[UserRecord, AccountRecord]]:
        return await self._load_user(User.username == username)

    async def find_user_by_id(
        self, user_id: str
    ) -> Optional[tuple[UserRecord, AccountRecord]]:
        return await self._load_user(User.id == user_id)

    async def create_user(
        self, user_id: str, username: str, roles: str, account_id: str
    ) -> UserRecord:
        user = User(id=user_id, username=username, roles=roles, account_id=account_id)
        self.db.add(user)
        await self._flush_unique("username", username)
        return _user_record(user)

    # ─── Refresh tokens ─────────────────────────────────

    async def create_refresh_record(self, token: str, account_id: str) -> None:
        self.db.add(RefreshToken(token=token, account_id=account_id))
        await self.db.flush()

    async def delete_refresh_record(self, token: str) -> bool:
        result = await self.db.execute(
            delete(RefreshToken).where(RefreshToken.token == token)
        )
        return result.rowcount > 0

    async def find_refresh_record(self, token: str) -> Optional[RefreshTokenRecord]:
        row = await self.db.get(RefreshToken, token)
        if not row:
            return None
        return RefreshTokenRecord(token=row.token, account_id=row.account_id)

    async def list_refresh_records_for_account(
        self, account_id: str
    ) -> list[RefreshTokenRecord]:
        result = await self.db.execute(
            select(RefreshToken).where(RefreshToken.account_id == account_id)
        )
        return [
            RefreshTokenRecord(token=r.token, account_id=r.account_id)
            for r in result.scalars().all()
        ]

    # ─── Unit of work ───────────────────────────────────

    async def commit(self) -> None:
        await self.db.commit()
