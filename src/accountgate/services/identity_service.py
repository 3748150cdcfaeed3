"""Identity resolution — which Account (and which User) is logging in.

Learn: Login accepts one identifier that can be either an email or a
username, plus the Account password. Resolution order:

1. Email match → verify the Account password. A wrong password here is
   final: we do NOT fall through to a username lookup.
2. No email match → username match, joined to its Account. No such User
   is NotFound; a wrong password is InvalidCredentials. A right password
   resolves exactly that User.
3. Email path with one User → that User, automatically.
4. Email path with several Users and a ``username`` hint → the matching
   User, if there is one.
5. Otherwise the result is ambiguous: the caller gets the Account only
   and must hand out a selection token instead of a session.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from accountgate.auth.errors import InvalidCredentials, NotFound
from accountgate.auth.password import verify_password
from accountgate.store.base import AccountRecord, AuthStore, UserRecord

logger = structlog.get_logger()


@dataclass
class Resolution:
    """Outcome of a successful credential check.

    ``user`` is None when the Account has several Users and none was
    picked (the ambiguous case).
    """

    account: AccountRecord
    user: Optional[UserRecord] = None

    @property
    def ambiguous(self) -> bool:
        return self.user is None


class IdentityResolver:
    def __init__(self, store: AuthStore):
        self.store = store

    async def resolve(
        self, identifier: str, password: str, username: Optional[str] = None
    ) -> Resolution:
        """Resolve credentials to an Account and, where unambiguous, a User.

        Raises InvalidCredentials or NotFound.
        """
        account = await self.store.find_account_by_email(identifier)

        if account is not None:
            if not verify_password(password, account.password_hash):
                logger.info("auth.login_rejected", account_id=account.id, via="email")
                raise InvalidCredentials()
            return self._pick_user(account, username)

        found = await self.store.find_user_by_username(identifier)
        if found is None:
            logger.info("auth.login_unknown_identifier")
            raise NotFound()

        user, account = found
        if not verify_password(password, account.password_hash):
            logger.info("auth.login_rejected", account_id=account.id, via="username")
            raise InvalidCredentials()
        return Resolution(account=account, user=user)

    def _pick_user(
        self, account: AccountRecord, username: Optional[str]
    ) -> Resolution:
        if len(account.users) == 1:
            return Resolution(account=account, user=account.users[0])
        if username:
            return Resolution(account=account, user=account.find_user(username))
        return Resolution(account=account)
