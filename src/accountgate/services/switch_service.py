"""Account-scoped user switching.

Learn: A holder of a valid refresh token can become any other User on
the same Account without re-entering the password. The presented
token must still have its record, so logout and rotation end it for
switching too. The record itself is left alone: switching does not
revoke the token that authorised it. Only logout revokes explicitly,
and refresh revokes by rotation. That asymmetry is a known policy
choice (see DESIGN.md).
"""

from datetime import datetime
from typing import Callable, Optional

import structlog

from accountgate.auth.errors import (
    UnknownAccount,
    UnknownAccountForToken,
    UnknownUser,
)
from accountgate.services.session_service import (
    SessionIssuer,
    TokenPair,
    verify_refresh_token,
)
from accountgate.store.base import AuthStore

logger = structlog.get_logger()


class AccountSwitcher:
    def __init__(
        self,
        store: AuthStore,
        issuer: SessionIssuer,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.issuer = issuer
        self.clock = clock

    async def switch_user(
        self, token: Optional[str], target_username: Optional[str]
    ) -> TokenPair:
        """Issue a fresh pair for ``target_username`` on the token's Account."""
        claims = verify_refresh_token(self.issuer.codec, token, self.clock)

        account = await self.store.find_account_by_id(claims.account_id)
        if account is None:
            raise UnknownAccount(f"Could not find account with id {claims.account_id}")

        # Still outstanding: not logged out, not already rotated away.
        record = await self.store.find_refresh_record(token)
        if record is None or record.account_id != account.id:
            logger.info(
                "auth.switch_rejected",
                account_id=account.id,
                reason="token_not_outstanding",
            )
            raise UnknownAccountForToken()

        target = account.find_user(target_username) if target_username else None
        if target is None:
            logger.info(
                "auth.switch_rejected",
                account_id=account.id,
                target_username=target_username,
            )
            raise UnknownUser(
                f"Could not find user on {account.id} with username {target_username}"
            )

        pair = await self.issuer.issue(account.id, target)
        await self.store.commit()
        logger.info(
            "auth.user_switched",
            account_id=account.id,
            from_user_id=claims.user_id,
            to_user_id=target.id,
        )
        return pair
