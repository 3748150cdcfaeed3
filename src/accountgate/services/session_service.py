"""Session service — issuing, rotating and revoking token pairs.

Learn: Access tokens are stateless: valid iff signature and expiry check
out. Refresh tokens are also signed, but on top of that each outstanding
one has a RefreshTokenRecord row keyed by the token string. No row, no
refresh.

- SessionIssuer.issue()            → access + refresh, inserts one record
- SessionIssuer.issue_selection()  → selection token, inserts nothing
- RefreshCoordinator.refresh()     → single-use rotation: delete old
                                     record, insert new one
- RefreshCoordinator.logout()      → delete the record, issue nothing

Rotation's delete + insert run inside one store unit of work. If the
insert fails after the delete, the session is simply lost and the user
logs in again.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog

from accountgate.auth.claims import (
    ACCESS,
    REFRESH,
    SelectionClaims,
    SessionClaims,
    session_claims,
)
from accountgate.auth.errors import (
    Expired,
    InvalidToken,
    MissingToken,
    TokenAccountMismatch,
    UnknownAccount,
    UnknownAccountForToken,
    UnknownToken,
    UnknownUser,
)
from accountgate.auth.jwt import TokenCodec, TokenError, TokenExpiredError
from accountgate.config import Settings
from accountgate.store.base import AccountRecord, AuthStore, UserRecord

logger = structlog.get_logger()


@dataclass(frozen=True)
class TokenLifetimes:
    access: timedelta = timedelta(minutes=30)
    refresh: timedelta = timedelta(days=548)
    selection: timedelta = timedelta(minutes=30)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenLifetimes":
        return cls(
            access=timedelta(minutes=settings.access_token_expire_minutes),
            refresh=timedelta(days=settings.refresh_token_expire_days),
            selection=timedelta(minutes=settings.selection_token_expire_minutes),
        )


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    account_id: str
    user_id: str
    roles: str


def verify_refresh_token(
    codec: TokenCodec,
    token: Optional[str],
    clock: Optional[Callable[[], datetime]] = None,
) -> SessionClaims:
    """Shared front half of refresh and switch.

    MissingToken → InvalidToken → Expired, in that order. The expiry is
    re-checked against ``clock`` even though the codec already checked it.
    """
    if not token:
        raise MissingToken()
    try:
        claims = codec.verify(token)
    except TokenExpiredError:
        raise Expired("Refresh token is expired")
    except TokenError:
        raise InvalidToken("Could not verify refresh token")

    if not isinstance(claims, SessionClaims) or claims.purpose != REFRESH:
        raise InvalidToken("Not a refresh token")

    now = (clock or codec.now)()
    if claims.expires_at is None or claims.expires_at <= now:
        raise Expired("Refresh token is expired")
    return claims


class SessionIssuer:
    """Mints token pairs for a resolved (Account, User)."""

    def __init__(
        self,
        store: AuthStore,
        codec: TokenCodec,
        lifetimes: Optional[TokenLifetimes] = None,
    ):
        self.store = store
        self.codec = codec
        self.lifetimes = lifetimes or TokenLifetimes()

    async def issue(self, account_id: str, user: UserRecord) -> TokenPair:
        """Sign access + refresh tokens and record the refresh token.

        Does not commit; the calling operation owns the unit of work.
        """
        access_token = self.codec.sign(
            session_claims(ACCESS, account_id, user.id, user.roles),
            self.lifetimes.access,
        )
        refresh_token = self.codec.sign(
            session_claims(REFRESH, account_id, user.id, user.roles),
            self.lifetimes.refresh,
        )
        await self.store.create_refresh_record(refresh_token, account_id)
        logger.info("auth.session_issued", account_id=account_id, user_id=user.id)
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            account_id=account_id,
            user_id=user.id,
            roles=user.roles,
        )

    def issue_selection(self, account: AccountRecord) -> str:
        """Sign a selection token. Nothing is persisted."""
        logger.info("auth.selection_issued", account_id=account.id, users=len(account.users))
        return self.codec.sign(
            SelectionClaims(account_id=account.id), self.lifetimes.selection
        )


class RefreshCoordinator:
    """Validates, rotates and revokes refresh tokens."""

    def __init__(
        self,
        store: AuthStore,
        issuer: SessionIssuer,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.issuer = issuer
        self.codec = issuer.codec
        self.clock = clock

    async def refresh(self, token: Optional[str]) -> TokenPair:
        """Exchange a refresh token for a new pair. The old token stops working."""
        claims = verify_refresh_token(self.codec, token, self.clock)
        log = logger.bind(account_id=claims.account_id, user_id=claims.user_id)

        found = await self.store.find_user_by_id(claims.user_id)
        if found is None:
            log.info("auth.refresh_rejected", reason="unknown_user")
            raise UnknownUser("Could not find a user which corresponds to that refresh token")
        user, _ = found

        records = await self.store.list_refresh_records_for_account(claims.account_id)
        if not any(r.token == token for r in records):
            log.info("auth.refresh_rejected", reason="token_not_outstanding")
            raise UnknownAccountForToken()

        # Lost a race with another refresh of the same token.
        if not await self.store.delete_refresh_record(token):
            log.info("auth.refresh_rejected", reason="token_consumed_concurrently")
            raise UnknownAccountForToken()

        pair = await self.issuer.issue(claims.account_id, user)
        await self.store.commit()
        log.info("auth.refresh_rotated")
        return pair

    async def logout(self, token: Optional[str]) -> None:
        """Revoke a refresh token by deleting its record."""
        if not token:
            raise MissingToken("Could not find a token to log out")
        try:
            claims = self.codec.verify(token)
        except TokenError:
            raise InvalidToken("JWT is not valid")

        account = await self.store.find_account_by_id(claims.account_id)
        if account is None:
            raise UnknownAccount(f"Could not find the account {claims.account_id}")

        record = await self.store.find_refresh_record(token)
        if record is None:
            raise UnknownToken("Could not find the JWT")
        if record.account_id != claims.account_id:
            logger.warning(
                "auth.logout_account_mismatch",
                account_id=claims.account_id,
                record_account_id=record.account_id,
            )
            raise TokenAccountMismatch()

        await self.store.delete_refresh_record(token)
        await self.store.commit()
        logger.info("auth.logged_out", account_id=claims.account_id)
