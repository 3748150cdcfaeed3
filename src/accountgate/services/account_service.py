"""Account service — login, signup, and managing Users on an Account.

Learn: This is the entry point the API routes call. It strings together
the IdentityResolver, UsernameAllocator and SessionIssuer:

- login: resolve credentials → full token pair, or a selection token
  when the Account has several Users and none was picked
- signup: new Account + first User + token pair
- create_user_on_account: an authenticated caller adds a sibling User
- users_on_account: a selection token lists the Account's Users

The caller is always passed in explicitly; nothing here reads an
ambient "current user".
"""

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

import structlog

from accountgate.auth.claims import SelectionClaims
from accountgate.auth.errors import (
    AuthError,
    EmailTaken,
    Expired,
    InvalidToken,
    MissingField,
    UnknownAccount,
    UsernameTaken,
)
from accountgate.auth.jwt import TokenCodec, TokenError, TokenExpiredError
from accountgate.auth.password import DEFAULT_ROUNDS, hash_password
from accountgate.services.identity_service import IdentityResolver
from accountgate.services.session_service import (
    SessionIssuer,
    TokenLifetimes,
    TokenPair,
)
from accountgate.services.username_service import UsernameAllocator
from accountgate.store.base import AuthStore, DuplicateRecord, UserRecord

if TYPE_CHECKING:
    from accountgate.auth.dependencies import CurrentIdentity

logger = structlog.get_logger()


def _taken(e: DuplicateRecord, handle: str) -> AuthError:
    """A concurrent request claimed the email or username after our check."""
    logger.info("auth.lost_uniqueness_race", field=e.field)
    if e.field == "email":
        return EmailTaken()
    return UsernameTaken(f"Cannot use {handle!r} as username")


@dataclass(frozen=True)
class LoginResult:
    """Either ``tokens`` or ``selection_token`` is set, never both."""

    account_id: str
    tokens: Optional[TokenPair] = None
    selection_token: Optional[str] = None

    @property
    def ambiguous(self) -> bool:
        return self.tokens is None


class AccountService:
    def __init__(
        self,
        store: AuthStore,
        codec: TokenCodec,
        lifetimes: Optional[TokenLifetimes] = None,
        signup_roles: str = "user",
        hash_rounds: int = DEFAULT_ROUNDS,
    ):
        self.store = store
        self.codec = codec
        self.issuer = SessionIssuer(store, codec, lifetimes)
        self.resolver = IdentityResolver(store)
        self.usernames = UsernameAllocator(store)
        self.signup_roles = signup_roles
        self.hash_rounds = hash_rounds

    # ─── Login ──────────────────────────────────────────

    async def login(
        self, identifier: str, password: str, username: Optional[str] = None
    ) -> LoginResult:
        """Log in with an email or username plus the Account password."""
        if not identifier:
            raise MissingField("identifier")
        if not password:
            raise MissingField("password")

        resolution = await self.resolver.resolve(identifier, password, username)
        account = resolution.account

        if resolution.ambiguous:
            return LoginResult(
                account_id=account.id,
                selection_token=self.issuer.issue_selection(account),
            )

        pair = await self.issuer.issue(account.id, resolution.user)
        await self.store.commit()
        logger.info("auth.login_succeeded", account_id=account.id, user_id=pair.user_id)
        return LoginResult(account_id=account.id, tokens=pair)

    # ─── Signup ─────────────────────────────────────────

    async def signup(
        self,
        email: Optional[str],
        password: Optional[str],
        username: Optional[str],
    ) -> TokenPair:
        """Create an Account with its first User and log straight in."""
        for name, value in (("email", email), ("password", password), ("username", username)):
            if not value:
                raise MissingField(name)

        slug = await self.usernames.allocate(username)
        if await self.store.find_account_by_email(email):
            raise EmailTaken()

        password_hash, salt = hash_password(password, rounds=self.hash_rounds)
        try:
            account = await self.store.create_account(
                str(uuid.uuid4()), email, password_hash, salt
            )
            user = await self.store.create_user(
                str(uuid.uuid4()), slug, self.signup_roles, account.id
            )
        except DuplicateRecord as e:
            raise _taken(e, username) from e

        pair = await self.issuer.issue(account.id, user)
        await self.store.commit()
        logger.info(
            "auth.signup", account_id=account.id, user_id=user.id, username=user.username
        )
        return pair

    # ─── Users on an account ────────────────────────────

    async def create_user_on_account(
        self, caller: "CurrentIdentity", username: Optional[str]
    ) -> UserRecord:
        """Add a User to the caller's Account, inheriting the caller's roles."""
        if not username:
            raise MissingField("username")

        account = await self.store.find_account_by_id(caller.account_id)
        if account is None:
            raise UnknownAccount()

        slug = await self.usernames.allocate(username)
        try:
            user = await self.store.create_user(
                str(uuid.uuid4()), slug, caller.roles, account.id
            )
        except DuplicateRecord as e:
            raise _taken(e, username) from e
        await self.store.commit()
        logger.info(
            "auth.user_created",
            account_id=account.id,
            user_id=user.id,
            username=user.username,
            created_by=caller.user_id,
        )
        return user

    async def users_on_account(self, selection_token: Optional[str]) -> list[UserRecord]:
        """List the Users of the Account a selection token was issued for."""
        if not selection_token:
            raise MissingField("token")
        try:
            claims = self.codec.verify(selection_token)
        except TokenExpiredError:
            raise Expired("Selection token is expired")
        except TokenError:
            raise InvalidToken("Could not verify selection token")

        if not isinstance(claims, SelectionClaims):
            raise InvalidToken("Not a selection token")

        account = await self.store.find_account_by_id(claims.account_id)
        if account is None:
            raise UnknownAccount()
        return account.users
